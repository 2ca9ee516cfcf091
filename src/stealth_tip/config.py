from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .project_constants import (
    CONTRACT_ADDRESS,
    DEFAULT_LINK_BASE_URL,
    DEFAULT_SCHEMA_SOURCE,
    SS58_FORMAT,
)


def _ss58_format_from_env() -> int:
    raw = os.getenv("SS58_FORMAT", "").strip()
    try:
        return int(raw) if raw else SS58_FORMAT
    except ValueError as e:
        raise RuntimeError(f"Invalid numeric setting SS58_FORMAT in environment: {e}")


def _link_base_url_from_env() -> str:
    return os.getenv("TIP_LINK_BASE_URL", "").strip() or DEFAULT_LINK_BASE_URL


@dataclass(frozen=True)
class DisplaySettings:
    """The subset offline commands need; no ledger URL required."""

    ss58_format: int = SS58_FORMAT
    link_base_url: str = DEFAULT_LINK_BASE_URL

    @staticmethod
    def from_env(
        ss58_format_override: int | None = None,
        link_base_url_override: str | None = None,
    ) -> "DisplaySettings":
        load_dotenv()
        return DisplaySettings(
            ss58_format=ss58_format_override
            if ss58_format_override is not None
            else _ss58_format_from_env(),
            link_base_url=link_base_url_override or _link_base_url_from_env(),
        )


@dataclass(frozen=True)
class Settings:
    rpc_url: str
    contract_address: str = CONTRACT_ADDRESS
    schema_source: str = DEFAULT_SCHEMA_SOURCE
    signer_seed: Optional[str] = None
    ss58_format: int = SS58_FORMAT
    link_base_url: str = DEFAULT_LINK_BASE_URL
    timeout_s: float = 30.0

    @staticmethod
    def from_env(
        rpc_url_override: str | None = None,
        timeout_override: float | None = None,
        ss58_format_override: int | None = None,
        link_base_url_override: str | None = None,
    ) -> "Settings":
        load_dotenv()

        # If user provides --rpc-url, trust it.
        rpc_url = rpc_url_override or os.getenv("LEDGER_RPC_URL", "").strip()
        if not rpc_url:
            raise RuntimeError(
                "Missing LEDGER_RPC_URL. Put it in .env, export it, or pass --rpc-url."
            )

        timeout_raw = os.getenv("LEDGER_TIMEOUT", "").strip()
        try:
            timeout_s = float(timeout_raw) if timeout_raw else 30.0
        except ValueError as e:
            raise RuntimeError(f"Invalid numeric setting in environment: {e}")

        if timeout_override is not None:
            timeout_s = timeout_override

        display = DisplaySettings.from_env(ss58_format_override, link_base_url_override)
        return Settings(
            rpc_url=rpc_url,
            contract_address=os.getenv("CONTRACT_ADDRESS", "").strip()
            or CONTRACT_ADDRESS,
            schema_source=os.getenv("CONTRACT_SCHEMA", "").strip()
            or DEFAULT_SCHEMA_SOURCE,
            signer_seed=os.getenv("SIGNER_SEED", "").strip() or None,
            ss58_format=display.ss58_format,
            link_base_url=display.link_base_url,
            timeout_s=timeout_s,
        )
