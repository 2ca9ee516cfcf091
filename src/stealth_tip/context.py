from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Union

from .config import Settings
from .contract import ContractClient
from .interface import ContractSchema
from .rpc import LedgerRpcClient
from .stealth import ss58_encode
from .wallet import Signer, load_signer

log = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Connection handle and active account, passed to every component."""

    settings: Settings
    rpc: LedgerRpcClient
    contract: ContractClient
    signer: Optional[Signer] = None

    @classmethod
    async def connect(cls, settings: Settings) -> "AppContext":
        signer = load_signer(settings.signer_seed)
        rpc = LedgerRpcClient(settings.rpc_url, timeout_s=settings.timeout_s)
        try:
            chain = await rpc.chain_name()
            schema = await ContractSchema.load(settings.schema_source, settings.timeout_s)
        except BaseException:
            await rpc.close()
            raise

        log.info("Connected to %s, contract %s", chain, settings.contract_address)
        contract = ContractClient(
            rpc, schema, settings.contract_address, settings.ss58_format
        )
        return cls(settings=settings, rpc=rpc, contract=contract, signer=signer)

    @property
    def caller_address(self) -> Union[bytes, str]:
        """Signer account, or the contract itself for read-only queries."""
        if self.signer is not None:
            return self.signer.address
        return self.settings.contract_address

    def account_text(self, account: bytes) -> str:
        return ss58_encode(account, self.settings.ss58_format)

    async def aclose(self) -> None:
        await self.rpc.close()
