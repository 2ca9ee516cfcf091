from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .errors import ContractQueryError, LedgerConnectionError, TransactionError
from .models import TxStatus, TxUpdate
from .project_constants import STATUS_POLL_INTERVAL_S

log = logging.getLogger(__name__)


class RpcFault(Exception):
    """JSON-RPC error object returned by the gateway."""

    def __init__(self, error: Any) -> None:
        self.error = error
        if isinstance(error, dict):
            self.code = error.get("code")
            message = error.get("message", str(error))
        else:
            self.code = None
            message = str(error)
        super().__init__(f"RPC error: {message}")


class LedgerRpcClient:
    """
    JSON-RPC 2.0 client for the ledger gateway.

    Gateway methods used:
      system_chain                    -> chain name (connectivity check)
      gateway_contractQuery           -> {"ok": bool, "output": ..., "error": ...}
      gateway_submitContractCall      -> extrinsic hash
      gateway_extrinsicStatus         -> {"status": ..., "block_hash": ..., "events": [...]}
    """

    def __init__(
        self,
        rpc_url: str,
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.client = httpx.AsyncClient(timeout=timeout_s, transport=transport)
        self._ids = itertools.count(1)

    async def close(self) -> None:
        await self.client.aclose()

    async def _post(self, method: str, params: List[Any]) -> Any:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        resp = await self.client.post(self.rpc_url, json=payload)
        resp.raise_for_status()
        data = resp.json()
        if not isinstance(data, dict):
            raise ValueError(f"JSON-RPC response is not an object: {data!r}")
        if "error" in data:
            raise RpcFault(data["error"])
        return data.get("result")

    async def chain_name(self) -> str:
        try:
            return str(await self._post("system_chain", []))
        except (httpx.HTTPError, RpcFault, ValueError) as e:
            raise LedgerConnectionError(f"Ledger endpoint {self.rpc_url} unreachable: {e}")

    async def contract_call(
        self,
        contract: str,
        caller: str,
        selector: str,
        args: List[Any],
    ) -> Any:
        """Dry-runs a read-only message and returns its decoded output."""
        try:
            result = await self._post(
                "gateway_contractQuery", [contract, caller, selector, args]
            )
        except (httpx.HTTPError, RpcFault, ValueError) as e:
            raise ContractQueryError(f"Query {selector} failed: {e}")

        if not isinstance(result, dict) or not result.get("ok"):
            reason = result.get("error") if isinstance(result, dict) else result
            raise ContractQueryError(f"Query {selector} reverted: {reason}")
        return result.get("output")

    async def submit_extrinsic(self, payload: Dict[str, Any], signature: str) -> str:
        """Returns the extrinsic hash once a peer has accepted the call."""
        try:
            tx_hash = await self._post("gateway_submitContractCall", [payload, signature])
        except httpx.HTTPError as e:
            raise LedgerConnectionError(f"Could not submit to {self.rpc_url}: {e}")
        except ValueError as e:
            raise LedgerConnectionError(f"Gateway returned a malformed response: {e}")
        except RpcFault as e:
            # The node refused the extrinsic outright (bad nonce, fee, signature).
            raise TransactionError(str(e), status=TxStatus.INVALID.value)

        if not tx_hash:
            raise LedgerConnectionError("Gateway accepted the call but returned no hash.")
        return str(tx_hash)

    async def extrinsic_status(self, tx_hash: str) -> Dict[str, Any]:
        result = await self._post("gateway_extrinsicStatus", [tx_hash])
        if not isinstance(result, dict):
            raise RpcFault(f"Status for {tx_hash} is not an object: {result!r}")
        return result

    async def watch_extrinsic(
        self,
        tx_hash: str,
        poll_interval_s: float = STATUS_POLL_INTERVAL_S,
    ) -> AsyncIterator[TxUpdate]:
        """
        Yields each status change until a terminal one. There is no
        client-side deadline: a stalled network keeps this waiting.
        """
        last: Optional[TxStatus] = None
        while True:
            try:
                info = await self.extrinsic_status(tx_hash)
            except (httpx.HTTPError, RpcFault, ValueError) as e:
                log.warning("Status poll for %s failed, retrying: %s", tx_hash, e)
                await asyncio.sleep(poll_interval_s)
                continue

            try:
                update = TxUpdate.from_gateway(info)
            except ValueError as e:
                raise LedgerConnectionError(f"Malformed status for {tx_hash}: {e}") from e
            if update is None:
                log.debug("Ignoring status %r for %s", info.get("status"), tx_hash)
            elif update.status != last:
                last = update.status
                yield update
                if update.status.is_terminal:
                    return

            await asyncio.sleep(poll_interval_s)
