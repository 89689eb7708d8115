"""Solana JSON-RPC ledger adapter."""

import asyncio
import itertools
import logging
from typing import Any, Dict, Optional
import httpx

from app.clients.interfaces import LedgerClient
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

CONFIRMED_STATES = ("confirmed", "finalized")


class SolanaRpcLedger(LedgerClient):
    def __init__(self, http: httpx.AsyncClient, rpc_url: str, confirm_attempts: int = 30, confirm_interval: float = 1.0):
        self.http = http
        self.rpc_url = rpc_url
        self.confirm_attempts = confirm_attempts
        self.confirm_interval = confirm_interval
        self._ids = itertools.count(1)

    async def _call(self, method: str, params: Any = None) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or []}
        try:
            response = await self.http.post(self.rpc_url, json=payload)
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"RPC {method} failed: {e}")
            raise ExternalServiceError(f"Ledger RPC {method} failed: {e}") from e

        if body.get("error"):
            message = body["error"].get("message", "unknown error")
            logger.error(f"RPC {method} returned error: {message}")
            raise ExternalServiceError(f"Ledger RPC {method} error: {message}")
        return body.get("result")

    async def get_balance(self, address: str) -> int:
        result = await self._call("getBalance", [address, {"commitment": "confirmed"}])
        return int((result or {}).get("value", 0))

    async def submit_and_confirm(self, signed_transaction: str) -> str:
        signature = await self._call(
            "sendTransaction",
            [signed_transaction, {"encoding": "base64", "preflightCommitment": "confirmed"}],
        )
        logger.info(f"Submitted transaction {signature}; waiting for confirmation")

        for _ in range(self.confirm_attempts):
            result = await self._call("getSignatureStatuses", [[signature], {"searchTransactionHistory": True}])
            statuses = (result or {}).get("value") or [None]
            current = statuses[0]
            if current:
                if current.get("err"):
                    raise ExternalServiceError(f"Transaction {signature} failed: {current['err']}")
                if current.get("confirmationStatus") in CONFIRMED_STATES:
                    return signature
            await asyncio.sleep(self.confirm_interval)

        raise ExternalServiceError(f"Transaction {signature} was not confirmed in time")

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await self._call(
            "getTransaction",
            [signature, {"encoding": "jsonParsed", "maxSupportedTransactionVersion": 0}],
        )

    async def get_asset_metadata(self, mint_address: str) -> Dict[str, Any]:
        # DAS getAsset; metadata account plus off-chain json uri
        result = await self._call("getAsset", {"id": mint_address})
        if not result:
            raise ExternalServiceError(f"No asset found for mint {mint_address}")
        content = result.get("content") or {}
        metadata = content.get("metadata") or {}
        return {
            "mint": mint_address,
            "name": metadata.get("name"),
            "symbol": metadata.get("symbol"),
            "uri": content.get("json_uri"),
            "update_authority": ((result.get("authorities") or [{}])[0]).get("address"),
            "owner": (result.get("ownership") or {}).get("owner"),
        }
