import base64
import logging
import re
from typing import Any, Dict, Optional

import httpx

from app.clients import Collaborators
from app.clients.encryption_client import build_balance_policy
from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

IPFS_CID_PATTERN = re.compile(r"/ipfs/([^/?#]+)")


def cluster_suffix(rpc_url: Optional[str]) -> str:
    return "?cluster=devnet" if rpc_url and "devnet" in rpc_url else ""


def ipfs_gateway_link(uri: Optional[str], gateway: Optional[str] = None) -> Optional[str]:
    if not uri:
        return None
    match = IPFS_CID_PATTERN.search(uri)
    if not match:
        return None
    host = (gateway or settings.PINATA_GATEWAY).replace("https://", "").rstrip("/")
    return f"https://{host}/ipfs/{match.group(1)}"


def build_view_links(mint_address: str, metadata_uri: Optional[str] = None, rpc_url: Optional[str] = None) -> Dict[str, Optional[str]]:
    suffix = cluster_suffix(rpc_url if rpc_url is not None else settings.SOLANA_CLUSTER_URL)
    return {
        "explorer_link": f"https://explorer.solana.com/address/{mint_address}{suffix}",
        "solscan_link": f"https://solscan.io/token/{mint_address}{suffix}",
        "ipfs_link": ipfs_gateway_link(metadata_uri),
    }


class NFTService:
    """Read-side ledger lookups plus the encrypted-upload flow."""

    def __init__(self, collaborators: Collaborators):
        self.ledger = collaborators.ledger
        self.storage = collaborators.storage
        self.encryption = collaborators.encryption
        self.http = collaborators.http

    async def _fetch_offchain(self, uri: Optional[str]) -> Optional[Dict[str, Any]]:
        if not uri or self.http is None:
            return None
        try:
            response = await self.http.get(uri)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Could not fetch off-chain metadata from {uri}: {e}")
            return None

    async def get_nft_metadata(self, mint_address: str) -> Dict[str, Any]:
        if not mint_address:
            raise ValidationError("Mint address is required")
        onchain = await self.ledger.get_asset_metadata(mint_address)
        return {
            **onchain,
            "offchain": await self._fetch_offchain(onchain.get("uri")),
            **build_view_links(mint_address, onchain.get("uri")),
        }

    async def get_transaction(self, signature: str) -> Dict[str, Any]:
        transaction = await self.ledger.get_transaction(signature)
        if not transaction:
            raise NotFoundError("Transaction not found")
        suffix = cluster_suffix(settings.SOLANA_CLUSTER_URL)
        return {
            "signature": signature,
            "slot": transaction.get("slot"),
            "block_time": transaction.get("blockTime"),
            "error": (transaction.get("meta") or {}).get("err"),
            "explorer_link": f"https://explorer.solana.com/tx/{signature}{suffix}",
        }

    async def get_balance(self, address: Optional[str] = None) -> Dict[str, Any]:
        address = address or settings.AUTHORIZED_WALLET_ADDRESS
        if not address:
            raise ValidationError("A wallet address is required")
        lamports = await self.ledger.get_balance(address)
        return {"address": address, "lamports": lamports, "sol": lamports / 1_000_000_000}

    async def create_access_link(self, cid: str, expires_in_seconds: int = 60) -> Dict[str, Any]:
        link = await self.storage.create_access_link(cid, expires_in_seconds)
        return {"cid": cid, "url": link, "expires_in_seconds": expires_in_seconds}

    async def encrypt_and_upload(self, data: bytes, filename: str, wallet_address: Optional[str] = None) -> Dict[str, Any]:
        if not data:
            raise ValidationError("No file uploaded")
        address = wallet_address or settings.AUTHORIZED_WALLET_ADDRESS
        if not address:
            raise ValidationError("A wallet address is required to build the access-control conditions")

        policy = build_balance_policy(address)
        encrypted = await self.encryption.encrypt(data, policy)
        pinned = await self.storage.pin(encrypted.ciphertext, f"encrypted-{filename}")

        logger.info(f"Encrypted and pinned '{filename}' as {pinned.cid}")
        return {
            "message": "File encrypted and uploaded successfully",
            "data": {
                "metadataUri": pinned.uri,
                "cid": pinned.cid,
                "encryptionDetails": {
                    "keyRef": encrypted.key_ref,
                    "accessControlConditions": encrypted.policy,
                },
            },
        }

    async def decrypt(self, ciphertext_b64: str, key_ref: str, policy: Dict[str, Any]) -> Dict[str, Any]:
        try:
            ciphertext = base64.b64decode(ciphertext_b64, validate=True)
        except ValueError as e:
            raise ValidationError(f"ciphertext must be base64: {e}") from e

        plaintext = await self.encryption.decrypt(ciphertext, key_ref, policy)
        return {
            "message": "File decrypted successfully",
            "data": {"decryptedFile": base64.b64encode(plaintext).decode("ascii")},
        }
