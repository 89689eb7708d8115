import logging
from typing import Optional
import httpx

from app.clients.interfaces import MintService, MintResult
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)


class HttpMintService(MintService):
    """Mints through a signing relay that owns the authority keypair.

    The relay builds and signs the create-NFT transaction, submits it and
    answers once it is confirmed, so no private key ever reaches this API.
    """

    def __init__(self, http: httpx.AsyncClient, base_url: Optional[str], api_key: Optional[str], symbol: str = "DOC"):
        self.http = http
        self.base_url = (base_url or "").rstrip("/")
        self.api_key = api_key
        self.symbol = symbol

        if not self.base_url:
            logger.warning("MINT_SERVICE_URL not configured; minting will fail")

    async def create_nft(self, name: str, uri: str) -> MintResult:
        if not self.base_url:
            raise ExternalServiceError("Mint service is not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        # on-chain name is capped at 32 bytes by the token metadata program
        payload = {"name": name[:32], "symbol": self.symbol, "uri": uri, "sellerFeeBasisPoints": 0}
        try:
            response = await self.http.post(f"{self.base_url}/nfts", headers=headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Mint request for '{name}' failed: {e}")
            raise ExternalServiceError(f"Mint request failed: {e}") from e

        mint_address = data.get("mintAddress") or data.get("mint")
        signature = data.get("signature") or data.get("transactionSignature")
        if not mint_address or not signature:
            raise ExternalServiceError("Mint service returned an incomplete result")

        logger.info(f"Minted NFT {mint_address} for '{name}'")
        return MintResult(
            mint_address=mint_address,
            transaction_signature=signature,
            metadata_address=data.get("metadataAddress"),
            program_id=data.get("programId"),
        )
