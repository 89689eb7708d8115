"""Pinata pinning adapter (public pins plus private-gateway access links)."""

import json
import logging
import time
from typing import Any, Dict, Optional
import httpx

from app.clients.interfaces import StorageService, PinResult
from app.core.errors import ExternalServiceError

logger = logging.getLogger(__name__)

PINATA_API_URL = "https://api.pinata.cloud"


class PinataStorage(StorageService):
    def __init__(self, http: httpx.AsyncClient, jwt: Optional[str], gateway: str):
        self.http = http
        self.jwt = jwt
        self.gateway = gateway.replace("https://", "").rstrip("/")

        if not jwt:
            logger.warning("PINATA_JWT not configured; pinning will fail")

    def _headers(self) -> Dict[str, str]:
        if not self.jwt:
            raise ExternalServiceError("Pinning service is not configured")
        return {"Authorization": f"Bearer {self.jwt}"}

    def gateway_url(self, cid: str) -> str:
        return f"https://{self.gateway}/ipfs/{cid}"

    async def pin(self, data: bytes, name: str) -> PinResult:
        headers = self._headers()
        try:
            response = await self.http.post(
                f"{PINATA_API_URL}/pinning/pinFileToIPFS",
                headers=headers,
                files={"file": (name, data)},
                data={"pinataMetadata": json.dumps({"name": name})},
            )
            response.raise_for_status()
            cid = response.json()["IpfsHash"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Pinning '{name}' failed: {e}")
            raise ExternalServiceError(f"Pinning failed: {e}") from e

        logger.info(f"Pinned '{name}' as {cid}")
        return PinResult(cid=cid, uri=self.gateway_url(cid))

    async def pin_json(self, payload: Dict[str, Any], name: str) -> PinResult:
        headers = self._headers()
        try:
            response = await self.http.post(
                f"{PINATA_API_URL}/pinning/pinJSONToIPFS",
                headers=headers,
                json={"pinataContent": payload, "pinataMetadata": {"name": name}},
            )
            response.raise_for_status()
            cid = response.json()["IpfsHash"]
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.error(f"Pinning JSON '{name}' failed: {e}")
            raise ExternalServiceError(f"Pinning failed: {e}") from e

        logger.info(f"Pinned JSON '{name}' as {cid}")
        return PinResult(cid=cid, uri=self.gateway_url(cid))

    async def create_access_link(self, cid: str, expires_in_seconds: int = 60) -> str:
        headers = self._headers()
        payload = {
            "url": f"https://{self.gateway}/files/{cid}",
            "expires": expires_in_seconds,
            "date": int(time.time()),
            "method": "GET",
        }
        try:
            response = await self.http.post(f"{PINATA_API_URL}/v3/files/private/download_link", headers=headers, json=payload)
            response.raise_for_status()
            link = response.json().get("data")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Access link for {cid} failed: {e}")
            raise ExternalServiceError(f"Access link creation failed: {e}") from e

        if not link:
            raise ExternalServiceError("Pinning service returned no access link")
        return link
