"""
Ports for the external collaborators.

The workflow, settlement and wallet services only ever talk to these
abstractions; concrete adapters live next to this module and are wired once
at startup by ``app.clients.container.build_collaborators``.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass
class MintResult:
    mint_address: str
    transaction_signature: str
    metadata_address: Optional[str] = None
    program_id: Optional[str] = None


@dataclass
class PinResult:
    cid: str
    uri: str


@dataclass
class EncryptionResult:
    ciphertext: bytes
    key_ref: str
    policy: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentLink:
    checkout_url: str
    payment_link_id: Optional[str] = None


class LedgerClient(ABC):
    """Port: distributed ledger RPC."""

    @abstractmethod
    async def get_balance(self, address: str) -> int:
        ...

    @abstractmethod
    async def submit_and_confirm(self, signed_transaction: str) -> str:
        """Submit a signed, serialized transaction and wait for confirmation.

        Returns the transaction signature.
        """
        ...

    @abstractmethod
    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_asset_metadata(self, mint_address: str) -> Dict[str, Any]:
        ...


class MintService(ABC):
    """Port: NFT mint + on-chain metadata."""

    @abstractmethod
    async def create_nft(self, name: str, uri: str) -> MintResult:
        ...


class StorageService(ABC):
    """Port: content-addressed pinning."""

    @abstractmethod
    async def pin(self, data: bytes, name: str) -> PinResult:
        ...

    @abstractmethod
    async def pin_json(self, payload: Dict[str, Any], name: str) -> PinResult:
        ...

    @abstractmethod
    async def create_access_link(self, cid: str, expires_in_seconds: int = 60) -> str:
        ...


class EncryptionService(ABC):
    """Port: encryption gated by an access-control policy."""

    @abstractmethod
    async def encrypt(self, data: bytes, policy: Dict[str, Any]) -> EncryptionResult:
        ...

    @abstractmethod
    async def decrypt(self, ciphertext: bytes, key_ref: str, policy: Dict[str, Any]) -> bytes:
        ...


class PaymentGateway(ABC):
    """Port: hosted checkout provider."""

    @abstractmethod
    async def create_link(
        self,
        order_code: int,
        amount: int,
        description: str,
        return_url: str,
        cancel_url: str,
    ) -> PaymentLink:
        ...

    @abstractmethod
    async def get_status(self, order_code: int) -> str:
        """Gateway status string, e.g. ``PENDING``, ``PAID``, ``CANCELLED``."""
        ...


class EmailSender(ABC):
    """Port: transactional email."""

    @abstractmethod
    async def send(self, to: str, template: str, data: Dict[str, Any]) -> None:
        ...


class FileStorage(ABC):
    """Port: private object storage for uploaded originals."""

    @abstractmethod
    async def upload(self, data: bytes, path: str, content_type: str) -> str:
        ...

    @abstractmethod
    async def signed_url(self, path: str, expires_in_seconds: int = 3600) -> str:
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        ...
