import logging
from dataclasses import dataclass
from typing import Optional
import httpx

from app.clients.interfaces import (
    EmailSender,
    EncryptionService,
    FileStorage,
    LedgerClient,
    MintService,
    PaymentGateway,
    StorageService,
)
from app.clients.email_client import HttpEmailSender
from app.clients.encryption_client import EnvelopeEncryptionService
from app.clients.file_storage import SupabaseFileStorage
from app.clients.ledger_client import SolanaRpcLedger
from app.clients.mint_client import HttpMintService
from app.clients.payment_gateway import PayOSGateway
from app.clients.pinning_client import PinataStorage
from app.core.supabase_client import get_supabase_client

logger = logging.getLogger(__name__)


@dataclass
class Collaborators:
    ledger: LedgerClient
    mint: MintService
    storage: StorageService
    encryption: EncryptionService
    payments: PaymentGateway
    email: EmailSender
    files: FileStorage
    http: Optional[httpx.AsyncClient] = None

    async def aclose(self):
        if self.http is not None:
            await self.http.aclose()
            logger.info("Closed shared HTTP client")


def build_collaborators(settings) -> Collaborators:
    """Wire every external adapter once, sharing a single HTTP connection pool."""
    http = httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))
    ledger = SolanaRpcLedger(http, settings.SOLANA_CLUSTER_URL)

    collaborators = Collaborators(
        ledger=ledger,
        mint=HttpMintService(http, settings.MINT_SERVICE_URL, settings.MINT_SERVICE_API_KEY, settings.NFT_SYMBOL),
        storage=PinataStorage(http, settings.PINATA_JWT, settings.PINATA_GATEWAY),
        encryption=EnvelopeEncryptionService(settings.ENCRYPTION_MASTER_KEY, ledger),
        payments=PayOSGateway(
            http,
            settings.PAYOS_CLIENT_ID,
            settings.PAYOS_API_KEY,
            settings.PAYOS_CHECKSUM_KEY,
            settings.PAYOS_API_URL,
        ),
        email=HttpEmailSender(http, settings.EMAIL_API_URL, settings.EMAIL_API_KEY, settings.EMAIL_FROM),
        files=SupabaseFileStorage(get_supabase_client(), settings.SUPABASE_BUCKET),
        http=http,
    )
    logger.info("External collaborators initialized")
    return collaborators
