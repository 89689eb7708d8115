from dataclasses import dataclass

from app.clients import Collaborators
from app.services.minting_service import MintingService
from app.services.nft_service import NFTService
from app.services.notarization_service import NotarizationService
from app.services.payment_service import PaymentService
from app.services.wallet_service import WalletService


@dataclass
class Services:
    notarization: NotarizationService
    payments: PaymentService
    minting: MintingService
    wallets: WalletService
    nft: NFTService


def build_services(collaborators: Collaborators, reconcile_delay=None) -> Services:
    """Construct every service around one set of collaborators.

    payments -> minting -> wallets -> payments is a loop, so the wallet
    service gets its payment service after construction.
    """
    wallets = WalletService(collaborators)
    minting = MintingService(collaborators, wallets)
    payments = PaymentService(collaborators, minting, reconcile_delay=reconcile_delay)
    wallets.payments = payments
    notarization = NotarizationService(collaborators, payments)
    return Services(
        notarization=notarization,
        payments=payments,
        minting=minting,
        wallets=wallets,
        nft=NFTService(collaborators),
    )
