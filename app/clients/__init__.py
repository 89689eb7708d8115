from .interfaces import (
    LedgerClient,
    MintService,
    StorageService,
    EncryptionService,
    PaymentGateway,
    EmailSender,
    FileStorage,
    MintResult,
    PinResult,
    EncryptionResult,
    PaymentLink,
)
from .container import Collaborators, build_collaborators

__all__ = [
    "LedgerClient",
    "MintService",
    "StorageService",
    "EncryptionService",
    "PaymentGateway",
    "EmailSender",
    "FileStorage",
    "MintResult",
    "PinResult",
    "EncryptionResult",
    "PaymentLink",
    "Collaborators",
    "build_collaborators",
]
