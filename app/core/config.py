import os
from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw not in (None, "") else default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw not in (None, "") else default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw in (None, ""):
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME: str = "Notarization Platform"
    MONGODB_URI: str = os.getenv("MONGODB_URI")
    MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME")
    JWT_SECRET_KEY: str = os.getenv("JWT_SECRET_KEY")
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = _env_int("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", 30)
    CLIENT_URL: str = os.getenv("CLIENT_URL", "http://localhost:3000")
    SERVER_URL: str = os.getenv("SERVER_URL", "http://localhost:8000")
    # Comma-separated emails that are registered with the admin role
    ADMIN_EMAILS: str = os.getenv("ADMIN_EMAILS", "")

    # Uploaded originals and output files
    SUPABASE_URL: str = os.getenv("SUPABASE_URL")
    SUPABASE_SERVICE_ROLE: str = os.getenv("SUPABASE_SERVICE_ROLE")
    SUPABASE_ANON_PUBLIC: str = os.getenv("SUPABASE_ANON_PUBLIC")
    SUPABASE_BUCKET: str = os.getenv("SUPABASE_BUCKET", "notarization-documents")

    # Ledger / mint
    SOLANA_CLUSTER_URL: str = os.getenv("SOLANA_CLUSTER_URL", "https://api.devnet.solana.com")
    MINT_SERVICE_URL: str = os.getenv("MINT_SERVICE_URL")
    MINT_SERVICE_API_KEY: str = os.getenv("MINT_SERVICE_API_KEY")
    NFT_SYMBOL: str = os.getenv("NFT_SYMBOL", "DOC")

    # Pinning
    PINATA_JWT: str = os.getenv("PINATA_JWT")
    PINATA_GATEWAY: str = os.getenv("PINATA_GATEWAY", "gateway.pinata.cloud")

    # Payment gateway
    PAYOS_CLIENT_ID: str = os.getenv("PAYOS_CLIENT_ID")
    PAYOS_API_KEY: str = os.getenv("PAYOS_API_KEY")
    PAYOS_CHECKSUM_KEY: str = os.getenv("PAYOS_CHECKSUM_KEY")
    PAYOS_API_URL: str = os.getenv("PAYOS_API_URL", "https://api-merchant.payos.vn")

    # Email
    EMAIL_API_URL: str = os.getenv("EMAIL_API_URL")
    EMAIL_API_KEY: str = os.getenv("EMAIL_API_KEY")
    EMAIL_FROM: str = os.getenv("EMAIL_FROM", "no-reply@notarization.local")

    # Encryption
    ENCRYPTION_MASTER_KEY: str = os.getenv("ENCRYPTION_MASTER_KEY")
    AUTHORIZED_WALLET_ADDRESS: str = os.getenv("AUTHORIZED_WALLET_ADDRESS")

    REDIS_URL: str = os.getenv("REDIS_URL")

    # Pricing
    COPY_PRICE: int = _env_int("COPY_PRICE", 2000)

    # Background sweeps
    ENABLE_SCHEDULER: bool = _env_bool("ENABLE_SCHEDULER", True)
    AUTO_VERIFY_INTERVAL_SECONDS: int = _env_int("AUTO_VERIFY_INTERVAL_SECONDS", 3600)
    PAYMENT_RECONCILE_INTERVAL_SECONDS: int = _env_int("PAYMENT_RECONCILE_INTERVAL_SECONDS", 24 * 3600)
    PAYMENT_RECONCILE_DELAY_SECONDS: float = _env_float("PAYMENT_RECONCILE_DELAY_SECONDS", 1.0)
    STALE_DOCUMENT_HOURS: int = _env_int("STALE_DOCUMENT_HOURS", 72)
    MINT_CLAIM_TIMEOUT_MINUTES: int = _env_int("MINT_CLAIM_TIMEOUT_MINUTES", 15)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()


def _mask_secret(val: str) -> str:
    if not val:
        return "<missing>"
    if len(val) <= 8:
        return "*" * len(val)
    return f"{val[:4]}...{val[-4:]}"


def log_configuration(logger) -> None:
    logger.info("Configuration: %s", {
        "MONGODB_DB_NAME": settings.MONGODB_DB_NAME,
        "SOLANA_CLUSTER_URL": settings.SOLANA_CLUSTER_URL,
        "SUPABASE_SERVICE_ROLE": _mask_secret(settings.SUPABASE_SERVICE_ROLE),
        "PINATA_JWT": _mask_secret(settings.PINATA_JWT),
        "PAYOS_CHECKSUM_KEY": _mask_secret(settings.PAYOS_CHECKSUM_KEY),
        "ENCRYPTION_MASTER_KEY": _mask_secret(settings.ENCRYPTION_MASTER_KEY),
        "JWT_SECRET_KEY": _mask_secret(settings.JWT_SECRET_KEY),
        "ENABLE_SCHEDULER": settings.ENABLE_SCHEDULER,
    })
