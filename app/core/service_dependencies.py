import logging
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


# Returns the service container built at startup or raises an error if unavailable
def _services(request: Request):
    services = getattr(request.app.state, "services", None)
    if services is None:
        logger.error("Services are not initialized")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is not initialized. Please contact system administrator."
        )
    return services


def get_notarization_service(request: Request):
    return _services(request).notarization


def get_payment_service(request: Request):
    return _services(request).payments


def get_wallet_service(request: Request):
    return _services(request).wallets


def get_nft_service(request: Request):
    return _services(request).nft
