from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.requests import Request
from app.api.auth_routes import router as auth_router
from app.api.notarization_routes import router as notarization_router
from app.api.payment_routes import router as payment_router
from app.api.wallet_routes import router as wallet_router
from app.api.nft_routes import router as nft_router, private_ipfs_router
from app.api.encryption_routes import router as encryption_router
from contextlib import asynccontextmanager
from app.clients import build_collaborators
from app.database.connection import init_db
from app.core.config import log_configuration, settings
from app.core.errors import AppError
from app.core.idempotency import get_idempotency_store
from app.services import build_services
from app.workers.scheduler import start_scheduler
from fastapi.exceptions import RequestValidationError
from fastapi import HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
import logging
import traceback


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all API responses.

    This middleware implements:
    1. X-Content-Type-Options: Prevents MIME type sniffing attacks
    2. X-Frame-Options: Legacy clickjacking protection
    3. X-XSS-Protection: Legacy XSS protection header
    4. Referrer-Policy: Controls how referrer information is shared
    5. Permissions-Policy: Restricts access to sensitive APIs

    OPTIONS requests are left to CORSMiddleware, which is registered after
    this middleware and therefore runs before it.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)

        if request.method != "OPTIONS":
            response.headers["X-Content-Type-Options"] = "nosniff"
            response.headers["X-Frame-Options"] = "DENY"
            response.headers["X-XSS-Protection"] = "1; mode=block"
            response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
            response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    log_configuration(logging.getLogger("startup"))
    await init_db()
    collaborators = build_collaborators(settings)
    app.state.collaborators = collaborators
    app.state.services = build_services(collaborators)

    scheduler = None
    if settings.ENABLE_SCHEDULER:
        scheduler = start_scheduler(app.state.services.notarization, app.state.services.payments, settings)

    yield

    if scheduler is not None:
        await scheduler.shutdown()
    await collaborators.aclose()
    await get_idempotency_store().close()

app = FastAPI(
    title="Notarization Platform",
    description="Document notarization workflow with payment-triggered NFT minting",
    version="1.0.0",
    lifespan=lifespan
)


# Global exception handlers to return structured JSON and log tracebacks
logger = logging.getLogger("server_exception_handler")


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    body = {
        "error": {
            "code": exc.code,
            "message": exc.message,
            "status_code": exc.status_code
        }
    }
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = {
        "error": {
            "code": "http_error",
            "message": str(exc.detail) if exc.detail else str(exc.status_code),
            "status_code": exc.status_code
        }
    }
    logger.warning(f"HTTPException handled: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content=body, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = {
        "error": {
            "code": "validation_error",
            "message": "Request validation failed",
            "status_code": 422,
            "details": exc.errors()
        }
    }
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(status_code=422, content=jsonable_encoder(body))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    # Catch-all: log the traceback and keep the error body shape consistent
    tb = traceback.format_exc()
    logger.error(f"Unhandled exception: {str(exc)}\n{tb}")
    body = {
        "error": {
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
            "status_code": 500
        }
    }
    return JSONResponse(status_code=500, content=body)

# Support comma-separated CLIENT_URL values (e.g. "http://localhost:3000,http://localhost:3001")
raw_origins = settings.CLIENT_URL or ""
allowed_origins = [o.strip() for o in raw_origins.split(",") if o.strip()]

# Always include both development ports for development environment
if not allowed_origins or any("localhost" in origin for origin in allowed_origins):
    allowed_origins = list(set(allowed_origins + ["http://localhost:3000", "http://localhost:3001"]))

logger.info(f"CORS allowed origins: {allowed_origins}")

# Middleware execution order is LIFO: CORSMiddleware is added last so it runs
# first and answers preflight requests before SecurityHeadersMiddleware.
app.add_middleware(SecurityHeadersMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"],
    allow_headers=[
        "Content-Type",
        "Authorization",
        "Accept",
        "Origin",
        "Accept-Language",
        "Content-Language",
        "X-Requested-With",
        "Cache-Control",
        "If-Modified-Since",
        "If-None-Match",
        "Pragma",
        # Lets the client retry uploads safely
        "Idempotency-Key",
    ],
    expose_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

# Include routers
app.include_router(auth_router)
app.include_router(notarization_router)
app.include_router(payment_router)
app.include_router(wallet_router)
app.include_router(nft_router)
app.include_router(private_ipfs_router)
app.include_router(encryption_router)

@app.get("/")
async def root():
    return {"message": "Notarization API is running!"}

@app.get("/health")
async def health_check():
    return {"status": "healthy", "message": "API is running"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
