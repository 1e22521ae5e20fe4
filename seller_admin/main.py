"""Main application entry point: health check and Walmart connection endpoints."""

import logging
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException, Response
from pydantic import BaseModel, ValidationError

from .config import get_settings
from .database import check_database_health, dispose_engine, list_tables
from .errors import ConfigurationError, TokenExchangeError
from .walmart_token_service import ConnectionCheck, WalmartTokenService, create_state_token

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def validate_environment():
    """Validate all required environment variables on startup."""
    try:
        settings = get_settings()
        logging.getLogger().setLevel(settings.log_level.upper())
        logger.info("Environment variables validated successfully")
        if not settings.walmart_configured:
            logger.warning("Walmart client credentials not set; connect and refresh will fail")
        return settings
    except ValidationError as e:
        logger.error("ERROR: Missing or invalid environment variables:")
        logger.error(str(e))
        sys.exit(1)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown."""
    logger.info("Starting Seller Admin...")

    validate_environment()

    tables = list_tables()
    if "walmart_tokens" not in tables:
        logger.warning(f"walmart_tokens table missing (tables: {tables}); run alembic upgrade head")

    logger.info("Seller Admin started successfully")

    yield

    logger.info("Shutting down Seller Admin...")
    dispose_engine()
    logger.info("Seller Admin shutdown complete")


app = FastAPI(
    title="Seller Admin",
    description="Seller admin backend with Walmart Marketplace integration",
    version="1.0.0",
    lifespan=lifespan,
)


@lru_cache
def get_token_service() -> WalmartTokenService:
    """Dependency providing the shared token service."""
    try:
        return WalmartTokenService.from_settings()
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e


# =============================================================================
# Schemas
# =============================================================================


class CallbackRequest(BaseModel):
    code: str
    redirect_uri: str
    seller_id: str | None = None


class AuthorizationUrl(BaseModel):
    authorization_url: str
    state: str


class ConnectionSummary(BaseModel):
    """Connection details safe to show in the UI; never carries token values."""

    is_connected: bool
    was_refreshed: bool = False
    error: str | None = None
    token_type: str | None = None
    scope: str | None = None
    seller_id: str | None = None
    expires_at: datetime | None = None
    connected_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_check(cls, check: ConnectionCheck) -> "ConnectionSummary":
        fields = {}
        record = check.record
        if record is not None:
            fields = {
                "token_type": record.token_type,
                "scope": record.scope,
                "seller_id": record.seller_id,
                "expires_at": record.expires_at,
                "connected_at": record.created_at,
                "updated_at": record.updated_at,
            }
        return cls(
            is_connected=check.is_connected,
            was_refreshed=check.was_refreshed,
            error=check.error,
            **fields,
        )


# =============================================================================
# Routes
# =============================================================================


@app.get("/health")
async def health_check():
    """Health check endpoint.

    Verifies database connection and returns status.
    """
    db_healthy = check_database_health()

    if db_healthy:
        return {
            "status": "healthy",
            "database": "connected",
        }
    else:
        return {
            "status": "unhealthy",
            "database": "disconnected",
        }


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": "Seller Admin",
        "status": "running",
        "version": "1.0.0",
    }


@app.get("/walmart/{user_id}/authorize", response_model=AuthorizationUrl)
def walmart_authorize(
    user_id: str,
    redirect_uri: str,
    service: WalmartTokenService = Depends(get_token_service),
):
    """Start the Walmart OAuth flow. The caller keeps `state` to verify the callback."""
    state = create_state_token()
    try:
        url = service.generate_authorization_url(redirect_uri, state)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    logger.info(f"Issued Walmart authorization URL for user {user_id}")
    return AuthorizationUrl(authorization_url=url, state=state)


@app.post("/walmart/{user_id}/callback", response_model=ConnectionSummary)
def walmart_callback(
    user_id: str,
    body: CallbackRequest,
    service: WalmartTokenService = Depends(get_token_service),
):
    """Finish the Walmart OAuth flow by exchanging the authorization code."""
    try:
        record = service.connect(user_id, body.code, body.redirect_uri, body.seller_id)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except TokenExchangeError as e:
        raise HTTPException(status_code=502, detail=str(e)) from e
    return ConnectionSummary.from_check(ConnectionCheck(is_connected=True, record=record))


@app.get("/walmart/{user_id}/status", response_model=ConnectionSummary)
def walmart_status(
    user_id: str,
    service: WalmartTokenService = Depends(get_token_service),
):
    """Connection status for display, refreshing the token when it is about to expire."""
    return ConnectionSummary.from_check(service.ensure_valid_connection(user_id))


@app.delete("/walmart/{user_id}", status_code=204)
def walmart_disconnect(
    user_id: str,
    service: WalmartTokenService = Depends(get_token_service),
):
    """Disconnect the Walmart account by deleting its stored tokens."""
    service.delete_token(user_id)
    return Response(status_code=204)
