"""Walmart Marketplace API client for the OAuth token endpoints.

Handles the authorization URL, the authorization-code and refresh-token grants
against /v3/token, and the headers every marketplace API call needs. Requests
are sent once; failures are reported to the caller and never retried.
"""

import logging
import uuid
from urllib.parse import urlencode

import requests
from pydantic import BaseModel, ValidationError

from .config import Settings, get_settings
from .errors import AuthExchangeError, ConfigurationError, RefreshExchangeError, TokenExchangeError

logger = logging.getLogger(__name__)

TOKEN_PATH = "/v3/token"
AUTHORIZE_PATH = "/v3/token/authorize"


class TokenResponse(BaseModel):
    """Successful body of a /v3/token call."""

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    refresh_token: str | None = None
    scope: str | None = None

    model_config = {"extra": "ignore"}


class WalmartClient:
    """Thin wrapper over the Walmart token endpoints."""

    def __init__(self, settings: Settings | None = None, http: requests.Session | None = None):
        self.settings = settings or get_settings()
        self.http = http or requests.Session()

    # =========================================================================
    # OAuth Flow Helpers
    # =========================================================================

    def generate_authorization_url(self, redirect_uri: str, state: str | None = None) -> str:
        """Build the Walmart authorization URL the seller is redirected to."""
        if not self.settings.walmart_client_id:
            raise ConfigurationError(
                "Walmart Client ID not configured. Please set WALMART_CLIENT_ID."
            )

        params = {
            "client_id": self.settings.walmart_client_id,
            "redirect_uri": redirect_uri,
            "response_type": "code",
            "scope": self.settings.walmart_scopes,
        }
        if state:
            params["state"] = state

        return f"{self.settings.walmart_api_base_url}{AUTHORIZE_PATH}?{urlencode(params)}"

    def exchange_authorization_code(self, code: str, redirect_uri: str) -> TokenResponse:
        """Exchange an authorization code for access and refresh tokens."""
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": redirect_uri,
        }
        token = self._post_token(form, AuthExchangeError)
        logger.info("Exchanged Walmart auth code for user tokens")
        return token

    def refresh_access_token(self, refresh_token: str, seller_id: str | None = None) -> TokenResponse:
        """Trade a plaintext refresh token for a new access token."""
        form = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        token = self._post_token(form, RefreshExchangeError, seller_id=seller_id)
        logger.info("Refreshed Walmart user token")
        return token

    # =========================================================================
    # Headers
    # =========================================================================

    def base_headers(self, seller_id: str | None = None) -> dict[str, str]:
        """Headers required on every Walmart request, with a fresh correlation id."""
        headers = {
            "Accept": "application/json",
            "WM_SVC.NAME": self.settings.walmart_service_name,
            "WM_QOS.CORRELATION_ID": str(uuid.uuid4()),
        }
        if seller_id:
            headers["WM_PARTNER.ID"] = seller_id
        return headers

    def api_headers(self, access_token: str, seller_id: str | None = None) -> dict[str, str]:
        """Headers for an authenticated marketplace API call."""
        headers = self.base_headers(seller_id)
        headers["WM_SEC.ACCESS_TOKEN"] = access_token
        return headers

    # =========================================================================
    # Token Endpoint
    # =========================================================================

    def _post_token(
        self,
        form: dict[str, str],
        error_cls: type[TokenExchangeError],
        seller_id: str | None = None,
    ) -> TokenResponse:
        settings = self.settings
        if not settings.walmart_configured:
            raise ConfigurationError(
                "Walmart API credentials not configured. "
                "Please set WALMART_CLIENT_ID and WALMART_CLIENT_SECRET."
            )

        headers = self.base_headers(seller_id)
        headers["Content-Type"] = "application/x-www-form-urlencoded"

        auth = None
        if settings.walmart_client_auth == "basic":
            auth = (settings.walmart_client_id, settings.walmart_client_secret)
        else:
            form = {
                **form,
                "client_id": settings.walmart_client_id,
                "client_secret": settings.walmart_client_secret,
            }

        try:
            response = self.http.post(
                f"{settings.walmart_api_base_url}{TOKEN_PATH}",
                data=form,
                headers=headers,
                auth=auth,
                timeout=settings.walmart_http_timeout,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Walmart token request failed ({form['grant_type']}): {e}")
            raise error_cls(f"Walmart API request failed: {e}") from e

        if not response.ok:
            description = _error_description(response)
            logger.error(
                f"Walmart token endpoint rejected {form['grant_type']} grant: "
                f"{response.status_code} {description or response.reason}"
            )
            raise error_cls(
                f"Walmart API Error: {response.status_code} - {description or response.reason}",
                status_code=response.status_code,
                description=description,
            )

        try:
            return TokenResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            logger.error(f"Walmart token endpoint returned an unexpected body: {e}")
            raise error_cls(
                "Walmart API returned an invalid token response",
                status_code=response.status_code,
            ) from e


def _error_description(response: requests.Response) -> str | None:
    """Pull error_description out of an error body, if it is JSON."""
    try:
        payload = response.json()
    except ValueError:
        return None
    if isinstance(payload, dict):
        return payload.get("error_description")
    return None
