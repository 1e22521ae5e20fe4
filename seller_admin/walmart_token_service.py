"""Walmart token lifecycle: acquire, store encrypted, check expiry, refresh.

All state lives in the walmart_tokens table; the service itself holds none,
so one instance can be shared across requests.

Two concurrent callers for the same user may both see an expiring token and
both refresh it. Both writes land and the last one wins; the marketplace may
then reject the refresh token from the losing write on its next use, which
surfaces as RefreshFailedError and a reconnect.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .config import Settings, get_settings
from .errors import (
    DecryptionError,
    NoRefreshTokenError,
    NotConnectedError,
    RefreshExchangeError,
    RefreshFailedError,
)
from .models import WalmartToken, utcnow
from .token_cipher import TokenCipher
from .token_store import WalmartTokenStore
from .walmart_client import TokenResponse, WalmartClient

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_BUFFER_MINUTES = 5
DEFAULT_EXPIRING_WARNING_MINUTES = 60


@dataclass(frozen=True)
class ValidAccessToken:
    """Plaintext access token handed to a caller. Never log `token`."""

    token: str
    was_refreshed: bool

    def __repr__(self) -> str:
        return f"ValidAccessToken(token=<redacted>, was_refreshed={self.was_refreshed})"


@dataclass(frozen=True)
class ConnectionStatus:
    """Read-only classification of a user's stored token."""

    is_connected: bool
    record: WalmartToken | None = None
    is_expiring: bool | None = None
    needs_refresh: bool | None = None


@dataclass(frozen=True)
class ConnectionCheck:
    """Outcome of ensure_valid_connection; `error` is set instead of raising."""

    is_connected: bool
    record: WalmartToken | None = None
    was_refreshed: bool = False
    error: str | None = None


def create_state_token() -> str:
    """Generate an opaque anti-forgery state for the authorization redirect."""
    return secrets.token_urlsafe(24)


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


class WalmartTokenService:
    """Token lifecycle manager for the Walmart Marketplace connection."""

    def __init__(
        self,
        client: WalmartClient,
        cipher: TokenCipher,
        store: WalmartTokenStore,
        clock: Callable[[], datetime] = utcnow,
        refresh_buffer_minutes: int = DEFAULT_REFRESH_BUFFER_MINUTES,
        expiring_warning_minutes: int = DEFAULT_EXPIRING_WARNING_MINUTES,
    ):
        self.client = client
        self.cipher = cipher
        self.store = store
        self.clock = clock
        self.refresh_buffer_minutes = refresh_buffer_minutes
        self.expiring_warning_minutes = expiring_warning_minutes

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        session_factory: sessionmaker | None = None,
    ) -> "WalmartTokenService":
        """Wire the service from application settings.

        Raises:
            ConfigurationError: If TOKEN_ENCRYPTION_KEY is missing or invalid.
        """
        settings = settings or get_settings()
        return cls(
            client=WalmartClient(settings),
            cipher=TokenCipher.from_settings(settings),
            store=WalmartTokenStore(session_factory),
            refresh_buffer_minutes=settings.token_refresh_buffer_minutes,
            expiring_warning_minutes=settings.token_expiring_warning_minutes,
        )

    # =========================================================================
    # Marketplace Exchanges
    # =========================================================================

    def generate_authorization_url(self, redirect_uri: str, state: str | None = None) -> str:
        return self.client.generate_authorization_url(redirect_uri, state)

    def exchange_authorization_code(self, code: str, redirect_uri: str) -> TokenResponse:
        return self.client.exchange_authorization_code(code, redirect_uri)

    def refresh_access_token(
        self, encrypted_refresh_token: str, seller_id: str | None = None
    ) -> TokenResponse:
        """Decrypt a stored refresh token and exchange it for new tokens."""
        refresh_token = self.cipher.decrypt(encrypted_refresh_token)
        return self.client.refresh_access_token(refresh_token, seller_id)

    def connect(
        self, user_id: str, code: str, redirect_uri: str, seller_id: str | None = None
    ) -> WalmartToken:
        """Complete the OAuth callback: exchange the code and store the tokens."""
        token_response = self.exchange_authorization_code(code, redirect_uri)
        record = self.store_token(user_id, token_response, seller_id)
        logger.info(f"Connected Walmart account for user {user_id}")
        return record

    # =========================================================================
    # Storage
    # =========================================================================

    def store_token(
        self, user_id: str, token_response: TokenResponse, seller_id: str | None = None
    ) -> WalmartToken:
        """Encrypt and save a token response, replacing any previous row for the user."""
        expires_at = self.clock() + timedelta(seconds=token_response.expires_in)
        refresh_token = token_response.refresh_token

        return self.store.upsert(
            user_id,
            access_token=self.cipher.encrypt(token_response.access_token),
            refresh_token=self.cipher.encrypt(refresh_token) if refresh_token else None,
            token_type=token_response.token_type,
            expires_in=token_response.expires_in,
            expires_at=expires_at,
            scope=token_response.scope,
            seller_id=seller_id,
        )

    def get_stored_token(self, user_id: str) -> WalmartToken | None:
        return self.store.get(user_id)

    def decrypt_access_token(self, record: WalmartToken) -> str:
        return self.cipher.decrypt(record.access_token)

    def delete_token(self, user_id: str) -> None:
        """Disconnect the user. Deleting a missing row is not an error."""
        if not self.store.delete(user_id):
            logger.info(f"No Walmart tokens to delete for user {user_id}")

    # =========================================================================
    # Expiry & Refresh
    # =========================================================================

    def is_token_expiring(
        self, record: WalmartToken, buffer_minutes: int = DEFAULT_REFRESH_BUFFER_MINUTES
    ) -> bool:
        """True if the token expires within `buffer_minutes`, boundary included."""
        remaining = _as_naive_utc(record.expires_at) - self.clock()
        return remaining <= timedelta(minutes=buffer_minutes)

    def get_valid_access_token(self, user_id: str) -> ValidAccessToken:
        """Return a usable access token, refreshing it first if it is about to expire.

        Raises:
            NotConnectedError: No token is stored for the user.
            NoRefreshTokenError: The token is expiring and cannot be refreshed.
            RefreshFailedError: The refresh was rejected or its result could not
                be saved; the user must reconnect.
        """
        valid, _ = self._valid_token_with_record(user_id)
        return valid

    def _valid_token_with_record(self, user_id: str) -> tuple[ValidAccessToken, WalmartToken]:
        """get_valid_access_token, also returning the row the token came from."""
        record = self.get_stored_token(user_id)
        if not record:
            raise NotConnectedError()

        if not self.is_token_expiring(record, self.refresh_buffer_minutes):
            return ValidAccessToken(token=self.decrypt_access_token(record), was_refreshed=False), record

        if not record.refresh_token:
            logger.warning(f"Walmart token for user {user_id} is expiring with no refresh token")
            raise NoRefreshTokenError()

        try:
            token_response = self.refresh_access_token(record.refresh_token, record.seller_id)

            if not token_response.refresh_token:
                # Walmart may omit the refresh token on refresh; keep using the old one
                token_response = token_response.model_copy(
                    update={"refresh_token": self.cipher.decrypt(record.refresh_token)}
                )

            updated = self.store_token(user_id, token_response, record.seller_id)
        except (RefreshExchangeError, DecryptionError, SQLAlchemyError) as e:
            logger.error(f"Failed to refresh Walmart token for user {user_id}: {e}")
            raise RefreshFailedError() from e

        return ValidAccessToken(token=self.decrypt_access_token(updated), was_refreshed=True), updated

    def build_api_headers(self, user_id: str) -> dict[str, str]:
        """Headers for a marketplace API call on behalf of the user, refreshing if needed."""
        valid, record = self._valid_token_with_record(user_id)
        return self.client.api_headers(valid.token, record.seller_id)

    # =========================================================================
    # Connection Status
    # =========================================================================

    def get_connection_status(self, user_id: str) -> ConnectionStatus:
        """Classify the stored token without changing anything. Never raises."""
        try:
            record = self.get_stored_token(user_id)
            if not record:
                return ConnectionStatus(is_connected=False)

            return ConnectionStatus(
                is_connected=True,
                record=record,
                is_expiring=self.is_token_expiring(record, self.expiring_warning_minutes),
                needs_refresh=self.is_token_expiring(record, self.refresh_buffer_minutes),
            )
        except Exception as e:
            logger.error(f"Error checking Walmart connection status for user {user_id}: {e}")
            return ConnectionStatus(is_connected=False)

    def ensure_valid_connection(self, user_id: str) -> ConnectionCheck:
        """Report the connection, refreshing the token when it needs it. Never raises."""
        status = self.get_connection_status(user_id)
        if not status.is_connected:
            return ConnectionCheck(is_connected=False)

        if not status.needs_refresh:
            return ConnectionCheck(is_connected=True, record=status.record)

        try:
            valid, record = self._valid_token_with_record(user_id)
        except Exception as e:
            logger.error(f"Walmart connection for user {user_id} could not be refreshed: {e}")
            return ConnectionCheck(is_connected=False, record=status.record, error=str(e))

        return ConnectionCheck(is_connected=True, record=record, was_refreshed=valid.was_refreshed)
