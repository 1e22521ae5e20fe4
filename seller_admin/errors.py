"""Error types for the Walmart Marketplace integration.

Configuration and exchange errors are raised by the mutating operations and
propagate to the caller untouched. The connection status queries never raise;
they log and degrade to "not connected" instead.
"""


class WalmartIntegrationError(Exception):
    """Base class for every error raised by the Walmart token lifecycle."""


class ConfigurationError(WalmartIntegrationError):
    """Client credentials or the token encryption key are missing or invalid."""


class DecryptionError(WalmartIntegrationError):
    """A stored token blob is malformed or does not decrypt under the key."""


class TokenExchangeError(WalmartIntegrationError):
    """The Walmart token endpoint rejected a request or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None, description: str | None = None):
        self.status_code = status_code
        self.description = description
        super().__init__(message)


class AuthExchangeError(TokenExchangeError):
    """Authorization-code exchange failed."""


class RefreshExchangeError(TokenExchangeError):
    """Refresh-token exchange failed."""


class NotConnectedError(WalmartIntegrationError):
    """No stored token exists for the user."""

    def __init__(self, message: str = "No Walmart token found. Please connect to Walmart first."):
        super().__init__(message)


class NoRefreshTokenError(WalmartIntegrationError):
    """The stored token is expiring and there is no refresh token to renew it."""

    def __init__(
        self,
        message: str = "Token expired and no refresh token available. Please reconnect to Walmart.",
    ):
        super().__init__(message)


class RefreshFailedError(WalmartIntegrationError):
    """A refresh was attempted and failed; the user must reconnect."""

    def __init__(self, message: str = "Token expired and refresh failed. Please reconnect to Walmart."):
        super().__init__(message)
