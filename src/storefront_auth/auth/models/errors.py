"""Exception hierarchy for customer account authentication errors.

Provides specific exception types for different failure modes to enable
precise error handling and recovery strategies. Every exception carries an
``error_code`` that the web layer forwards to the login page, so each failure
branch can be told apart by the UI and by tests.
"""

from __future__ import annotations


class StorefrontAuthError(Exception):
    """Base exception for all customer account authentication errors."""

    error_code: str = "auth_error"


class ConfigurationError(StorefrontAuthError):
    """Raised when required client or shop identifiers are not configured."""

    error_code = "configuration_error"


class DiscoveryError(StorefrontAuthError):
    """Raised when endpoint discovery fails.

    Attributes:
        url: Discovery document URL that was requested
        status_code: HTTP status, or None when no response was received
        status_text: HTTP reason phrase, or None when no response was received
    """

    error_code = "discovery_failed"
    document = "discovery document"

    def __init__(
        self,
        message: str,
        *,
        url: str,
        status_code: int | None = None,
        status_text: str | None = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.status_text = status_text


class OpenIDDiscoveryError(DiscoveryError):
    """Raised when the OpenID configuration (OAuth endpoints) cannot be fetched."""

    document = "OpenID configuration"


class APIDiscoveryError(DiscoveryError):
    """Raised when the customer account API configuration cannot be fetched."""

    document = "customer account API configuration"


class PKCEError(StorefrontAuthError):
    """Raised when PKCE or security parameter generation fails."""

    error_code = "pkce_failed"


class TokenError(StorefrontAuthError):
    """Raised when token endpoint operations fail.

    Attributes:
        status_code: HTTP status returned by the token endpoint, if any
        body: Raw response body text, kept for diagnosing provider rejections
    """

    error_code = "token_error"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class TokenExchangeError(TokenError):
    """Raised when authorization code to token exchange fails."""

    error_code = "token_exchange_failed"


class TokenRefreshError(TokenError):
    """Raised when token refresh fails."""

    error_code = "token_refresh_failed"


class MalformedTokenError(StorefrontAuthError):
    """Raised when an identity token is not a well-formed three-part token."""

    error_code = "invalid_id_token"


class AuthorizationCallbackError(StorefrontAuthError):
    """Raised when the authorization callback cannot be completed.

    This indicates the identity provider sent an unusable callback or the
    session no longer matches the in-flight authorization attempt.
    """

    error_code = "callback_failed"


class AuthorizationDeniedError(AuthorizationCallbackError):
    """Raised when the identity provider returned an error on the callback.

    The provider's own error value (for example ``access_denied``) becomes
    the error code.
    """

    def __init__(self, error: str, description: str | None = None) -> None:
        message = f"Authorization failed: {error}"
        if description:
            message += f" ({description})"
        super().__init__(message)
        self.error_code = error
        self.description = description


class InvalidCallbackError(AuthorizationCallbackError):
    """Raised when the callback is missing its code or state parameter."""

    error_code = "invalid_callback"


class StateMismatchError(AuthorizationCallbackError):
    """Raised when the callback state does not match the stored state.

    This could indicate a CSRF attack or a stale browser tab.
    """

    error_code = "invalid_state"


class MissingVerifierError(AuthorizationCallbackError):
    """Raised when the session no longer holds the PKCE code verifier."""

    error_code = "missing_verifier"


class NonceMismatchError(AuthorizationCallbackError):
    """Raised when the identity token nonce does not match the stored nonce."""

    error_code = "invalid_nonce"


class LoginRequiredError(StorefrontAuthError):
    """Raised when an operation needs a customer session and none is valid."""

    error_code = "login_required"


class CustomerAPIError(StorefrontAuthError):
    """Raised when a customer account API request is rejected."""

    error_code = "customer_api_failed"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
