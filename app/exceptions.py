"""
Exception types for the uploader.

Each error carries the HTTP status it maps to and a short public_message that
is safe to show the user; the full message is for server logs only. The
exception handler in main renders these as the generic error page.
"""


class UploaderError(Exception):
    """Base for all errors that terminate a request with an error page."""

    status_code = 500
    default_public_message = "Something went wrong"

    def __init__(self, message: str | None = None, public_message: str | None = None):
        self.public_message = public_message or self.default_public_message
        self.message = message or self.public_message
        super().__init__(self.message)


class ConfigError(RuntimeError):
    """Raised at startup when required configuration is missing or invalid."""


class UpstreamTimeout(UploaderError):
    """An outbound provider or storage call exceeded its deadline."""

    status_code = 500
    default_public_message = "An upstream service did not respond in time"


# --- OAuth phase ---


class OAuthError(UploaderError):
    """Base for failures during the login callback."""


class InvalidState(OAuthError):
    status_code = 400
    default_public_message = "Invalid authentication state"


class ProviderError(OAuthError):
    status_code = 400
    default_public_message = "Authentication was cancelled or denied"


class MissingCode(OAuthError):
    status_code = 400
    default_public_message = "Authorization code not received"


class ExchangeFailed(OAuthError):
    status_code = 500
    default_public_message = "Failed to exchange authorization code"


class MissingIdentityToken(OAuthError):
    status_code = 500
    default_public_message = "Invalid token response"


class TokenVerificationFailed(OAuthError):
    status_code = 500
    default_public_message = "Failed to verify token"


# --- Upload phase ---


class BadUpload(UploaderError):
    status_code = 400
    default_public_message = "Invalid upload"

    def __init__(self, message: str):
        # Validation messages are written for the user
        super().__init__(message, public_message=message)


class StorageFailure(UploaderError):
    status_code = 500
    default_public_message = "Failed to upload file"
