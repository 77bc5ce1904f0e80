"""
OAuth flow controller: the authorization-code login handshake.

begin() issues a state nonce and the provider URL; complete() runs the
callback checks in order (state, provider error, code, exchange, ID token,
verification) and returns the User to seal into the session. Every failure is
terminal; nothing is retried. Cookie handling stays in the auth router.
"""
import logging
import secrets
from datetime import datetime, UTC

from pydantic import ValidationError

from exceptions import (
    ExchangeFailed,
    InvalidState,
    MissingCode,
    MissingIdentityToken,
    ProviderError,
    TokenVerificationFailed,
    UpstreamTimeout,
)
from models import User
from services.identity_provider import IdentityProvider

logger = logging.getLogger(__name__)

STATE_TOKEN_BYTES = 32


def new_state_token() -> str:
    """32 random bytes, URL-safe base64."""
    return secrets.token_urlsafe(STATE_TOKEN_BYTES)


def states_match(state_cookie: str | None, state_param: str | None) -> bool:
    if not state_cookie or not state_param:
        return False
    return secrets.compare_digest(state_cookie.encode(), state_param.encode())


class OAuthFlow:
    def __init__(self, provider: IdentityProvider):
        self.provider = provider

    def begin(self) -> tuple[str, str]:
        """Return (state, authorization_url) for a new login attempt."""
        state = new_state_token()
        return state, self.provider.authorization_url(state)

    def complete(
        self,
        *,
        state_cookie: str | None,
        state: str | None,
        code: str | None,
        error: str | None = None,
    ) -> User:
        """
        Validate the callback and turn the authorization code into a User.
        Raises an OAuthError subclass (or UpstreamTimeout) on any failure.
        """
        if not states_match(state_cookie, state):
            raise InvalidState(
                "State cookie missing" if not state_cookie else "State mismatch or missing state parameter"
            )
        if error:
            raise ProviderError(f"Provider returned error: {error}")
        if not code:
            raise MissingCode("Callback has no authorization code")

        try:
            token = self.provider.exchange_code(code)
        except UpstreamTimeout:
            raise
        except Exception as exc:
            raise ExchangeFailed(f"Code exchange failed: {exc}") from exc

        raw_id_token = token.get("id_token") if isinstance(token, dict) else None
        if not raw_id_token or not isinstance(raw_id_token, str):
            raise MissingIdentityToken("Token response has no id_token")

        try:
            claims = self.provider.verify_id_token(raw_id_token)
        except UpstreamTimeout:
            raise
        except Exception as exc:
            raise TokenVerificationFailed(f"ID token verification failed: {exc}") from exc

        subject = claims.get("sub")
        if not subject:
            raise TokenVerificationFailed("ID token has no subject")

        try:
            user = User(
                id=str(subject),
                name=claims.get("name") or "",
                email=claims.get("email") or "",
                picture=claims.get("picture") or "",
                provider=self.provider.name,
                created=datetime.now(UTC),
            )
        except ValidationError as exc:
            raise TokenVerificationFailed(f"ID token claims are malformed: {exc}") from exc

        logger.info("User authenticated: %s (%s)", user.name, user.email)
        return user
