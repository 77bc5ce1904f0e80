"""
Identity provider capability: authorization URL, code exchange, ID token
verification.

The OAuth flow depends on the IdentityProvider protocol only; GoogleIdentityProvider
is the production implementation (plain requests against Google's OAuth
endpoints, every call with a timeout). Tests substitute a fake.
"""
import logging
from typing import Protocol, runtime_checkable
from urllib.parse import urlencode

import requests

from config import Settings
from exceptions import UpstreamTimeout
from security import GOOGLE_JWKS_URL, decode_id_token, fetch_jwks

logger = logging.getLogger(__name__)

GOOGLE_AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
OAUTH_SCOPES = ("openid", "profile", "email")


@runtime_checkable
class IdentityProvider(Protocol):
    name: str

    def authorization_url(self, state: str) -> str:
        """URL of the provider's consent page carrying state."""
        ...

    def exchange_code(self, code: str) -> dict:
        """Trade an authorization code for the token response (must contain id_token)."""
        ...

    def verify_id_token(self, raw_token: str) -> dict:
        """Check the ID token's signature and claims; return the claims."""
        ...


class GoogleIdentityProvider:
    """Google OpenID Connect via the authorization-code flow."""

    name = "google"

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        timeout: float = 10.0,
        jwks_url: str = GOOGLE_JWKS_URL,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout = timeout
        self.jwks_url = jwks_url

    @classmethod
    def from_settings(cls, settings: Settings) -> "GoogleIdentityProvider":
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            redirect_uri=settings.redirect_url,
            timeout=settings.provider_timeout,
        )

    def authorization_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(OAUTH_SCOPES),
            "access_type": "offline",
            "state": state,
        }
        return f"{GOOGLE_AUTH_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> dict:
        """
        POST the code to Google's token endpoint. Raises UpstreamTimeout on
        timeout; RuntimeError or requests exceptions on any other failure.
        """
        try:
            resp = requests.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "code": code,
                    "grant_type": "authorization_code",
                    "redirect_uri": self.redirect_uri,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise UpstreamTimeout(f"Token endpoint timed out after {self.timeout}s") from exc
        try:
            data = resp.json()
        except ValueError as exc:
            raise RuntimeError(f"Token endpoint returned non-JSON (HTTP {resp.status_code})") from exc
        if not resp.ok or "error" in data:
            raise RuntimeError(
                f"Token endpoint error (HTTP {resp.status_code}): "
                f"{data.get('error_description', data.get('error', 'unknown'))}"
            )
        return data

    def verify_id_token(self, raw_token: str) -> dict:
        try:
            jwks = fetch_jwks(self.jwks_url, timeout=self.timeout)
        except requests.Timeout as exc:
            raise UpstreamTimeout(f"JWKS endpoint timed out after {self.timeout}s") from exc
        return decode_id_token(raw_token, jwks, self.client_id)
