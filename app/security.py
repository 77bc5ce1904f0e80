"""
ID token verification for Google sign-in.

Google signs ID tokens with RS256 using keys published as a JWK set. We fetch
the set on each verification (logins are rare; no cache to invalidate) and let
python-jose check signature, audience, issuer and expiry.
"""
import requests
from jose import jwt

GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("https://accounts.google.com", "accounts.google.com")
ID_TOKEN_ALGORITHMS = ["RS256"]


def fetch_jwks(url: str = GOOGLE_JWKS_URL, timeout: float = 10.0) -> dict:
    """Download the provider's public signing keys. Raises requests exceptions on failure."""
    resp = requests.get(url, timeout=timeout)
    resp.raise_for_status()
    return resp.json()


def decode_id_token(raw_token: str, jwks: dict, client_id: str) -> dict:
    """
    Verify an ID token against jwks and return its claims.
    Raises jose.JWTError (or a subclass) if the signature, audience, issuer or
    expiry is invalid.
    """
    return jwt.decode(
        raw_token,
        jwks,
        algorithms=ID_TOKEN_ALGORITHMS,
        audience=client_id,
        issuer=GOOGLE_ISSUERS,
        # at_hash binds the ID token to an access token we never use
        options={"verify_at_hash": False},
    )
