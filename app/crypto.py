"""
Session cookie sealing using Fernet (symmetric authenticated encryption, from
cryptography).

The session cookie carries the whole User as JSON; Fernet makes it opaque to
the browser and detects tampering. Fernet tokens embed their issue time, so
decode also rejects tokens older than the session lifetime even if a client
keeps the cookie past its Max-Age.
"""
from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from config import SESSION_MAX_AGE
from models import User


class SessionCodec:
    """Encode a User into a cookie value and back. Built once per app from SESSION_SECRET."""

    def __init__(self, secret: str, max_age: int = SESSION_MAX_AGE):
        self._fernet = Fernet(secret.encode() if isinstance(secret, str) else secret)
        self.max_age = max_age

    def encode(self, user: User) -> str:
        return self._fernet.encrypt(user.model_dump_json().encode()).decode()

    def decode(self, value: str | None) -> User | None:
        """
        Return the User sealed in value, or None for anything that is not a
        valid, unexpired session: missing, not base64, forged, or not a User.
        """
        if not value:
            return None
        try:
            payload = self._fernet.decrypt(value.encode(), ttl=self.max_age)
        except (InvalidToken, UnicodeEncodeError):
            return None
        try:
            return User.model_validate_json(payload)
        except ValidationError:
            return None
