"""
Application configuration from environment variables.

load_settings() reads the environment once at startup and returns an immutable
Settings; main passes it to the app factory and routes read it from app state.
In production (ENV=production) missing required values raise ConfigError; in
development they fall back to local defaults with a warning.
"""
import logging
import os
from dataclasses import dataclass
from typing import Mapping

from cryptography.fernet import Fernet

from exceptions import ConfigError

logger = logging.getLogger(__name__)

# Cookie names and lifetimes
SESSION_COOKIE_NAME = "user_session"
SESSION_MAX_AGE = 24 * 60 * 60  # 24 hours
OAUTH_STATE_COOKIE_NAME = "oauth_state"
OAUTH_STATE_MAX_AGE = 600  # 10 minutes

# Upload policy
DEFAULT_MAX_UPLOAD_BYTES = 50 * 1024 * 1024
ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
    "application/pdf",
    "application/zip",
    "application/x-zip-compressed",
})

SERVICE_MODES = ("combined", "auth", "app")
STORAGE_BACKENDS = ("s3", "memory")


@dataclass(frozen=True)
class Settings:
    env: str
    port_auth_server: int
    port_app_server: int
    aws_region: str
    s3_bucket_name: str
    google_client_id: str
    google_client_secret: str
    redirect_url: str
    app_server_url: str
    auth_server_url: str
    session_secret: str
    secure_cookies: bool = False
    storage_backend: str = "s3"
    max_upload_bytes: int = DEFAULT_MAX_UPLOAD_BYTES
    provider_timeout: float = 10.0
    storage_timeout: float = 30.0
    service_mode: str = "combined"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    def auth_url(self, path: str) -> str:
        """URL of an auth-service route; relative when both services share a host."""
        if self.auth_server_url == self.app_server_url:
            return path
        return f"{self.auth_server_url}{path}"

    @property
    def login_url(self) -> str:
        return self.auth_url("/login")


def _flag(value: str | None) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes")


def _int(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    try:
        return max(minimum, int(env.get(key, str(default))))
    except ValueError:
        return default


def _float(env: Mapping[str, str], key: str, default: float) -> float:
    try:
        value = float(env.get(key, str(default)))
    except ValueError:
        return default
    return value if value > 0 else default


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the process environment (or the given mapping)."""
    env = os.environ if environ is None else environ
    env_name = (env.get("ENV") or "development").strip().lower()
    production = env_name == "production"

    def required(key: str, dev_default: str) -> str:
        value = (env.get(key) or "").strip()
        if value:
            return value
        if production:
            raise ConfigError(f"{key} environment variable is required in production")
        logger.warning("%s not set; using development default", key)
        return dev_default

    port_auth = _int(env, "PORT_AUTH_SERVER", 8081, minimum=1)
    port_app = _int(env, "PORT_APP_SERVER", 8080, minimum=1)

    app_server_url = required("APP_SERVER_URL", f"http://localhost:{port_app}").rstrip("/")
    auth_server_url = required("AUTH_SERVER_URL", f"http://localhost:{port_auth}").rstrip("/")

    session_secret = (env.get("SESSION_SECRET") or "").strip()
    if not session_secret:
        if production:
            raise ConfigError("SESSION_SECRET environment variable is required in production")
        # Sessions will not survive a restart
        logger.warning("SESSION_SECRET not set; generating a per-process key")
        session_secret = Fernet.generate_key().decode()
    try:
        Fernet(session_secret.encode())
    except ValueError as exc:
        raise ConfigError("SESSION_SECRET must be a urlsafe base64-encoded 32-byte key") from exc

    storage_backend = (env.get("STORAGE_BACKEND") or "s3").strip().lower()
    if storage_backend not in STORAGE_BACKENDS:
        raise ConfigError(f"STORAGE_BACKEND must be one of {', '.join(STORAGE_BACKENDS)}")

    service_mode = (env.get("SERVICE_MODE") or "combined").strip().lower()
    if service_mode not in SERVICE_MODES:
        raise ConfigError(f"SERVICE_MODE must be one of {', '.join(SERVICE_MODES)}")

    settings = Settings(
        env=env_name,
        port_auth_server=port_auth,
        port_app_server=port_app,
        aws_region=(env.get("AWS_REGION") or "ap-northeast-1").strip(),
        s3_bucket_name=required("S3_BUCKET_NAME", "go-s3-uploader-dev"),
        google_client_id=required("GOOGLE_CLIENT_ID", "your-google-client-id"),
        google_client_secret=required("GOOGLE_CLIENT_SECRET", "your-google-client-secret"),
        redirect_url=required("REDIRECT_URL", f"{auth_server_url}/auth/callback"),
        app_server_url=app_server_url,
        auth_server_url=auth_server_url,
        session_secret=session_secret,
        secure_cookies=_flag(env.get("SECURE_COOKIES")),
        storage_backend=storage_backend,
        max_upload_bytes=_int(env, "MAX_UPLOAD_BYTES", DEFAULT_MAX_UPLOAD_BYTES),
        provider_timeout=_float(env, "PROVIDER_TIMEOUT_SECONDS", 10.0),
        storage_timeout=_float(env, "STORAGE_TIMEOUT_SECONDS", 30.0),
        service_mode=service_mode,
    )
    # Secrets excluded
    logger.info(
        "Loaded configuration: ENV=%s, AUTH_PORT=%s, APP_PORT=%s, AWS_REGION=%s, "
        "S3_BUCKET_NAME=%s, REDIRECT_URL=%s, APP_SERVER_URL=%s, AUTH_SERVER_URL=%s, "
        "STORAGE_BACKEND=%s, SERVICE_MODE=%s",
        settings.env,
        settings.port_auth_server,
        settings.port_app_server,
        settings.aws_region,
        settings.s3_bucket_name,
        settings.redirect_url,
        settings.app_server_url,
        settings.auth_server_url,
        settings.storage_backend,
        settings.service_mode,
    )
    return settings


def resolve_port(settings: Settings, environ: Mapping[str, str] | None = None) -> int:
    """PORT wins (container platforms set it); otherwise the port of the selected service."""
    env = os.environ if environ is None else environ
    fallback = settings.port_auth_server if settings.service_mode == "auth" else settings.port_app_server
    return _int(env, "PORT", fallback, minimum=1)
