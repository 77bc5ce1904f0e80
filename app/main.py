"""
Google S3 uploader: OAuth login service, upload service, or both in one process.

Load .env in development only (production uses env vars directly). Build the
immutable Settings once, wire the identity provider and storage gateway into
app state, register the HTML error handlers.

Run with `python main.py` or `uvicorn main:create_app --factory`.
"""
import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.staticfiles import StaticFiles

from auth import router as auth_router
from config import Settings, load_settings, resolve_port
from crypto import SessionCodec
from exceptions import UploaderError
from pages import STATIC_DIR, render_error
from services.identity_provider import GoogleIdentityProvider, IdentityProvider
from services.oauth_flow import OAuthFlow
from services.storage_service import StorageGateway, build_storage
from uploads import router as upload_router

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Settings | None = None,
    identity_provider: IdentityProvider | None = None,
    storage: StorageGateway | None = None,
    mode: str | None = None,
) -> FastAPI:
    """
    Build the ASGI app. mode is "auth" (login routes), "app" (upload routes)
    or "combined" (both); defaults to settings.service_mode.
    """
    if settings is None:
        # Load .env only in development; production should set env vars directly
        if os.getenv("ENV", "development").lower() != "production":
            load_dotenv(Path(__file__).resolve().parent.parent / ".env")
        configure_logging(os.getenv("LOG_LEVEL", "INFO"))
        settings = load_settings()
    mode = mode or settings.service_mode

    app = FastAPI(
        title="Google S3 Uploader",
        description="Google sign-in and authenticated file upload to S3.",
    )
    app.state.settings = settings
    app.state.session_codec = SessionCodec(settings.session_secret)

    if mode in ("auth", "combined"):
        provider = identity_provider or GoogleIdentityProvider.from_settings(settings)
        app.state.oauth_flow = OAuthFlow(provider)
        app.include_router(auth_router)
    if mode in ("app", "combined"):
        app.state.storage = storage or build_storage(settings)
        app.include_router(upload_router)

    @app.exception_handler(UploaderError)
    async def uploader_error_handler(request: Request, exc: UploaderError):
        """Log the detail, show only the generic message."""
        if exc.status_code >= 500:
            logger.error("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        else:
            logger.warning("%s on %s: %s", type(exc).__name__, request.url.path, exc.message)
        return render_error(request, exc.status_code, exc.public_message)

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Catch unhandled exceptions; log and return generic 500. Never leak stack traces."""
        logger.exception("Unhandled exception on %s: %s", request.url.path, exc)
        return render_error(request, 500, "Internal server error")

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")

    logger.info("Service mode %s ready", mode)
    return app


def run() -> None:
    import uvicorn

    if os.getenv("ENV", "development").lower() != "production":
        load_dotenv(Path(__file__).resolve().parent.parent / ".env")
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))
    settings = load_settings()
    port = resolve_port(settings)
    logger.info("Server starting on port %s", port)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=port)


if __name__ == "__main__":
    run()
