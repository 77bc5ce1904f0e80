"""
Google OAuth 2.0 login, callback, session cookie, and current-user dependencies.

- /auth/google redirects to Google with a CSRF state stored in a short-lived cookie.
- /auth/callback checks state, exchanges the code, verifies the ID token,
  seals the User into the session cookie and redirects to the app. The state
  cookie is cleared on every callback response, success or failure.
- /logout clears the session cookie.
- get_optional_user reads the session cookie; anything that does not decode
  is treated as anonymous, never as an error.
"""
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from config import (
    OAUTH_STATE_COOKIE_NAME,
    OAUTH_STATE_MAX_AGE,
    SESSION_COOKIE_NAME,
    SESSION_MAX_AGE,
    Settings,
)
from crypto import SessionCodec
from exceptions import OAuthError, UpstreamTimeout
from models import User
from pages import APP_TITLE, render, render_error
from services.oauth_flow import OAuthFlow

logger = logging.getLogger(__name__)

router = APIRouter()


# Cookie flags: HttpOnly (no JS access), SameSite=Lax (CSRF mitigation), Secure from config
def _cookie_kwargs(secure: bool = False) -> dict:
    return {
        "httponly": True,
        "samesite": "lax",
        "secure": secure,
        "path": "/",
    }


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_session_codec(request: Request) -> SessionCodec:
    return request.app.state.session_codec


def get_oauth_flow(request: Request) -> OAuthFlow:
    return request.app.state.oauth_flow


def get_optional_user(
    request: Request,
    codec: SessionCodec = Depends(get_session_codec),
) -> User | None:
    """FastAPI dependency: the session's User, or None for anonymous callers."""
    user = codec.decode(request.cookies.get(SESSION_COOKIE_NAME))
    if user is None and SESSION_COOKIE_NAME in request.cookies:
        logger.info("Ignoring undecodable %s cookie", SESSION_COOKIE_NAME)
    return user


def login_redirect(settings: Settings) -> RedirectResponse:
    return RedirectResponse(url=settings.login_url, status_code=307)


@router.get("/login")
def login_page(request: Request, user: User | None = Depends(get_optional_user)):
    return render(request, "login.html", title=f"Login - {APP_TITLE}", user=user)


@router.get("/auth/google")
def google_login(
    flow: OAuthFlow = Depends(get_oauth_flow),
    settings: Settings = Depends(get_settings),
):
    """
    Redirect to Google's consent page. The same random state goes into a
    short-lived cookie and the redirect URL so the callback can reject forged
    requests.
    """
    state, url = flow.begin()
    redirect = RedirectResponse(url=url, status_code=307)
    redirect.set_cookie(
        OAUTH_STATE_COOKIE_NAME,
        state,
        max_age=OAUTH_STATE_MAX_AGE,
        **_cookie_kwargs(secure=settings.secure_cookies),
    )
    return redirect


@router.get("/auth/callback")
def google_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    error: str | None = None,
    flow: OAuthFlow = Depends(get_oauth_flow),
    codec: SessionCodec = Depends(get_session_codec),
    settings: Settings = Depends(get_settings),
):
    """
    Handle the redirect back from Google. On success, set the session cookie
    and redirect to the app; on failure, render the error page. Either way the
    state cookie is single-use and cleared here.
    """
    try:
        user = flow.complete(
            state_cookie=request.cookies.get(OAUTH_STATE_COOKIE_NAME),
            state=state,
            code=code,
            error=error,
        )
    except (OAuthError, UpstreamTimeout) as exc:
        logger.warning("OAuth callback failed (%s): %s", type(exc).__name__, exc.message)
        response = render_error(request, exc.status_code, exc.public_message)
        response.delete_cookie(OAUTH_STATE_COOKIE_NAME, path="/")
        return response
    except Exception:
        logger.exception("Unexpected error in OAuth callback")
        response = render_error(request, 500, "Internal server error")
        response.delete_cookie(OAUTH_STATE_COOKIE_NAME, path="/")
        return response

    redirect = RedirectResponse(url=settings.app_server_url, status_code=307)
    redirect.set_cookie(
        SESSION_COOKIE_NAME,
        codec.encode(user),
        max_age=SESSION_MAX_AGE,
        **_cookie_kwargs(secure=settings.secure_cookies),
    )
    redirect.delete_cookie(OAUTH_STATE_COOKIE_NAME, path="/")
    return redirect


@router.get("/logout")
def logout():
    """Clear the session cookie and send the browser back to the login page."""
    redirect = RedirectResponse(url="/login", status_code=307)
    redirect.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return redirect
