"""Login, callback and logout through the HTTP surface."""
from urllib.parse import parse_qs, urlsplit

from config import OAUTH_STATE_COOKIE_NAME, SESSION_COOKIE_NAME


def _set_cookie_headers(response, name):
    return [h for h in response.headers.get_list("set-cookie") if h.startswith(f"{name}=")]


def _begin_login(client) -> str:
    response = client.get("/auth/google")
    assert response.status_code == 307
    state = client.cookies.get(OAUTH_STATE_COOKIE_NAME)
    assert state
    return state


def test_login_page_renders(client):
    response = client.get("/login")
    assert response.status_code == 200
    assert 'href="/auth/google"' in response.text


def test_google_login_sets_state_cookie_and_redirects(client):
    response = client.get("/auth/google")
    assert response.status_code == 307
    location = response.headers["location"]
    assert location.startswith("https://accounts.example.com/")

    (header,) = _set_cookie_headers(response, OAUTH_STATE_COOKIE_NAME)
    assert "HttpOnly" in header
    assert "Max-Age=600" in header
    assert "Path=/" in header
    assert parse_qs(urlsplit(location).query)["state"] == [client.cookies.get(OAUTH_STATE_COOKIE_NAME)]


def test_callback_round_trip_mints_session(client, provider):
    state = _begin_login(client)

    response = client.get("/auth/callback", params={"state": state, "code": "code-1"})

    assert response.status_code == 307
    assert response.headers["location"] == "http://testserver"
    assert provider.exchanged == ["code-1"]
    (session_header,) = _set_cookie_headers(response, SESSION_COOKIE_NAME)
    assert "HttpOnly" in session_header
    assert "Max-Age=86400" in session_header
    assert "Path=/" in session_header
    assert client.cookies.get(OAUTH_STATE_COOKIE_NAME) is None

    home = client.get("/")
    assert home.status_code == 200
    assert "Ada Lovelace" in home.text


def test_session_cookie_decodes_to_verified_user(client, app):
    state = _begin_login(client)
    client.get("/auth/callback", params={"state": state, "code": "code-1"})

    user = app.state.session_codec.decode(client.cookies.get(SESSION_COOKIE_NAME).strip('"'))
    assert user.id == "10001"
    assert user.email == "ada@example.com"


def test_state_mismatch_fails_without_exchange(client, provider):
    _begin_login(client)

    response = client.get("/auth/callback", params={"state": "forged", "code": "code-1"})

    assert response.status_code == 400
    assert "Invalid authentication state" in response.text
    assert provider.exchanged == []
    assert _set_cookie_headers(response, SESSION_COOKIE_NAME) == []


def test_missing_state_cookie_fails(client, provider):
    response = client.get("/auth/callback", params={"state": "abc", "code": "code-1"})
    assert response.status_code == 400
    assert provider.exchanged == []


def test_missing_state_param_fails(client, provider):
    _begin_login(client)
    response = client.get("/auth/callback", params={"code": "code-1"})
    assert response.status_code == 400
    assert provider.exchanged == []


def test_state_cookie_cleared_on_failure_and_replay_rejected(client, provider):
    state = _begin_login(client)

    first = client.get("/auth/callback", params={"state": "wrong", "code": "code-1"})
    assert first.status_code == 400
    (cleared,) = _set_cookie_headers(first, OAUTH_STATE_COOKIE_NAME)
    assert "Max-Age=0" in cleared
    assert client.cookies.get(OAUTH_STATE_COOKIE_NAME) is None

    replay = client.get("/auth/callback", params={"state": state, "code": "code-1"})
    assert replay.status_code == 400
    assert provider.exchanged == []


def test_state_cookie_single_use_after_success(client, provider):
    state = _begin_login(client)
    assert client.get("/auth/callback", params={"state": state, "code": "code-1"}).status_code == 307

    replay = client.get("/auth/callback", params={"state": state, "code": "code-1"})
    assert replay.status_code == 400
    assert provider.exchanged == ["code-1"]


def test_provider_error_is_400_and_generic(client):
    state = _begin_login(client)
    response = client.get("/auth/callback", params={"state": state, "error": "access_denied"})
    assert response.status_code == 400
    assert "access_denied" not in response.text


def test_missing_code_is_400(client):
    state = _begin_login(client)
    response = client.get("/auth/callback", params={"state": state})
    assert response.status_code == 400
    assert "Authorization code not received" in response.text


def test_exchange_failure_is_500_and_clears_state(client, provider):
    provider.exchange_error = RuntimeError("secret internal detail")
    state = _begin_login(client)

    response = client.get("/auth/callback", params={"state": state, "code": "code-1"})

    assert response.status_code == 500
    assert "secret internal detail" not in response.text
    assert "Max-Age=0" in _set_cookie_headers(response, OAUTH_STATE_COOKIE_NAME)[0]


def test_malformed_claims_are_500_and_clear_state(client, provider):
    provider.claims = {"sub": "10001", "name": {"given": "Ada"}}
    state = _begin_login(client)

    response = client.get("/auth/callback", params={"state": state, "code": "code-1"})

    assert response.status_code == 500
    assert "Failed to verify token" in response.text
    assert _set_cookie_headers(response, SESSION_COOKIE_NAME) == []
    assert "Max-Age=0" in _set_cookie_headers(response, OAUTH_STATE_COOKIE_NAME)[0]
    assert client.cookies.get(OAUTH_STATE_COOKIE_NAME) is None


def test_unexpected_callback_error_still_clears_state(client, provider):
    provider.claims = ["not", "a", "claims", "mapping"]
    state = _begin_login(client)

    response = client.get("/auth/callback", params={"state": state, "code": "code-1"})

    assert response.status_code == 500
    assert "Internal server error" in response.text
    assert "Max-Age=0" in _set_cookie_headers(response, OAUTH_STATE_COOKIE_NAME)[0]
    assert client.cookies.get(OAUTH_STATE_COOKIE_NAME) is None


def test_verification_failure_is_500(client, provider):
    provider.verify_error = ValueError("bad signature")
    state = _begin_login(client)
    response = client.get("/auth/callback", params={"state": state, "code": "code-1"})
    assert response.status_code == 500
    assert "Failed to verify token" in response.text


def test_logout_clears_session(client):
    state = _begin_login(client)
    client.get("/auth/callback", params={"state": state, "code": "code-1"})
    assert client.get("/").status_code == 200

    response = client.get("/logout")
    assert response.status_code == 307
    assert response.headers["location"] == "/login"
    (cleared,) = _set_cookie_headers(response, SESSION_COOKIE_NAME)
    assert "Max-Age=0" in cleared

    assert client.get("/").status_code == 307
