from urllib.parse import parse_qs, urlsplit

import pytest
from fastapi.testclient import TestClient

from portal.app import create_app
from portal.errors import StoreError
from portal.infra import accounts_repo

REGISTER_FORM = {
    "firstName": "Alice",
    "lastName": "Liddell",
    "email": "alice@example.com",
    "username": "alice",
    "password": "abc123ab",
    "confirmPassword": "abc123ab",
    "agreeTerms": "on",
}


def _location(resp):
    parts = urlsplit(resp.headers["location"])
    return parts.path, {k: v[0] for k, v in parse_qs(parts.query).items()}


def _login(client, username="alice", password="abc123ab"):
    return client.post("/login", data={"username": username, "password": password}, follow_redirects=False)


def test_register_then_login_flow(client, database, settings):
    resp = client.post("/register", data=REGISTER_FORM, follow_redirects=False)
    assert resp.status_code == 303
    path, query = _location(resp)
    assert path == "/login"
    assert query["success"] == "Registration successful! Please log in with your credentials."
    assert accounts_repo.count_accounts(database) == {"users": 1, "credentials": 1}

    resp = _login(client)
    assert resp.status_code == 303
    path, query = _location(resp)
    assert path == "/"
    assert query["success"] == "Welcome back, alice!"
    assert settings.session_cookie_name in resp.cookies

    home = client.get("/")
    assert home.status_code == 200
    assert "Hello, Alice Liddell" in home.text


def test_register_duplicate_username_redirects_with_error(client, database, alice):
    form = dict(REGISTER_FORM, email="other@example.com")
    resp = client.post("/register", data=form, follow_redirects=False)
    path, query = _location(resp)
    assert path == "/register"
    assert query["error"] == "This username is already taken."
    assert accounts_repo.count_accounts(database) == {"users": 1, "credentials": 1}


def test_register_validation_errors_are_joined(client, database):
    form = dict(REGISTER_FORM, password="short", confirmPassword="other", agreeTerms="")
    resp = client.post("/register", data=form, follow_redirects=False)
    path, query = _location(resp)
    assert path == "/register"
    assert "Passwords do not match" in query["error"]
    assert "You must agree to the terms and conditions" in query["error"]
    assert accounts_repo.count_accounts(database) == {"users": 0, "credentials": 0}


@pytest.mark.parametrize(
    "username, password",
    [("ghost", "whatever1"), ("alice", "wrong-password1")],
)
def test_bad_login_is_generic_and_sets_no_cookie(client, alice, settings, username, password):
    resp = _login(client, username, password)
    path, query = _location(resp)
    assert path == "/login"
    assert query["error"] == "Invalid username or password"
    assert settings.session_cookie_name not in resp.cookies


def test_login_field_validation(client):
    resp = _login(client, "al", "abcdef")
    assert _location(resp) == ("/login", {"error": "Username must be at least 3 characters"})
    resp = _login(client, "", "")
    assert _location(resp) == ("/login", {"error": "Please fill in all fields"})


def test_admin_requires_authentication(client):
    resp = client.get("/admin", follow_redirects=False)
    assert resp.status_code == 303
    assert _location(resp) == ("/login", {"error": "Authentication required"})


def test_admin_forbidden_for_plain_user(client, alice):
    _login(client)
    resp = client.get("/admin", follow_redirects=False)
    assert resp.status_code == 403
    assert "You do not have permission to access this page" in resp.text


def test_admin_dashboard_for_admin(client, root):
    _login(client, "root")
    resp = client.get("/admin")
    assert resp.status_code == 200
    assert 'class="layout-admin"' in resp.text
    assert "Signed in as <strong>Root Admin</strong>" in resp.text


@pytest.mark.parametrize("page", ["/login", "/register"])
def test_anonymous_only_pages_redirect_when_logged_in(client, alice, page):
    assert client.get(page).status_code == 200
    _login(client)
    resp = client.get(page, follow_redirects=False)
    assert resp.status_code == 303
    assert _location(resp) == ("/", {"info": "You are already logged in"})


def test_logout_clears_session(client, alice, settings):
    _login(client)
    resp = client.get("/logout", follow_redirects=False)
    assert _location(resp) == ("/login", {"success": "Successfully logged out"})
    assert settings.session_cookie_name not in client.cookies

    resp = client.get("/admin", follow_redirects=False)
    assert _location(resp) == ("/login", {"error": "Authentication required"})


def test_tampered_cookie_is_anonymous(client, settings):
    client.cookies.set(settings.session_cookie_name, "forged.value")
    resp = client.get("/admin", follow_redirects=False)
    assert resp.status_code == 303


def test_health_endpoint(client):
    body = client.get("/api/health").json()
    assert body["status"] == "OK"
    assert body["environment"] == "test"
    assert "timestamp" in body and "uptime" in body


def test_layouts_endpoint(client):
    body = client.get("/layouts").json()
    assert body["layoutNames"] == ["admin", "blog", "default"]
    assert body["totalLayouts"] == 3
    assert body["availableLayouts"]["blog"] == "layouts/blog.html"


def test_bare_page_skips_layout(client):
    resp = client.get("/test")
    assert resp.status_code == 200
    assert '<body class="bare">' in resp.text
    assert "topnav" not in resp.text


def test_public_pages_render_with_layouts(client):
    home = client.get("/?success=Saved")
    assert home.status_code == 200
    assert "topnav" in home.text
    assert 'alert-success' in home.text and "Saved" in home.text
    assert client.get("/about").status_code == 200
    assert client.get("/blog").status_code == 200


def test_unknown_path_renders_not_found_page(client):
    resp = client.get("/no/such/page")
    assert resp.status_code == 404
    assert "/no/such/page" in resp.text


def test_forgot_password(client):
    assert client.get("/forgot-password").status_code == 200
    resp = client.post("/forgot-password", data={"email": ""}, follow_redirects=False)
    assert _location(resp) == ("/forgot-password", {"error": "Please enter your email address"})
    resp = client.post("/forgot-password", data={"email": "a@example.com"}, follow_redirects=False)
    assert _location(resp)[1]["success"].startswith("Password reset instructions")


def test_mixed_case_username_registers_and_logs_in(client, database):
    form = dict(REGISTER_FORM, username="Alice")
    resp = client.post("/register", data=form, follow_redirects=False)
    assert _location(resp)[0] == "/login"
    assert accounts_repo.find_credential(database, "alice") is not None

    resp = _login(client, "Alice")
    assert _location(resp) == ("/", {"success": "Welcome back, alice!"})
    resp = _login(client, " ALICE ")
    assert resp.status_code == 303


def test_logout_cookie_clear_keeps_attributes(client, alice):
    _login(client)
    resp = client.get("/logout", follow_redirects=False)
    cleared = resp.headers["set-cookie"].lower()
    assert "max-age=0" in cleared
    assert "httponly" in cleared
    assert "samesite=lax" in cleared


def test_logout_store_failure_keeps_session(client, app, alice, settings, monkeypatch):
    _login(client)
    cookie = client.cookies.get(settings.session_cookie_name)

    def boom(session_id):
        raise StoreError("session destroy failed")

    monkeypatch.setattr(app.state.sessions.store, "destroy", boom)
    resp = client.get("/logout", follow_redirects=False)

    assert _location(resp) == ("/", {"error": "Error logging out"})
    assert "max-age=0" not in resp.headers.get("set-cookie", "").lower()
    assert client.cookies.get(settings.session_cookie_name) == cookie

    monkeypatch.undo()
    # Still signed in as a plain user.
    assert client.get("/admin", follow_redirects=False).status_code == 403


@pytest.fixture()
def clocked_client(settings, database, clock):
    return TestClient(create_app(settings, database=database, clock=clock), raise_server_exceptions=False)


def test_session_expires_after_idle_window(clocked_client, clock, alice):
    _login(clocked_client)

    clock.advance(hours=23)
    assert clocked_client.get("/admin", follow_redirects=False).status_code == 403

    # Each request rolls the expiry forward.
    clock.advance(hours=23)
    assert clocked_client.get("/admin", follow_redirects=False).status_code == 403

    clock.advance(hours=24, seconds=1)
    resp = clocked_client.get("/admin", follow_redirects=False)
    assert _location(resp) == ("/login", {"error": "Authentication required"})


def test_forgot_password_response_does_not_reveal_accounts(client, alice):
    known = client.post("/forgot-password", data={"email": "alice@example.com"}, follow_redirects=False)
    unknown = client.post("/forgot-password", data={"email": "nobody@example.com"}, follow_redirects=False)
    assert known.status_code == unknown.status_code == 303
    assert known.headers["location"] == unknown.headers["location"]
