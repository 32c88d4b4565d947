from conftest import login, signup

from ambuhub import crud, models
from ambuhub.config import get_settings


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_signup_roles(client, db_session):
    assert signup(client, "std@example.com").headers["location"] == "/login"
    assert signup(client, "vendor@example.com", vendor=True).headers["location"] == "/login"

    assert crud.get_user_by_email(db_session, "std@example.com").role == models.Role.standard_user
    assert crud.get_user_by_email(db_session, "vendor@example.com").role == models.Role.vendor_user


def test_signup_never_stores_plaintext(client, db_session):
    signup(client, "plain@example.com", "pw123")
    user = crud.get_user_by_email(db_session, "plain@example.com")
    assert user.password_hash != "pw123"


def test_duplicate_signup_is_client_error(client, db_session):
    assert signup(client, "dup@example.com").status_code == 303
    r = signup(client, "dup@example.com", "another")
    assert r.status_code == 400
    assert "already registered" in r.text
    assert db_session.query(models.User).filter(models.User.email == "dup@example.com").count() == 1


def test_signup_invalid_email(client):
    r = signup(client, "not-an-email")
    assert r.status_code == 400


def test_signup_missing_field(client):
    r = client.post("/signup", data={"email": "x@example.com"}, follow_redirects=False)
    assert r.status_code == 400


def test_login_failures_are_indistinguishable(client, db_session):
    signup(client, "known@example.com", "pw123")

    wrong_password = login(client, "known@example.com", "nope")
    unknown_email = login(client, "unknown@example.com", "pw123")

    assert wrong_password.status_code == unknown_email.status_code == 400
    assert "Invalid email or password" in wrong_password.text
    assert "Invalid email or password" in unknown_email.text
    assert get_settings().session_cookie_name not in wrong_password.cookies
    assert db_session.query(models.UserSession).count() == 0


def test_login_redirects_by_role(client):
    signup(client, "std@example.com")
    signup(client, "vendor@example.com", vendor=True)

    r = login(client, "std@example.com")
    assert r.status_code == 303
    assert r.headers["location"] == "/usuario_padrao"

    r = login(client, "vendor@example.com")
    assert r.status_code == 303
    assert r.headers["location"] == "/usuario_ambulante"


def test_session_role_matches_stored_role(client, db_session):
    signup(client, "vendor@example.com", vendor=True)
    login(client, "vendor@example.com")

    session_row = db_session.query(models.UserSession).one()
    user = crud.get_user_by_email(db_session, "vendor@example.com")
    assert session_row.user_id == user.id
    assert session_row.role == models.Role.vendor_user

    assert client.get("/usuario_ambulante").status_code == 200
    assert client.get("/usuario_padrao").status_code == 403


def test_standard_user_cannot_reach_vendor_pages(client):
    signup(client, "std@example.com")
    login(client, "std@example.com")

    assert client.get("/usuario_padrao").status_code == 200
    r = client.get("/usuario_ambulante")
    assert r.status_code == 403
    assert "Access denied" in r.text
    r = client.post("/create-product", data={"name": "x", "description": "y", "price": "1", "stock": "1"})
    assert r.status_code == 403


def test_unauthenticated_requests_redirect_to_login(client):
    for path in ("/usuario_padrao", "/usuario_ambulante"):
        r = client.get(path, follow_redirects=False)
        assert r.status_code == 303
        assert r.headers["location"] == "/login"

    r = client.post(
        "/create-product",
        data={"name": "x", "description": "y", "price": "1", "stock": "1"},
        follow_redirects=False,
    )
    assert r.status_code == 303
    assert r.headers["location"] == "/login"


def test_logout_ends_session(client, db_session):
    signup(client, "std@example.com")
    login(client, "std@example.com")
    assert client.get("/usuario_padrao").status_code == 200

    r = client.get("/logout", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"
    assert db_session.query(models.UserSession).count() == 0

    r = client.get("/usuario_padrao", follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"

    # logging out again is harmless
    assert client.get("/logout", follow_redirects=False).status_code == 303


def test_stale_cookie_after_logout_is_rejected(client):
    signup(client, "std@example.com")
    r = login(client, "std@example.com")
    token = r.cookies[get_settings().session_cookie_name]

    client.get("/logout", follow_redirects=False)
    cookie = f"{get_settings().session_cookie_name}={token}"
    r = client.get("/usuario_padrao", headers={"Cookie": cookie}, follow_redirects=False)
    assert r.status_code == 303
    assert r.headers["location"] == "/login"
