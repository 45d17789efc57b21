def signup(client, email="ada@example.com", password="s3cret-pass", name="Ada Lovelace"):
    return client.post("/api/auth/signup", json={"name": name, "email": email, "password": password})


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


def test_signup_returns_token_and_public_user(client):
    response = signup(client)

    assert response.status_code == 201
    body = response.json()
    assert body["token"]
    assert body["user"]["name"] == "Ada Lovelace"
    assert body["user"]["email"] == "ada@example.com"
    assert "password" not in body["user"]
    assert "hashed_password" not in body["user"]


def test_signup_then_login_succeeds(client):
    signup(client)

    response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"})

    assert response.status_code == 200
    body = response.json()
    assert body["token"]
    assert "hashed_password" not in body["user"]


def test_duplicate_email_is_case_insensitive(client):
    assert signup(client, email="ada@example.com").status_code == 201

    response = signup(client, email="ADA@Example.com")

    assert response.status_code == 400
    assert response.json()["message"] == "Email already in use"


def test_login_is_case_insensitive_on_email(client):
    signup(client)

    response = client.post("/api/auth/login", json={"email": "Ada@EXAMPLE.com", "password": "s3cret-pass"})

    assert response.status_code == 200


def test_wrong_password_and_unknown_email_look_the_same(client):
    signup(client)

    wrong_password = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "nope-nope"})
    unknown_email = client.post("/api/auth/login", json={"email": "bob@example.com", "password": "s3cret-pass"})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json()
    assert wrong_password.json()["message"] == "Invalid credentials"


def test_signup_validation_errors_are_400(client):
    short_password = signup(client, password="123")
    bad_email = signup(client, email="not-an-email")
    short_name = signup(client, name="A")

    for response in (short_password, bad_email, short_name):
        assert response.status_code == 400
        assert response.json()["message"]


def test_me_resolves_token_to_its_user(client):
    created = signup(client).json()

    response = client.get("/api/auth/me", headers=auth_header(created["token"]))

    assert response.status_code == 200
    assert response.json()["user"]["id"] == created["user"]["id"]
    assert "hashed_password" not in response.json()["user"]


def test_me_token_from_login_resolves_to_same_user(client):
    created = signup(client).json()
    login = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"}).json()

    response = client.get("/api/auth/me", headers=auth_header(login["token"]))

    assert response.json()["user"]["id"] == created["user"]["id"]


def test_me_without_token_is_unauthorized(client):
    response = client.get("/api/auth/me")

    assert response.status_code == 401
    assert response.headers["WWW-Authenticate"] == "Bearer"
    assert response.json()["message"]


def test_me_with_garbage_token_is_unauthorized(client):
    response = client.get("/api/auth/me", headers=auth_header("not.a.jwt"))

    assert response.status_code == 401


def test_token_signed_with_another_secret_is_rejected(client):
    from app.core.security import create_access_token

    user_id = signup(client).json()["user"]["id"]
    forged = create_access_token(str(user_id), secret_key="some-other-secret")

    response = client.get("/api/auth/me", headers=auth_header(forged))

    assert response.status_code == 401


def test_logout_revokes_token(client):
    token = signup(client).json()["token"]

    logout = client.post("/api/auth/logout", headers=auth_header(token))
    me = client.get("/api/auth/me", headers=auth_header(token))

    assert logout.status_code == 200
    assert logout.json() == {"message": "Logout successful"}
    assert me.status_code == 401


def test_logout_only_revokes_the_presented_token(client):
    first = signup(client).json()["token"]
    second = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"}).json()["token"]

    client.post("/api/auth/logout", headers=auth_header(first))

    assert client.get("/api/auth/me", headers=auth_header(first)).status_code == 401
    assert client.get("/api/auth/me", headers=auth_header(second)).status_code == 200


def test_logout_twice_is_not_an_error(client):
    token = signup(client).json()["token"]

    client.post("/api/auth/logout", headers=auth_header(token))
    again = client.post("/api/auth/logout", headers=auth_header(token))

    assert again.status_code == 200


def test_logout_without_token_is_400(client):
    response = client.post("/api/auth/logout")

    assert response.status_code == 400
    assert response.json()["message"] == "Token required for logout"


def test_logout_with_invalid_token_is_401(client):
    response = client.post("/api/auth/logout", headers=auth_header("garbage"))

    assert response.status_code == 401


def test_logout_all_revokes_every_session(client):
    first = signup(client).json()["token"]
    second = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"}).json()["token"]

    response = client.post("/api/auth/logout-all", headers=auth_header(second))

    assert response.status_code == 200
    assert response.json()["revoked"] == 2
    assert client.get("/api/auth/me", headers=auth_header(first)).status_code == 401
    assert client.get("/api/auth/me", headers=auth_header(second)).status_code == 401


def test_refresh_rotates_token(client):
    old = signup(client).json()["token"]

    response = client.post("/api/auth/refresh", headers=auth_header(old))

    assert response.status_code == 200
    new = response.json()["token"]
    assert new != old
    assert client.get("/api/auth/me", headers=auth_header(old)).status_code == 401
    assert client.get("/api/auth/me", headers=auth_header(new)).status_code == 200


def test_refresh_with_revoked_token_fails(client):
    token = signup(client).json()["token"]
    client.post("/api/auth/logout", headers=auth_header(token))

    response = client.post("/api/auth/refresh", headers=auth_header(token))

    assert response.status_code == 401


def test_inactive_user_cannot_login(client, db):
    from app.models.user import User

    signup(client)
    user = db.query(User).filter(User.email == "ada@example.com").first()
    user.is_active = False
    db.commit()

    response = client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"})

    assert response.status_code == 403


def test_signup_name_is_trimmed_before_length_check(client):
    padded_short = signup(client, name="  A  ")
    padded_long = signup(client, name="   " + "N" * 50 + "   ")

    assert padded_short.status_code == 400
    assert padded_long.status_code == 201
    assert padded_long.json()["user"]["name"] == "N" * 50


def test_signup_and_login_hash_off_the_event_loop(client, monkeypatch):
    import asyncio
    from app.services import auth_service

    hashing_threads = []
    original_hash = auth_service.get_password_hash
    original_verify = auth_service.verify_password

    def on_event_loop():
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return False
        return True

    def spy_hash(password, rounds=12):
        hashing_threads.append(on_event_loop())
        return original_hash(password, rounds=rounds)

    def spy_verify(plain, hashed):
        hashing_threads.append(on_event_loop())
        return original_verify(plain, hashed)

    monkeypatch.setattr(auth_service, "get_password_hash", spy_hash)
    monkeypatch.setattr(auth_service, "verify_password", spy_verify)

    signup(client)
    client.post("/api/auth/login", json={"email": "ada@example.com", "password": "s3cret-pass"})

    assert hashing_threads == [False, False]


def test_me_after_user_deleted_is_unauthorized(client, db):
    from app.models.user import User

    token = signup(client).json()["token"]
    db.delete(db.query(User).filter(User.email == "ada@example.com").first())
    db.commit()

    response = client.get("/api/auth/me", headers=auth_header(token))

    assert response.status_code == 401


def test_me_for_inactive_user_is_forbidden(client, db):
    from app.models.user import User

    token = signup(client).json()["token"]
    user = db.query(User).filter(User.email == "ada@example.com").first()
    user.is_active = False
    db.commit()

    response = client.get("/api/auth/me", headers=auth_header(token))

    assert response.status_code == 403
