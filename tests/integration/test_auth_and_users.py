from conftest import TEST_PASSWORD, seed_branch


def _register(client, **overrides):
    payload = {
        "branch_code": "MAIN",
        "username": "desk-1",
        "password": TEST_PASSWORD,
        "name": "Desk One",
    }
    payload.update(overrides)
    return client.post("/auth/register", json=payload)


def test_register_login_and_me(client, branch):
    registered = _register(client, branch_code="main", email="Desk@Example.com")
    assert registered.status_code == 201
    body = registered.json()
    assert body["branch_code"] == "MAIN"
    assert body["role"] == "receptionist"
    assert body["email"] == "desk@example.com"
    assert "hashed_password" not in body

    login = client.post(
        "/auth/login",
        json={"branch_code": "MAIN", "username": "desk-1", "password": TEST_PASSWORD},
    )
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["token_type"] == "bearer"

    me = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "desk-1"


def test_register_rejects_duplicate_username_in_branch(client, branch):
    assert _register(client).status_code == 201

    duplicate = _register(client)

    assert duplicate.status_code == 409
    assert duplicate.json()["error"]["code"] == "USERNAME_TAKEN"


def test_same_username_allowed_in_another_branch(client, db_session, branch):
    seed_branch(db_session, code="NORTH")

    assert _register(client).status_code == 201
    assert _register(client, branch_code="NORTH").status_code == 201


def test_register_for_unknown_branch_fails(client, branch):
    response = _register(client, branch_code="NOWHERE")

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "INVALID_BRANCH"


def test_login_with_wrong_password_fails(client, receptionist):
    response = client.post(
        "/auth/login",
        json={"branch_code": "MAIN", "username": receptionist.username, "password": "WrongPass123"},
    )

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"


def test_me_rejects_missing_and_garbage_tokens(client, branch):
    missing = client.get("/users/me")
    garbage = client.get("/users/me", headers={"Authorization": "Bearer not-a-jwt"})

    assert missing.status_code == 401
    assert missing.json()["error"]["code"] == "NOT_AUTHENTICATED"
    assert garbage.status_code == 401
    assert garbage.headers.get("WWW-Authenticate") == "Bearer"
