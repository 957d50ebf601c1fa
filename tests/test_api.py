"""Integration tests for the HTTP surface (auth gate + task endpoints)."""

import pytest

from taskboard.auth.security import ACCESS, verify_token

from conftest import bearer, login_user, register_user


@pytest.fixture
def ann(client):
    """Registered + logged-in user 'annlee'; returns their access token."""
    assert register_user(client, "Ann", "Lee", "ann@x.com", "pw1").status_code == 201
    r = login_user(client, "ann@x.com", "pw1")
    assert r.status_code == 200
    return r.json()["access_token"]


@pytest.fixture
def bob(client):
    assert register_user(client, "Bob", "Ross", "bob@x.com", "pw2").status_code == 201
    return login_user(client, "bob@x.com", "pw2").json()["access_token"]


def _task(**overrides):
    body = {
        "task_id": "t1",
        "username": "annlee",
        "task_priority": "high",
        "datetime": "2024-05-01T10:00:00Z",
        "task_description": "buy milk",
        "is_completed": False,
    }
    body.update(overrides)
    return body


class TestHealth:
    def test_index_and_health(self, client):
        assert client.get("/").json() == {"message": "Task API is working!"}
        assert client.get("/health").json() == {"status": "ok"}

    def test_unknown_route_uses_error_shape(self, client):
        r = client.get("/nope")
        assert r.status_code == 404
        assert "error" in r.json()


class TestRegisterAndLogin:
    def test_register_returns_confirmation_only(self, client):
        r = register_user(client, "Ann", "Lee", "ann@x.com", "pw1")
        assert r.status_code == 201
        assert r.json() == {"message": "User registered successfully"}

    def test_register_missing_fields(self, client):
        r = client.post("/register", json={"firstname": "Ann", "email": "ann@x.com"})
        assert r.status_code == 400
        assert r.json() == {"error": "Email & password fields are required"}

    def test_register_duplicate_email(self, client):
        register_user(client, "Ann", "Lee", "ann@x.com", "pw1")
        r = register_user(client, "Ann", "Lee", "ann@x.com", "pw1")
        assert r.status_code == 400
        assert r.json() == {"error": "Email already registered"}

    def test_register_rejects_overlong_names(self, client):
        r = register_user(client, "A" * 16, "Lee", "ann@x.com", "pw1")
        assert r.status_code == 400
        assert r.json()["error"].startswith("Invalid firstname")

    def test_login_returns_token_and_public_user(self, client, cfg):
        register_user(client, "Ann", "Lee", "ann@x.com", "pw1")
        register_user(client, "Anna", "Lewis", "ann2@x.com", "pw2")

        r = login_user(client, "ann2@x.com", "pw2")

        assert r.status_code == 200
        data = r.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["username"] == "annalewi"
        assert "password_hash" not in data["user"]
        assert "refresh_token" not in data["user"]
        payload = verify_token(token=data["access_token"], secret=cfg.AUTH_JWT_SECRET, token_type=ACCESS)
        assert payload["sub"] == "annalewi"
        # Refresh token only travels as an httpOnly cookie.
        assert r.cookies.get(cfg.AUTH_COOKIE_NAME)
        assert "httponly" in r.headers["set-cookie"].lower()

    def test_colliding_names_get_suffixed_username(self, client):
        register_user(client, "Ann", "Lee", "ann@x.com", "pw1")
        register_user(client, "Annabel", "Leeds", "ann3@x.com", "pw3")

        assert login_user(client, "ann3@x.com", "pw3").json()["user"]["username"] == "annaleed"

        register_user(client, "Ann", "Lee", "ann4@x.com", "pw4")
        assert login_user(client, "ann4@x.com", "pw4").json()["user"]["username"] == "annlee1"

    def test_login_failures_are_indistinguishable(self, client):
        register_user(client, "Ann", "Lee", "ann@x.com", "pw1")

        wrong = login_user(client, "ann@x.com", "wrong")
        unknown = login_user(client, "nobody@x.com", "pw1")

        assert wrong.status_code == unknown.status_code == 400
        assert wrong.json() == unknown.json() == {"error": "Invalid email or password"}

    def test_login_missing_field(self, client):
        r = client.post("/login", json={"email": "ann@x.com"})
        assert r.status_code == 400
        assert "error" in r.json()


class TestRefreshEndpoint:
    def test_refresh_from_cookie(self, client, ann, cfg):
        r = client.post("/refresh")
        assert r.status_code == 200
        token = r.json()["tokens"]["access_token"]
        assert verify_token(token=token, secret=cfg.AUTH_JWT_SECRET, token_type=ACCESS)["sub"] == "annlee"

    def test_refresh_from_body(self, client, ann, cfg):
        stored = client.cookies.get(cfg.AUTH_COOKIE_NAME)
        client.cookies.clear()

        r = client.post("/refresh", json={"refresh_token": stored})

        assert r.status_code == 200
        assert r.json()["message"] == "New access token generated."

    def test_refresh_missing(self, client):
        r = client.post("/refresh", json={})
        assert r.status_code == 401
        assert r.json() == {"error": "Refresh token required"}

    def test_refresh_unknown(self, client, ann):
        client.cookies.clear()
        r = client.post("/refresh", json={"refresh_token": "not-a-token"})
        assert r.status_code == 403
        assert r.json() == {"error": "Invalid refresh token"}

    def test_logout_clears_cookie(self, client, ann, cfg):
        client.post("/logout")
        assert client.cookies.get(cfg.AUTH_COOKIE_NAME) is None
        assert client.post("/refresh").status_code == 401


class TestRequestGate:
    def test_missing_token(self, client):
        r = client.get("/getTasks", params={"username": "annlee"})
        assert r.status_code == 401
        assert r.json() == {"error": "Access token required"}

    def test_invalid_token(self, client):
        r = client.get("/getTasks", params={"username": "annlee"}, headers=bearer("garbage"))
        assert r.status_code == 403
        assert r.json() == {"error": "Invalid or expired token"}

    def test_valid_token_has_no_renewal_header(self, client, ann, cfg):
        r = client.get("/getTasks", params={"username": "annlee"}, headers=bearer(ann))
        assert r.status_code == 200
        assert cfg.AUTH_NEW_TOKEN_HEADER not in r.headers

    def test_expired_token_is_renewed_via_header(self, client, ann, cfg, expired_access_token):
        r = client.post("/addTask", json=_task(), headers=bearer(expired_access_token("annlee")))

        assert r.status_code == 200
        new_token = r.headers[cfg.AUTH_NEW_TOKEN_HEADER]
        assert verify_token(token=new_token, secret=cfg.AUTH_JWT_SECRET, token_type=ACCESS)["sub"] == "annlee"

        follow_up = client.get("/getTasks", params={"username": "annlee"}, headers=bearer(new_token))
        assert follow_up.status_code == 200
        assert [t["task_id"] for t in follow_up.json()["tasks"]] == ["t1"]

    def test_renewal_header_survives_endpoint_error(self, client, ann, cfg, expired_access_token):
        r = client.post("/addTask", json=_task(username="someone"), headers=bearer(expired_access_token("annlee")))

        assert r.status_code == 403
        assert cfg.AUTH_NEW_TOKEN_HEADER in r.headers

    def test_expired_token_without_user_is_rejected(self, client, expired_access_token):
        r = client.get("/getTasks", params={"username": "ghost"}, headers=bearer(expired_access_token("ghost")))
        assert r.status_code == 403
        assert r.json() == {"error": "Invalid refresh token"}


class TestTasks:
    def test_add_and_list(self, client, ann):
        r = client.post("/addTask", json=_task(), headers=bearer(ann))
        assert r.status_code == 200
        assert r.json() == {"message": "Task added successfully."}

        r = client.get("/getTasks", params={"username": "annlee"}, headers=bearer(ann))
        assert r.status_code == 200
        tasks = r.json()["tasks"]
        assert len(tasks) == 1
        assert tasks[0]["task_id"] == "t1"
        assert tasks[0]["username"] == "annlee"
        assert tasks[0]["is_completed"] is False

    def test_add_as_other_user_is_ownership_error(self, client, ann, bob):
        r = client.post("/addTask", json=_task(), headers=bearer(bob))
        assert r.status_code == 403
        assert r.json() == {"error": "Username is different."}

    def test_add_duplicate_task_id(self, client, ann):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        r = client.post("/addTask", json=_task(task_description="again"), headers=bearer(ann))
        assert r.status_code == 409

    def test_get_requires_username(self, client, ann):
        r = client.get("/getTasks", headers=bearer(ann))
        assert r.status_code == 400
        assert r.json() == {"error": "Username is required"}

    def test_get_other_users_tasks_forbidden(self, client, ann, bob):
        r = client.get("/getTasks", params={"username": "annlee"}, headers=bearer(bob))
        assert r.status_code == 403

    def test_delete_single(self, client, ann):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        client.post("/addTask", json=_task(task_id="t2"), headers=bearer(ann))

        r = client.delete("/deleteTask", params={"username": "annlee", "task_id": "t1"}, headers=bearer(ann))
        assert r.status_code == 200
        assert r.json() == {"message": "Task deleted successfully"}

        remaining = client.get("/getTasks", params={"username": "annlee"}, headers=bearer(ann)).json()["tasks"]
        assert [t["task_id"] for t in remaining] == ["t2"]

    def test_delete_all(self, client, ann):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        client.post("/addTask", json=_task(task_id="t2"), headers=bearer(ann))

        r = client.delete("/deleteTask", params={"username": "annlee"}, headers=bearer(ann))
        assert r.json() == {"message": "All tasks deleted successfully"}

        r = client.delete("/deleteTask", params={"username": "annlee"}, headers=bearer(ann))
        assert r.status_code == 404
        assert r.json() == {"error": "No tasks found for this user"}

    def test_delete_missing_task(self, client, ann):
        r = client.delete("/deleteTask", params={"username": "annlee", "task_id": "nope"}, headers=bearer(ann))
        assert r.status_code == 404
        assert r.json() == {"error": "Task not found"}

    def test_delete_requires_username(self, client, ann):
        r = client.delete("/deleteTask", headers=bearer(ann))
        assert r.status_code == 400

    def test_delete_other_users_tasks_forbidden(self, client, ann, bob):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        r = client.delete("/deleteTask", params={"username": "annlee"}, headers=bearer(bob))
        assert r.status_code == 403

    def test_update_completion_only(self, client, ann):
        client.post("/addTask", json=_task(), headers=bearer(ann))

        r = client.put("/updateTask", json={"task_id": "t1", "is_completed": True}, headers=bearer(ann))

        assert r.status_code == 200
        task = r.json()["task"]
        assert task["is_completed"] is True
        assert task["task_description"] == "buy milk"
        assert task["task_priority"] == "high"
        assert task["datetime"] == "2024-05-01T10:00:00Z"

    def test_update_requires_task_id(self, client, ann):
        r = client.put("/updateTask", json={"is_completed": True}, headers=bearer(ann))
        assert r.status_code == 400
        assert r.json() == {"error": "Task ID is required"}

    def test_update_requires_fields(self, client, ann):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        r = client.put("/updateTask", json={"task_id": "t1"}, headers=bearer(ann))
        assert r.status_code == 400
        assert r.json() == {"error": "No valid fields provided for update"}

    def test_update_missing_task(self, client, ann):
        r = client.put("/updateTask", json={"task_id": "nope", "is_completed": True}, headers=bearer(ann))
        assert r.status_code == 404

    def test_update_other_users_task(self, client, ann, bob):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        r = client.put("/updateTask", json={"task_id": "t1", "task_description": "hijack"}, headers=bearer(bob))
        assert r.status_code == 403

    @pytest.mark.parametrize("task_id", ["t1", "does-not-exist"])
    def test_update_with_mismatched_username_always_ownership_error(self, client, ann, task_id):
        client.post("/addTask", json=_task(), headers=bearer(ann))
        r = client.put(
            "/updateTask",
            json={"task_id": task_id, "username": "someone", "is_completed": True},
            headers=bearer(ann),
        )
        assert r.status_code == 403
        assert r.json() == {"error": "Username is different."}
