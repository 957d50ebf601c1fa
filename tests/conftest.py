import sys
from datetime import timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from taskboard.api.server import create_app  # noqa: E402
from taskboard.auth.security import issue_access_token  # noqa: E402
from taskboard.config import Config  # noqa: E402
from taskboard.db import connect, init_db  # noqa: E402
from taskboard.util.time import utcnow  # noqa: E402


@pytest.fixture
def cfg(tmp_path):
    """Test configuration backed by a throwaway SQLite file."""
    return Config(
        DB_DSN=str(tmp_path / "taskboard_test.sqlite"),
        AUTH_JWT_SECRET="access-secret-for-tests-only-0123456789",
        AUTH_REFRESH_SECRET="refresh-secret-for-tests-only-0123456789",
    )


@pytest.fixture
def conn(cfg):
    init_db(cfg.DB_DSN)
    with connect(cfg.DB_DSN) as c:
        yield c


@pytest.fixture
def client(cfg):
    with TestClient(create_app(cfg)) as c:
        yield c


@pytest.fixture
def expired_access_token(cfg):
    """Build an access token for a username that expired an hour ago."""

    def _make(username: str) -> str:
        return issue_access_token(cfg, username, now=utcnow() - timedelta(hours=1))

    return _make


def register_user(client, firstname, lastname, email, password):
    return client.post(
        "/register",
        json={"firstname": firstname, "lastname": lastname, "email": email, "password": password},
    )


def login_user(client, email, password):
    return client.post("/login", json={"email": email, "password": password})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
