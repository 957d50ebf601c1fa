import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    Built once at startup by `load_config()` and passed explicitly to the auth
    and task layers. Defaults are development values only.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    """

    # -----------------
    # Core
    # -----------------
    # Postgres URL (postgresql://...) or a SQLite file path.
    DB_DSN: str = "./taskboard.sqlite"

    # -----------------
    # Auth (JWT)
    # -----------------
    # Access and refresh tokens are signed with different secrets.
    AUTH_JWT_SECRET: str = "dev_change_me"
    AUTH_REFRESH_SECRET: str = "dev_change_me_too"
    AUTH_ACCESS_EXPIRE_MINUTES: int = 30
    AUTH_REFRESH_EXPIRE_DAYS: int = 3

    # Response header carrying a silently renewed access token.
    AUTH_NEW_TOKEN_HEADER: str = "x-new-access-token"

    # Upper bound on username suffix attempts during registration.
    AUTH_HANDLE_MAX_ATTEMPTS: int = 1000

    # The refresh token is only handed to browsers as an httpOnly cookie.
    AUTH_COOKIE_NAME: str = "tb_refresh"
    AUTH_COOKIE_DOMAIN: str | None = None
    AUTH_COOKIE_PATH: str = "/"
    AUTH_COOKIE_SAMESITE: str = "lax"  # lax|strict|none
    AUTH_COOKIE_SECURE: bool = False

    PUBLIC_APP_URL: str = "http://localhost:5173"

    # -----------------
    # CORS
    # -----------------
    CORS_ALLOW_ORIGINS: str = "*"


def load_config() -> Config:
    """Read configuration from the environment (and a local .env if present)."""
    load_dotenv()

    public_app_url = os.environ.get("PUBLIC_APP_URL", Config.PUBLIC_APP_URL)
    # Default to secure cookies when the public app is served over https.
    cookie_secure = _env_bool("AUTH_COOKIE_SECURE", None)
    if cookie_secure is None:
        cookie_secure = public_app_url.lower().startswith("https://")

    return Config(
        DB_DSN=(
            os.environ.get("TASKBOARD_DATABASE_URL")
            or os.environ.get("DATABASE_URL")
            or os.environ.get("TASKBOARD_DB_PATH", Config.DB_DSN)
        ),
        AUTH_JWT_SECRET=os.environ.get("AUTH_JWT_SECRET", Config.AUTH_JWT_SECRET),
        AUTH_REFRESH_SECRET=os.environ.get("AUTH_REFRESH_SECRET", Config.AUTH_REFRESH_SECRET),
        AUTH_ACCESS_EXPIRE_MINUTES=int(
            os.environ.get("AUTH_ACCESS_EXPIRE_MINUTES", str(Config.AUTH_ACCESS_EXPIRE_MINUTES))
        ),
        AUTH_REFRESH_EXPIRE_DAYS=int(
            os.environ.get("AUTH_REFRESH_EXPIRE_DAYS", str(Config.AUTH_REFRESH_EXPIRE_DAYS))
        ),
        AUTH_NEW_TOKEN_HEADER=os.environ.get("AUTH_NEW_TOKEN_HEADER", Config.AUTH_NEW_TOKEN_HEADER),
        AUTH_HANDLE_MAX_ATTEMPTS=int(
            os.environ.get("AUTH_HANDLE_MAX_ATTEMPTS", str(Config.AUTH_HANDLE_MAX_ATTEMPTS))
        ),
        AUTH_COOKIE_NAME=os.environ.get("AUTH_COOKIE_NAME", Config.AUTH_COOKIE_NAME),
        AUTH_COOKIE_DOMAIN=(os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None,
        AUTH_COOKIE_PATH=os.environ.get("AUTH_COOKIE_PATH", Config.AUTH_COOKIE_PATH),
        AUTH_COOKIE_SAMESITE=os.environ.get("AUTH_COOKIE_SAMESITE", Config.AUTH_COOKIE_SAMESITE),
        AUTH_COOKIE_SECURE=cookie_secure,
        PUBLIC_APP_URL=public_app_url,
        CORS_ALLOW_ORIGINS=os.environ.get("CORS_ALLOW_ORIGINS", Config.CORS_ALLOW_ORIGINS),
    )
