"""Authentication / session renewal.

- Users table (handle/email/password hash + one refresh token)
- Short-lived JWT access tokens, long-lived JWT refresh tokens (separate secrets)

Protected endpoints depend on `get_current_username`. An expired access token
is renewed transparently while the stored refresh token is valid; the new token
comes back in the `x-new-access-token` response header.
"""

from .deps import get_current_username, require_owner
from .session import authenticate, login, refresh_access, register

__all__ = [
    "get_current_username",
    "require_owner",
    "authenticate",
    "login",
    "refresh_access",
    "register",
]
