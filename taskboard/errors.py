"""Application error taxonomy.

Every error maps to an HTTP status and is rendered as ``{"error": message}``
by the handlers installed in ``taskboard.api.server``. The message is what the
client sees, so it never carries internal detail.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterator, Optional


def _debug(msg: str) -> None:
    print(f"[errors] {msg}")


class AppError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.headers = dict(headers or {})


class ValidationError(AppError):
    """Missing or malformed input (400)."""

    status_code = 400


class AuthError(AppError):
    """Missing/invalid credential with no valid renewal path (401 unless overridden)."""

    status_code = 401


class OwnershipError(AppError):
    """Authenticated identity does not own the target resource (403)."""

    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    """Duplicate value for a unique field (409 unless overridden)."""

    status_code = 409


class StoreError(AppError):
    """Credential/task store failure, surfaced as an opaque 500."""

    status_code = 500


@contextmanager
def store_errors(public_message: str, *, context: str) -> Iterator[None]:
    """Turn unexpected failures inside the block into an opaque StoreError.

    AppError subclasses pass through untouched.
    """
    try:
        yield
    except AppError:
        raise
    except Exception as e:
        _debug(f"{context} failed: {type(e).__name__}: {e}")
        raise StoreError(public_message) from e
