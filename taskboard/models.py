from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class SessionOutcome:
    """An admitted request: who it is, and a renewed access token if one was minted."""

    username: str
    renewed_access_token: Optional[str] = None

    @property
    def renewed(self) -> bool:
        return self.renewed_access_token is not None


@dataclass(frozen=True)
class LoginResult:
    access_token: str
    # Delivered only through the httpOnly cookie, never in the JSON body.
    refresh_token: str
    user: Dict[str, Any]
