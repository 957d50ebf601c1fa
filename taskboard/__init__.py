"""Taskboard - personal task-management backend.

Core concepts:
- Identity is a system-generated handle (username) looked up by email.
- Short-lived JWT access tokens; one long-lived refresh token per user, stored
  on the user row, is the whole session model.
- Expired access tokens are silently renewed while the stored refresh token is
  still valid; the new token is returned in a response header.

See DESIGN.md for the module map.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
