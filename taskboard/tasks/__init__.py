"""Task records owned by a single user (by username)."""
