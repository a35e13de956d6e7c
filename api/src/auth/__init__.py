"""Identity resolution from identity-provider access tokens."""

from .schemas import AuthenticatedUser, UserRole


__all__ = ["AuthenticatedUser", "UserRole"]
