"""Database models."""

from inventrack.models.user import User, Role, UserRole
from inventrack.models.tokens import RefreshToken, PasswordResetToken, TwoFactorSecret

__all__ = [
    "User",
    "Role",
    "UserRole",
    "RefreshToken",
    "PasswordResetToken",
    "TwoFactorSecret",
]
