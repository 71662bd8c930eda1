"""Persisted auth state: refresh tokens, password-reset tokens, TOTP secrets."""

from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshToken(SQLModel, table=True):
    __tablename__ = "refresh_tokens"

    id: int | None = Field(default=None, primary_key=True)
    token: str = Field(unique=True, index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    expires_at: datetime = Field(sa_type=DateTime(timezone=True))
    revoked: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utcnow, sa_type=DateTime(timezone=True))


class PasswordResetToken(SQLModel, table=True):
    __tablename__ = "password_reset_tokens"

    id: int | None = Field(default=None, primary_key=True)
    token: str = Field(unique=True, index=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    expires_at: datetime = Field(sa_type=DateTime(timezone=True))
    used: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utcnow, sa_type=DateTime(timezone=True))


class TwoFactorSecret(SQLModel, table=True):
    __tablename__ = "two_factor_secrets"

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", unique=True, index=True)
    secret_key: str  # unpadded base32
    is_active: bool = Field(default=False)
    created_at: datetime = Field(default_factory=_utcnow, sa_type=DateTime(timezone=True))
    # Set on disable; a disabled secret can only come back through a new setup
    disabled_at: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
