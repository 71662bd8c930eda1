"""Persistence for refresh tokens, password-reset tokens and TOTP secrets.

Every method runs in its own short transaction. State transitions that must
happen at most once (revoking a refresh token, using a reset token) are single
conditional UPDATEs; zero affected rows means another request got there first.
"""

import time
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from inventrack.models.tokens import PasswordResetToken, RefreshToken, TwoFactorSecret
from inventrack.models.user import User
from inventrack.utils.clock import Clock, utc_now


class TokenStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = time.time):
        self._sessions = session_factory
        self._clock = clock

    def _now(self) -> datetime:
        return utc_now(self._clock)

    # -- refresh tokens ---------------------------------------------------

    async def find_valid_refresh_token(self, token: str) -> RefreshToken | None:
        async with self._sessions() as session:
            stmt = select(RefreshToken).where(
                RefreshToken.token == token,
                RefreshToken.revoked == False,
                RefreshToken.expires_at > self._now(),
            )
            return (await session.exec(stmt)).first()

    async def insert_refresh_token(self, user_id: int, token: str, expires_at: datetime) -> RefreshToken:
        async with self._sessions() as session:
            row = RefreshToken(token=token, user_id=user_id, expires_at=expires_at)
            session.add(row)
            await session.commit()
            return row

    async def revoke_refresh_token(self, token: str) -> bool:
        """Idempotent. Returns True only if this call flipped the flag."""
        async with self._sessions() as session:
            stmt = (
                update(RefreshToken)
                .where(RefreshToken.token == token, RefreshToken.revoked == False)
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            result = await session.exec(stmt)
            await session.commit()
            return result.rowcount == 1

    async def consume_refresh_token(self, token: str) -> int | None:
        """Revoke a currently valid token and return its owner.

        The revoke is committed before returning, so whatever the caller does
        next cannot make the token valid again. Returns None when the token is
        unknown, expired, already revoked, or lost a race to another request.
        """
        async with self._sessions() as session:
            # The UPDATE must be the first statement so SQLite takes the write
            # lock before reading anything.
            stmt = (
                update(RefreshToken)
                .where(
                    RefreshToken.token == token,
                    RefreshToken.revoked == False,
                    RefreshToken.expires_at > self._now(),
                )
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            result = await session.exec(stmt)
            if result.rowcount != 1:
                await session.rollback()
                return None
            user_id = (
                await session.exec(select(RefreshToken.user_id).where(RefreshToken.token == token))
            ).one()
            await session.commit()
            return user_id

    async def revoke_all_refresh_tokens(self, user_id: int) -> int:
        async with self._sessions() as session:
            stmt = (
                update(RefreshToken)
                .where(RefreshToken.user_id == user_id, RefreshToken.revoked == False)
                .values(revoked=True)
                .execution_options(synchronize_session=False)
            )
            result = await session.exec(stmt)
            await session.commit()
            return result.rowcount

    # -- two-factor secrets -----------------------------------------------

    async def find_two_factor_secret(self, user_id: int) -> TwoFactorSecret | None:
        async with self._sessions() as session:
            stmt = select(TwoFactorSecret).where(TwoFactorSecret.user_id == user_id)
            return (await session.exec(stmt)).first()

    async def find_active_two_factor_secret(self, user_id: int) -> TwoFactorSecret | None:
        async with self._sessions() as session:
            stmt = select(TwoFactorSecret).where(
                TwoFactorSecret.user_id == user_id,
                TwoFactorSecret.is_active == True,
            )
            return (await session.exec(stmt)).first()

    async def upsert_two_factor_secret(self, user_id: int, secret_key: str, active: bool) -> TwoFactorSecret:
        """One secret row per user; a new setup overwrites the previous value.

        Concurrent calls for the same user all succeed and the last commit wins.
        """
        async with self._sessions() as session:
            if not await self._overwrite_two_factor_secret(session, user_id, secret_key, active):
                session.add(TwoFactorSecret(user_id=user_id, secret_key=secret_key, is_active=active))
            try:
                await session.commit()
            except IntegrityError:
                # Another setup inserted the row first
                await session.rollback()
                await self._overwrite_two_factor_secret(session, user_id, secret_key, active)
                await session.commit()
            stmt = select(TwoFactorSecret).where(TwoFactorSecret.user_id == user_id)
            return (await session.exec(stmt)).one()

    async def _overwrite_two_factor_secret(
        self, session: AsyncSession, user_id: int, secret_key: str, active: bool
    ) -> bool:
        stmt = (
            update(TwoFactorSecret)
            .where(TwoFactorSecret.user_id == user_id)
            .values(secret_key=secret_key, is_active=active, created_at=self._now(), disabled_at=None)
            .execution_options(synchronize_session=False)
        )
        result = await session.exec(stmt)
        return result.rowcount == 1

    async def set_two_factor_active(
        self,
        user_id: int,
        active: bool,
        expected_secret: str | None = None,
    ) -> bool:
        """Flip the secret's flag and the user's two_factor_enabled together.

        With ``expected_secret`` the secret is only touched if it still holds
        that value, so a setup that overwrote it mid-confirm is not activated.
        A disabled secret is never reactivated. Returns False when no matching
        secret row exists.
        """
        async with self._sessions() as session:
            secret_stmt = update(TwoFactorSecret).where(TwoFactorSecret.user_id == user_id)
            if expected_secret is not None:
                secret_stmt = secret_stmt.where(TwoFactorSecret.secret_key == expected_secret)
            if active:
                secret_stmt = secret_stmt.where(TwoFactorSecret.disabled_at.is_(None))
                secret_stmt = secret_stmt.values(is_active=True)
            else:
                secret_stmt = secret_stmt.values(is_active=False, disabled_at=self._now())
            result = await session.exec(secret_stmt.execution_options(synchronize_session=False))
            if result.rowcount != 1:
                await session.rollback()
                return False
            await session.exec(
                update(User)
                .where(User.id == user_id)
                .values(two_factor_enabled=active)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
            return True

    # -- password reset tokens --------------------------------------------

    async def insert_password_reset_token(
        self, user_id: int, token: str, expires_at: datetime
    ) -> PasswordResetToken:
        async with self._sessions() as session:
            row = PasswordResetToken(token=token, user_id=user_id, expires_at=expires_at)
            session.add(row)
            await session.commit()
            return row

    async def find_usable_password_reset_token(self, token: str) -> PasswordResetToken | None:
        async with self._sessions() as session:
            stmt = select(PasswordResetToken).where(
                PasswordResetToken.token == token,
                PasswordResetToken.used == False,
                PasswordResetToken.expires_at > self._now(),
            )
            return (await session.exec(stmt)).first()

    async def mark_password_reset_token_used(self, token: str) -> bool:
        async with self._sessions() as session:
            stmt = (
                update(PasswordResetToken)
                .where(PasswordResetToken.token == token, PasswordResetToken.used == False)
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            result = await session.exec(stmt)
            await session.commit()
            return result.rowcount == 1

    async def consume_password_reset_token(self, token: str) -> int | None:
        """Mark a usable reset token used and return its owner, at most once."""
        async with self._sessions() as session:
            stmt = (
                update(PasswordResetToken)
                .where(
                    PasswordResetToken.token == token,
                    PasswordResetToken.used == False,
                    PasswordResetToken.expires_at > self._now(),
                )
                .values(used=True)
                .execution_options(synchronize_session=False)
            )
            result = await session.exec(stmt)
            if result.rowcount != 1:
                await session.rollback()
                return None
            user_id = (
                await session.exec(
                    select(PasswordResetToken.user_id).where(PasswordResetToken.token == token)
                )
            ).one()
            await session.commit()
            return user_id
