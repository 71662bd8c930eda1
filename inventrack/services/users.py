"""User lookups and mutations needed by the auth flows."""

import time
from datetime import datetime

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import async_sessionmaker
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from inventrack.models.user import Role, User, UserRole
from inventrack.utils.clock import Clock, utc_now


def normalize_email(email: str) -> str:
    return email.strip().lower()


class UserStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], clock: Clock = time.time):
        self._sessions = session_factory
        self._clock = clock

    async def get(self, user_id: int) -> User | None:
        async with self._sessions() as session:
            return await session.get(User, user_id)

    async def get_by_email(self, email: str) -> User | None:
        async with self._sessions() as session:
            stmt = select(User).where(User.email == normalize_email(email))
            return (await session.exec(stmt)).first()

    async def find_conflict(self, username: str, email: str) -> User | None:
        """Existing user holding either the username or the email."""
        async with self._sessions() as session:
            stmt = select(User).where(
                or_(User.username == username, User.email == normalize_email(email))
            )
            return (await session.exec(stmt)).first()

    async def create(
        self,
        username: str,
        email: str,
        password_hash: str,
        phone_number: str | None = None,
        roles: list[str] | None = None,
    ) -> User:
        """Insert a user and link the named roles, creating missing roles.

        Raises IntegrityError if the username or email is already taken.
        """
        async with self._sessions() as session:
            user = User(
                username=username,
                email=normalize_email(email),
                password_hash=password_hash,
                phone_number=phone_number,
            )
            session.add(user)
            await session.flush()

            for name in roles or []:
                role = await self._get_or_create_role(session, name)
                session.add(UserRole(user_id=user.id, role_id=role.id))

            await session.commit()
            return user

    async def _get_or_create_role(self, session: AsyncSession, name: str) -> Role:
        stmt = select(Role).where(Role.name == name)
        role = (await session.exec(stmt)).first()
        if role is not None:
            return role
        try:
            async with session.begin_nested():
                role = Role(name=name)
                session.add(role)
        except IntegrityError:
            # Created by a concurrent registration
            role = (await session.exec(stmt)).one()
        return role

    async def get_roles(self, user_id: int) -> list[str]:
        async with self._sessions() as session:
            stmt = (
                select(Role.name)
                .join(UserRole, UserRole.role_id == Role.id)
                .where(UserRole.user_id == user_id)
                .order_by(Role.name)
            )
            return list((await session.exec(stmt)).all())

    async def touch_last_login(self, user_id: int) -> datetime:
        now = utc_now(self._clock)
        async with self._sessions() as session:
            await session.exec(
                update(User)
                .where(User.id == user_id)
                .values(last_login_at=now)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
        return now

    async def update_password(self, user_id: int, password_hash: str) -> None:
        async with self._sessions() as session:
            await session.exec(
                update(User)
                .where(User.id == user_id)
                .values(password_hash=password_hash)
                .execution_options(synchronize_session=False)
            )
            await session.commit()
