"""Shared fixtures: a fresh SQLite database per test and a controllable clock."""

import pytest
import pytest_asyncio

from inventrack.config import TokenConfig
from inventrack.database import create_db_and_tables, make_engine, make_session_factory
from inventrack.services import codec, totp
from inventrack.services.auth import AuthService
from inventrack.services.issuer import SessionIssuer
from inventrack.services.token_store import TokenStore
from inventrack.services.users import UserStore

START_TIME = 1_700_000_000.0
PASSWORD = "Correct-Horse-9"


class FakeClock:
    """Callable returning unix seconds; tests move it explicitly."""

    def __init__(self, now: float = START_TIME):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def token_config() -> TokenConfig:
    return TokenConfig(secret="test-signing-key-not-for-production", access_ttl_minutes=15)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}")
    await create_db_and_tables(engine)
    yield make_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def users(session_factory, clock) -> UserStore:
    return UserStore(session_factory, clock)


@pytest.fixture
def tokens(session_factory, clock) -> TokenStore:
    return TokenStore(session_factory, clock)


@pytest.fixture
def issuer(token_config, clock) -> SessionIssuer:
    return SessionIssuer(token_config, clock)


@pytest.fixture
def service(users, tokens, issuer, clock) -> AuthService:
    return AuthService(users=users, tokens=tokens, issuer=issuer, clock=clock)


@pytest.fixture
def current_code(clock):
    """Code an authenticator app would show right now for ``secret_key``."""

    def _code(secret_key: str) -> str:
        return totp.compute_code(codec.decode(secret_key), totp.current_time_step(clock))

    return _code
