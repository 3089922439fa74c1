from datetime import datetime, timedelta, timezone

import pytest

from auth_api import create_app
from auth_models.refresh_token_store import MemoryRefreshTokenStore
from auth_models.user_repository import MemoryUserRepository
from auth_utils.security import CredentialVerifier, JwtTokenService
from auth_utils.sessions import SessionOrchestrator
from auth_utils.settings import AuthSettings
from auth_utils.users import UserRegistrar

TEST_SECRET = "test-secret-key-for-testing-only"
PASSWORD = "longenough1"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now=None):
        self.now = now or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self):
        return self.now

    def advance(self, delta: timedelta):
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def settings():
    return AuthSettings(
        jwt_secret=TEST_SECRET,
        access_ttl=timedelta(minutes=15),
        refresh_ttl=timedelta(days=7),
        password_min_length=8,
    )


@pytest.fixture
def verifier():
    # cheap argon2 parameters keep the suite fast
    return CredentialVerifier(time_cost=1, memory_cost=1024, parallelism=1)


@pytest.fixture
def tokens(settings):
    return JwtTokenService(
        secret=settings.jwt_secret,
        access_ttl=settings.access_ttl,
        refresh_ttl=settings.refresh_ttl,
    )


@pytest.fixture
def users():
    return MemoryUserRepository()


@pytest.fixture
def refresh_store(clock):
    return MemoryRefreshTokenStore(clock=clock)


@pytest.fixture
def registrar(users, verifier):
    return UserRegistrar(users, verifier)


@pytest.fixture
def sessions(users, verifier, tokens, refresh_store, settings, registrar, clock):
    return SessionOrchestrator(
        users=users,
        verifier=verifier,
        tokens=tokens,
        refresh_tokens=refresh_store,
        settings=settings,
        registrar=registrar,
        clock=clock,
    )


@pytest.fixture
def user(registrar):
    return registrar.register("alice@example.com", PASSWORD)


@pytest.fixture
def app():
    app = create_app("testing")
    yield app
    app.extensions["auth_storage"].close()


@pytest.fixture
def client(app):
    return app.test_client()
