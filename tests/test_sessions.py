import threading
from datetime import timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy import func, select

from auth_models.db_storage import DBStorage
from auth_models.refresh_token import RefreshToken
from auth_models.refresh_token_store import SQLRefreshTokenStore
from auth_models.user_repository import SQLUserRepository
from auth_utils.exceptions import (
    EmailAlreadyExists,
    InvalidCredentials,
    InvalidEmail,
    UserNotFound,
)
from auth_utils.sessions import SessionOrchestrator
from auth_utils.users import UserRegistrar

from .conftest import PASSWORD


class TestLogin:

    def test_login_returns_pair_and_persists_one_record(self, sessions, user, refresh_store, clock, settings):
        pair = sessions.login("alice@example.com", PASSWORD)

        assert pair.access_token and pair.refresh_token
        assert len(refresh_store) == 1
        record = refresh_store.find_by_token(pair.refresh_token)
        assert record.user_id == user.id
        assert record.revoked_at is None
        assert record.expires_at == clock() + settings.refresh_ttl

    def test_access_token_carries_identity(self, sessions, user, tokens):
        pair = sessions.login("alice@example.com", PASSWORD)

        payload = tokens.verify_access_token(pair.access_token)
        assert payload.sub == user.id
        assert payload.email == "alice@example.com"
        assert payload.role == "USER"

    def test_email_is_normalized(self, sessions, user):
        assert sessions.login("  Alice@Example.COM ", PASSWORD).access_token

    def test_wrong_password_and_unknown_email_fail_identically(self, sessions, user, refresh_store):
        with pytest.raises(InvalidCredentials) as wrong_password:
            sessions.login("alice@example.com", "wrong-password")
        with pytest.raises(InvalidCredentials) as unknown_email:
            sessions.login("bob@example.com", PASSWORD)

        assert wrong_password.value.error_code == unknown_email.value.error_code == "INVALID_CREDENTIALS"
        assert wrong_password.value.message == unknown_email.value.message
        assert len(refresh_store) == 0

    def test_unknown_email_still_verifies_a_hash(self, sessions):
        sessions.verifier = MagicMock(wraps=sessions.verifier)

        with pytest.raises(InvalidCredentials):
            sessions.login("nobody@example.com", PASSWORD)

        sessions.verifier.verify.assert_called_once()

    @pytest.mark.parametrize("email", ["not-an-email", "a@b", "a b@c.com", "", 42])
    def test_invalid_email_rejected_before_lookup(self, sessions, email):
        sessions.users = MagicMock(wraps=sessions.users)

        with pytest.raises(InvalidEmail):
            sessions.login(email, PASSWORD)

        sessions.users.find_by_email.assert_not_called()


class TestRegisterAndLogin:

    def test_register_then_login(self, sessions, users, verifier):
        pair = sessions.register_and_login("a@b.com", PASSWORD)

        assert pair.access_token and pair.refresh_token
        stored = users.find_by_email("a@b.com")
        assert stored.password_hash != PASSWORD
        assert verifier.verify(PASSWORD, stored.password_hash)
        assert not verifier.verify("longenough2", stored.password_hash)

    def test_duplicate_email_fails_without_login(self, sessions, refresh_store):
        sessions.register_and_login("a@b.com", PASSWORD)
        sessions.login = MagicMock()

        with pytest.raises(EmailAlreadyExists) as exc:
            sessions.register_and_login(" A@B.com", PASSWORD)

        assert exc.value.status_code == 409
        sessions.login.assert_not_called()
        assert len(refresh_store) == 1

    def test_invalid_email_fails_registration(self, sessions, users):
        with pytest.raises(InvalidEmail):
            sessions.register_and_login("nope", PASSWORD)


class TestRefresh:

    def test_rotation(self, sessions, user, refresh_store, clock):
        first = sessions.login("alice@example.com", PASSWORD)

        second = sessions.refresh(first.refresh_token)

        assert second.refresh_token != first.refresh_token
        assert second.access_token != first.access_token
        assert not refresh_store.find_by_token(first.refresh_token).is_valid(clock())
        assert refresh_store.find_by_token(second.refresh_token).is_valid(clock())
        assert len(refresh_store) == 2

    def test_rotated_token_cannot_be_reused(self, sessions, user, refresh_store):
        first = sessions.login("alice@example.com", PASSWORD)
        sessions.refresh(first.refresh_token)

        with pytest.raises(InvalidCredentials):
            sessions.refresh(first.refresh_token)
        assert len(refresh_store) == 2

    def test_revoked_token_rejected(self, sessions, user, refresh_store):
        pair = sessions.login("alice@example.com", PASSWORD)
        sessions.logout(pair.refresh_token)

        with pytest.raises(InvalidCredentials):
            sessions.refresh(pair.refresh_token)
        assert len(refresh_store) == 1

    def test_expired_token_rejected(self, sessions, user, refresh_store, clock, settings):
        pair = sessions.login("alice@example.com", PASSWORD)
        clock.advance(settings.refresh_ttl + timedelta(seconds=1))

        with pytest.raises(InvalidCredentials):
            sessions.refresh(pair.refresh_token)
        assert len(refresh_store) == 1

    @pytest.mark.parametrize("token", ["unknown-token", ""])
    def test_unknown_token_rejected(self, sessions, token):
        with pytest.raises(InvalidCredentials):
            sessions.refresh(token)

    def test_deleted_user(self, sessions, user, users):
        pair = sessions.login("alice@example.com", PASSWORD)
        users.delete(user.id)

        with pytest.raises(UserNotFound) as exc:
            sessions.refresh(pair.refresh_token)
        assert exc.value.status_code == 404

    def test_concurrent_refresh_single_winner(self, sessions, user, refresh_store):
        pair = sessions.login("alice@example.com", PASSWORD)
        workers = 8
        barrier = threading.Barrier(workers)
        results, errors = [], []

        def attempt():
            barrier.wait()
            try:
                results.append(sessions.refresh(pair.refresh_token))
            except InvalidCredentials as exc:
                errors.append(exc)

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 1
        assert len(errors) == workers - 1
        # the login record plus the single successor; losers store nothing
        assert len(refresh_store) == 2

    def test_losing_a_stale_read_stores_nothing(self, sessions, user, refresh_store, clock):
        pair = sessions.login("alice@example.com", PASSWORD)
        stale = refresh_store.find_by_token(pair.refresh_token)
        winner = sessions.refresh(pair.refresh_token)

        refresh_store.find_by_token = lambda token: stale
        with pytest.raises(InvalidCredentials):
            sessions.refresh(pair.refresh_token)
        del refresh_store.find_by_token

        assert len(refresh_store) == 2
        assert refresh_store.find_by_token(winner.refresh_token).is_valid(clock())


class TestLogout:

    def test_logout_revokes(self, sessions, user, refresh_store, clock):
        pair = sessions.login("alice@example.com", PASSWORD)

        sessions.logout(pair.refresh_token)

        assert not refresh_store.find_by_token(pair.refresh_token).is_valid(clock())

    def test_logout_is_idempotent(self, sessions, user):
        pair = sessions.login("alice@example.com", PASSWORD)

        sessions.logout(pair.refresh_token)
        sessions.logout(pair.refresh_token)
        sessions.logout("unknown-token")
        sessions.logout("")


class TestSQLBackedSessions:

    @pytest.fixture
    def sql_sessions(self, verifier, tokens, settings, clock):
        storage = DBStorage("sqlite://")
        storage.reload()
        users = SQLUserRepository(storage)
        yield SessionOrchestrator(
            users=users,
            verifier=verifier,
            tokens=tokens,
            refresh_tokens=SQLRefreshTokenStore(storage, clock=clock),
            settings=settings,
            registrar=UserRegistrar(users, verifier),
            clock=clock,
        )
        storage.close()

    def test_full_chain(self, sql_sessions, clock):
        first = sql_sessions.register_and_login("a@b.com", PASSWORD)
        second = sql_sessions.refresh(first.refresh_token)

        store = sql_sessions.refresh_tokens
        assert not store.find_by_token(first.refresh_token).is_valid(clock())
        assert store.find_by_token(second.refresh_token).is_valid(clock())

        sql_sessions.logout(second.refresh_token)
        with pytest.raises(InvalidCredentials):
            sql_sessions.refresh(second.refresh_token)

    def test_duplicate_email_from_unique_constraint(self, sql_sessions):
        sql_sessions.register_and_login("a@b.com", PASSWORD)

        with pytest.raises(EmailAlreadyExists):
            sql_sessions.register_and_login("a@b.com", PASSWORD)

        assert sql_sessions.login("a@b.com", PASSWORD).access_token

    def test_stale_read_loses_on_sql(self, sql_sessions, clock):
        pair = sql_sessions.register_and_login("a@b.com", PASSWORD)
        store = sql_sessions.refresh_tokens
        sql_sessions.refresh(pair.refresh_token)

        original_find = store.find_by_token

        def find_stale(token):
            # detached snapshot taken before the other request revoked it
            record = original_find(token)
            return RefreshToken(
                id=record.id,
                user_id=record.user_id,
                token=record.token,
                expires_at=record.expires_at,
                revoked_at=None,
                created_at=record.created_at,
                updated_at=record.updated_at,
            )

        store.find_by_token = find_stale
        with pytest.raises(InvalidCredentials):
            sql_sessions.refresh(pair.refresh_token)
        del store.find_by_token

        assert _count_refresh_tokens(store.storage) == 2


def _count_refresh_tokens(storage):
    session = storage.get_session()
    return session.execute(select(func.count()).select_from(RefreshToken)).scalar_one()


class TestConcurrentRefreshOnFileDatabase:
    """Each thread gets its own connection from the pool, as separate requests would."""

    @pytest.fixture
    def file_sessions(self, tmp_path, verifier, tokens, settings, clock):
        storage = DBStorage(f"sqlite:///{tmp_path / 'auth.db'}")
        storage.reload()
        users = SQLUserRepository(storage)
        yield SessionOrchestrator(
            users=users,
            verifier=verifier,
            tokens=tokens,
            refresh_tokens=SQLRefreshTokenStore(storage, clock=clock),
            settings=settings,
            registrar=UserRegistrar(users, verifier),
            clock=clock,
        ), storage
        storage.close()

    def test_single_winner_and_no_orphan_records(self, file_sessions):
        sessions, storage = file_sessions
        pair = sessions.register_and_login("a@b.com", PASSWORD)
        storage.close()

        workers = 8
        barrier = threading.Barrier(workers)
        results, errors = [], []

        def attempt():
            barrier.wait()
            try:
                results.append(sessions.refresh(pair.refresh_token))
            except InvalidCredentials as exc:
                errors.append(exc)
            finally:
                storage.close()

        threads = [threading.Thread(target=attempt) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(results) == 1
        assert len(errors) == workers - 1
        assert _count_refresh_tokens(storage) == 2
        assert sessions.refresh_tokens.find_by_token(results[0].refresh_token).revoked_at is None
