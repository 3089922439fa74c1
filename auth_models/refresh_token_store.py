"""
Refresh-token persistence.

RefreshTokenStore is the port the session orchestrator talks to. Two backends:
- SQLRefreshTokenStore: SQLAlchemy, conditional UPDATE for revocation
- MemoryRefreshTokenStore: in-process reference backend (tests, single process)

revoke_active() is the compare-and-set primitive: of any number of concurrent
callers presenting the same active token, exactly one gets True. rotate()
stores a successor record and revokes the old token in one atomic step; if
the old token was already revoked nothing is stored.
"""
from __future__ import annotations

import abc
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError

from auth_models.db_storage import DBStorage
from auth_models.refresh_token import RefreshToken


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshTokenStore(abc.ABC):

    @abc.abstractmethod
    def find_by_token(self, token: str) -> Optional[RefreshToken]:
        ...

    @abc.abstractmethod
    def save(self, record: RefreshToken) -> None:
        """Upsert keyed by record.id."""

    @abc.abstractmethod
    def revoke_active(self, token: str) -> bool:
        """Revoke `token` if it is still unrevoked; True only for the caller that revoked it."""

    @abc.abstractmethod
    def rotate(self, old_token: str, successor: RefreshToken) -> bool:
        """Insert `successor` and revoke `old_token` atomically; False (and no insert) if `old_token` is not active."""

    def revoke_by_token(self, token: str) -> None:
        """Revoke `token`; unknown or already revoked tokens are a no-op."""
        self.revoke_active(token)


class SQLRefreshTokenStore(RefreshTokenStore):

    def __init__(self, storage: DBStorage, clock: Callable[[], datetime] = _utcnow):
        self.storage = storage
        self._clock = clock

    def find_by_token(self, token: str) -> Optional[RefreshToken]:
        session = self.storage.get_session()
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.token == token)
            .execution_options(populate_existing=True)
        )
        return session.execute(stmt).scalar_one_or_none()

    def save(self, record: RefreshToken) -> None:
        session = self.storage.get_session()
        existing = session.get(RefreshToken, record.id)
        if existing is None:
            self.storage.new(record)
        elif existing is not record:
            existing.revoked_at = record.revoked_at
            existing.updated_at = record.updated_at or self._clock()
        self.storage.save()

    def revoke_active(self, token: str) -> bool:
        session = self.storage.get_session()
        now = self._clock()
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.token == token, RefreshToken.revoked_at.is_(None))
            .values(revoked_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        self.storage.save()
        return result.rowcount == 1

    def rotate(self, old_token: str, successor: RefreshToken) -> bool:
        session = self.storage.get_session()
        now = self._clock()
        try:
            self.storage.new(successor)
            session.flush()
            result = session.execute(
                update(RefreshToken)
                .where(RefreshToken.token == old_token, RefreshToken.revoked_at.is_(None))
                .values(revoked_at=now, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                session.rollback()
                return False
        except SQLAlchemyError:
            session.rollback()
            raise
        self.storage.save()
        return True


class MemoryRefreshTokenStore(RefreshTokenStore):
    """
    Keeps records in a dict guarded by a lock. Callers always receive copies,
    so state only changes through save(), revoke_active() and rotate().
    """

    def __init__(self, clock: Callable[[], datetime] = _utcnow):
        self._clock = clock
        self._lock = threading.Lock()
        self._by_id: Dict[str, RefreshToken] = {}
        self._id_by_token: Dict[str, str] = {}

    @staticmethod
    def _copy(record: RefreshToken) -> RefreshToken:
        return RefreshToken(
            id=record.id,
            user_id=record.user_id,
            token=record.token,
            expires_at=record.expires_at,
            revoked_at=record.revoked_at,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def find_by_token(self, token: str) -> Optional[RefreshToken]:
        with self._lock:
            record_id = self._id_by_token.get(token)
            if record_id is None:
                return None
            return self._copy(self._by_id[record_id])

    def save(self, record: RefreshToken) -> None:
        with self._lock:
            existing = self._by_id.get(record.id)
            if existing is None:
                if record.token in self._id_by_token:
                    raise ValueError("refresh token already stored under another id")
                self._by_id[record.id] = self._copy(record)
                self._id_by_token[record.token] = record.id
                return
            existing.revoked_at = record.revoked_at
            existing.updated_at = record.updated_at or self._clock()

    def revoke_active(self, token: str) -> bool:
        with self._lock:
            record_id = self._id_by_token.get(token)
            if record_id is None:
                return False
            record = self._by_id[record_id]
            if record.revoked_at is not None:
                return False
            record.revoke(self._clock())
            return True

    def rotate(self, old_token: str, successor: RefreshToken) -> bool:
        with self._lock:
            record_id = self._id_by_token.get(old_token)
            if record_id is None or self._by_id[record_id].revoked_at is not None:
                return False
            if successor.token in self._id_by_token or successor.id in self._by_id:
                raise ValueError("successor refresh token already stored")
            self._by_id[successor.id] = self._copy(successor)
            self._id_by_token[successor.token] = successor.id
            self._by_id[record_id].revoke(self._clock())
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._by_id)
