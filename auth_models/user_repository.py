"""
User persistence for the identity collaborator.

Email uniqueness is enforced by the store itself (unique index in SQL, a
locked index in memory); add() raises EmailAlreadyExists on a duplicate.
"""
from __future__ import annotations

import abc
import threading
from typing import Dict, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError

from auth_models.db_storage import DBStorage
from auth_models.user import User
from auth_utils.exceptions import EmailAlreadyExists


class UserRepository(abc.ABC):

    @abc.abstractmethod
    def find_by_id(self, user_id: str) -> Optional[User]:
        ...

    @abc.abstractmethod
    def find_by_email(self, email: str) -> Optional[User]:
        """`email` must already be normalized."""

    @abc.abstractmethod
    def add(self, user: User) -> None:
        ...

    @abc.abstractmethod
    def delete(self, user_id: str) -> None:
        ...


class SQLUserRepository(UserRepository):

    def __init__(self, storage: DBStorage):
        self.storage = storage

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.storage.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        session = self.storage.get_session()
        return session.execute(select(User).where(User.email == email)).scalar_one_or_none()

    def add(self, user: User) -> None:
        self.storage.new(user)
        try:
            self.storage.save()
        except IntegrityError as exc:
            # storage.save() already rolled back
            raise EmailAlreadyExists(user.email) from exc

    def delete(self, user_id: str) -> None:
        session = self.storage.get_session()
        session.execute(delete(User).where(User.id == user_id))
        self.storage.save()


class MemoryUserRepository(UserRepository):

    def __init__(self):
        self._lock = threading.Lock()
        self._by_id: Dict[str, User] = {}
        self._id_by_email: Dict[str, str] = {}

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._lock:
            return self._by_id.get(user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user_id = self._id_by_email.get(email)
            return self._by_id.get(user_id) if user_id else None

    def add(self, user: User) -> None:
        with self._lock:
            if user.email in self._id_by_email:
                raise EmailAlreadyExists(user.email)
            self._by_id[user.id] = user
            self._id_by_email[user.email] = user.id

    def delete(self, user_id: str) -> None:
        with self._lock:
            user = self._by_id.pop(user_id, None)
            if user is not None:
                self._id_by_email.pop(user.email, None)
