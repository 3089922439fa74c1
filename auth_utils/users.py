"""
Identity collaborator: registers users and loads profiles.

The session core only reads identities; creating them (and rejecting
duplicate emails) happens here.
"""
from __future__ import annotations

import logging

from auth_models.schemas.common import normalize_email
from auth_models.user import User, USER, ROLES
from auth_models.user_repository import UserRepository
from auth_utils.exceptions import UserNotFound
from auth_utils.security import CredentialVerifier

logger = logging.getLogger(__name__)


class UserRegistrar:

    def __init__(self, users: UserRepository, verifier: CredentialVerifier):
        self.users = users
        self.verifier = verifier

    def register(self, email: str, password: str, role: str = USER) -> User:
        """Create a user; raises InvalidEmail or EmailAlreadyExists."""
        if role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        normalized = normalize_email(email)
        user = User(email=normalized, password_hash=self.verifier.hash(password), role=role)
        self.users.add(user)
        logger.info("Registered user %s", user.id)
        return user

    def get_profile(self, user_id: str) -> User:
        user = self.users.find_by_id(user_id)
        if user is None:
            raise UserNotFound(user_id)
        return user
