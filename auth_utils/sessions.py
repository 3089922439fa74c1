"""
Session orchestration: login, register-and-login, refresh (rotation), logout.

Refresh-token chain states:
    issued -> rotated (revoked, superseded by a new issued token)
    issued -> revoked (logout)
    issued -> expired (time only, detected by RefreshToken.is_valid)
None of the terminal states can be left again.

Rotation signs the new pair first, then hands the successor record to the
store, which inserts it and revokes the old token in one transaction guarded
by `revoked_at IS NULL`. A caller that loses that race stores nothing and
fails with InvalidCredentials.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from auth_models.refresh_token import RefreshToken
from auth_models.refresh_token_store import RefreshTokenStore
from auth_models.schemas.common import normalize_email
from auth_models.user import User
from auth_models.user_repository import UserRepository
from auth_utils.exceptions import InvalidCredentials, UserNotFound
from auth_utils.security import CredentialVerifier, JwtPayload, TokenService, utcnow
from auth_utils.settings import AuthSettings
from auth_utils.users import UserRegistrar

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


class SessionOrchestrator:

    def __init__(self, users: UserRepository, verifier: CredentialVerifier,
                 tokens: TokenService, refresh_tokens: RefreshTokenStore,
                 settings: AuthSettings, registrar: UserRegistrar | None = None,
                 clock: Callable[[], datetime] = utcnow):
        self.users = users
        self.verifier = verifier
        self.tokens = tokens
        self.refresh_tokens = refresh_tokens
        self.settings = settings
        self.registrar = registrar or UserRegistrar(users, verifier)
        self._clock = clock
        # verified against when the email is unknown so both failure paths cost one hash
        self._dummy_hash = verifier.hash(secrets.token_urlsafe(16))

    def _sign(self, user: User) -> tuple[TokenPair, RefreshToken]:
        payload = JwtPayload(sub=str(user.id), email=user.email, role=user.role)
        access_token = self.tokens.generate_access_token(payload)
        refresh_token = self.tokens.generate_refresh_token(payload)

        now = self._clock()
        record = RefreshToken(
            user_id=str(user.id),
            token=refresh_token,
            expires_at=now + self.settings.refresh_ttl,
            revoked_at=None,
            created_at=now,
            updated_at=now,
        )
        return TokenPair(access_token=access_token, refresh_token=refresh_token), record

    def login(self, email: str, password: str) -> TokenPair:
        normalized = normalize_email(email)
        user = self.users.find_by_email(normalized)
        if user is None:
            self.verifier.verify(password, self._dummy_hash)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials()
        if not self.verifier.verify(password, user.password_hash):
            logger.info("Login failed for user %s: password mismatch", user.id)
            raise InvalidCredentials()

        pair, record = self._sign(user)
        self.refresh_tokens.save(record)
        logger.info("User %s logged in", user.id)
        return pair

    def register_and_login(self, email: str, password: str) -> TokenPair:
        # registration errors propagate; login is never attempted after a failure
        self.registrar.register(email, password)
        return self.login(email, password)

    def refresh(self, token: str) -> TokenPair:
        now = self._clock()
        record = self.refresh_tokens.find_by_token(token) if token else None
        if record is None or not record.is_valid(now):
            logger.info("Refresh rejected: token unknown, expired or revoked")
            raise InvalidCredentials()

        user = self.users.find_by_id(record.user_id)
        if user is None:
            raise UserNotFound(record.user_id)

        record_id, user_id = record.id, user.id
        pair, successor = self._sign(user)
        if not self.refresh_tokens.rotate(token, successor):
            logger.warning("Refresh token %s reused concurrently for user %s", record_id, user_id)
            raise InvalidCredentials()

        logger.info("Rotated refresh token %s for user %s", record_id, user_id)
        return pair

    def logout(self, token: str) -> None:
        if token:
            self.refresh_tokens.revoke_by_token(token)
        logger.info("Logout processed")
