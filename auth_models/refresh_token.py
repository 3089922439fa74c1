"""
RefreshToken model: persisted refresh tokens so they can be revoked and rotated.
Fields:
- id (primary key)
- user_id (String(36)) - owning user; no FK so tokens outlive deleted users
- token (column refresh_token, unique) - the signed token string
- expires_at, revoked_at (nullable)
- created_at, updated_at

Records are never deleted; revocation sets revoked_at once.
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, String, DateTime

from auth_models.base_model import BaseModel, Base, as_utc


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    user_id = Column(String(36), nullable=False, index=True)
    token = Column("refresh_token", String(1024), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    revoked_at = Column(DateTime(timezone=True), nullable=True)

    def is_valid(self, now: datetime | None = None) -> bool:
        """Sole acceptance check: not revoked and not yet expired."""
        now = now or datetime.now(timezone.utc)
        return self.revoked_at is None and as_utc(self.expires_at) > now

    def revoke(self, now: datetime | None = None) -> None:
        now = now or datetime.now(timezone.utc)
        self.revoked_at = now
        self.updated_at = now

    def __repr__(self):
        return f"<RefreshToken id={self.id} user_id={self.user_id} revoked={self.revoked_at is not None}>"
