"""Explicit configuration handed to the session core at construction time."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Mapping, Optional

from auth_utils.durations import parse_duration

DEFAULT_ACCESS_EXPIRATION = "15m"
DEFAULT_REFRESH_EXPIRATION = "7d"


@dataclass(frozen=True)
class AuthSettings:
    jwt_secret: str
    access_ttl: timedelta
    refresh_ttl: timedelta
    jwt_algorithm: str = "HS256"
    jwt_refresh_secret: Optional[str] = None
    jwt_issuer: Optional[str] = None
    password_min_length: int = 8
    argon2_time_cost: Optional[int] = None
    argon2_memory_cost: Optional[int] = None
    argon2_parallelism: Optional[int] = None

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> "AuthSettings":
        """Build settings from a Flask config (or any mapping with the same keys)."""
        def _opt_int(key):
            value = config.get(key)
            return int(value) if value not in (None, "") else None

        return cls(
            jwt_secret=config["JWT_SECRET"],
            access_ttl=parse_duration(config.get("JWT_ACCESS_EXPIRATION"), DEFAULT_ACCESS_EXPIRATION),
            refresh_ttl=parse_duration(config.get("JWT_REFRESH_EXPIRATION"), DEFAULT_REFRESH_EXPIRATION),
            jwt_algorithm=config.get("JWT_ALGORITHM") or "HS256",
            jwt_refresh_secret=config.get("JWT_REFRESH_SECRET") or None,
            jwt_issuer=config.get("JWT_ISSUER") or None,
            password_min_length=int(config.get("PASSWORD_MIN_LENGTH") or 8),
            argon2_time_cost=_opt_int("ARGON2_TIME_COST"),
            argon2_memory_cost=_opt_int("ARGON2_MEMORY_COST"),
            argon2_parallelism=_opt_int("ARGON2_PARALLELISM"),
        )
