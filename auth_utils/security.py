"""
security helpers:
- Argon2 password hashing/verification via argon2-cffi (CredentialVerifier)
- JWT creation/verification via PyJWT (TokenService)
- JTI generation for token identifiers
"""
from __future__ import annotations

import abc
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, Any

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError, InvalidHashError

from auth_utils.exceptions import TokenInvalid

ACCESS = "access"
REFRESH = "refresh"


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialVerifier:
    """
    Compares plaintext passwords against argon2id hashes.
    The hash string embeds its salt and cost parameters, so verification
    needs nothing but the stored hash.
    """

    def __init__(self, time_cost: int | None = None, memory_cost: int | None = None,
                 parallelism: int | None = None):
        kwargs = {}
        if time_cost is not None:
            kwargs["time_cost"] = time_cost
        if memory_cost is not None:
            kwargs["memory_cost"] = memory_cost
        if parallelism is not None:
            kwargs["parallelism"] = parallelism
        self._ph = PasswordHasher(**kwargs)

    def hash(self, password: str) -> str:
        """Hash a plaintext password using Argon2
        """
        return self._ph.hash(password)

    def verify(self, password: str, password_hash: str) -> bool:
        """Return True when `password` matches `password_hash`, False otherwise."""
        try:
            return self._ph.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False


@dataclass(frozen=True)
class JwtPayload:
    sub: str
    email: str
    role: str

    def to_claims(self) -> Dict[str, Any]:
        return {"sub": self.sub, "email": self.email, "role": self.role}


class TokenService(abc.ABC):
    """Port for signing and verifying access/refresh tokens."""

    @abc.abstractmethod
    def generate_access_token(self, payload: JwtPayload) -> str:
        ...

    @abc.abstractmethod
    def generate_refresh_token(self, payload: JwtPayload) -> str:
        ...

    @abc.abstractmethod
    def verify_access_token(self, token: str) -> JwtPayload:
        ...


class JwtTokenService(TokenService):
    """HS256-signed JWTs; access and refresh tokens differ by TTL, `type` and optionally secret."""

    def __init__(self, secret: str, access_ttl: timedelta, refresh_ttl: timedelta,
                 algorithm: str = "HS256", refresh_secret: str | None = None,
                 issuer: str | None = None, clock=utcnow):
        if not secret:
            raise ValueError("JWT secret must not be empty")
        self.secret = secret
        self.refresh_secret = refresh_secret or secret
        self.access_ttl = access_ttl
        self.refresh_ttl = refresh_ttl
        self.algorithm = algorithm
        self.issuer = issuer
        self._clock = clock

    def _sign(self, payload: JwtPayload, token_type: str, ttl: timedelta, secret: str) -> str:
        now = self._clock()
        claims = payload.to_claims()
        claims.update({
            "iat": int(now.timestamp()),
            "exp": int((now + ttl).timestamp()),
            "jti": generate_jti(),
            "type": token_type,
        })
        if self.issuer:
            claims["iss"] = self.issuer
        return jwt.encode(claims, secret, algorithm=self.algorithm)

    def _decode(self, token: str, expected_type: str, secret: str) -> JwtPayload:
        """
        Decode and validate a JWT. Raises TokenInvalid on invalid signature,
        expiry, missing claims or wrong token type.
        """
        if not token or not isinstance(token, str):
            raise TokenInvalid("Missing token")
        options = {"require": ["exp", "iat", "sub"]}
        try:
            decoded = jwt.decode(
                token, secret, algorithms=[self.algorithm],
                issuer=self.issuer, options=options,
            )
        except jwt.ExpiredSignatureError:
            raise TokenInvalid("Token expired")
        except jwt.InvalidTokenError as exc:
            raise TokenInvalid(f"Invalid token: {exc}")

        if decoded.get("type") != expected_type:
            raise TokenInvalid("Wrong token type")
        try:
            return JwtPayload(sub=str(decoded["sub"]), email=decoded["email"], role=decoded["role"])
        except KeyError as exc:
            raise TokenInvalid(f"Invalid token: missing claim {exc.args[0]}")

    def generate_access_token(self, payload: JwtPayload) -> str:
        return self._sign(payload, ACCESS, self.access_ttl, self.secret)

    def generate_refresh_token(self, payload: JwtPayload) -> str:
        return self._sign(payload, REFRESH, self.refresh_ttl, self.refresh_secret)

    def verify_access_token(self, token: str) -> JwtPayload:
        return self._decode(token, ACCESS, self.secret)
