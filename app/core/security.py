"""Security utilities for JWT and password handling."""

import hashlib
import secrets
from datetime import UTC, datetime, timedelta
from functools import lru_cache
from typing import Any
from uuid import uuid4

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from app.config import Settings
from app.core.exceptions import ExpiredTokenException, InvalidTokenException

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@lru_cache
def get_password_context(rounds: int) -> CryptContext:
    """Password hashing context for a given bcrypt cost factor."""
    return CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds)


def verify_password(plain_password: str, hashed_password: str, rounds: int = 12) -> bool:
    """Verify a password against a hash."""
    return get_password_context(rounds).verify(plain_password, hashed_password)


def get_password_hash(password: str, rounds: int = 12) -> str:
    """Hash a password."""
    return get_password_context(rounds).hash(password)


def dummy_verify_password(rounds: int = 12) -> None:
    """Spend the time of a real verification when there is no hash to check."""
    get_password_context(rounds).dummy_verify()


def generate_opaque_token() -> str:
    """Random token for sessions and remember-me cookies."""
    return secrets.token_hex(32)


def hash_token(token: str) -> str:
    """Digest stored in place of an opaque token."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def fingerprint_identifier(identifier: str) -> str:
    """Short non-reversible tag for an email or phone, safe to log."""
    return hashlib.sha256(identifier.lower().encode("utf-8")).hexdigest()[:12]


class TokenIssuer:
    """Signs and verifies JWT access and refresh tokens."""

    def __init__(self, config: Settings):
        """Initialize issuer from immutable settings."""
        self._secret_key = config.jwt_secret_key
        self._algorithm = config.jwt_algorithm
        self.access_token_ttl = timedelta(minutes=config.access_token_expire_minutes)
        self.refresh_token_ttl = timedelta(days=config.refresh_token_expire_days)

    def sign(self, claims: dict[str, Any], ttl: timedelta, token_type: str) -> str:
        """
        Create a signed token.

        Args:
            claims: Payload data to encode
            ttl: Lifetime of the token
            token_type: Either "access" or "refresh"

        Returns:
            Encoded JWT token
        """
        now = datetime.now(UTC)
        to_encode = claims.copy()
        to_encode.update(
            {
                "exp": now + ttl,
                "iat": now,
                "jti": uuid4().hex,
                "type": token_type,
            }
        )

        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def verify(self, token: str, expected_type: str | None = None) -> dict[str, Any]:
        """
        Decode and validate a token.

        Only the configured algorithm is accepted, so a token signed with any
        other algorithm fails even if its claims look valid.

        Args:
            token: JWT token to decode
            expected_type: Required value of the "type" claim

        Returns:
            Decoded payload

        Raises:
            ExpiredTokenException: If the token is past its expiry
            InvalidTokenException: If the signature, format or type is wrong
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except ExpiredSignatureError:
            raise ExpiredTokenException()
        except JWTError:
            raise InvalidTokenException()

        if expected_type is not None and payload.get("type") != expected_type:
            raise InvalidTokenException("Invalid token type")

        if not isinstance(payload.get("sub"), str):
            raise InvalidTokenException("Token subject is missing")

        return payload

    def create_access_token(
        self, claims: dict[str, Any], expires_delta: timedelta | None = None
    ) -> str:
        """Create a short-lived access token."""
        return self.sign(claims, expires_delta or self.access_token_ttl, ACCESS_TOKEN_TYPE)

    def create_refresh_token(
        self, claims: dict[str, Any], expires_delta: timedelta | None = None
    ) -> str:
        """Create a longer-lived refresh token."""
        return self.sign(claims, expires_delta or self.refresh_token_ttl, REFRESH_TOKEN_TYPE)
