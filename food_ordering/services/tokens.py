"""
Token Service

Issues and verifies signed, stateless session tokens (JWT, HS256 by default).
The signing key is passed in at construction; ``get_token_service()`` builds
the single process-wide instance from settings.

Expiry policies:
    - none:    no ``exp`` claim, a token stays valid while the key is unchanged
    - fixed:   ``exp`` = issue time + ttl
    - sliding: like fixed, and ``renew()`` hands out a fresh token on every
               authenticated request

No other module touches ``jose.jwt``.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Optional

from jose import JWTError, jwt

from food_ordering.core.config import TokenExpiryMode, get_settings
from food_ordering.core.errors import InvalidToken

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TokenClaim:
    """
    Identity-derived payload carried by a session token.

    Attributes:
        email: Identity email (None for mobile-only accounts)
        subject: Identity id as a string
        admin: Whether the identity belongs to the admin pool
    """
    email: Optional[str]
    subject: Optional[str] = None
    admin: bool = False

    def to_payload(self) -> dict:
        payload = {"email": self.email, "admin": self.admin}
        if self.subject is not None:
            payload["sub"] = self.subject
        return payload

    @classmethod
    def from_identity(cls, identity) -> "TokenClaim":
        return cls(email=identity.email, subject=str(identity.id), admin=bool(identity.is_admin))


class TokenService:
    """
    Signs and checks session tokens.

    Example:
        >>> service = TokenService("secret")
        >>> token = service.issue(TokenClaim(email="a@x.com"))
        >>> service.verify(token).email
        'a@x.com'
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        expiry_mode: TokenExpiryMode = TokenExpiryMode.NONE,
        ttl_minutes: int = 1440,
    ):
        if not secret_key:
            raise ValueError("Token signing key must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.expiry_mode = TokenExpiryMode(expiry_mode)
        self.ttl = timedelta(minutes=ttl_minutes)

    @property
    def expires(self) -> bool:
        return self.expiry_mode is not TokenExpiryMode.NONE

    def issue(self, claim: TokenClaim, now: Optional[datetime] = None) -> str:
        """Produce a signed token for ``claim``."""
        now = now or datetime.now(timezone.utc)
        payload = claim.to_payload()
        payload["iat"] = int(now.timestamp())
        if self.expires:
            payload["exp"] = int((now + self.ttl).timestamp())
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def verify(self, token: str) -> TokenClaim:
        """
        Check a token's signature (and ``exp`` when present).

        Raises:
            InvalidToken: Malformed, tampered, foreign-signed or expired token
        """
        if not token:
            raise InvalidToken("Token is empty")
        try:
            data = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={"require_exp": self.expires},
            )
        except JWTError as e:
            logger.debug(f"Token rejected: {e}")
            raise InvalidToken()

        if "email" not in data:
            raise InvalidToken("Token carries no identity claim")

        return TokenClaim(
            email=data.get("email"),
            subject=data.get("sub"),
            admin=bool(data.get("admin", False)),
        )

    def renew(self, claim: TokenClaim) -> Optional[str]:
        """Fresh token for sliding expiry, None for the other policies."""
        if self.expiry_mode is TokenExpiryMode.SLIDING:
            return self.issue(claim)
        return None


@lru_cache()
def get_token_service() -> TokenService:
    """Get the process-wide token service, built once from settings."""
    settings = get_settings()
    logger.info(
        f"Token Service: {settings.jwt_algorithm}, "
        f"expiry={settings.token_expiry_mode.value}"
    )
    return TokenService(
        secret_key=settings.jwt_secret,
        algorithm=settings.jwt_algorithm,
        expiry_mode=settings.token_expiry_mode,
        ttl_minutes=settings.token_ttl_minutes,
    )
