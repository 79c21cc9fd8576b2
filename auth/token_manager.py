"""
Service-to-service token manager.

Tokens are short-lived HS256 JWTs carrying a single `accountId` claim. There
is no session state: a token is valid while its signature checks out, it has
not expired, and its account matches the one trusted account this
deployment accepts.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from loguru import logger

from core.errors import ConfigurationError, Unauthenticated, Unauthorized
from core.settings import DEFAULT_TOKEN_TTL_SECONDS, GatewaySettings

ACCOUNT_CLAIM = "accountId"
ALGORITHM = "HS256"


@dataclass(frozen=True)
class ServiceIdentity:
    """Verified caller identity attached to the request."""

    account_id: str
    issued_at: datetime
    expires_at: datetime


class TokenManager:
    """Issues and verifies service tokens"""

    def __init__(
        self,
        secret: Optional[str],
        trusted_account_id: Optional[str] = None,
        ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS,
    ):
        self.secret = secret
        self.trusted_account_id = trusted_account_id
        self.ttl_seconds = ttl_seconds
        if secret and len(secret) < 32:
            logger.warning("SERVICE_TOKEN_SECRET is less than 32 bytes - use a stronger secret!")

    @classmethod
    def from_settings(cls, settings: GatewaySettings) -> "TokenManager":
        return cls(
            secret=settings.token_secret,
            trusted_account_id=settings.trusted_account_id,
            ttl_seconds=settings.token_ttl_seconds,
        )

    def _require_secret(self) -> str:
        if not self.secret:
            raise ConfigurationError("SERVICE_TOKEN_SECRET is not configured.")
        return self.secret

    # ==================== ISSUE ====================

    def issue(self, account_id: str, now: Optional[datetime] = None) -> str:
        """Issue a signed token for `account_id` that expires after the configured TTL"""
        secret = self._require_secret()
        issued_at = now or datetime.now(timezone.utc)
        token = jwt.encode(
            {
                ACCOUNT_CLAIM: account_id,
                "iat": issued_at,
                "exp": issued_at + timedelta(seconds=self.ttl_seconds),
            },
            secret,
            algorithm=ALGORITHM,
        )
        logger.debug(f"[TOKEN_ISSUE] Token issued for account: {account_id}")
        return token

    # ==================== VERIFY ====================

    def verify(self, token: Optional[str]) -> ServiceIdentity:
        """
        Verify a token and return the caller identity.

        Raises:
            Unauthenticated: token absent, malformed, badly signed or expired
            Unauthorized: token is valid but for an untrusted account
            ConfigurationError: no signing key or trusted account configured
        """
        secret = self._require_secret()
        if not self.trusted_account_id:
            raise ConfigurationError("TRUSTED_ACCOUNT_ID is not configured.")
        if not token:
            raise Unauthenticated("Missing service token.")

        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                options={"require": ["exp", "iat"]},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("[TOKEN_VERIFY] Token expired")
            raise Unauthenticated("Service token expired.")
        except jwt.InvalidTokenError as e:
            logger.warning(f"[TOKEN_VERIFY] Invalid token: {e}")
            raise Unauthenticated("Invalid service token.")

        account_id = payload.get(ACCOUNT_CLAIM)
        if not isinstance(account_id, str) or not account_id:
            logger.warning(f"[TOKEN_VERIFY] Token missing {ACCOUNT_CLAIM} claim")
            raise Unauthenticated(f"Invalid service token: missing {ACCOUNT_CLAIM}.")

        if account_id != self.trusted_account_id:
            logger.warning(f"[TOKEN_VERIFY] Untrusted account: {account_id}")
            raise Unauthorized("Service account is not trusted.")

        logger.debug(f"[TOKEN_VERIFY] Token verified for account: {account_id}")
        return ServiceIdentity(
            account_id=account_id,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
