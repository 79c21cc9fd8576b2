"""
Process configuration loaded from the environment (and `.env` when present).
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

import dotenv

dotenv.load_dotenv()

DEFAULT_TOKEN_TTL_SECONDS = 60


def _optional(name: str) -> Optional[str]:
    return (os.getenv(name, "") or "").strip() or None


def _int(name: str, default: int) -> int:
    raw = (os.getenv(name, "") or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass(frozen=True)
class GatewaySettings:
    host: str = "0.0.0.0"
    port: int = 3000

    # Service-to-service token
    token_secret: Optional[str] = None
    trusted_account_id: Optional[str] = None
    token_ttl_seconds: int = DEFAULT_TOKEN_TTL_SECONDS

    # Decision engine
    casbin_model_path: Optional[str] = None
    policy_database_url: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = None


@lru_cache(maxsize=1)
def load_settings() -> GatewaySettings:
    """
    Load gateway settings from environment variables.

    SERVICE_TOKEN_SECRET and TRUSTED_ACCOUNT_ID are required at startup; they
    are read here as optional so the absence is reported by the component
    that needs them.
    """
    ttl = _int("SERVICE_TOKEN_TTL_SECONDS", DEFAULT_TOKEN_TTL_SECONDS)
    if ttl <= 0:
        ttl = DEFAULT_TOKEN_TTL_SECONDS

    return GatewaySettings(
        host=(os.getenv("GATEWAY_HOST", "") or "0.0.0.0").strip(),
        port=_int("PORT", 3000),
        token_secret=_optional("SERVICE_TOKEN_SECRET"),
        trusted_account_id=_optional("TRUSTED_ACCOUNT_ID"),
        token_ttl_seconds=ttl,
        casbin_model_path=_optional("CASBIN_MODEL_PATH"),
        policy_database_url=_optional("POLICY_DATABASE_URL"),
        log_level=(os.getenv("LOG_LEVEL", "") or "INFO").strip().upper(),
        log_file=_optional("LOG_FILE"),
    )
