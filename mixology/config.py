"""Centralized configuration for the Mixology agent.

Secret resolution order (per variable):
  1. Environment variable / ``.env`` file  (local dev)
  2. AWS SSM Parameter Store SecureString  (when ``AWS_EXECUTION_ENV`` is set)

The SSM paths follow the convention ``/mixology/<VARIABLE_NAME>``.

Only the API key of the *selected* provider is required, and it is resolved
lazily when the chat model is built, so importing this module never fails.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from mixology.errors import ConfigurationError

load_dotenv()

logger = logging.getLogger(__name__)

# ── Feature flag: running on AWS? ────────────────────────────────────
_ON_AWS = bool(os.getenv("AWS_EXECUTION_ENV"))


# ── Secret resolution ────────────────────────────────────────────────

def _get_ssm_parameter(name: str) -> str | None:
    """Fetch a SecureString from SSM Parameter Store.

    Returns ``None`` if the parameter does not exist or boto3 is
    unavailable.  Errors are logged but never raised so that local-dev
    fallback still works.
    """
    try:
        import boto3  # noqa: PLC0415 — lazy import to avoid boto3 dep in tests

        ssm = boto3.client("ssm")
        resp = ssm.get_parameter(Name=f"/mixology/{name}", WithDecryption=True)
        return resp["Parameter"]["Value"]
    except Exception:
        logger.debug("SSM lookup for %s failed (expected locally)", name)
        return None


def require_env(name: str) -> str:
    """Return a config value from env-var or SSM, or raise a clear error."""
    value = os.getenv(name)
    if value and not value.startswith("your_"):
        return value

    if _ON_AWS:
        ssm_value = _get_ssm_parameter(name)
        if ssm_value:
            return ssm_value

    raise ConfigurationError(
        f"Missing required configuration: {name}. "
        f"Set it in .env (local) or SSM Parameter Store /mixology/{name} (AWS)."
    )


def _optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    return float(raw) if raw else None


# ── LLM ─────────────────────────────────────────────────────────────
PROVIDER: str = os.getenv("MIXOLOGY_PROVIDER", "openai").lower()
MODEL_NAME: str | None = os.getenv("MIXOLOGY_MODEL") or None
TEMPERATURE: float | None = _optional_float("MIXOLOGY_TEMPERATURE")
MAX_TOKENS: int = int(os.getenv("MIXOLOGY_MAX_TOKENS", "1024"))
MODEL_TIMEOUT_SECONDS: float = float(os.getenv("MODEL_TIMEOUT_SECONDS", "60"))

# Provider name → environment variable holding its API key
API_KEY_ENV: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "google": "GOOGLE_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "grok": "GROK_API_KEY",
}

# ── TheCocktailDB ───────────────────────────────────────────────────
COCKTAILDB_BASE_URL: str = os.getenv(
    "COCKTAILDB_BASE_URL", "https://www.thecocktaildb.com/api/json/v1/1",
)
COCKTAILDB_TIMEOUT_SECONDS: float = float(os.getenv("COCKTAILDB_TIMEOUT_SECONDS", "10"))
COCKTAILDB_CACHE_TTL_SECONDS: float = float(os.getenv("COCKTAILDB_CACHE_TTL_SECONDS", "3600"))

# ── Conversation state ──────────────────────────────────────────────
CHECKPOINT_BACKEND: str = os.getenv("CHECKPOINT_BACKEND", "sqlite").lower()
CHECKPOINT_DB_PATH: str = os.getenv("CHECKPOINT_DB_PATH", "./mixology_agent_checkpoints.db")

# ── Agent loop & formatting ─────────────────────────────────────────
MAX_TOOL_ROUNDS: int = int(os.getenv("MAX_TOOL_ROUNDS", "6"))
FORMAT_MAX_ATTEMPTS: int = int(os.getenv("FORMAT_MAX_ATTEMPTS", "3"))
FORMAT_RETRY_INTERVAL_SECONDS: float = float(os.getenv("FORMAT_RETRY_INTERVAL_SECONDS", "0.5"))

# ── Server ──────────────────────────────────────────────────────────
SERVER_HOST: str = os.getenv("SERVER_HOST", "0.0.0.0")
SERVER_PORT: int = int(os.getenv("SERVER_PORT", "8000"))
CORS_ORIGINS: list[str] = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:5173",
).split(",")
