"""Configuration for the Freshdesk MCP server, read from the environment."""

import os
from collections.abc import Mapping
from dataclasses import dataclass

from freshdesk_mcp.errors import ConfigurationError

DEFAULT_MAX_RETRIES = 3
DEFAULT_TIMEOUT_MS = 30000
DEFAULT_RATE_LIMIT_PER_MINUTE = 50


@dataclass(frozen=True)
class FreshdeskConfig:
    """Credentials and client tuning. Immutable once the client is built."""

    domain: str
    api_key: str
    max_retries: int = DEFAULT_MAX_RETRIES
    timeout: float = DEFAULT_TIMEOUT_MS / 1000
    rate_limit_per_minute: int = DEFAULT_RATE_LIMIT_PER_MINUTE
    skip_connection_test: bool = False
    skip_permission_discovery: bool = False

    def __repr__(self) -> str:
        # Keep the API key out of logs and tracebacks.
        return (
            f"FreshdeskConfig(domain={self.domain!r}, api_key='****', "
            f"max_retries={self.max_retries}, timeout={self.timeout}, "
            f"rate_limit_per_minute={self.rate_limit_per_minute})"
        )


def _env_flag(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() in ("1", "true", "yes")


def _env_int(env: Mapping[str, str], name: str, default: int, minimum: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{name} must be at least {minimum}, got {value}")
    return value


def load_config(env: Mapping[str, str] | None = None) -> FreshdeskConfig:
    """Build a FreshdeskConfig from environment variables.

    Args:
        env: Mapping to read from. Defaults to ``os.environ``; callers are
            expected to have run ``load_dotenv()`` first.
    """
    env = os.environ if env is None else env

    missing = [name for name in ("FRESHDESK_DOMAIN", "FRESHDESK_API_KEY") if not env.get(name, "").strip()]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")

    timeout_ms = _env_int(env, "FRESHDESK_TIMEOUT", DEFAULT_TIMEOUT_MS, minimum=1)

    return FreshdeskConfig(
        domain=env["FRESHDESK_DOMAIN"].strip(),
        api_key=env["FRESHDESK_API_KEY"].strip(),
        max_retries=_env_int(env, "FRESHDESK_MAX_RETRIES", DEFAULT_MAX_RETRIES, minimum=0),
        timeout=timeout_ms / 1000,
        rate_limit_per_minute=_env_int(env, "FRESHDESK_RATE_LIMIT", DEFAULT_RATE_LIMIT_PER_MINUTE, minimum=1),
        skip_connection_test=_env_flag(env, "SKIP_CONNECTION_TEST"),
        skip_permission_discovery=_env_flag(env, "SKIP_PERMISSION_DISCOVERY"),
    )
