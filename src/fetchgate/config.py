"""
Process configuration for fetchgate.

Settings come from the environment:

    FETCHGATE_CONFIG       Policy directory (required)
    FETCHGATE_PORT         Listening port (default 3000)
    FETCHGATE_HOST         Bind address (default 0.0.0.0)
    FETCHGATE_AUTH_TOKEN   Shared secret for the bearer check (optional)
    FETCHGATE_TIMEOUT      Outbound request timeout in seconds (default 30,
                           "0" or "none" for no limit)
    FETCHGATE_LOG_LEVEL    Log level (default INFO)
    FETCHGATE_LOG_JSON     "0"/"false" for console logs instead of JSON
"""

import os
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from fetchgate.errors import ConfigurationError
from fetchgate.executor import DEFAULT_TIMEOUT_SECONDS

ENV_PREFIX = "FETCHGATE_"
DEFAULT_PORT = 3000

_FALSE_VALUES = {"0", "false", "no", "off"}


class GatewaySettings(BaseModel):
    """
    Settings for a gateway process.

    Attributes:
        config_dir: Policy directory
        host: Bind address
        port: Listening port
        auth_token: Shared secret required from callers, if set
        request_timeout: Outbound timeout in seconds, None for no limit
        log_level: Log level name
        log_json: Render logs as JSON lines
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    config_dir: Path
    host: str = "0.0.0.0"
    port: int = Field(default=DEFAULT_PORT, gt=0, lt=65536)
    auth_token: str | None = None
    request_timeout: float | None = Field(default=DEFAULT_TIMEOUT_SECONDS, gt=0)
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "GatewaySettings":
        """
        Build settings from environment variables.

        Raises:
            ConfigurationError: If the policy directory is not configured or a
                value cannot be parsed
        """
        env = os.environ if environ is None else environ

        config_dir = env.get(f"{ENV_PREFIX}CONFIG", "").strip()
        if not config_dir:
            raise ConfigurationError(
                message=f"{ENV_PREFIX}CONFIG environment variable is required",
                suggestion=f"Usage: {ENV_PREFIX}CONFIG=/path/to/policies {ENV_PREFIX}PORT=3000 fetchgate serve",
                setting=f"{ENV_PREFIX}CONFIG",
            )

        return cls(
            config_dir=Path(config_dir),
            host=env.get(f"{ENV_PREFIX}HOST", "0.0.0.0"),
            port=parse_port(env.get(f"{ENV_PREFIX}PORT")),
            auth_token=env.get(f"{ENV_PREFIX}AUTH_TOKEN") or None,
            request_timeout=parse_timeout(env.get(f"{ENV_PREFIX}TIMEOUT")),
            log_level=env.get(f"{ENV_PREFIX}LOG_LEVEL", "INFO"),
            log_json=env.get(f"{ENV_PREFIX}LOG_JSON", "1").strip().lower() not in _FALSE_VALUES,
        )


def parse_port(value: str | None) -> int:
    """Parse a port number, falling back to the default when unusable."""
    try:
        port = int(value or "")
    except ValueError:
        return DEFAULT_PORT
    if not 0 < port < 65536:
        return DEFAULT_PORT
    return port


def parse_timeout(value: str | None) -> float | None:
    """
    Parse a timeout in seconds.

    Unset means the default; "0" or "none" means no limit.

    Raises:
        ConfigurationError: If the value is not a number
    """
    if value is None or not value.strip():
        return DEFAULT_TIMEOUT_SECONDS
    if value.strip().lower() == "none":
        return None
    try:
        seconds = float(value)
    except ValueError:
        raise ConfigurationError(
            message=f"Invalid {ENV_PREFIX}TIMEOUT: {value!r}",
            suggestion="Use a number of seconds, or 'none' for no limit",
            setting=f"{ENV_PREFIX}TIMEOUT",
        ) from None
    if seconds <= 0:
        return None
    return seconds
