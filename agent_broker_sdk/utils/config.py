"""Configuration management utilities.

Settings are read from environment variables, optionally seeded from a
``.env`` file. Constructor arguments always win over the environment.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from ..core.exceptions import ConfigurationError

DEFAULT_BROKER_ENDPOINT = "https://hol.org/registry/api/v1"
DEFAULT_REGISTRY = "erc-8004"
DEFAULT_ADAPTER = "erc8004-adapter"


def get_default_broker_endpoint() -> str:
    """Get the registry broker endpoint from the environment or the public default."""
    return os.environ.get("AGENT_BROKER_BASE_URL") or DEFAULT_BROKER_ENDPOINT


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


@dataclass
class SDKSettings:
    """Runtime settings for :class:`~agent_broker_sdk.sdk.AgentBrokerSDK`."""
    broker_base_url: Optional[str] = None
    broker_api_key: Optional[str] = None
    semantic_search_url: Optional[str] = None
    home_registry: Optional[str] = None
    default_registry: str = DEFAULT_REGISTRY
    default_adapter: str = DEFAULT_ADAPTER
    max_attempts: int = 3
    retry_base_delay: float = 0.45
    timeout: float = 30.0

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "SDKSettings":
        """Build settings from environment variables.

        Args:
            env_file: Optional path to a ``.env`` file loaded before reading
                the environment. Existing variables are not overridden.
        """
        if env_file:
            load_dotenv(env_file, override=False)

        settings = cls(
            broker_base_url=os.environ.get("AGENT_BROKER_BASE_URL") or None,
            broker_api_key=(
                os.environ.get("AGENT_BROKER_API_KEY")
                or os.environ.get("RB_API_KEY")
                or None
            ),
            semantic_search_url=os.environ.get("SEMANTIC_SEARCH_URL") or None,
            home_registry=os.environ.get("AGENT_BROKER_HOME_REGISTRY") or None,
            default_registry=os.environ.get("AGENT_BROKER_DEFAULT_REGISTRY") or DEFAULT_REGISTRY,
            default_adapter=os.environ.get("AGENT_BROKER_DEFAULT_ADAPTER") or DEFAULT_ADAPTER,
            max_attempts=_env_int("AGENT_BROKER_MAX_ATTEMPTS", 3),
            retry_base_delay=_env_float("AGENT_BROKER_RETRY_BASE_DELAY", 0.45),
            timeout=_env_float("AGENT_BROKER_TIMEOUT", 30.0),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        """Raise ConfigurationError for settings that can never work."""
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.retry_base_delay < 0:
            raise ConfigurationError("retry_base_delay must not be negative")
        if self.timeout <= 0:
            raise ConfigurationError("timeout must be positive")
        if not self.default_registry.strip():
            raise ConfigurationError("default_registry must not be empty")
