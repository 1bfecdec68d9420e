"""Configuration loading and management."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from chatrelay.constants import (
    DEFAULT_ACTION_TIMEOUT_MS,
    DEFAULT_ENTRY_URL,
    DEFAULT_HOME,
    DEFAULT_LOGIN_POLL_INTERVAL,
    DEFAULT_LOGIN_TIMEOUT,
    DEFAULT_MAX_LOGIN_CYCLES,
    DEFAULT_MODEL,
    DEFAULT_NAV_TIMEOUT_MS,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_QUIET_INTERVAL,
    DEFAULT_RESPONSE_TIMEOUT,
    DEFAULT_SETTLE_DELAY,
    SUPPORTED_MODELS,
)


@dataclass
class Config:
    """chatrelay configuration.

    Loads from .env and optionally <home>/config.json
    """

    # API Keys (only needed for LLM-assisted recovery)
    anthropic_api_key: Optional[str] = None

    # Model settings
    default_model: str = DEFAULT_MODEL

    # Locations
    home: Path = DEFAULT_HOME
    entry_url: str = DEFAULT_ENTRY_URL

    # Browser settings
    headless: bool = False
    nav_timeout_ms: int = DEFAULT_NAV_TIMEOUT_MS
    action_timeout_ms: int = DEFAULT_ACTION_TIMEOUT_MS

    # Completion polling
    poll_interval: float = DEFAULT_POLL_INTERVAL
    quiet_interval: float = DEFAULT_QUIET_INTERVAL
    settle_delay: float = DEFAULT_SETTLE_DELAY
    response_timeout: float = DEFAULT_RESPONSE_TIMEOUT

    # Login wait
    login_poll_interval: float = DEFAULT_LOGIN_POLL_INTERVAL
    login_timeout: float = DEFAULT_LOGIN_TIMEOUT
    max_login_cycles: int = DEFAULT_MAX_LOGIN_CYCLES

    # Extra busy markers (from <home>/config.json)
    extra_busy_markers: list[str] = field(default_factory=list)

    @property
    def state_path(self) -> Path:
        return self.home / "state.json"

    @property
    def profile_dir(self) -> Path:
        return self.home / "profile"

    @classmethod
    def load(cls, home: Optional[Path] = None) -> "Config":
        """Load configuration from environment and the home config file.

        Args:
            home: Home directory override (state, profile, logs)

        Returns:
            Config instance
        """
        # Load .env file
        load_dotenv()

        if home is None:
            env_home = os.getenv("CHATRELAY_HOME")
            home = Path(env_home).expanduser() if env_home else DEFAULT_HOME

        # Create config from environment
        config = cls(
            anthropic_api_key=os.getenv("ANTHROPIC_API_KEY"),
            default_model=os.getenv("CHATRELAY_MODEL", DEFAULT_MODEL),
            home=home,
            entry_url=os.getenv("CHATRELAY_ENTRY_URL", DEFAULT_ENTRY_URL),
            headless=os.getenv("CHATRELAY_HEADLESS", "").lower() == "true",
            nav_timeout_ms=int(os.getenv("CHATRELAY_NAV_TIMEOUT_MS", DEFAULT_NAV_TIMEOUT_MS)),
            action_timeout_ms=int(
                os.getenv("CHATRELAY_ACTION_TIMEOUT_MS", DEFAULT_ACTION_TIMEOUT_MS)
            ),
            poll_interval=float(os.getenv("CHATRELAY_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)),
            quiet_interval=float(os.getenv("CHATRELAY_QUIET_INTERVAL", DEFAULT_QUIET_INTERVAL)),
            settle_delay=float(os.getenv("CHATRELAY_SETTLE_DELAY", DEFAULT_SETTLE_DELAY)),
            response_timeout=float(
                os.getenv("CHATRELAY_RESPONSE_TIMEOUT", DEFAULT_RESPONSE_TIMEOUT)
            ),
            login_poll_interval=float(
                os.getenv("CHATRELAY_LOGIN_POLL_INTERVAL", DEFAULT_LOGIN_POLL_INTERVAL)
            ),
            login_timeout=float(os.getenv("CHATRELAY_LOGIN_TIMEOUT", DEFAULT_LOGIN_TIMEOUT)),
            max_login_cycles=int(
                os.getenv("CHATRELAY_MAX_LOGIN_CYCLES", DEFAULT_MAX_LOGIN_CYCLES)
            ),
        )

        # Load home config if available
        config_path = home / "config.json"
        if config_path.exists():
            try:
                with open(config_path) as f:
                    home_config = json.load(f)
                    config.extra_busy_markers = list(home_config.get("busy_markers", []))
            except (json.JSONDecodeError, IOError):
                pass  # Ignore invalid config

        return config

    def validate(self) -> list[str]:
        """Validate configuration and return list of errors.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not self.entry_url.startswith(("http://", "https://")):
            errors.append("entry_url must be an http(s) URL")

        if self.poll_interval <= 0 or self.quiet_interval <= 0:
            errors.append("poll_interval and quiet_interval must be positive")

        if self.response_timeout <= 0:
            errors.append("response_timeout must be positive")

        if self.login_poll_interval <= 0 or self.login_timeout <= 0:
            errors.append("login_poll_interval and login_timeout must be positive")

        if self.login_poll_interval < self.poll_interval:
            errors.append("login_poll_interval must not be finer than poll_interval")

        if self.max_login_cycles < 1:
            errors.append("max_login_cycles must be at least 1")

        if self.anthropic_api_key and self.default_model not in SUPPORTED_MODELS:
            errors.append(
                f"Unknown model {self.default_model}. Supported: {', '.join(SUPPORTED_MODELS)}"
            )

        return errors

    def to_dict(self) -> dict:
        """Convert config to dictionary (for logging/display)."""
        return {
            "default_model": self.default_model,
            "home": str(self.home),
            "entry_url": self.entry_url,
            "headless": self.headless,
            "poll_interval": self.poll_interval,
            "quiet_interval": self.quiet_interval,
            "response_timeout": self.response_timeout,
            "login_poll_interval": self.login_poll_interval,
            "login_timeout": self.login_timeout,
            "max_login_cycles": self.max_login_cycles,
            "extra_busy_markers": self.extra_busy_markers,
            "has_anthropic_key": bool(self.anthropic_api_key),
        }
