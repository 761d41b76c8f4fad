"""Configuration for dialogwire.

Settings come from ``<config_dir>/settings.yaml``; secrets may come from
``<config_dir>/.env`` or the process environment. Every setting has a
property with a default, so an empty config directory is valid (it just
cannot start a bot without a transport factory).

Example settings.yaml::

    token: "123456:ABC..."
    transport: mybot.transport:build
    command_modules: [mybot.commands, mybot.validators]
    resolver:
      compiled: true
    dispatch:
      max_concurrent_updates: 64
      notify_errors: true
    logging:
      level: INFO
      subsystem_levels: {resolver: DEBUG}
"""

import importlib
import os
import re
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import structlog
import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = structlog.get_logger("dialogwire.bot")

_PACKAGE_ROOT = Path(__file__).parent.parent

# Telegram-style bot token: numeric bot id, colon, 35 char secret
_TOKEN_PATTERN = re.compile(r"^\d+:[A-Za-z0-9_-]{35}$")


class Config:
    """Settings accessor.

    Args:
        config_dir: Directory holding settings.yaml and .env. Defaults
            to ``<repo_root>/config/``.
    """

    def __init__(self, config_dir: Optional[Path] = None):
        self.config_dir = Path(config_dir) if config_dir is not None else _PACKAGE_ROOT / "config"

        env_file = self.config_dir / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        settings_file = self.config_dir / "settings.yaml"
        self.settings: Dict[str, Any] = {}
        if settings_file.exists():
            with open(settings_file, "r") as f:
                self.settings = yaml.safe_load(f) or {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self.settings.get(name)
        return section if isinstance(section, dict) else {}

    def validate(self):
        """Check critical settings at startup.

        Only logs; problems that make the bot unusable surface later as
        ConfigurationError.
        """
        token = self.token
        if not token:
            logger.warning("no_bot_token", msg="Transport may refuse to start")
        elif not _TOKEN_PATTERN.match(token):
            logger.error("invalid_bot_token_format", token="..." + token[-4:])

        modules = self.settings.get("command_modules", [])
        if not isinstance(modules, list):
            logger.error("command_modules_invalid_type", type=type(modules).__name__)
        elif not modules:
            logger.warning("no_command_modules", msg="Bot will not match any update")

        limit = self._section("dispatch").get("max_concurrent_updates")
        if limit is not None and (not isinstance(limit, int) or limit < 1):
            logger.error(
                "config_invalid_value",
                key="dispatch.max_concurrent_updates",
                value=limit,
                valid=">= 1",
            )

    # --- bot ---

    @property
    def token(self) -> str:
        """Bot token. Env var DIALOGWIRE_TOKEN takes precedence."""
        return os.environ.get("DIALOGWIRE_TOKEN") or self.settings.get("token", "")

    @property
    def command_modules(self) -> List[str]:
        """Dotted module names scanned for commands and validators."""
        modules = self.settings.get("command_modules", [])
        if not isinstance(modules, list):
            return []
        return [str(m) for m in modules]

    @property
    def transport_factory(self) -> Optional[str]:
        """``module:callable`` building the Transport from this Config."""
        return self.settings.get("transport")

    def load_transport_factory(self) -> Callable:
        """Import and return the configured transport factory.

        Raises:
            ConfigurationError: Not configured, malformed or not importable.
        """
        spec = self.transport_factory
        if not spec or ":" not in spec:
            raise ConfigurationError(
                f"transport must be 'module:callable', got {spec!r}",
                setting_name="transport",
            )
        module_name, _, attr = spec.partition(":")
        try:
            module = importlib.import_module(module_name)
            return getattr(module, attr)
        except (ImportError, AttributeError) as e:
            raise ConfigurationError(
                f"Cannot load transport {spec}: {e}", setting_name="transport"
            ) from e

    # --- resolver / dispatch ---

    @property
    def resolver_compiled(self) -> bool:
        """Use compiled builders instead of walking the graph per update (default True)."""
        return self._section("resolver").get("compiled", True)

    @property
    def max_concurrent_updates(self) -> int:
        """Updates dispatched concurrently (default 64)."""
        return self._section("dispatch").get("max_concurrent_updates", 64)

    @property
    def notify_errors(self) -> bool:
        """Report failed turns to the transport (default True)."""
        return self._section("dispatch").get("notify_errors", True)

    # --- logging ---

    @property
    def log_dir(self) -> Path:
        configured = self.settings.get("log_dir")
        return Path(configured).expanduser() if configured else _PACKAGE_ROOT / "logs"

    @property
    def logging_level(self) -> str:
        """Console and combined-file level (default INFO)."""
        return self._section("logging").get("level", "INFO")

    @property
    def logging_subsystem_levels(self) -> Dict[str, str]:
        """Per-subsystem overrides, e.g. {"resolver": "DEBUG"}."""
        return self._section("logging").get("subsystem_levels", {})

    @property
    def logging_max_file_size_mb(self) -> int:
        return self._section("logging").get("max_file_size_mb", 10)

    @property
    def logging_backup_count(self) -> int:
        return self._section("logging").get("backup_count", 5)


_config: Optional[Config] = None


def get_config() -> Config:
    """Return the process-wide Config, loading it on first use."""
    global _config
    if _config is None:
        _config = Config()
    return _config
