"""Logging configuration for dialogwire.

structlog renders events; the stdlib logging tree routes them. Each
subsystem logger writes its own rotating file and propagates to the
combined file and the console:

    root                          console
      dialogwire                  logs/dialogwire.log
        dialogwire.dispatch       logs/dispatch.log
        dialogwire.resolver       logs/resolver.log
        dialogwire.conversation   logs/conversation.log
        dialogwire.transport      logs/transport.log
        dialogwire.bot            logs/bot.log

Call setup_logging() once with no arguments at startup and again with
the loaded Config; only the second call caches bound loggers.
"""

import logging
import logging.handlers
import re
import sys
from pathlib import Path
from typing import Any, Dict, NamedTuple, Optional

import structlog

SUBSYSTEMS = ("dispatch", "resolver", "conversation", "transport", "bot")

LOGGER_PREFIX = "dialogwire"

_DEFAULT_LOG_DIR = Path(__file__).parent.parent / "logs"

# ---------------------------------------------------------------------------
# Secret sanitization
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = (
    re.compile(r"\b\d{6,}:[A-Za-z0-9_-]{30,}"),      # bot tokens
    re.compile(r"Bearer\s+[a-zA-Z0-9_./-]{20,}"),    # Authorization headers
)

_REDACTED = "***REDACTED***"


def _scrub(value: Any, depth: int = 1) -> Any:
    if isinstance(value, str):
        for pattern in _SECRET_PATTERNS:
            value = pattern.sub(_REDACTED, value)
        return value
    if depth <= 0:
        return value
    if isinstance(value, (list, tuple)):
        return type(value)(_scrub(v, depth - 1) for v in value)
    if isinstance(value, dict):
        return {k: _scrub(v, depth - 1) for k, v in value.items()}
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor redacting bot tokens and bearer tokens.

    Update contents are logged as-is (see updates.describe), so a token
    pasted into a chat would otherwise end up in the log files. Strings
    are scrubbed at the top level and one level into lists, tuples and
    dicts.
    """
    for key in event_dict:
        event_dict[key] = _scrub(event_dict[key])
    return event_dict


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

class _LogSettings(NamedTuple):
    log_dir: Path
    level: int
    subsystem_levels: Dict[str, str]
    max_bytes: int
    backup_count: int
    cache_loggers: bool


def _level_for(name: Optional[str], default: int) -> int:
    """Map a level name like "debug" to its stdlib value, else ``default``."""
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def _settings(config) -> _LogSettings:
    if config is None:
        return _LogSettings(_DEFAULT_LOG_DIR, logging.INFO, {}, 10 * 1024 * 1024, 5, False)
    return _LogSettings(
        log_dir=config.log_dir,
        level=_level_for(config.logging_level, logging.INFO),
        subsystem_levels=config.logging_subsystem_levels,
        max_bytes=config.logging_max_file_size_mb * 1024 * 1024,
        backup_count=config.logging_backup_count,
        cache_loggers=True,
    )


def _reset(name: str, level: int) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = True
    return logger


def setup_logging(config=None) -> None:
    """Configure stdlib handlers and structlog.

    Args:
        config: Loaded Config, or None for the startup defaults (INFO,
            ./logs, 10 MB x 5 files, no logger caching).
    """
    settings = _settings(config)

    try:
        settings.log_dir.mkdir(parents=True, exist_ok=True)
        to_files = True
    except OSError as exc:
        print(
            f"WARNING: Cannot create log directory {settings.log_dir}: {exc}. "
            "Logging to console only.",
            file=sys.stderr,
        )
        to_files = False

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    def attach_file(logger: logging.Logger, filename: str, level: int) -> None:
        if not to_files:
            return
        handler = logging.handlers.RotatingFileHandler(
            settings.log_dir / filename,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(file_formatter)
        logger.addHandler(handler)

    # Loggers pass everything; handlers do the level filtering
    root = _reset("", logging.DEBUG)
    console = logging.StreamHandler(sys.stdout)
    console.setLevel(settings.level)
    console.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    root.addHandler(console)

    attach_file(_reset(LOGGER_PREFIX, logging.DEBUG), "dialogwire.log", settings.level)

    for subsystem in SUBSYSTEMS:
        level = _level_for(settings.subsystem_levels.get(subsystem), settings.level)
        attach_file(_reset(f"{LOGGER_PREFIX}.{subsystem}", level), f"{subsystem}.log", level)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            sanitize_secrets,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=settings.cache_loggers,
    )
