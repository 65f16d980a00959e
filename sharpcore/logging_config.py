"""Logging configuration for SharpCore.

Provides structlog + stdlib integration, token scrubbing, the
``SeverityLogger`` facade used by the runtime, and last-resort hooks
for uncaught exceptions.

Logger hierarchy (stdlib dotted names, structlog wraps them):
    root                   → ConsoleHandler (terminal)
      └─ sharpcore         → RotatingFileHandler → sharpcore.log
           ├─ sharpcore.bot
           ├─ sharpcore.commands
           └─ sharpcore.moderation
    discord                → propagates to root (library warnings)
"""

import asyncio
import logging
import logging.handlers
import re
import sys
import traceback
from pathlib import Path
from typing import Any, Dict, Optional

import structlog

# stdlib logger name prefix for hierarchy-based propagation
LOGGER_PREFIX = "sharpcore"

PACKAGE_DIR = Path(__file__).resolve().parent

# ---------------------------------------------------------------------------
# Secret sanitization
# ---------------------------------------------------------------------------

_SECRET_PATTERNS = [
    # Discord bot tokens: three base64url segments separated by dots
    re.compile(r"[A-Za-z0-9_-]{23,28}\.[A-Za-z0-9_-]{6,7}\.[A-Za-z0-9_-]{27,}"),
    # Authorization header values
    re.compile(r"Bot\s+[A-Za-z0-9._-]{20,}"),
]

_REDACTED = "***REDACTED***"


def _scrub_value(value: str) -> str:
    """Scrub bot tokens from a single string value."""
    for pattern in _SECRET_PATTERNS:
        value = pattern.sub(_REDACTED, value)
    return value


def sanitize_secrets(
    logger: Any, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """structlog processor that scrubs bot tokens from string values."""
    for key, value in event_dict.items():
        if isinstance(value, str):
            event_dict[key] = _scrub_value(value)
        elif isinstance(value, (list, tuple)):
            event_dict[key] = type(value)(
                _scrub_value(v) if isinstance(v, str) else v
                for v in value
            )
    return event_dict


def shorten_paths(text: str) -> str:
    """Replace absolute package paths in tracebacks with ``./``."""
    return text.replace(str(PACKAGE_DIR) + "/", "./")


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(config=None) -> None:
    """Configure structured logging.

    Called twice: once before the config is read (console only,
    INFO, loggers not cached) and once after, with the configured
    level and log directory.

    Args:
        config: Optional Config instance.
    """
    if config is not None:
        log_dir = config.log_dir
        root_level_name = config.log_level.upper()
        cache_loggers = True
    else:
        log_dir = None
        root_level_name = "INFO"
        cache_loggers = False

    root_level = getattr(logging, root_level_name, logging.INFO)

    file_formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=False),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers filter by level
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(root_level)
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    )
    root_logger.addHandler(console_handler)

    # discord.py is chatty at DEBUG (gateway payloads)
    logging.getLogger("discord").setLevel(max(root_level, logging.INFO))

    sc_logger = logging.getLogger(LOGGER_PREFIX)
    sc_logger.setLevel(logging.DEBUG)
    sc_logger.handlers.clear()
    sc_logger.propagate = True

    if log_dir is not None:
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_dir / "sharpcore.log",
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding="utf-8",
            )
            file_handler.setLevel(root_level)
            file_handler.setFormatter(file_formatter)
            sc_logger.addHandler(file_handler)
        except OSError as exc:
            # Console-only; the bot must not die over a log directory
            print(
                f"WARNING: Cannot create log file in {log_dir}: {exc}. "
                "Falling back to console-only logging.",
                file=sys.stderr,
            )

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
        cache_logger_on_first_use=cache_loggers,
    )


# ---------------------------------------------------------------------------
# Severity facade
# ---------------------------------------------------------------------------

class SeverityLogger:
    """Process-wide logger with ``info`` and ``severe`` severities.

    ``severe`` is safe to call from an exception hook: it never raises,
    and a failure inside the logging pipeline (or a nested call while
    one is in flight) degrades to a plain line on stderr.
    """

    def __init__(self, name: str = LOGGER_PREFIX):
        self.name = name
        self._log = structlog.get_logger(name)
        self._in_severe = False

    def info(self, event: str, **kw: Any) -> None:
        self._log.info(event, **kw)

    def warning(self, event: str, **kw: Any) -> None:
        self._log.warning(event, **kw)

    def severe(self, event: str, **kw: Any) -> None:
        if self._in_severe:
            self._fallback(event, kw)
            return
        self._in_severe = True
        try:
            self._log.critical(event, **kw)
        except Exception:
            self._fallback(event, kw)
        finally:
            self._in_severe = False

    @staticmethod
    def _fallback(event: str, kw: Dict[str, Any]) -> None:
        try:
            extra = " ".join(f"{k}={v!r}" for k, v in kw.items())
            sys.stderr.write(f"SEVERE {event} {extra}\n")
        except Exception:
            pass


def install_exception_hooks(
    logger: SeverityLogger,
    loop: Optional[asyncio.AbstractEventLoop] = None,
) -> None:
    """Route uncaught exceptions and failed tasks to ``logger.severe``.

    The process is never restarted here; a supervisor is expected to
    do that if the process dies.
    """

    def _excepthook(exc_type, exc, tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc, tb)
            return
        text = "".join(traceback.format_exception(exc_type, exc, tb))
        logger.severe("uncaught_exception", traceback=shorten_paths(text))

    sys.excepthook = _excepthook

    if loop is None:
        return

    def _loop_handler(loop, context):
        exc = context.get("exception")
        if exc is not None:
            text = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
            logger.severe(
                "unhandled_task_error",
                message=context.get("message", ""),
                traceback=shorten_paths(text),
            )
        else:
            logger.severe(
                "unhandled_task_error", message=context.get("message", "")
            )

    loop.set_exception_handler(_loop_handler)
