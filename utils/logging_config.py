"""
Logging setup for the Moody Tunes bot.

Console output goes through a compact, colourised formatter. structlog is
configured to hand its events to the standard library so that structlog
loggers and ``logging.getLogger`` loggers end up in the same handlers.
"""

import json
import logging
import sys
from datetime import datetime
from typing import Any, Dict, Optional

import structlog
from structlog.contextvars import merge_contextvars

NOISY_LOGGERS = ("urllib3", "aiohttp.access", "msrest", "asyncio")

# Attributes every LogRecord carries; anything else came in through ``extra``.
_STANDARD_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class SimpleHumanFormatter(logging.Formatter):
    """Compact one-line formatter for human consumption"""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors
        self.colors = {
            'DEBUG': '\033[36m',     # Cyan
            'INFO': '\033[32m',      # Green
            'WARNING': '\033[33m',   # Yellow
            'ERROR': '\033[31m',     # Red
            'CRITICAL': '\033[41m',  # Red background
            'RESET': '\033[0m',
            'DIM': '\033[2m',
        }

    def _paint(self, text: str, color_key: str) -> str:
        if not self.use_colors:
            return text
        return f"{self.colors[color_key]}{text}{self.colors['RESET']}"

    def format(self, record):
        timestamp = datetime.fromtimestamp(record.created).strftime('%H:%M:%S')
        level = self._paint(f"{record.levelname:<8}", record.levelname if record.levelname in self.colors else 'INFO')
        name = self._paint(record.name, 'DIM')
        line = f"{timestamp} {level} {name}: {record.getMessage()}"

        event_type = getattr(record, "event_type", None)
        if event_type:
            line += self._paint(f" [{event_type}]", 'DIM')

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)
        return line


class JSONLineFormatter(logging.Formatter):
    """One JSON object per record, including any ``extra`` fields."""

    def format(self, record):
        log_entry: Dict[str, Any] = {
            'timestamp': datetime.fromtimestamp(record.created).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'function': record.funcName,
            'line': record.lineno,
        }
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS and not key.startswith('_'):
                log_entry[key] = value
        if record.exc_info:
            log_entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str, separators=(',', ':'))


def setup_logging(level_str: Optional[str] = None, json_output: bool = False, use_colors: Optional[bool] = None) -> logging.Logger:
    """
    Configure the root logger and structlog.

    Safe to call more than once: console handlers installed by a previous
    call are replaced rather than duplicated.
    """
    level_name = (level_str or "INFO").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.INFO

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        if getattr(handler, "_moodytunes_console", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    if json_output:
        console_handler.setFormatter(JSONLineFormatter())
    else:
        if use_colors is None:
            use_colors = sys.stdout.isatty()
        console_handler.setFormatter(SimpleHumanFormatter(use_colors=use_colors))
    console_handler._moodytunes_console = True
    root_logger.addHandler(console_handler)
    root_logger.setLevel(level)

    # Quieten noisy libraries
    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            merge_contextvars,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.render_to_log_kwargs,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    return root_logger


def get_logger(name: Optional[str] = None):
    """A structlog logger bound to the stdlib logger ``name``."""
    return structlog.get_logger(name)


def bind_turn_context(**context: Any) -> None:
    """Attach per-turn fields (conversation id, user id...) to structlog events."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{k: v for k, v in context.items() if v is not None})


def clear_turn_context() -> None:
    structlog.contextvars.clear_contextvars()
