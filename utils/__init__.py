"""
Utils Package - logging setup shared by the app and the bot.
"""

from .logging_config import (
    setup_logging,
    get_logger,
    bind_turn_context,
    clear_turn_context,
    SimpleHumanFormatter,
    JSONLineFormatter,
)

__all__ = [
    'setup_logging',
    'get_logger',
    'bind_turn_context',
    'clear_turn_context',
    'SimpleHumanFormatter',
    'JSONLineFormatter',
]
