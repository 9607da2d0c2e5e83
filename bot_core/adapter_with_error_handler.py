# File: bot_core/adapter_with_error_handler.py
import logging
from datetime import datetime, timezone
from typing import Optional, Any

from botbuilder.core import (  # type: ignore
    BotFrameworkAdapter,
    BotFrameworkAdapterSettings,
    TurnContext,
)
from botbuilder.schema import ActivityTypes, Activity  # type: ignore

from core_logic.constants import CLASSIFIER_DOWN_TEXT, GENERIC_ERROR_TEXT
from core_logic.media_library import NoMediaForSentiment
from core_logic.mood_recognizer import ClassificationUnavailable
from state_models import MalformedEvent

log = logging.getLogger(__name__)


async def handle_turn_error(context: TurnContext, error: Exception):
    """Logs a failed turn and tells the user, unless the inbound event was unusable."""
    if isinstance(error, MalformedEvent):
        log.warning(f"[on_turn_error] rejected malformed activity: {error}")
        return

    if isinstance(error, ClassificationUnavailable):
        log.error(f"[on_turn_error] classifier unavailable: {error}")
        await context.send_activity(CLASSIFIER_DOWN_TEXT)
    elif isinstance(error, NoMediaForSentiment):
        log.error(f"[on_turn_error] media library is missing sentiment '{error.sentiment}': {error}")
        await context.send_activity(GENERIC_ERROR_TEXT)
    else:
        log.error(f"[on_turn_error] unhandled error: {error}", exc_info=error)
        await context.send_activity(GENERIC_ERROR_TEXT)

    # Send a trace activity if connected to the Bot Framework Emulator
    if context.activity.channel_id == "emulator":
        trace_activity = Activity(
            label="TurnError",
            name="on_turn_error Trace",
            timestamp=datetime.now(timezone.utc),
            type=ActivityTypes.trace,
            value=f"{error}",
            value_type="https://www.botframework.com/schemas/error",
        )
        await context.send_activity(trace_activity)


class AdapterWithErrorHandler(BotFrameworkAdapter):
    def __init__(
        self,
        settings: BotFrameworkAdapterSettings,
        config: Optional[Any] = None,
    ):
        super().__init__(settings)
        self.config = config
        self.on_turn_error = handle_turn_error
