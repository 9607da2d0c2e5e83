# File: bot_core/moody_bot.py
import logging
import random
from typing import Optional

from botbuilder.core import ActivityHandler, TurnContext  # type: ignore

from config import Config, DEFAULT_WELCOME_IMAGE_URL
from core_logic.cards import build_mood_prompt, build_video_card, build_welcome_card
from core_logic.constants import GREETING_WORDS, SUGGESTION_ACK_TEXT, UNRECOGNIZED_TEXT
from core_logic.media_library import MediaLibrary
from core_logic.mood_recognizer import LuisMoodRecognizer, MoodRecognizer
from bot_core.welcome_state import WelcomeStateStore
from state_models import ConversationEvent, EventKind, Participant, WelcomeState

logger = logging.getLogger(__name__)


def is_greeting(text: Optional[str]) -> bool:
    return bool(text) and text.strip().lower() in GREETING_WORDS


class MoodyTunesBot(ActivityHandler):
    """
    Routes each inbound activity to one reply behaviour:

    * message: classify it; suggest a video when an intent was found,
      onboard the user when it is a bare greeting, otherwise stay quiet.
    * conversation update: onboard every member who joined, except the bot.
    * anything else: ignored.
    """

    def __init__(
        self,
        recognizer: MoodRecognizer,
        media_library: MediaLibrary,
        welcome_store: Optional[WelcomeStateStore] = None,
        rng: Optional[random.Random] = None,
        welcome_image_url: str = DEFAULT_WELCOME_IMAGE_URL,
        reply_on_unrecognized: bool = False,
    ):
        logger.info("Initializing MoodyTunesBot...")
        self.recognizer = recognizer
        self.media_library = media_library
        self.welcome_store = welcome_store
        self.rng = rng or random.Random()
        self.welcome_image_url = welcome_image_url
        self.reply_on_unrecognized = reply_on_unrecognized
        logger.info(f"MoodyTunesBot initialized. Media library: {media_library.summary()}")

    @classmethod
    def from_config(cls, app_config: Config, welcome_store: Optional[WelcomeStateStore] = None) -> "MoodyTunesBot":
        return cls(
            recognizer=LuisMoodRecognizer.from_config(app_config),
            media_library=MediaLibrary.from_file(app_config.MEDIA_LIBRARY_PATH),
            welcome_store=welcome_store,
            welcome_image_url=app_config.WELCOME_IMAGE_URL,
            reply_on_unrecognized=app_config.REPLY_ON_UNRECOGNIZED,
        )

    async def on_turn(self, turn_context: TurnContext):
        if turn_context is None:
            raise TypeError("MoodyTunesBot.on_turn(): turn_context cannot be None.")

        # Raises MalformedEvent before anything is sent.
        event = ConversationEvent.from_activity(turn_context.activity)
        logger.info(
            f"Handling {event.kind.value} event",
            extra={
                "event_type": "turn_started",
                "activity_id": turn_context.activity.id,
                "channel_id": event.channel_id,
                "user_id": event.sender.id if event.sender else None,
            },
        )

        if event.kind is EventKind.MESSAGE:
            await self.on_message_event(turn_context, event)
        elif event.kind is EventKind.PARTICIPANTS_CHANGED:
            await self.on_participants_joined(turn_context, event)
        else:
            logger.debug(f"Ignoring activity of type '{turn_context.activity.type}'.")

    async def on_message_event(self, turn_context: TurnContext, event: ConversationEvent):
        welcome_state = await self._load_welcome_state(event.channel_id, event.sender)
        onboarded = False

        result = await self.recognizer.classify(event.body, turn_context=turn_context)

        if result.has_intent:
            video = self.media_library.select(result.sentiment, self.rng)
            logger.info(
                f"Suggesting video for intent '{result.top_intent}' and sentiment '{result.sentiment}': {video}",
                extra={"event_type": "video_suggested", "sentiment": result.sentiment},
            )
            await turn_context.send_activity(SUGGESTION_ACK_TEXT)
            await turn_context.send_activity(build_video_card(video))
        elif is_greeting(event.body):
            logger.info("No intent found for greeting, sending onboarding.")
            await self.send_onboarding(turn_context, event.sender)
            onboarded = True
        else:
            logger.info(
                f"No intent found for utterance (sentiment '{result.sentiment}'), not replying.",
                extra={"event_type": "utterance_unrecognized"},
            )
            if self.reply_on_unrecognized:
                await turn_context.send_activity(UNRECOGNIZED_TEXT)

        if welcome_state is None:
            return
        if onboarded:
            await self.welcome_store.mark_welcomed(welcome_state)
        else:
            await self.welcome_store.save(welcome_state)

    async def on_participants_joined(self, turn_context: TurnContext, event: ConversationEvent):
        newcomers = event.newcomers
        logger.info(f"{len(event.joined)} member(s) joined, {len(newcomers)} to welcome.")
        for member in newcomers:
            welcome_state = await self._load_welcome_state(event.channel_id, member)
            await self.send_onboarding(turn_context, member)
            if welcome_state is not None:
                await self.welcome_store.mark_welcomed(welcome_state)

    async def send_onboarding(self, turn_context: TurnContext, member: Optional[Participant] = None):
        """Welcome animation followed by the mood suggestions."""
        display_name = member.name if member is not None else None
        await turn_context.send_activity(build_welcome_card(self.welcome_image_url))
        await turn_context.send_activity(build_mood_prompt(display_name))
        logger.info(
            "Sent onboarding",
            extra={"event_type": "onboarding_sent", "user_id": member.id if member else None},
        )

    async def _load_welcome_state(
        self, channel_id: Optional[str], member: Optional[Participant]
    ) -> Optional[WelcomeState]:
        if self.welcome_store is None or member is None:
            return None
        return await self.welcome_store.get(channel_id, member.id)
