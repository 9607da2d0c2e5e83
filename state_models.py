"""
Pydantic models for the Moody Tunes bot: the inbound event view of an
Activity, the classifier's verdict, and the per-user welcome record.
"""
import logging
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from botbuilder.schema import Activity, ActivityTypes, ChannelAccount  # type: ignore
from pydantic import BaseModel, Field, ConfigDict

log = logging.getLogger(__name__)

NONE_INTENT = "None"
"""Intent label LUIS returns when no intent scored confidently."""


class MoodyTunesError(Exception):
    """Base class for errors raised while handling a turn."""


class MalformedEvent(MoodyTunesError):
    """An inbound activity is missing fields the dispatcher needs."""


class EventKind(str, Enum):
    MESSAGE = "message"
    PARTICIPANTS_CHANGED = "participants_changed"
    OTHER = "other"


class Sentiment(str, Enum):
    """Sentiment labels produced by LUIS sentiment analysis."""
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class Participant(BaseModel):
    id: str
    name: Optional[str] = None

    @classmethod
    def from_channel_account(cls, account: ChannelAccount) -> "Participant":
        return cls(id=account.id, name=account.name)


class ConversationEvent(BaseModel):
    """Channel-independent view of one inbound activity."""
    model_config = ConfigDict(frozen=True)

    kind: EventKind
    body: Optional[str] = None
    sender: Optional[Participant] = None
    recipient: Participant
    joined: List[Participant] = Field(default_factory=list)
    channel_id: Optional[str] = None

    @classmethod
    def from_activity(cls, activity: Activity) -> "ConversationEvent":
        """
        Build an event from a Bot Framework Activity.

        Raises:
            MalformedEvent: the activity has no recipient, or is a message
                without text.
        """
        if activity is None or not activity.type:
            raise MalformedEvent("Activity has no type.")
        if activity.recipient is None or not activity.recipient.id:
            raise MalformedEvent(f"Activity of type '{activity.type}' has no recipient id.")

        recipient = Participant.from_channel_account(activity.recipient)
        sender = None
        if activity.from_property is not None and activity.from_property.id:
            sender = Participant.from_channel_account(activity.from_property)

        if activity.type == ActivityTypes.message:
            if activity.text is None or not activity.text.strip():
                raise MalformedEvent("Message activity has no text.")
            return cls(
                kind=EventKind.MESSAGE,
                body=activity.text,
                sender=sender,
                recipient=recipient,
                channel_id=activity.channel_id,
            )

        if activity.type == ActivityTypes.conversation_update and activity.members_added is not None:
            joined = [
                Participant.from_channel_account(member)
                for member in activity.members_added
                if member is not None and member.id
            ]
            return cls(
                kind=EventKind.PARTICIPANTS_CHANGED,
                sender=sender,
                recipient=recipient,
                joined=joined,
                channel_id=activity.channel_id,
            )

        return cls(kind=EventKind.OTHER, sender=sender, recipient=recipient, channel_id=activity.channel_id)

    @property
    def newcomers(self) -> List[Participant]:
        """Joined participants other than the bot itself."""
        return [member for member in self.joined if member.id != self.recipient.id]


class ClassificationResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    query: str = ""
    top_intent: str = NONE_INTENT
    intent_score: float = 0.0
    sentiment: str = Sentiment.NEUTRAL.value
    sentiment_score: Optional[float] = None

    @property
    def has_intent(self) -> bool:
        return self.top_intent != NONE_INTENT


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WelcomeState(BaseModel):
    """Whether a user has already been shown the onboarding message."""
    user_id: str
    channel_id: str = "unknown"
    welcomed: bool = False
    welcome_count: int = 0
    first_seen: datetime = Field(default_factory=_utcnow)
    last_seen: datetime = Field(default_factory=_utcnow)
    welcomed_at: Optional[datetime] = None

    def touch(self) -> None:
        self.last_seen = _utcnow()

    def mark_welcomed(self) -> None:
        now = _utcnow()
        self.welcomed = True
        self.welcome_count += 1
        self.welcomed_at = now
        self.last_seen = now
