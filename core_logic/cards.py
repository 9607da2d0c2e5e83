"""Builders for the attachments and prompts the bot sends."""
from typing import Optional

from botbuilder.core import CardFactory, MessageFactory  # type: ignore
from botbuilder.schema import (  # type: ignore
    Activity,
    ActionTypes,
    AnimationCard,
    CardAction,
    MediaUrl,
    ThumbnailUrl,
    VideoCard,
)

from .constants import (
    MOOD_OPTIONS,
    MOOD_PROMPT_TEMPLATE,
    OPEN_VIDEO_BUTTON_TITLE,
    WELCOME_CARD_TITLE,
)


def build_video_card(video_url: str) -> Activity:
    """A video card previewing ``video_url`` with an open-externally button."""
    card = VideoCard(
        image=ThumbnailUrl(url=video_url),
        media=[MediaUrl(url=video_url)],
        buttons=[
            CardAction(
                type=ActionTypes.open_url,
                title=OPEN_VIDEO_BUTTON_TITLE,
                value=video_url,
            )
        ],
    )
    return MessageFactory.attachment(CardFactory.video_card(card))


def build_welcome_card(image_url: str) -> Activity:
    card = AnimationCard(title=WELCOME_CARD_TITLE, media=[MediaUrl(url=image_url)])
    return MessageFactory.attachment(CardFactory.animation_card(card))


def mood_prompt_text(display_name: Optional[str] = None) -> str:
    name = (display_name or "").strip()
    return MOOD_PROMPT_TEMPLATE.format(name_part=f", {name}" if name else "")


def build_mood_prompt(display_name: Optional[str] = None) -> Activity:
    """Suggested replies listing the mood options."""
    actions = [
        CardAction(type=ActionTypes.im_back, title=mood, value=mood)
        for mood in MOOD_OPTIONS
    ]
    return MessageFactory.suggested_actions(actions, text=mood_prompt_text(display_name))
