# core_logic/constants.py

"""
Fixed texts and option lists used when composing the bot's replies.
"""

# --- Media suggestion ---
SUGGESTION_ACK_TEXT = "Here's my suggestion based on your mood, enjoy!"
"""Sent right before the video card."""

OPEN_VIDEO_BUTTON_TITLE = "Open in Youtube"

UNRECOGNIZED_TEXT = "I can't understand."
"""Optional reply when no intent was found and the text is not a greeting."""


# --- Onboarding ---
WELCOME_CARD_TITLE = "Welcome to Moody Tunes"

MOOD_OPTIONS = ["Happy", "Depressed", "Angry", "Splendid"]
"""Suggested replies offered after the welcome card."""

MOOD_PROMPT_TEMPLATE = (
    "Hi{name_part}, I am Moody Tunes bot. I can suggest a song depending on your mood.. "
    "Start by choosing a mood:"
)

GREETING_WORDS = frozenset({"hi", "hello"})
"""Normalized (trimmed, lower-cased) texts that trigger onboarding."""


# --- Error notices ---
CLASSIFIER_DOWN_TEXT = "Sorry, I couldn't work out your mood right now. Please try again in a moment."
GENERIC_ERROR_TEXT = "The bot encountered an error or bug."
