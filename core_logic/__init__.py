"""Core logic package: classification, media selection and reply cards."""

from .mood_recognizer import LuisMoodRecognizer, MoodRecognizer, ClassificationUnavailable
from .media_library import MediaLibrary, NoMediaForSentiment
from .cards import build_video_card, build_welcome_card, build_mood_prompt

__all__ = [
    'LuisMoodRecognizer',
    'MoodRecognizer',
    'ClassificationUnavailable',
    'MediaLibrary',
    'NoMediaForSentiment',
    'build_video_card',
    'build_welcome_card',
    'build_mood_prompt',
]
