"""
Read-only table of videos keyed by sentiment label.
"""
import json
import logging
import random
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from state_models import MoodyTunesError

log = logging.getLogger("core_logic.media_library")


class NoMediaForSentiment(MoodyTunesError):
    """The library has no videos for a sentiment the classifier returned."""

    def __init__(self, sentiment: str):
        super().__init__(f"No media configured for sentiment '{sentiment}'.")
        self.sentiment = sentiment


class MediaLibrary:
    """
    Maps a sentiment label to an ordered list of video URLs.

    Labels are matched exactly first, then case-insensitively, so a library
    written with "Happy" still answers for "happy".
    """

    def __init__(self, videos: Mapping[str, Sequence[str]]):
        self._videos: Dict[str, List[str]] = {
            str(label): [str(url) for url in urls] for label, urls in videos.items()
        }
        self._folded = {label.casefold(): label for label in self._videos}
        empty = [label for label, urls in self._videos.items() if not urls]
        if empty:
            log.warning(f"Media library has empty entries for: {empty}")

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "MediaLibrary":
        """
        Load a library from a JSON object of ``{"label": ["url", ...]}``.

        Raises:
            ValueError: the file is not a JSON object of string lists.
        """
        path = Path(path)
        log.info(f"Loading media library from {path}")
        with path.open(encoding="utf-8") as handle:
            data = json.load(handle)

        if not isinstance(data, dict):
            raise ValueError(f"Media library {path} must contain a JSON object, got {type(data).__name__}.")
        for label, urls in data.items():
            if not isinstance(urls, list) or not all(isinstance(url, str) for url in urls):
                raise ValueError(f"Media library entry '{label}' in {path} must be a list of URL strings.")

        library = cls(data)
        log.info(f"Media library loaded: {library.summary()}")
        return library

    @property
    def labels(self) -> List[str]:
        return list(self._videos)

    def videos_for(self, sentiment: str) -> List[str]:
        label = sentiment if sentiment in self._videos else self._folded.get(str(sentiment).casefold())
        if label is None:
            return []
        return list(self._videos[label])

    def select(self, sentiment: str, rng: Optional[random.Random] = None) -> str:
        """
        Pick one video uniformly at random for ``sentiment``.

        Raises:
            NoMediaForSentiment: the sentiment is unknown or its list is empty.
        """
        candidates = self.videos_for(sentiment)
        if not candidates:
            raise NoMediaForSentiment(sentiment)
        rng = rng or random.Random()
        return candidates[rng.randrange(len(candidates))]

    def missing_labels(self, expected: Iterable[str]) -> List[str]:
        return [label for label in expected if not self.videos_for(label)]

    def summary(self) -> str:
        return ", ".join(f"{label}={len(urls)}" for label, urls in self._videos.items()) or "empty"

    def __contains__(self, sentiment: object) -> bool:
        return isinstance(sentiment, str) and bool(self.videos_for(sentiment))

    def __len__(self) -> int:
        return len(self._videos)
