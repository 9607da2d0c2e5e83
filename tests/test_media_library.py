import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import json
import random
import unittest
from unittest.mock import Mock

from config import DEFAULT_MEDIA_LIBRARY_PATH
from core_logic.media_library import MediaLibrary, NoMediaForSentiment
from state_models import Sentiment


class TestMediaLibrary(unittest.TestCase):

    def setUp(self):
        self.library = MediaLibrary({
            "positive": ["p1", "p2", "p3"],
            "Happy": ["h1"],
            "negative": [],
        })

    def test_select_returns_member_of_list(self):
        rng = random.Random(3)
        for _ in range(50):
            self.assertIn(self.library.select("positive", rng), ["p1", "p2", "p3"])

    def test_select_uses_injected_random_source(self):
        rng = Mock()
        rng.randrange.return_value = 2
        self.assertEqual(self.library.select("positive", rng), "p3")
        rng.randrange.assert_called_once_with(3)

    def test_select_is_reproducible_for_a_seed(self):
        first = [self.library.select("positive", random.Random(11)) for _ in range(5)]
        second = [self.library.select("positive", random.Random(11)) for _ in range(5)]
        self.assertEqual(first, second)

    def test_select_unknown_sentiment_raises(self):
        with self.assertRaises(NoMediaForSentiment) as ctx:
            self.library.select("melancholy")
        self.assertEqual(ctx.exception.sentiment, "melancholy")

    def test_select_empty_list_raises(self):
        with self.assertRaises(NoMediaForSentiment):
            self.library.select("negative")

    def test_lookup_is_case_insensitive_fallback(self):
        self.assertEqual(self.library.videos_for("happy"), ["h1"])
        self.assertEqual(self.library.videos_for("POSITIVE"), ["p1", "p2", "p3"])
        self.assertIn("HAPPY", self.library)
        self.assertNotIn("negative", self.library)

    def test_videos_for_returns_copy(self):
        self.library.videos_for("positive").append("injected")
        self.assertEqual(len(self.library.videos_for("positive")), 3)

    def test_missing_labels(self):
        self.assertEqual(self.library.missing_labels(["positive", "neutral", "negative"]), ["neutral", "negative"])

    def test_summary_and_len(self):
        self.assertEqual(len(self.library), 3)
        self.assertEqual(self.library.summary(), "positive=3, Happy=1, negative=0")
        self.assertEqual(MediaLibrary({}).summary(), "empty")


def test_from_file_loads_json(tmp_path):
    path = tmp_path / "videos.json"
    path.write_text(json.dumps({"positive": ["a"], "negative": ["b", "c"]}), encoding="utf-8")

    library = MediaLibrary.from_file(path)

    assert library.labels == ["positive", "negative"]
    assert library.videos_for("negative") == ["b", "c"]


def test_from_file_rejects_non_object(tmp_path):
    path = tmp_path / "videos.json"
    path.write_text(json.dumps(["a", "b"]), encoding="utf-8")

    try:
        MediaLibrary.from_file(path)
    except ValueError as e:
        assert "JSON object" in str(e)
    else:
        raise AssertionError("expected ValueError")


def test_from_file_rejects_non_string_urls(tmp_path):
    path = tmp_path / "videos.json"
    path.write_text(json.dumps({"positive": [1, 2]}), encoding="utf-8")

    try:
        MediaLibrary.from_file(path)
    except ValueError as e:
        assert "positive" in str(e)
    else:
        raise AssertionError("expected ValueError")


def test_bundled_library_covers_every_sentiment():
    library = MediaLibrary.from_file(DEFAULT_MEDIA_LIBRARY_PATH)
    assert library.missing_labels(s.value for s in Sentiment) == []
    for label in library.labels:
        assert all(url.startswith("https://") for url in library.videos_for(label))
