"""
Tests for the LUIS mood recognizer: prediction options, mapping of the raw
LUIS result, and the mapping of SDK failures onto ClassificationUnavailable.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import uuid
import pytest
from unittest.mock import AsyncMock, Mock

from azure.cognitiveservices.language.luis.runtime.models import IntentModel, LuisResult
from azure.cognitiveservices.language.luis.runtime.models import Sentiment as LuisSentiment
from botbuilder.ai.luis import LuisRecognizer
from botbuilder.core import RecognizerResult, TurnContext
from botbuilder.schema import Activity, ActivityTypes
from msrest.exceptions import ClientException, ClientRequestError, DeserializationError, HttpOperationError

from core_logic.mood_recognizer import ClassificationUnavailable, LuisMoodRecognizer, MoodRecognizer
from state_models import NONE_INTENT

LUIS_ENDPOINT = "https://westus.api.cognitive.microsoft.com"

LUIS_RESPONSE = {
    "query": "I feel great today",
    "topScoringIntent": {"intent": "PlayMusic", "score": 0.93},
    "intents": [{"intent": "PlayMusic", "score": 0.93}, {"intent": "None", "score": 0.05}],
    "entities": [],
    "sentimentAnalysis": {"label": "positive", "score": 0.97},
}


class _HttpError(HttpOperationError):
    """HttpOperationError carrying only a status code."""

    def __init__(self, status_code):
        self.response = Mock(status_code=status_code)
        self.error = None
        self.message = f"Operation returned an invalid status code {status_code}"
        ClientException.__init__(self, self.message)


def recognizer_result(luis_result, text="I feel great today"):
    result = RecognizerResult(text=text)
    result.properties = {"luisResult": luis_result}
    return result


@pytest.fixture
def sdk_recognizer():
    sdk = Mock()
    sdk.recognize = AsyncMock(return_value=recognizer_result(LUIS_RESPONSE))
    return sdk


@pytest.fixture
def recognizer(sdk_recognizer):
    return LuisMoodRecognizer(
        app_id="app-123",
        endpoint_key="key-456",
        endpoint=LUIS_ENDPOINT + "/",
        timeout=5.0,
        recognizer=sdk_recognizer,
    )


def make_turn_context(text):
    turn_context = Mock(spec=TurnContext)
    turn_context.activity = Activity(type=ActivityTypes.message, text=text)
    turn_context.send_activity = AsyncMock()
    return turn_context


def test_is_a_mood_recognizer(recognizer):
    assert isinstance(recognizer, MoodRecognizer)
    assert recognizer.endpoint == LUIS_ENDPOINT


def test_builds_sdk_recognizer_from_credentials():
    recognizer = LuisMoodRecognizer(
        app_id=str(uuid.uuid4()), endpoint_key=str(uuid.uuid4()), endpoint=LUIS_ENDPOINT,
    )
    assert isinstance(recognizer.recognizer, LuisRecognizer)


def test_rejects_app_id_that_is_not_a_guid():
    with pytest.raises(ValueError):
        LuisMoodRecognizer(app_id="not-a-guid", endpoint_key=str(uuid.uuid4()), endpoint=LUIS_ENDPOINT)


def test_prediction_options():
    recognizer = LuisMoodRecognizer(
        app_id="app", endpoint_key="key", endpoint=LUIS_ENDPOINT,
        timeout=2.5, staging=True, log_queries=False, spell_check_key="bing", recognizer=Mock(),
    )
    options = recognizer.prediction_options()
    assert options.include_all_intents is True
    assert options.staging is True
    assert options.log is False
    assert options.spell_check is True
    assert options.bing_spell_check_subscription_key == "bing"
    assert options.timeout == 2500


@pytest.mark.asyncio
async def test_classify_returns_intent_and_sentiment(recognizer, sdk_recognizer):
    turn_context = make_turn_context("I feel great today")

    result = await recognizer.classify("I feel great today", turn_context=turn_context)

    sdk_recognizer.recognize.assert_awaited_once_with(turn_context)
    assert result.top_intent == "PlayMusic"
    assert result.intent_score == pytest.approx(0.93)
    assert result.sentiment == "positive"
    assert result.sentiment_score == pytest.approx(0.97)
    assert result.query == "I feel great today"
    assert result.has_intent


@pytest.mark.asyncio
async def test_classify_reads_sdk_result_model(recognizer, sdk_recognizer):
    sdk_recognizer.recognize.return_value = recognizer_result(LuisResult(
        query="so sad",
        top_scoring_intent=IntentModel(intent="PlayMusic", score=0.71),
        sentiment_analysis=LuisSentiment(label="negative", score=0.12),
    ))

    result = await recognizer.classify("so sad", turn_context=make_turn_context("so sad"))

    assert result.top_intent == "PlayMusic"
    assert result.intent_score == pytest.approx(0.71)
    assert result.sentiment == "negative"


@pytest.mark.asyncio
async def test_classify_without_turn_uses_detached_context(recognizer, sdk_recognizer):
    await recognizer.classify("hello there")

    (context,), _ = sdk_recognizer.recognize.call_args
    assert isinstance(context, TurnContext)
    assert context.activity.text == "hello there"
    assert context.activity.from_property.id


@pytest.mark.asyncio
async def test_detached_context_discards_outgoing_activities():
    context = LuisMoodRecognizer.detached_context("hello")

    response = await context.send_activity("trace output")

    assert response.id == ""


@pytest.mark.asyncio
async def test_none_intent_is_not_an_intent(recognizer, sdk_recognizer):
    sdk_recognizer.recognize.return_value = recognizer_result({
        "query": "hello",
        "topScoringIntent": {"intent": "None", "score": 0.8},
        "sentimentAnalysis": {"label": "neutral", "score": 0.5},
    })

    result = await recognizer.classify("hello")

    assert result.top_intent == NONE_INTENT
    assert not result.has_intent


@pytest.mark.asyncio
async def test_result_without_raw_prediction_is_unavailable(recognizer, sdk_recognizer):
    empty = RecognizerResult(text="hello")
    empty.properties = {}
    sdk_recognizer.recognize.return_value = empty

    with pytest.raises(ClassificationUnavailable, match="raw prediction"):
        await recognizer.classify("hello")


class TestParsePrediction:

    def test_missing_top_intent_means_none(self):
        result = LuisMoodRecognizer.parse_prediction("hey", {"sentimentAnalysis": {"label": "negative"}})
        assert result.top_intent == NONE_INTENT
        assert result.intent_score == 0.0
        assert result.sentiment == "negative"
        assert result.query == "hey"

    def test_missing_sentiment_means_neutral(self):
        result = LuisMoodRecognizer.parse_prediction("hey", {"topScoringIntent": {"intent": "PlayMusic", "score": 0.6}})
        assert result.sentiment == "neutral"
        assert result.sentiment_score is None

    @pytest.mark.parametrize("payload", [
        ["not", "a", "dict"],
        {"topScoringIntent": "PlayMusic", "sentimentAnalysis": {"label": "positive"}},
        {"topScoringIntent": {"intent": "X", "score": "high"}},
        {"topScoringIntent": {"intent": ["X"], "score": 0.5}},
        {"sentimentAnalysis": ["positive"]},
        {"sentimentAnalysis": {"label": 3}},
        {"sentimentAnalysis": {"label": "positive", "score": {"value": 1}}},
    ])
    def test_malformed_payload_is_unavailable(self, payload):
        with pytest.raises(ClassificationUnavailable):
            LuisMoodRecognizer.parse_prediction("q", payload)


@pytest.mark.asyncio
async def test_malformed_response_is_unavailable_during_classify(recognizer, sdk_recognizer):
    sdk_recognizer.recognize.return_value = recognizer_result({"topScoringIntent": "PlayMusic"})

    with pytest.raises(ClassificationUnavailable, match="topScoringIntent"):
        await recognizer.classify("anything")


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code,expected", [
    (401, "authentication failed"),
    (403, "authentication failed"),
    (429, "rate limit"),
    (500, "HTTP 500"),
])
async def test_http_errors_become_classification_unavailable(recognizer, sdk_recognizer, status_code, expected):
    sdk_recognizer.recognize.side_effect = _HttpError(status_code)

    with pytest.raises(ClassificationUnavailable, match=expected) as exc_info:
        await recognizer.classify("anything")
    assert isinstance(exc_info.value.__cause__, HttpOperationError)


@pytest.mark.asyncio
async def test_request_error_becomes_classification_unavailable(recognizer, sdk_recognizer):
    sdk_recognizer.recognize.side_effect = ClientRequestError("read timed out")

    with pytest.raises(ClassificationUnavailable, match="request failed"):
        await recognizer.classify("anything")


@pytest.mark.asyncio
async def test_undecodable_body_becomes_classification_unavailable(recognizer, sdk_recognizer):
    sdk_recognizer.recognize.side_effect = DeserializationError("Expecting value")

    with pytest.raises(ClassificationUnavailable, match="unusable response"):
        await recognizer.classify("anything")


@pytest.mark.asyncio
async def test_unconfigured_recognizer_never_calls_luis():
    recognizer = LuisMoodRecognizer(app_id=None, endpoint_key=None, endpoint=LUIS_ENDPOINT)

    assert not recognizer.is_configured
    assert recognizer.recognizer is None
    with pytest.raises(ClassificationUnavailable):
        await recognizer.classify("anything")


class TestHealthCheck:

    @pytest.mark.asyncio
    async def test_ok(self, recognizer):
        result = await recognizer.health_check()
        assert result["status"] == "OK"
        assert "latency_ms" in result

    @pytest.mark.asyncio
    async def test_not_configured(self):
        recognizer = LuisMoodRecognizer(app_id="", endpoint_key="", endpoint=LUIS_ENDPOINT)
        assert (await recognizer.health_check())["status"] == "NOT CONFIGURED"

    @pytest.mark.asyncio
    async def test_error(self, recognizer, sdk_recognizer):
        sdk_recognizer.recognize.side_effect = ClientRequestError("refused")
        assert (await recognizer.health_check())["status"] == "ERROR"

    @pytest.mark.asyncio
    async def test_degraded_without_sentiment(self, recognizer, sdk_recognizer):
        sdk_recognizer.recognize.return_value = recognizer_result({"topScoringIntent": {"intent": "None", "score": 0.4}})
        result = await recognizer.health_check()
        assert result["status"] == "DEGRADED_OPERATIONAL"
        assert "sentimentAnalysis" in result["message"]
