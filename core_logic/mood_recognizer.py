"""
Mood recognition through a published LUIS application.

The recognizer wraps botbuilder-ai's ``LuisRecognizer`` with the raw API
results enabled and maps the prediction onto a ClassificationResult: the top
scoring intent plus the sentiment label used to pick a video.
"""
import logging
import time
from abc import ABC, abstractmethod
from typing import Dict, Any, List, Optional

from botbuilder.ai.luis import LuisApplication, LuisPredictionOptions, LuisRecognizer  # type: ignore
from botbuilder.core import BotAdapter, RecognizerResult, TurnContext  # type: ignore
from botbuilder.schema import (  # type: ignore
    Activity,
    ActivityTypes,
    ChannelAccount,
    ConversationAccount,
    ConversationReference,
    ResourceResponse,
)
from msrest.exceptions import ClientException, ClientRequestError, HttpOperationError
from msrest.serialization import Model

from state_models import (
    ClassificationResult,
    MoodyTunesError,
    NONE_INTENT,
    Sentiment,
)

log = logging.getLogger("core_logic.mood_recognizer")

HEALTH_CHECK_UTTERANCE = "hello"
HEALTH_CHECK_CHANNEL = "health-check"


class ClassificationUnavailable(MoodyTunesError):
    """The classification service failed, timed out or answered garbage."""


class MoodRecognizer(ABC):
    """Contract for anything that can classify an utterance."""

    @abstractmethod
    async def classify(self, utterance: str, turn_context: Optional[TurnContext] = None) -> ClassificationResult:
        """
        Returns the top intent and sentiment for ``utterance``.

        ``turn_context`` is the turn the utterance arrived in, when there is one.

        Raises:
            ClassificationUnavailable: the backing service could not answer.
        """


class _DetachedAdapter(BotAdapter):
    """Adapter behind recognizer calls made outside a conversation. Outgoing activities go nowhere."""

    async def send_activities(self, context: TurnContext, activities: List[Activity]) -> List[ResourceResponse]:
        log.debug(f"Dropping {len(activities)} activity(ies) sent outside a conversation.")
        return [ResourceResponse(id="") for _ in activities]

    async def update_activity(self, context: TurnContext, activity: Activity):
        raise NotImplementedError("Activities cannot be updated outside a conversation.")

    async def delete_activity(self, context: TurnContext, reference: ConversationReference):
        raise NotImplementedError("Activities cannot be deleted outside a conversation.")


def _section(value: Any, name: str) -> Dict[str, Any]:
    """A prediction block as a dict. SDK models are flattened, anything else is garbage."""
    if value is None:
        return {}
    if isinstance(value, Model):
        return value.as_dict()
    if isinstance(value, dict):
        return value
    raise ClassificationUnavailable(f"LUIS returned a malformed {name}: {type(value).__name__}.")


def _score(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ClassificationUnavailable(f"LUIS returned a non-numeric {name} score: {value!r}.") from e


class LuisMoodRecognizer(MoodRecognizer):
    """
    Calls a published LUIS application with sentiment analysis enabled.

    When LUIS is not configured no SDK recognizer is built and every call
    raises ClassificationUnavailable.
    """

    def __init__(
        self,
        app_id: Optional[str],
        endpoint_key: Optional[str],
        endpoint: str,
        timeout: float = 10.0,
        staging: bool = False,
        log_queries: bool = True,
        spell_check_key: Optional[str] = None,
        recognizer: Optional[LuisRecognizer] = None,
    ):
        self.app_id = app_id
        self.endpoint_key = endpoint_key
        self.endpoint = endpoint.rstrip('/')
        self.timeout = timeout
        self.staging = staging
        self.log_queries = log_queries
        self.spell_check_key = spell_check_key

        self.recognizer = recognizer
        if self.recognizer is None and self.is_configured:
            # LuisApplication raises ValueError for ids and keys that are not GUIDs.
            self.recognizer = LuisRecognizer(
                LuisApplication(self.app_id, self.endpoint_key, self.endpoint),
                prediction_options=self.prediction_options(),
                include_api_results=True,
            )
        if self.recognizer is None:
            log.warning("LUIS app id or endpoint key is not configured. Classification will fail.")
        else:
            log.info(f"LUIS recognizer initialized. Endpoint: {self.endpoint}, App: {self.app_id}, Staging: {self.staging}")

    @classmethod
    def from_config(cls, config) -> "LuisMoodRecognizer":
        settings = config.settings
        return cls(
            app_id=config.LUIS_APP_ID,
            endpoint_key=config.LUIS_API_KEY,
            endpoint=config.LUIS_ENDPOINT,
            timeout=config.LUIS_TIMEOUT_SECONDS,
            staging=settings.luis_staging,
            log_queries=settings.luis_log_queries,
            spell_check_key=settings.luis_spell_check_key,
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.app_id and self.endpoint_key)

    def prediction_options(self) -> LuisPredictionOptions:
        return LuisPredictionOptions(
            include_all_intents=True,
            log=self.log_queries,
            staging=self.staging,
            spell_check=bool(self.spell_check_key),
            bing_spell_check_subscription_key=self.spell_check_key,
            # milliseconds
            timeout=int(self.timeout * 1000),
            timezone_offset=0,
        )

    @staticmethod
    def detached_context(utterance: str) -> TurnContext:
        """A turn context for classifying text that did not arrive in a conversation."""
        activity = Activity(
            type=ActivityTypes.message,
            text=utterance,
            channel_id=HEALTH_CHECK_CHANNEL,
            from_property=ChannelAccount(id=HEALTH_CHECK_CHANNEL),
            recipient=ChannelAccount(id="moodytunes"),
            conversation=ConversationAccount(id=HEALTH_CHECK_CHANNEL),
        )
        return TurnContext(_DetachedAdapter(), activity)

    async def _recognize(self, turn_context: TurnContext) -> RecognizerResult:
        if self.recognizer is None:
            raise ClassificationUnavailable("LUIS app id or endpoint key is missing.")

        try:
            return await self.recognizer.recognize(turn_context)
        except HttpOperationError as e:
            response = getattr(e, "response", None)
            status_code = getattr(response, "status_code", "unknown")
            log.error(f"LUIS HTTP error ({status_code}): {e}")
            if status_code in (401, 403):
                error_details = f"LUIS authentication failed ({status_code}). Check LUIS_API_KEY."
            elif status_code == 429:
                error_details = "LUIS rate limit exceeded (429)."
            else:
                error_details = f"LUIS returned HTTP {status_code}."
            raise ClassificationUnavailable(error_details) from e
        except ClientRequestError as e:
            log.error(f"LUIS request failed (timeout {self.timeout}s): {e}", exc_info=True)
            raise ClassificationUnavailable(f"LUIS request failed: {e}") from e
        except ClientException as e:
            log.error(f"LUIS client error: {e}", exc_info=True)
            raise ClassificationUnavailable(f"LUIS returned an unusable response: {e}") from e

    @staticmethod
    def raw_prediction(recognizer_result: RecognizerResult) -> Dict[str, Any]:
        """The LUIS API result attached to ``recognizer_result``, as a dict."""
        properties = getattr(recognizer_result, "properties", None) or {}
        if "luisResult" not in properties:
            raise ClassificationUnavailable("LUIS result carries no raw prediction.")
        return _section(properties["luisResult"], "prediction")

    @staticmethod
    def parse_prediction(utterance: str, payload: Any) -> ClassificationResult:
        """
        Map a LUIS v2 prediction onto a ClassificationResult.

        ``payload`` is the SDK's ``LuisResult`` model or its JSON form.
        A missing intent block means no intent; a missing sentiment block
        means neutral. Blocks of the wrong shape raise ClassificationUnavailable.
        """
        prediction = _section(payload, "prediction")

        top = _section(prediction.get("top_scoring_intent", prediction.get("topScoringIntent")), "topScoringIntent")
        intent = top.get("intent") or NONE_INTENT
        if not isinstance(intent, str):
            raise ClassificationUnavailable(f"LUIS returned a malformed intent name: {intent!r}.")
        intent_score = _score(top.get("score"), "intent")

        sentiment_block = _section(
            prediction.get("sentiment_analysis", prediction.get("sentimentAnalysis")), "sentimentAnalysis"
        )
        label = sentiment_block.get("label")
        if not label:
            log.debug("LUIS response has no sentimentAnalysis block, treating as neutral.")
            label = Sentiment.NEUTRAL.value
        elif not isinstance(label, str):
            raise ClassificationUnavailable(f"LUIS returned a malformed sentiment label: {label!r}.")

        query = prediction.get("query")
        return ClassificationResult(
            query=query if isinstance(query, str) and query else utterance,
            top_intent=intent,
            intent_score=intent_score if intent_score is not None else 0.0,
            sentiment=label,
            sentiment_score=_score(sentiment_block.get("score"), "sentiment"),
        )

    async def classify(self, utterance: str, turn_context: Optional[TurnContext] = None) -> ClassificationResult:
        start_time = time.monotonic()
        context = turn_context if turn_context is not None else self.detached_context(utterance)
        recognizer_result = await self._recognize(context)
        result = self.parse_prediction(utterance, self.raw_prediction(recognizer_result))
        elapsed_ms = int((time.monotonic() - start_time) * 1000)
        log.info(
            f"LUIS classified utterance in {elapsed_ms}ms: intent={result.top_intent} "
            f"({result.intent_score:.2f}), sentiment={result.sentiment}",
            extra={"event_type": "utterance_classified", "latency_ms": elapsed_ms},
        )
        return result

    async def health_check(self) -> Dict[str, Any]:
        """Classifies a sample utterance and reports whether LUIS answered."""
        if self.recognizer is None:
            return {"status": "NOT CONFIGURED", "message": "LUIS_APP_ID / LUIS_API_KEY not set."}

        start_time = time.time()
        try:
            recognizer_result = await self._recognize(self.detached_context(HEALTH_CHECK_UTTERANCE))
            payload = self.raw_prediction(recognizer_result)
        except ClassificationUnavailable as e:
            return {"status": "ERROR", "message": str(e)}
        latency_ms = int((time.time() - start_time) * 1000)

        if not (payload.get("top_scoring_intent") or payload.get("topScoringIntent")):
            return {
                "status": "DEGRADED_OPERATIONAL",
                "message": "LUIS answered without topScoringIntent; check that verbose predictions are enabled.",
                "latency_ms": latency_ms,
            }
        if not (payload.get("sentiment_analysis") or payload.get("sentimentAnalysis")):
            return {
                "status": "DEGRADED_OPERATIONAL",
                "message": "LUIS answered without sentimentAnalysis; enable sentiment analysis on the app.",
                "latency_ms": latency_ms,
            }
        return {"status": "OK", "message": "LUIS prediction endpoint reachable.", "latency_ms": latency_ms}
