import logging
import time
from collections.abc import Callable
from typing import Any

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from tenacity import RetryCallState
from tenacity import retry
from tenacity import stop_after_attempt
from tenacity import wait_exponential

from exam_synth.core.config import settings
from exam_synth.core.exceptions import ConfigurationError
from exam_synth.core.exceptions import GenerationError
from exam_synth.models.exam_models import ModelReply
from exam_synth.models.exam_models import ReplySegment
from exam_synth.models.exam_models import SourceDocument

# Configure module logger
logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}
THOUGHT_PREVIEW_CHARS = 100


# ---------------------------------------------------------------
# Reply normalization
# ---------------------------------------------------------------
# The SDK reply is read through a list of strategies, each returning the
# segments it found or None. The first strategy with a result wins.


def _read_text_accessor(holder: Any) -> str | None:
    accessor = getattr(holder, "text", None)
    text = accessor() if callable(accessor) else accessor
    return text if isinstance(text, str) and text else None


def _segments_from_text_accessor(raw: Any) -> list[ReplySegment] | None:
    text = _read_text_accessor(raw)
    return [ReplySegment(text=text)] if text is not None else None


def _segments_from_nested_response(raw: Any) -> list[ReplySegment] | None:
    response = getattr(raw, "response", None)
    if response is None:
        return None
    text = _read_text_accessor(response)
    return [ReplySegment(text=text)] if text is not None else None


def _segments_from_candidate_parts(raw: Any) -> list[ReplySegment] | None:
    candidates = getattr(raw, "candidates", None) or []
    if not candidates:
        return None
    content = getattr(candidates[0], "content", None)
    parts = getattr(content, "parts", None) or []
    segments = [
        ReplySegment(text=part.text, thought=bool(getattr(part, "thought", False)))
        for part in parts
        if isinstance(getattr(part, "text", None), str)
    ]
    return segments or None


REPLY_STRATEGIES: list[tuple[str, Callable[[Any], list[ReplySegment] | None]]] = [
    ("text_accessor", _segments_from_text_accessor),
    ("nested_response", _segments_from_nested_response),
    ("candidate_parts", _segments_from_candidate_parts),
]


def normalize_reply(raw: Any, request_id: str = "-") -> ModelReply:
    """Turns whatever the SDK returned into a `ModelReply`. Never raises on an unexpected shape."""
    for name, strategy in REPLY_STRATEGIES:
        try:
            segments = strategy(raw)
        except Exception as e:
            logger.debug("[%s] Reply strategy '%s' did not apply: %s", request_id, name, e)
            continue
        if segments:
            logger.debug("[%s] Reply read via '%s' (%d segment(s))", request_id, name, len(segments))
            return ModelReply(segments=segments, source=name)

    logger.warning("[%s] Unrecognized reply shape, falling back to its string representation", request_id)
    fallback = "" if raw is None else str(raw)
    return ModelReply(segments=[ReplySegment(text=fallback)] if fallback else [], source="repr")


def _log_thoughts(raw: Any, request_id: str) -> None:
    try:
        segments = _segments_from_candidate_parts(raw) or []
    except Exception:
        segments = []
    thoughts = [s for s in segments if s.thought]
    if not thoughts:
        logger.debug("[%s] Thoughts generated: NO", request_id)
        return
    logger.info(
        "[%s] Thoughts generated: YES (%d part(s)), preview: %r",
        request_id,
        len(thoughts),
        thoughts[0].text[:THOUGHT_PREVIEW_CHARS],
    )


# ---------------------------------------------------------------
# Helper predicate for tenacity retry
# ---------------------------------------------------------------


def _should_retry_generation(retry_state: RetryCallState) -> bool:
    """Determines if a retry should occur based on the exception in RetryCallState."""
    if not retry_state.outcome:
        return False

    exc = retry_state.outcome.exception()
    if not exc:
        return False

    # Unwrap our GenerationError to get to the original SDK / transport error
    actual_exception = exc.__cause__ if isinstance(exc, GenerationError) and exc.__cause__ else exc

    if isinstance(actual_exception, httpx.TransportError):
        logger.debug("Transport error %s detected. Retrying...", type(actual_exception).__name__)
        return True

    status = getattr(actual_exception, "code", None) or getattr(actual_exception, "status_code", None)
    if status in RETRYABLE_STATUS_CODES:
        logger.debug("Retryable API error status %s detected. Retrying...", status)
        return True
    return False


# ---------------------------------------------------------------
# Gemini client
# ---------------------------------------------------------------


class GenerativeClient:
    """Sends the source documents and the composed prompt to the model in one call."""

    def __init__(self, api_key: str, client: Any | None = None):
        self.model_id = settings.model_id
        self._client = client or genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(settings.llm_timeout_seconds * 1000)),
        )

    @classmethod
    def from_settings(cls) -> "GenerativeClient":
        """Creates a client from the configured API key.

        Raises:
            ConfigurationError: neither GOOGLE_GENAI_API_KEY nor GOOGLE_API_KEY is set.
        """
        api_key = settings.genai_api_key
        if not api_key:
            logger.error("Missing API Key: set GOOGLE_GENAI_API_KEY or GOOGLE_API_KEY")
            raise ConfigurationError("Missing API Key")
        return cls(api_key=api_key)

    @staticmethod
    def build_contents(documents: list[SourceDocument], prompt: str) -> list[types.Content]:
        parts = [types.Part.from_bytes(data=doc.content, mime_type=doc.mime_type) for doc in documents]
        parts.append(types.Part.from_text(text=prompt))
        return [types.Content(role="user", parts=parts)]

    @staticmethod
    def build_config() -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=settings.temperature,
            thinking_config=types.ThinkingConfig(
                include_thoughts=settings.include_thoughts,
                thinking_level=settings.thinking_level,
            ),
        )

    @retry(
        wait=wait_exponential(multiplier=1, min=2, max=10),
        stop=stop_after_attempt(settings.llm_max_attempts),
        retry=_should_retry_generation,
        reraise=True,
    )  # type: ignore
    async def generate(self, documents: list[SourceDocument], prompt: str, request_id: str) -> ModelReply:
        """Runs the model call and returns the normalized reply.

        Raises:
            GenerationError: the call itself failed (network, auth, quota, ...).
        """
        logger.info("[%s] Sending %d document(s) to model %s", request_id, len(documents), self.model_id)
        start = time.monotonic()
        try:
            raw = await self._client.aio.models.generate_content(
                model=self.model_id,
                contents=self.build_contents(documents, prompt),
                config=self.build_config(),
            )
        except genai_errors.APIError as e:
            logger.error("[%s] Model API error: %s", request_id, str(e), exc_info=True)
            raise GenerationError(f"Model API error: {str(e)}") from e
        except Exception as e:
            logger.exception("[%s] Unexpected error in model call", request_id)
            raise GenerationError(f"Unexpected error in model call: {str(e)}") from e

        logger.info("[%s] Model response received (%.2fs)", request_id, time.monotonic() - start)
        _log_thoughts(raw, request_id)
        reply = normalize_reply(raw, request_id)
        logger.info("[%s] Raw length: %d chars", request_id, len(reply.visible_text()))
        return reply
