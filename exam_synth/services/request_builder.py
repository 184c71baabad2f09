"""Turns the raw multipart form of a /process-pdf call into a `GenerationRequest`.

Uploads are read and validated (count, size, sniffed MIME type) before anything
is sent to the model, the previous exam markup is truncated to the configured
cap, and the optional JSON topic list is parsed leniently: a malformed list is
logged and ignored rather than rejected.
"""

import asyncio
import json
import logging

import magic
from fastapi import UploadFile

from exam_synth.core.config import settings
from exam_synth.core.exceptions import ValidationError
from exam_synth.core.validation import ALLOWED_MIME_TYPES
from exam_synth.core.validation import MAX_FILE_SIZE
from exam_synth.core.validation import MAX_FILES
from exam_synth.core.validation import MAX_TOTAL_SIZE
from exam_synth.core.validation import TRUTHY_FORM_VALUES
from exam_synth.models.exam_models import GenerationRequest
from exam_synth.models.exam_models import SourceDocument

__all__ = [
    "build_generation_request",
    "parse_regenerate_flag",
    "parse_topics",
    "truncate_previous_context",
]

logger = logging.getLogger(__name__)


def parse_regenerate_flag(value: str | None) -> bool:
    return value is not None and value.strip().lower() in TRUTHY_FORM_VALUES


def truncate_previous_context(text: str | None, limit: int | None = None) -> str | None:
    """Cuts the previous exam markup to at most *limit* characters (defaults to the configured cap)."""
    if not text:
        return None
    cap = settings.max_previous_context_chars if limit is None else limit
    return text[:cap]


def parse_topics(raw: str | None, request_id: str = "-") -> list[str] | None:
    """Parses a JSON array of topic names.

    Returns the trimmed, de-duplicated topics in first-seen order, or None when the
    field is missing, malformed or yields no usable entry.
    """
    if raw is None or not raw.strip():
        return None
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("[%s] Ignoring malformed topic list: %s", request_id, e)
        return None
    if not isinstance(data, list):
        logger.warning("[%s] Ignoring topic list that is not a JSON array (got %s)", request_id, type(data).__name__)
        return None

    topics: list[str] = []
    for item in data:
        if not isinstance(item, str):
            logger.warning("[%s] Skipping non-string topic entry: %r", request_id, item)
            continue
        topic = item.strip()
        if topic and topic not in topics:
            topics.append(topic)
    return topics or None


async def _read_single_upload(f_obj: UploadFile, request_id: str) -> SourceDocument:
    filename = f_obj.filename or "unknown_file"
    try:
        contents = await f_obj.read()
    except Exception as read_err:
        logger.error("[%s] Failed to read upload %s: %s", request_id, filename, read_err, exc_info=True)
        raise ValidationError(f"Could not read '{filename}'.") from read_err

    size = len(contents)
    if size == 0:
        logger.warning("[%s] Rejected empty file: %s", request_id, filename)
        raise ValidationError(f"File '{filename}' is empty.")
    if size > MAX_FILE_SIZE:
        logger.warning("[%s] Rejected file exceeding size limit: %s (%d bytes)", request_id, filename, size)
        raise ValidationError(
            f"File '{filename}' is too large ({size // (1024 * 1024)}MB). Limit per file: {MAX_FILE_SIZE // (1024 * 1024)}MB",
            status_code=413,
        )

    mime = await asyncio.to_thread(magic.from_buffer, contents, mime=True)
    if mime not in ALLOWED_MIME_TYPES:
        logger.warning("[%s] Rejected file with unsupported content type: %s (%s)", request_id, filename, mime)
        raise ValidationError(f"Unsupported content type for '{filename}': {mime}. Allowed: {', '.join(sorted(ALLOWED_MIME_TYPES))}")

    logger.debug("[%s] Upload accepted: %s (%d bytes, MIME: %s)", request_id, filename, size, mime)
    return SourceDocument(filename=filename, content=contents, mime_type=mime)


async def build_generation_request(
    files: list[UploadFile] | None,
    regenerate: str | None,
    previous_context: str | None,
    questions: str | None,
    request_id: str,
) -> GenerationRequest:
    """Validates the form fields and returns the request value the pipeline runs on.

    Raises:
        ValidationError: no documents were uploaded, or an upload breaks a limit.
    """
    uploads = [f for f in files or [] if f is not None]
    if not uploads:
        logger.warning("[%s] Request rejected: no files uploaded", request_id)
        raise ValidationError("No files uploaded")
    if len(uploads) > MAX_FILES:
        logger.warning("[%s] Upload rejected: too many files (%d > %d)", request_id, len(uploads), MAX_FILES)
        raise ValidationError(f"At most {MAX_FILES} files can be processed at once.", status_code=413)

    documents = await asyncio.gather(*[_read_single_upload(f, request_id) for f in uploads])
    total_size = sum(len(doc.content) for doc in documents)
    if total_size > MAX_TOTAL_SIZE:
        logger.warning("[%s] Total upload size exceeds limit: %d bytes", request_id, total_size)
        raise ValidationError(
            f"Total upload size ({total_size // (1024 * 1024)}MB) exceeds the {MAX_TOTAL_SIZE // (1024 * 1024)}MB limit.",
            status_code=413,
        )

    is_regeneration = parse_regenerate_flag(regenerate)
    previous_text = truncate_previous_context(previous_context)
    if previous_text is not None and not is_regeneration:
        logger.info("[%s] Ignoring previous exam markup on a non-regeneration request", request_id)
        previous_text = None
    elif previous_context and previous_text is not None and len(previous_context) > len(previous_text):
        logger.info("[%s] Previous exam markup truncated from %d to %d chars", request_id, len(previous_context), len(previous_text))

    topics = parse_topics(questions, request_id)

    logger.info(
        "[%s] Request validated: %d document(s), regeneration=%s, previous context=%s, topics=%d",
        request_id,
        len(documents),
        is_regeneration,
        previous_text is not None,
        len(topics or []),
    )
    return GenerationRequest(
        documents=list(documents),
        is_regeneration=is_regeneration,
        previous_artifact_text=previous_text,
        topics=topics,
    )
