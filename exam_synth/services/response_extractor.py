"""Recovers LaTeX markup and the detected topic list from a free-form model reply.

Every step is total: a reply without any recognizable structure still yields
its trimmed text as markup and an empty topic list. The extraction is
idempotent on markup, so feeding the extracted markup back in returns it
unchanged.

Order of operations:
1. drop reasoning segments,
2. pull out (and remove) every ``[[TOPICS: ...]]`` footer,
3. pick the markup: fenced block, then ``\\documentclass``..``\\end{document}`` span,
   then the whole text,
4. trim anything before the first open marker and after the last close marker.
"""

import logging
import re

from exam_synth.core.markers import DOCUMENT_CLOSE_MARKER
from exam_synth.core.markers import DOCUMENT_OPEN_MARKER
from exam_synth.core.markers import LEGACY_TOPICS_SENTINEL_LABEL
from exam_synth.core.markers import TOPICS_SENTINEL_LABEL
from exam_synth.models.exam_models import ExtractedResult
from exam_synth.models.exam_models import ExtractionStrategy
from exam_synth.models.exam_models import ModelReply

__all__ = [
    "extract_reply",
    "extract_text",
    "extract_topics",
    "repair_boundaries",
]

logger = logging.getLogger(__name__)

SENTINEL_RE = re.compile(
    r"\[\[\s*(?:%s|%s)\s*:([\s\S]*?)\]\]" % (TOPICS_SENTINEL_LABEL, LEGACY_TOPICS_SENTINEL_LABEL),
    re.IGNORECASE,
)
FENCED_BLOCK_RE = re.compile(r"```[ \t]*(?:latex|tex)?[ \t]*\n?([\s\S]*?)```", re.IGNORECASE)
# Greedy so the span runs to the last close marker, matching the boundary repair
DOCUMENT_SPAN_RE = re.compile(re.escape(DOCUMENT_OPEN_MARKER) + r"[\s\S]*" + re.escape(DOCUMENT_CLOSE_MARKER))


def extract_topics(text: str) -> tuple[list[str], str]:
    """Returns (topics, text without any sentinel block).

    Topics are comma separated, trimmed and de-duplicated in first-seen order.
    """
    topics: list[str] = []
    # Removing a block can join its neighbours into a new one; repeat until none is left
    while True:
        for match in SENTINEL_RE.finditer(text):
            for item in match.group(1).split(","):
                topic = item.strip()
                if topic and topic not in topics:
                    topics.append(topic)
        text, removed = SENTINEL_RE.subn("", text)
        if not removed:
            return topics, text


def _select_markup(text: str) -> tuple[str, ExtractionStrategy]:
    fenced = FENCED_BLOCK_RE.search(text)
    if fenced:
        return fenced.group(1).strip(), "fenced_block"
    span = DOCUMENT_SPAN_RE.search(text)
    if span:
        return span.group(0).strip(), "document_span"
    return text.strip(), "raw_text"


def repair_boundaries(markup: str) -> str:
    """Drops chatter before the first open marker and after the last close marker."""
    if not markup.startswith(DOCUMENT_OPEN_MARKER):
        start = markup.find(DOCUMENT_OPEN_MARKER)
        if start != -1:
            markup = markup[start:]
    if not markup.endswith(DOCUMENT_CLOSE_MARKER):
        end = markup.rfind(DOCUMENT_CLOSE_MARKER)
        if end != -1:
            markup = markup[: end + len(DOCUMENT_CLOSE_MARKER)]
    return markup.strip()


def extract_text(text: str, request_id: str = "-") -> ExtractedResult:
    """Runs topic, markup and boundary extraction over already-filtered reply text."""
    topics, remaining = extract_topics(text or "")
    if topics:
        logger.info("[%s] Detected topics: [%d items]", request_id, len(topics))
    else:
        logger.info("[%s] No topic footer found.", request_id)

    markup, strategy = _select_markup(remaining)
    markup = repair_boundaries(markup)

    degraded = not (markup.startswith(DOCUMENT_OPEN_MARKER) and markup.endswith(DOCUMENT_CLOSE_MARKER))
    if strategy == "raw_text":
        logger.warning("[%s] Strategy: raw text fallback (risk of formatting issues)", request_id)
    else:
        logger.info("[%s] Strategy: %s", request_id, strategy)
    if degraded:
        logger.warning("[%s] Extraction degraded: no clean document boundary in %d chars", request_id, len(markup))

    return ExtractedResult(markup=markup, topics=topics, strategy=strategy, degraded=degraded)


def extract_reply(reply: ModelReply, request_id: str = "-") -> ExtractedResult:
    """Filters reasoning segments out of *reply* and extracts markup and topics from the rest."""
    dropped = len(reply.thought_segments())
    if dropped:
        logger.debug("[%s] Discarding %d reasoning segment(s)", request_id, dropped)
    return extract_text(reply.visible_text(), request_id)
