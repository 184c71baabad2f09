"""Literal anchors shared by the prompt and the reply extraction."""

DOCUMENT_OPEN_MARKER = "\\documentclass"
DOCUMENT_CLOSE_MARKER = "\\end{document}"

# Footer label the model is asked to emit; the legacy label is still accepted
TOPICS_SENTINEL_LABEL = "TOPICS"
LEGACY_TOPICS_SENTINEL_LABEL = "QUESTION_TYPES"
