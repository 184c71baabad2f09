"""Builds the instruction text sent to the model alongside the source documents.

The prompt is assembled from independent Jinja2 fragments. The header and the
output contract are always present; the regeneration block and the blueprint
block are added only when the request carries the matching data, so every
generation mode shares the same base wording.
"""

import logging
import pathlib
from typing import Any

import jinja2

from exam_synth.core.exceptions import ConfigurationError
from exam_synth.core.markers import DOCUMENT_CLOSE_MARKER
from exam_synth.core.markers import DOCUMENT_OPEN_MARKER
from exam_synth.core.markers import TOPICS_SENTINEL_LABEL
from exam_synth.models.exam_models import GenerationRequest

logger = logging.getLogger(__name__)

PROMPT_DIR = pathlib.Path(__file__).parent / "prompt_templates"

HEADER_TEMPLATE = "persona_header.jinja2"
REGENERATION_TEMPLATE = "regeneration_block.jinja2"
BLUEPRINT_TEMPLATE = "blueprint_block.jinja2"
OUTPUT_CONTRACT_TEMPLATE = "output_contract.jinja2"

env = jinja2.Environment(
    loader=jinja2.FileSystemLoader(PROMPT_DIR),
    undefined=jinja2.StrictUndefined,
)


def _select_fragments(request: GenerationRequest) -> list[tuple[str, dict[str, Any]]]:
    """Returns (template name, render context) pairs for the sections this request needs."""
    fragments: list[tuple[str, dict[str, Any]]] = [
        (HEADER_TEMPLATE, {"document_count": len(request.documents)}),
    ]
    if request.is_regeneration:
        fragments.append((REGENERATION_TEMPLATE, {"previous_attempt": request.previous_artifact_text or ""}))
    if request.topics:
        fragments.append((BLUEPRINT_TEMPLATE, {"topics": request.topics}))
    fragments.append(
        (
            OUTPUT_CONTRACT_TEMPLATE,
            {
                "open_marker": DOCUMENT_OPEN_MARKER,
                "close_marker": DOCUMENT_CLOSE_MARKER,
                "sentinel_label": TOPICS_SENTINEL_LABEL,
            },
        )
    )
    return fragments


def compose_prompt(request: GenerationRequest, request_id: str = "-") -> str:
    """Renders and joins the prompt fragments selected for *request*.

    Raises:
        ConfigurationError: a fragment template is missing or fails to render.
    """
    rendered: list[str] = []
    for template_name, context in _select_fragments(request):
        try:
            template = env.get_template(template_name)
            rendered.append(template.render(**context).strip())
        except jinja2.TemplateNotFound:
            logger.error("[%s] Prompt template not found: %s", request_id, template_name)
            raise ConfigurationError(f"Internal configuration error: Template '{template_name}' not found.") from None
        except jinja2.TemplateError as e:
            logger.exception("[%s] Failed to render prompt template %s", request_id, template_name)
            raise ConfigurationError(f"Internal configuration error: Template '{template_name}' failed to render.") from e

    prompt = "\n\n".join(rendered)
    logger.debug("[%s] Prompt composed from %d fragment(s), %d chars", request_id, len(rendered), len(prompt))
    return prompt
