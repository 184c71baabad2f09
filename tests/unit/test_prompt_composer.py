import jinja2
import pytest

from exam_synth.core.config import settings
from exam_synth.core.exceptions import ConfigurationError
from exam_synth.models.exam_models import GenerationRequest
from exam_synth.models.exam_models import SourceDocument
from exam_synth.services import prompt_composer
from exam_synth.services.prompt_composer import compose_prompt
from exam_synth.services.request_builder import truncate_previous_context


def _request(**kwargs) -> GenerationRequest:
    docs = [SourceDocument(filename="a.pdf", content=b"%PDF")]
    return GenerationRequest(documents=docs, **kwargs)


def test_fresh_request_has_header_and_contract_only():
    prompt = compose_prompt(_request())
    assert prompt.startswith("ROLE: Elite Professor.")
    assert "NO DUPLICATES" in prompt
    assert "SINGLE DOCUMENT" in prompt
    assert "REGEN PROTOCOL" not in prompt
    assert "SOURCE BLUEPRINT" not in prompt
    assert "Start: \\documentclass" in prompt
    assert "End: \\end{document}" in prompt
    assert "[[TOPICS: Type 1, Type 2, ...]]" in prompt


def test_output_contract_is_last_section():
    prompt = compose_prompt(_request(is_regeneration=True, previous_artifact_text="old", topics=["Series"]))
    assert prompt.rstrip().endswith("[[TOPICS: Type 1, Type 2, ...]]")
    assert prompt.index("REGEN PROTOCOL") < prompt.index("SOURCE BLUEPRINT") < prompt.index("OUTPUT FORMAT")


def test_regeneration_block_embeds_previous_attempt():
    previous = "\\documentclass{article}\\begin{document}Old question\\end{document}"
    prompt = compose_prompt(_request(is_regeneration=True, previous_artifact_text=previous))
    assert "REGEN PROTOCOL (ACTIVE)" in prompt
    assert "DO NOT reuse" in prompt
    assert "```latex\n" + previous + "\n```" in prompt


def test_regeneration_without_previous_text_omits_attempt():
    prompt = compose_prompt(_request(is_regeneration=True))
    assert "REGEN PROTOCOL (ACTIVE)" in prompt
    assert "Previous Attempt" not in prompt


def test_previous_text_ignored_when_not_regenerating():
    prompt = compose_prompt(_request(is_regeneration=False, previous_artifact_text="SHOULD_NOT_APPEAR"))
    assert "SHOULD_NOT_APPEAR" not in prompt


def test_blueprint_lists_every_topic():
    prompt = compose_prompt(_request(topics=["Integration by parts", "Eigenvalues"]))
    assert "SOURCE BLUEPRINT (MANDATORY)" in prompt
    assert "[Integration by parts, Eigenvalues]" in prompt


def test_document_count_in_header():
    docs = [SourceDocument(filename=f"{i}.pdf", content=b"%PDF") for i in range(3)]
    prompt = compose_prompt(GenerationRequest(documents=docs))
    assert "(3 source files)" in prompt


def test_truncated_previous_context_is_embedded_at_cap_length():
    previous = "x" * settings.max_previous_context_chars + "OVERFLOW"
    truncated = truncate_previous_context(previous)
    prompt = compose_prompt(_request(is_regeneration=True, previous_artifact_text=truncated))
    assert len(truncated) == settings.max_previous_context_chars
    assert "x" * settings.max_previous_context_chars in prompt
    assert "OVERFLOW" not in prompt


def test_template_braces_in_previous_text_are_not_evaluated():
    previous = "{{ 7 * 7 }} {% if x %}"
    prompt = compose_prompt(_request(is_regeneration=True, previous_artifact_text=previous))
    assert previous in prompt
    assert "49" not in prompt


def test_missing_template_raises_configuration_error(monkeypatch, tmp_path):
    monkeypatch.setattr(prompt_composer, "env", jinja2.Environment(loader=jinja2.FileSystemLoader(tmp_path)))
    with pytest.raises(ConfigurationError) as exc:
        compose_prompt(_request())
    assert "persona_header.jinja2" in str(exc.value)
