import base64
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from fastapi import status
from fastapi.testclient import TestClient

# Router under test
from exam_synth.api import routes as routes_module
from exam_synth.core.config import settings
from exam_synth.core.exceptions import GenerationError
from exam_synth.main import app
from exam_synth.models.exam_models import CompilationOutcome
from exam_synth.models.exam_models import ModelReply
from exam_synth.models.exam_models import ReplySegment
from exam_synth.services.compiler import DocumentCompiler

DOC = "\\documentclass{article}\\begin{document}Q1\\end{document}"
PDF_FILE = ("file", ("midterm.pdf", b"%PDF-1.4\n...", "application/pdf"))

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def client(pdf_mime):
    return TestClient(app)


@pytest.fixture()
def fake_model(monkeypatch):
    """Replaces the model client with one returning *text*; returns the generate mock."""

    def _install(text: str | None = None, side_effect=None):
        reply = ModelReply(segments=[ReplySegment(text=text or "")], source="text_accessor")
        generate = AsyncMock(return_value=reply, side_effect=side_effect)
        monkeypatch.setattr(routes_module.pipeline_service, "client_factory", lambda: SimpleNamespace(generate=generate))
        return generate

    return _install


@pytest.fixture()
def fake_compiler(monkeypatch):
    def _install(outcome: CompilationOutcome):
        compiler = SimpleNamespace(compile=AsyncMock(return_value=outcome))
        monkeypatch.setattr(routes_module.pipeline_service, "compiler", compiler)
        return compiler

    return _install


# ---------------------------------------------------------------------------
# /api/process-pdf
# ---------------------------------------------------------------------------


def test_process_pdf_success(client, fake_model, fake_compiler):
    fake_model("```latex\n" + DOC + "\n```\n[[TOPICS: Integration, Eigenvalues]]")
    fake_compiler(CompilationOutcome.success(b"%PDF-1.4 generated"))

    resp = client.post("/api/process-pdf", files=[PDF_FILE])

    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert body["tex"] == DOC
    assert base64.b64decode(body["pdfBase64"]) == b"%PDF-1.4 generated"
    assert body["questions"] == ["Integration", "Eigenvalues"]
    assert body["error"] is None


def test_process_pdf_compile_failure_still_returns_tex(client, fake_model, monkeypatch, tmp_path):
    fake_model(DOC + "[[TOPICS: Limits]]")
    monkeypatch.setattr(
        routes_module.pipeline_service,
        "compiler",
        DocumentCompiler(scratch_dir=tmp_path, command="no-such-latex-binary-for-tests"),
    )

    resp = client.post("/api/process-pdf", files=[PDF_FILE])

    assert resp.status_code == status.HTTP_200_OK
    body = resp.json()
    assert body["tex"] == DOC
    assert body["pdfBase64"] is None
    assert body["questions"] == ["Limits"]
    assert body["error"].startswith("PDF compilation failed")


def test_process_pdf_regeneration_fields_reach_prompt(client, fake_model, fake_compiler):
    generate = fake_model(DOC)
    fake_compiler(CompilationOutcome.failure("PDF compilation failed: x"))
    previous = "p" * settings.max_previous_context_chars + "CUT_HERE"

    resp = client.post(
        "/api/process-pdf",
        files=[PDF_FILE, ("file", ("final.pdf", b"%PDF-1.4\nfinal", "application/pdf"))],
        data={
            "regenerate": "true",
            "previousContext": previous,
            "questions": json.dumps(["Series convergence", "Taylor expansion"]),
        },
    )

    assert resp.status_code == status.HTTP_200_OK
    documents, prompt, _ = generate.call_args.args
    assert [doc.filename for doc in documents] == ["midterm.pdf", "final.pdf"]
    assert "REGEN PROTOCOL (ACTIVE)" in prompt
    assert "p" * settings.max_previous_context_chars in prompt
    assert "CUT_HERE" not in prompt
    assert "[Series convergence, Taylor expansion]" in prompt


def test_process_pdf_malformed_questions_are_ignored(client, fake_model, fake_compiler):
    generate = fake_model(DOC)
    fake_compiler(CompilationOutcome.failure("PDF compilation failed: x"))

    resp = client.post("/api/process-pdf", files=[PDF_FILE], data={"questions": "{broken"})

    assert resp.status_code == status.HTTP_200_OK
    _, prompt, _ = generate.call_args.args
    assert "SOURCE BLUEPRINT" not in prompt


def test_process_pdf_without_files_is_rejected_before_model_call(client, fake_model):
    generate = fake_model(DOC)

    resp = client.post("/api/process-pdf", data={"regenerate": "false"})

    assert resp.status_code == status.HTTP_400_BAD_REQUEST
    assert resp.json() == {"error": "No files uploaded"}
    generate.assert_not_called()


def test_process_pdf_missing_api_key(client, monkeypatch):
    monkeypatch.setattr(settings, "google_genai_api_key", None)
    monkeypatch.setattr(settings, "google_api_key", None)

    resp = client.post("/api/process-pdf", files=[PDF_FILE])

    assert resp.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert resp.json() == {"error": "Missing API Key"}


def test_process_pdf_model_failure(client, fake_model, fake_compiler):
    fake_model(side_effect=GenerationError("Model API error: 503 UNAVAILABLE"))
    compiler = fake_compiler(CompilationOutcome.success(b"%PDF"))

    resp = client.post("/api/process-pdf", files=[PDF_FILE])

    assert resp.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert "Model API error" in resp.json()["error"]
    compiler.compile.assert_not_awaited()


def test_health():
    resp = TestClient(app).get("/health")
    assert resp.status_code == status.HTTP_200_OK
    assert resp.json() == {"status": "ok"}
