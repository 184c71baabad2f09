import io
from types import SimpleNamespace

import pytest

from exam_synth.models.exam_models import GenerationRequest
from exam_synth.models.exam_models import ModelReply
from exam_synth.models.exam_models import ReplySegment
from exam_synth.models.exam_models import SourceDocument


# Fixture factory to create dummy upload files with filename and content
@pytest.fixture
def make_dummy_upload():
    def _make_dummy_upload(filename: str, content: bytes):
        class DummyFile:
            def __init__(self):
                self.filename = filename
                self._content = content
                self.file = io.BytesIO(content)

            async def read(self):
                return self._content

        return DummyFile()

    return _make_dummy_upload


@pytest.fixture
def pdf_mime(monkeypatch):
    """Makes MIME sniffing report every upload as a PDF."""
    monkeypatch.setattr(
        "exam_synth.services.request_builder.magic.from_buffer",
        lambda _bytes, mime=False: "application/pdf",
    )


@pytest.fixture
def sample_tex():
    return "\\documentclass{article}\n\\begin{document}\nQ1. Compute $\\int_0^1 x^2\\,dx$.\n\\end{document}"


@pytest.fixture
def sample_request():
    return GenerationRequest(
        documents=[SourceDocument(filename="midterm.pdf", content=b"%PDF-1.4\n...", mime_type="application/pdf")],
    )


@pytest.fixture
def make_reply():
    def _make_reply(*texts: str, thoughts: tuple[str, ...] = ()) -> ModelReply:
        segments = [ReplySegment(text=t, thought=True) for t in thoughts]
        segments += [ReplySegment(text=t) for t in texts]
        return ModelReply(segments=segments, source="candidate_parts")

    return _make_reply


@pytest.fixture
def fake_genai_client():
    """Builds an object shaped like genai.Client whose generate_content is the given mock."""

    def _fake(generate_content):
        return SimpleNamespace(aio=SimpleNamespace(models=SimpleNamespace(generate_content=generate_content)))

    return _fake
