import base64

from exam_synth.models.exam_models import CompilationOutcome
from exam_synth.models.exam_models import ExtractedResult
from exam_synth.models.exam_models import PipelineResult
from exam_synth.services.result_assembler import assemble_result
from exam_synth.services.result_assembler import to_response


def test_failed_compilation_keeps_markup():
    extracted = ExtractedResult(markup="\\documentclass{article}", topics=["Limits"], strategy="document_span")
    result = assemble_result(extracted, CompilationOutcome.failure("PDF compilation failed: boom"))
    assert result.markup == "\\documentclass{article}"
    assert result.artifact_bytes is None
    assert result.error == "PDF compilation failed: boom"
    assert result.topics == ["Limits"]


def test_successful_compilation_has_no_error():
    extracted = ExtractedResult(markup="tex")
    result = assemble_result(extracted, CompilationOutcome.success(b"%PDF"))
    assert result.artifact_bytes == b"%PDF"
    assert result.error is None
    assert result.topics == []


def test_response_encodes_pdf_as_base64():
    response = to_response(PipelineResult(markup="tex", artifact_bytes=b"%PDF-1.4", topics=["A", "B"]))
    assert response.model_dump() == {
        "tex": "tex",
        "pdfBase64": base64.b64encode(b"%PDF-1.4").decode(),
        "questions": ["A", "B"],
        "error": None,
    }


def test_response_without_pdf():
    response = to_response(PipelineResult(markup="tex", error="PDF compilation failed: x"))
    assert response.pdfBase64 is None
    assert response.error == "PDF compilation failed: x"
    assert response.tex == "tex"
