import base64

from exam_synth.models.exam_models import CompilationOutcome
from exam_synth.models.exam_models import ExtractedResult
from exam_synth.models.exam_models import PipelineResult
from exam_synth.models.exam_models import ProcessPdfResponse


def assemble_result(extracted: ExtractedResult, outcome: CompilationOutcome) -> PipelineResult:
    """Combines extraction and compilation. The markup is kept whatever the compiler did."""
    return PipelineResult(
        markup=extracted.markup,
        artifact_bytes=outcome.artifact_bytes,
        topics=list(extracted.topics),
        error=outcome.error_message,
    )


def to_response(result: PipelineResult) -> ProcessPdfResponse:
    """Wire form of *result*: the PDF travels base64-encoded."""
    pdf_base64 = base64.b64encode(result.artifact_bytes).decode("ascii") if result.artifact_bytes is not None else None
    return ProcessPdfResponse(
        tex=result.markup,
        pdfBase64=pdf_base64,
        questions=list(result.topics),
        error=result.error,
    )
