import logging
from uuid import uuid4

from fastapi import APIRouter
from fastapi import File
from fastapi import Form
from fastapi import UploadFile

from exam_synth.models.exam_models import ProcessPdfResponse
from exam_synth.services.pipeline import PipelineService
from exam_synth.services.request_builder import build_generation_request
from exam_synth.services.result_assembler import to_response

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

pipeline_service = PipelineService()


@router.post("/process-pdf", response_model=ProcessPdfResponse)
async def process_pdf(
    file: list[UploadFile] | None = File(default=None),
    regenerate: str | None = Form(default=None),
    previous_context: str | None = Form(default=None, alias="previousContext"),
    questions: str | None = Form(default=None),
) -> ProcessPdfResponse:
    """
    Generates a new practice exam from the uploaded source documents.

    Multipart fields:
    - `file`: one part per source document (PDF or image), repeated.
    - `regenerate`: `"true"` when the user asks for another variant of a previous exam.
    - `previousContext`: LaTeX of the previous exam (truncated server-side).
    - `questions`: JSON array of question types to target.

    Returns the LaTeX (`tex`), the compiled PDF as base64 (`pdfBase64`, null when
    compilation failed), the question types detected in the sources (`questions`)
    and an advisory `error` describing a compilation failure.

    Raises (via the application exception handlers):
        ValidationError: 400 when no documents are supplied, 413 when limits are exceeded.
        ConfigurationError: 500 when the model API key is missing.
        GenerationError: 500 when the model call fails.
    """
    request_id = str(uuid4())
    logger.info("[%s] /process-pdf called with %d file(s)", request_id, len(file or []))

    generation_request = await build_generation_request(
        files=file,
        regenerate=regenerate,
        previous_context=previous_context,
        questions=questions,
        request_id=request_id,
    )
    result = await pipeline_service.run(generation_request, request_id)
    return to_response(result)
