import logging

from fastapi import FastAPI
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from exam_synth.api.routes import router
from exam_synth.core.cleanup import cleanup_scratch
from exam_synth.core.config import settings
from exam_synth.core.exceptions import ConfigurationError
from exam_synth.core.exceptions import GenerationError
from exam_synth.core.exceptions import PipelineError
from exam_synth.core.exceptions import ValidationError
from exam_synth.core.logging import setup_logging

setup_logging()

app = FastAPI(title="Practice Exam Synthesizer")

logger = logging.getLogger(__name__)


@app.on_event("startup")
async def startup_event() -> None:
    removed = cleanup_scratch()
    logger.info("Application started, %d stale scratch file(s) removed from %s", removed, settings.scratch_dir)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.error(f"HTTP exception: {exc.detail} (status: {exc.status_code})")
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.error("Request validation failed: %s", exc.errors(), exc_info=False)
    return JSONResponse(
        {"error": "Input validation failed", "details": exc.errors()},
        status_code=422,
    )


@app.exception_handler(ValidationError)
async def input_exception_handler(_request: Request, exc: ValidationError) -> JSONResponse:
    logger.error(f"Validation error: {str(exc)}")
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(_request: Request, exc: ConfigurationError) -> JSONResponse:
    logger.error(f"Configuration error: {str(exc)}")
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.exception_handler(GenerationError)
async def generation_exception_handler(_request: Request, exc: GenerationError) -> JSONResponse:
    logger.error(f"Generation error: {str(exc)}")
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.exception_handler(PipelineError)
async def pipeline_exception_handler(_request: Request, exc: PipelineError) -> JSONResponse:
    logger.error(f"Pipeline error: {str(exc)}")
    return JSONResponse({"error": str(exc)}, status_code=500)


@app.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    logger.info("Health check endpoint called")
    return {"status": "ok"}


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allowed_origins,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["*"],
)
app.include_router(router)
