from typing import Literal

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import model_validator

ExtractionStrategy = Literal["fenced_block", "document_span", "raw_text"]


class SourceDocument(BaseModel):
    """One uploaded document handed to the model as an inline part."""

    model_config = ConfigDict(frozen=True)

    filename: str
    content: bytes
    mime_type: str = "application/pdf"


class GenerationRequest(BaseModel):
    """Validated, in-memory form of one /process-pdf call."""

    model_config = ConfigDict(frozen=True)

    documents: list[SourceDocument] = Field(min_length=1)
    is_regeneration: bool = False
    previous_artifact_text: str | None = None  # Already truncated to the configured cap
    topics: list[str] | None = None


class ReplySegment(BaseModel):
    model_config = ConfigDict(frozen=True)

    text: str
    thought: bool = False


class ModelReply(BaseModel):
    """Normalized model output: text segments, some possibly flagged as reasoning."""

    model_config = ConfigDict(frozen=True)

    segments: list[ReplySegment] = Field(default_factory=list)
    source: str = "unknown"  # Which reply shape the segments were read from

    def visible_text(self) -> str:
        """Concatenates every segment that is not internal reasoning."""
        return "".join(segment.text for segment in self.segments if not segment.thought)

    def thought_segments(self) -> list[ReplySegment]:
        return [segment for segment in self.segments if segment.thought]


class ExtractedResult(BaseModel):
    """Markup and topic list recovered from a model reply."""

    markup: str = ""
    topics: list[str] = Field(default_factory=list)
    strategy: ExtractionStrategy = "raw_text"
    degraded: bool = False  # True when no clean markup boundary was found


class CompilationOutcome(BaseModel):
    """Either the compiled PDF bytes or a message explaining why there are none."""

    model_config = ConfigDict(frozen=True)

    run_id: str | None = None
    artifact_bytes: bytes | None = None
    error_message: str | None = None

    @model_validator(mode="after")
    def _exactly_one_variant(self) -> "CompilationOutcome":
        if (self.artifact_bytes is None) == (self.error_message is None):
            raise ValueError("CompilationOutcome needs exactly one of artifact_bytes or error_message")
        return self

    @classmethod
    def success(cls, artifact_bytes: bytes, run_id: str | None = None) -> "CompilationOutcome":
        return cls(run_id=run_id, artifact_bytes=artifact_bytes)

    @classmethod
    def failure(cls, error_message: str, run_id: str | None = None) -> "CompilationOutcome":
        return cls(run_id=run_id, error_message=error_message or "PDF compilation failed: Unknown error")

    @property
    def succeeded(self) -> bool:
        return self.artifact_bytes is not None


class PipelineResult(BaseModel):
    """Final value of one pipeline run. `markup` is always usable; the PDF is best-effort."""

    markup: str
    artifact_bytes: bytes | None = None
    topics: list[str] = Field(default_factory=list)
    error: str | None = None


class ProcessPdfResponse(BaseModel):
    """JSON body returned by POST /api/process-pdf."""

    tex: str
    pdfBase64: str | None = None
    questions: list[str] = Field(default_factory=list)
    error: str | None = None
