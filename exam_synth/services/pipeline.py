from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable

from exam_synth.core.config import settings
from exam_synth.models.exam_models import GenerationRequest
from exam_synth.models.exam_models import PipelineResult
from exam_synth.services.compiler import DocumentCompiler
from exam_synth.services.llm import GenerativeClient
from exam_synth.services.prompt_composer import compose_prompt
from exam_synth.services.response_extractor import extract_reply
from exam_synth.services.result_assembler import assemble_result

# Configure module logger
logger = logging.getLogger(__name__)


class PipelineService:
    """Runs one validated request through prompt, model, extraction, compilation and assembly.

    Only configuration and model-call failures propagate (`ConfigurationError`,
    `GenerationError`); extraction and compilation problems end up in the result.
    """

    def __init__(
        self,
        client_factory: Callable[[], GenerativeClient] | None = None,
        compiler: DocumentCompiler | None = None,
        max_concurrent: int | None = None,
    ):
        logger.info("Initializing PipelineService")
        self.client_factory = client_factory or GenerativeClient.from_settings
        self.compiler = compiler or DocumentCompiler()
        limit = settings.max_concurrent_generations if max_concurrent is None else max_concurrent
        self._limiter: asyncio.Semaphore | None = asyncio.Semaphore(limit) if limit else None

    def _slot(self) -> contextlib.AbstractAsyncContextManager:
        return self._limiter if self._limiter is not None else contextlib.nullcontext()

    async def run(self, request: GenerationRequest, request_id: str) -> PipelineResult:
        logger.info(
            "[%s] Starting pipeline run: %d document(s), regeneration=%s",
            request_id,
            len(request.documents),
            request.is_regeneration,
        )
        # Fails with ConfigurationError before any work when credentials are missing
        client = self.client_factory()
        prompt = compose_prompt(request, request_id)

        async with self._slot():
            reply = await client.generate(request.documents, prompt, request_id)
            extracted = extract_reply(reply, request_id)
            outcome = await self.compiler.compile(extracted.markup, request_id)

        result = assemble_result(extracted, outcome)
        logger.info(
            "[%s] Pipeline completed: %d chars of markup, pdf=%s, topics=%d",
            request_id,
            len(result.markup),
            result.artifact_bytes is not None,
            len(result.topics),
        )
        return result
