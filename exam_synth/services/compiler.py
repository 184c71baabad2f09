"""Renders extracted LaTeX to PDF with an external compiler process.

Each run gets a random run id; its `.tex` input and every file the compiler
writes next to it are named `exam_<run_id>.*` inside the shared scratch
directory, so concurrent requests never touch each other's files. Compilation
is best-effort: `DocumentCompiler.compile` always returns a
`CompilationOutcome` and never raises.
"""

import asyncio
import logging
import os
from pathlib import Path
from uuid import uuid4

from exam_synth.core.config import settings
from exam_synth.core.exceptions import CompilationError
from exam_synth.models.exam_models import CompilationOutcome

logger = logging.getLogger(__name__)

SCRATCH_PREFIX = "exam_"
LOG_TAIL_LINES = 20


def new_run_id() -> str:
    """Returns a collision-resistant identifier for one compilation run."""
    return uuid4().hex


def _first_latex_error(log_text: str) -> str | None:
    """Returns the first `! ...` error line of a LaTeX log, if any."""
    for line in log_text.splitlines():
        if line.startswith("!"):
            return line.lstrip("! ").strip() or None
    return None


class DocumentCompiler:
    """Wraps one `pdflatex`-style executable run per call."""

    def __init__(
        self,
        scratch_dir: Path | str | None = None,
        command: str | None = None,
        extra_paths: list[str] | None = None,
        timeout: float | None = None,
        keep_files: bool | None = None,
    ):
        self.scratch_dir = Path(scratch_dir) if scratch_dir is not None else settings.scratch_dir
        self.command = command or settings.latex_command
        self.extra_paths = list(settings.latex_extra_paths if extra_paths is None else extra_paths)
        self.timeout = settings.compile_timeout_seconds if timeout is None else timeout
        self.keep_files = settings.keep_scratch_files if keep_files is None else keep_files

    def paths_for(self, run_id: str) -> tuple[Path, Path, Path]:
        """Returns the (.tex, .pdf, .log) paths of *run_id*."""
        stem = self.scratch_dir / f"{SCRATCH_PREFIX}{run_id}"
        return stem.with_suffix(".tex"), stem.with_suffix(".pdf"), stem.with_suffix(".log")

    def _build_env(self) -> dict[str, str]:
        env = dict(os.environ)
        env["PATH"] = os.pathsep.join(p for p in [env.get("PATH", ""), *self.extra_paths] if p)
        return env

    async def _run_process(self, tex_path: Path, request_id: str) -> tuple[int, str]:
        """Runs the compiler on *tex_path*; returns (exit code, combined output)."""
        process = await asyncio.create_subprocess_exec(
            self.command,
            "-interaction=nonstopmode",
            f"-output-directory={self.scratch_dir}",
            str(tex_path),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=str(self.scratch_dir),
            env=self._build_env(),
        )
        try:
            stdout, _ = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("[%s] Compiler exceeded %.0fs, killing process %s", request_id, self.timeout, process.pid)
            process.kill()
            await process.wait()
            raise CompilationError(f"compiler timed out after {self.timeout:.0f}s") from None
        return process.returncode or 0, stdout.decode("utf-8", errors="replace")

    async def _describe_failure(self, returncode: int, output: str, log_path: Path) -> str:
        log_text = ""
        if log_path.exists():
            log_text = await asyncio.to_thread(log_path.read_text, encoding="utf-8", errors="replace")
        detail = _first_latex_error(log_text) or _first_latex_error(output)
        message = f"{self.command} exited with code {returncode}"
        return f"{message}: {detail}" if detail else message

    def _remove_run_files(self, run_id: str, request_id: str) -> None:
        for item in self.scratch_dir.glob(f"{SCRATCH_PREFIX}{run_id}.*"):
            try:
                item.unlink()
            except OSError as e:
                logger.warning("[%s] Could not remove scratch file %s: %s", request_id, item, e)

    async def compile(self, markup: str, request_id: str) -> CompilationOutcome:
        """Compiles *markup* to PDF. Any failure is returned as a failed outcome."""
        run_id = new_run_id()
        tex_path, pdf_path, log_path = self.paths_for(run_id)
        try:
            self.scratch_dir.mkdir(parents=True, exist_ok=True)
            await asyncio.to_thread(tex_path.write_text, markup, encoding="utf-8")
            logger.info("[%s] TeX saved: %s", request_id, tex_path)

            logger.info("[%s] Compiling PDF...", request_id)
            returncode, output = await self._run_process(tex_path, request_id)
            if returncode != 0:
                logger.debug("[%s] Compiler output tail:\n%s", request_id, "\n".join(output.splitlines()[-LOG_TAIL_LINES:]))
                raise CompilationError(await self._describe_failure(returncode, output, log_path))
            if not pdf_path.exists():
                raise CompilationError("PDF file not created")

            pdf_bytes = await asyncio.to_thread(pdf_path.read_bytes)
            logger.info("[%s] PDF created successfully (%d bytes)", request_id, len(pdf_bytes))
            return CompilationOutcome.success(pdf_bytes, run_id=run_id)
        except CompilationError as e:
            logger.error("[%s] PDF compilation failed: %s", request_id, e)
            return CompilationOutcome.failure(f"PDF compilation failed: {e}", run_id=run_id)
        except FileNotFoundError as e:
            logger.error("[%s] PDF compilation failed, compiler not found: %s", request_id, e)
            return CompilationOutcome.failure(f"PDF compilation failed: {self.command} not found", run_id=run_id)
        except Exception as e:
            logger.error("[%s] PDF compilation failed: %s", request_id, e, exc_info=True)
            return CompilationOutcome.failure(f"PDF compilation failed: {str(e) or 'Unknown error'}", run_id=run_id)
        finally:
            if not self.keep_files:
                self._remove_run_files(run_id, request_id)
