"""Application configuration settings.

This module defines the application-wide settings using Pydantic's BaseSettings.
It allows for loading configurations from environment variables and .env files,
providing type validation and default values.
"""

import tempfile
from pathlib import Path
from typing import Annotated

from pydantic import Field
from pydantic import field_validator
from pydantic_settings import BaseSettings
from pydantic_settings import NoDecode

# Default list of CORS allowed origins
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:8000",
    "https://localhost:3000",
    "https://localhost:8000",
    "http://0.0.0.0:8000",
]

# Common TeX distribution locations that are often missing from a service PATH
DEFAULT_LATEX_EXTRA_PATHS = [
    "/Library/TeX/texbin",
    "/usr/texbin",
    "/usr/local/bin",
    "/opt/homebrew/bin",
]


class Settings(BaseSettings):
    """Manages application settings, loading them from environment variables or an .env file.

    Attributes:
        google_genai_api_key: API key for the Gemini model service (preferred variable).
        google_api_key: Fallback API key variable for the Gemini model service.
        model_id: Identifier of the generative model.
        temperature: Sampling temperature for the generation call.
        thinking_level: Reasoning-effort hint passed to the model.
        include_thoughts: Whether the model should return its thought parts (they are filtered out).
        llm_timeout_seconds: Timeout for a single model call.
        llm_max_attempts: Attempts for a model call on retryable errors.
        max_previous_context_chars: Cap applied to the previous exam markup before prompting.
        scratch_dir: Directory where compiler input/output files are written.
        latex_command: Executable used to compile the markup.
        latex_extra_paths: Directories appended to PATH for the compiler process.
        compile_timeout_seconds: Upper bound for one compiler run.
        keep_scratch_files: Keep the per-run scratch files after compilation.
        cleanup_ttl: Time-to-live in seconds for stale scratch files before cleanup.
        max_concurrent_generations: Optional cap on simultaneous generate/compile runs.
        cors_allowed_origins: List of allowed origins for CORS.
    """

    google_genai_api_key: str | None = Field(default=None)
    google_api_key: str | None = Field(default=None)
    model_id: str = Field(default="gemini-3-flash-preview")
    temperature: float = Field(default=0.4)
    thinking_level: str = Field(default="LOW")
    include_thoughts: bool = Field(default=True)
    llm_timeout_seconds: float = Field(default=300.0, description="Model call timeout in seconds.")
    llm_max_attempts: int = Field(default=3)

    max_previous_context_chars: int = Field(default=15_000)

    scratch_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "exam_synth")
    latex_command: str = Field(default="pdflatex")
    latex_extra_paths: Annotated[list[str], NoDecode] = Field(default_factory=lambda: list(DEFAULT_LATEX_EXTRA_PATHS))
    compile_timeout_seconds: float = Field(default=120.0, description="Compiler timeout in seconds.")
    keep_scratch_files: bool = Field(default=False)
    cleanup_ttl: int = Field(default=900)

    max_concurrent_generations: int | None = Field(default=None)

    cors_allowed_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_CORS_ORIGINS),
    )

    model_config = {
        "env_file": ".env",
        "protected_namespaces": ("settings_",),
        "env_prefix": "",
        "extra": "ignore",
    }

    @property
    def genai_api_key(self) -> str | None:
        """Returns the configured model service key, preferring GOOGLE_GENAI_API_KEY."""
        return self.google_genai_api_key or self.google_api_key

    @field_validator("cors_allowed_origins", "latex_extra_paths", mode="before")  # type: ignore
    @classmethod
    def split_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Accepts either a list or a comma-separated string for list settings.

        Args:
            v: The value from the environment or direct assignment.

        Returns:
            A list of stripped, non-empty strings.
        """
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v


settings = Settings()
