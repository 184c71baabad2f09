"""Core custom exceptions for the application."""


class PipelineError(Exception):
    """Base exception for pipeline-related errors."""


class ValidationError(PipelineError):
    """Raised when the inbound request cannot be turned into a generation request."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(PipelineError):
    """Exception for configuration-related errors (e.g., missing credentials, missing templates)."""


class GenerationError(PipelineError):
    """Raised when the call to the generative model itself fails."""


class CompilationError(PipelineError):
    """Raised inside the compiler when a run produces no PDF.

    Never leaves `DocumentCompiler.compile`; it is turned into a failed outcome there.
    """
