"""Exception hierarchy for the osquery SQL generator."""

from __future__ import annotations

from typing import Optional


class OsqueryRAGError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(OsqueryRAGError):
    """Raised when the environment does not describe a runnable service."""


class CorpusLoadError(OsqueryRAGError):
    """Raised when the corpus directory is missing or unreadable."""


class InputValidationError(OsqueryRAGError):
    """Raised when a request does not carry a usable question."""


class PipelineError(OsqueryRAGError):
    """Failure while answering a single question."""


class IndexBuildError(PipelineError):
    """Raised when the retrieval index cannot be built or queried."""


class GenerationError(PipelineError):
    """Raised when the model provider errors, times out or returns nothing."""


class MalformedOutputError(PipelineError):
    """Raised when model output does not satisfy the SQL bundle schema.

    ``violation`` names the constraint that failed and ``raw_output`` keeps
    the offending text so that it can be logged for diagnosis.
    """

    def __init__(
        self,
        message: str,
        violation: Optional[str] = None,
        raw_output: Optional[str] = None,
    ):
        super().__init__(message)
        self.violation = violation
        self.raw_output = raw_output
