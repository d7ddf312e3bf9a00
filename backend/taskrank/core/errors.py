"""
Error kinds and structured errors.

Recoverable failures never propagate as exceptions across component
boundaries: they are converted into a StructuredError and attached to the
output of the stage where they occurred. Only ConfigurationError (fatal) is
raised to callers.
"""
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorKind(str, Enum):
    """Kinds of failures the pipeline knows how to report."""
    CONFIGURATION_ERROR = "configuration_error"
    PARSER_FAILURE = "parser_failure"
    COMPLETION_TRANSPORT_FAILURE = "completion_transport_failure"
    EXTRACTION_FAILURE = "extraction_failure"


class StructuredError(BaseModel):
    """
    A degraded stage, why it degraded, and what to do about it.

    `fallback_used` is True when a deterministic fallback still produced
    usable output for the stage.
    """
    model_config = ConfigDict(frozen=True)

    kind: ErrorKind
    stage: str
    message: str
    remediation: List[str] = Field(default_factory=list)
    fallback_used: bool = True


class ConfigurationError(Exception):
    """Raised when settings are malformed. Fatal, never retried."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class CompletionTransportFailure(Exception):
    """
    Raised by completion clients for timeouts, non-success statuses,
    malformed bodies and open circuits, independent of vendor.
    """

    def __init__(self, message: str, reason: str = "transport_error", status_code: Optional[int] = None):
        super().__init__(message)
        self.reason = reason
        self.status_code = status_code


TRANSPORT_REMEDIATION = [
    "Check that the completion service endpoint is reachable.",
    "Verify the API key and model name in the AI settings.",
    "Increase LLM_TIMEOUT_SECONDS if the service is slow.",
]

PARSE_REMEDIATION = [
    "Results were produced by the deterministic parser.",
    "Use compact syntax (p:1, s:open, d:today) for exact filters.",
    "Try a larger model if structured answers keep failing validation.",
]

EXTRACTION_REMEDIATION = [
    "Showing the top-ranked tasks instead of the AI's choice.",
    "The model did not reference candidates by identifier; try a model that follows instructions more closely.",
]


def transport_error(stage: str, message: str) -> StructuredError:
    return StructuredError(
        kind=ErrorKind.COMPLETION_TRANSPORT_FAILURE,
        stage=stage,
        message=message,
        remediation=list(TRANSPORT_REMEDIATION),
    )
