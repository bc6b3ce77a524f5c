"""
Error taxonomy for roadmap generation.

Every failure of a generation request is one of four kinds. None of them is
retried by the service; the caller decides whether to resubmit or fix input.
"""
from enum import Enum
from typing import Optional


class FailureKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    NO_RESULTS = "NoResults"
    UPSTREAM_ERROR = "UpstreamError"
    PERSISTENCE_ERROR = "PersistenceError"


class RoadmapGenerationError(Exception):
    """Base class for a reportable, recoverable generation failure."""

    kind: FailureKind

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"error": self.kind.value, "detail": self.message}


class InvalidInputError(RoadmapGenerationError):
    kind = FailureKind.INVALID_INPUT


class NoResultsError(RoadmapGenerationError):
    kind = FailureKind.NO_RESULTS


class UpstreamError(RoadmapGenerationError):
    """Search provider unavailable, erroring or timed out."""

    kind = FailureKind.UPSTREAM_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.status_code is not None:
            data["provider_status"] = self.status_code
        return data


class PersistenceError(RoadmapGenerationError):
    kind = FailureKind.PERSISTENCE_ERROR
