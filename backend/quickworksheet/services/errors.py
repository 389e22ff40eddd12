"""Domain errors raised by the worksheet services.

Routers translate these into HTTP responses; services never raise
HTTPException themselves.
"""
from __future__ import annotations


class WorksheetError(Exception):
    """Base class for every error the worksheet pipeline raises."""


class ValidationFailure(WorksheetError):
    """User input rejected before any network call (form or credential)."""


class AdmissionError(WorksheetError):
    """Call ceiling reached or cooldown not yet elapsed."""

    def __init__(self, message: str, retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after


class GenerationError(WorksheetError):
    """A generation attempt failed; callers fall back to templates."""


class MissingCredentialError(GenerationError):
    pass


class GenerationEndpointError(GenerationError):
    """Transport failure or error payload from the completion endpoint."""


class InvalidOutputError(GenerationError):
    """Response received but not parseable as a worksheet payload."""


class InvalidTransitionError(WorksheetError):
    pass


class EditError(WorksheetError):
    pass


class ExportError(WorksheetError):
    pass
