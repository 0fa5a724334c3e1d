"""Domain exceptions raised across the engine."""

from typing import Optional


class TimecardGuardError(Exception):
    """Base class for engine errors."""


class ModelNotReadyError(TimecardGuardError):
    """Raised when the Isolation Forest is used before fit() completed."""


class DataSourceError(TimecardGuardError):
    """Raised when a payroll collaborator cannot be reached or returns garbage."""

    def __init__(self, message: str, resource: Optional[str] = None):
        super().__init__(message)
        self.resource = resource
