"""Error taxonomy shared by the service layer.

Services raise these; `main.create_app` maps them onto HTTP responses.
"""

from __future__ import annotations


class AgriAssistError(Exception):
    """Base class for all domain errors."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AgriAssistError):
    """Malformed or missing input. Not retried."""

    status_code = 400


class NotFoundError(AgriAssistError):
    """No such record, or the caller may not see it."""

    status_code = 404


class StorageError(AgriAssistError):
    """Binary persistence failed. The caller may retry."""

    status_code = 503


class CapabilityError(AgriAssistError):
    """An external capability (classifier, chat provider) failed or timed out."""

    status_code = 502
