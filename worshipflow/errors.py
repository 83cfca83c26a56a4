"""
WorshipFlow Song Manager - Error Types

Every failure the service reports to a client is one of these exceptions.
The application factory registers a handler that turns them into a JSON
``{"error": message}`` body with the matching HTTP status.
"""


class WorshipFlowError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(WorshipFlowError):
    """Required input is missing or empty."""

    status_code = 400


class NotFoundError(WorshipFlowError):
    status_code = 404


class ConflictError(WorshipFlowError):
    """A song with the same title and artist already exists."""

    status_code = 409


class ExternalServiceError(WorshipFlowError):
    """The document store or the transcription service failed."""

    status_code = 500


class ConfigurationError(WorshipFlowError):
    """A required backend (store, transcription API) has no credentials."""

    status_code = 500
