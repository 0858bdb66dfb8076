"""Error taxonomy for the health record store.

Every error carries a human readable ``message`` that the HTTP layer renders
as ``{"message": ...}``.
"""


class HealthLogError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class RecordValidationError(HealthLogError):
    """Malformed date, out-of-range value or a create missing a required field."""

    status_code = 400


class RecordNotFoundError(HealthLogError):
    """No record exists for the requested day."""

    status_code = 404


class UpsertConflictError(HealthLogError):
    """The (user, day) unique constraint kept failing after the retry."""

    status_code = 503


class StoreUnavailableError(HealthLogError):
    """The database could not be reached."""

    status_code = 503
