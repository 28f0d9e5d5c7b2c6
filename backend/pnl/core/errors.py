"""Error kinds raised by the loan and ledger services.

Every error carries a snake_case ``code`` that the HTTP layer returns as
``detail``, the same shape as the routes' own ``HTTPException`` responses.
"""


class EngineError(Exception):
    """Base class for service errors."""

    status_code = 500

    def __init__(self, code: str, message: str | None = None):
        super().__init__(message or code)
        self.code = code


class ValidationError(EngineError):
    """Input rejected before anything was written."""

    status_code = 400


class NotFoundError(EngineError):
    """Unknown loan, payment, record or entity identifier."""

    status_code = 404


class StorageError(EngineError):
    """A multi-row write failed and was rolled back."""

    status_code = 500
