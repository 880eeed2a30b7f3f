class TurbofyError(Exception):
    """Base class for all engine errors."""

    code = "TURBOFY_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ValidationError(TurbofyError):
    """Request rejected before anything was persisted."""

    code = "VALIDATION_ERROR"


class AuthenticationError(TurbofyError):
    """Inbound callback could not be authenticated."""

    code = "INVALID_SIGNATURE"


class NotFoundError(TurbofyError):
    code = "NOT_FOUND"


class ProviderError(TurbofyError):
    """The payment provider failed to issue or report on an instrument."""

    code = "PROVIDER_ERROR"

    def __init__(self, message: str, code: str | None = None, status_code: int | None = None):
        super().__init__(message, code)
        self.status_code = status_code
        # set once a charge exists, so the caller can retry issuance against it
        self.charge_id: str | None = None


class PersistenceError(TurbofyError):
    code = "PERSISTENCE_ERROR"


class TransientPersistenceError(PersistenceError):
    """A storage failure that is expected to succeed when retried."""

    code = "TRANSIENT_PERSISTENCE_ERROR"


class DuplicateKeyError(PersistenceError):
    code = "DUPLICATE_KEY"


class InvalidTransitionError(TurbofyError):
    """A status change was requested from a state that does not allow it."""

    code = "INVALID_TRANSITION"
