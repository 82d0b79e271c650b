class LedgerError(Exception):
    """Base class for every order/inventory domain error."""
    pass

class ValidationError(LedgerError):
    """
    Raised when input is malformed (empty line list, non-positive quantity,
    unknown wilaya, quantity above stock). Nothing has been written.

    Expected Result: 400 Bad Request
    """
    pass

class InvalidTransitionError(LedgerError):
    """
    Raised when the requested status is the current one or is not
    reachable from it.

    Expected Result: 400 Bad Request
    """
    pass

class WindowExpiredError(LedgerError):
    """
    Raised when a confirmation is older than the undo window.

    Expected Result: 400 Bad Request
    """
    pass

class ConflictError(LedgerError):
    """
    Raised when the stored order no longer matches the state the caller
    observed. Re-read and retry once.

    Expected Result: 409 Conflict
    """
    pass

class NotFoundError(LedgerError):
    """Expected Result: 404 Not Found"""
    pass

class StorageUnavailableError(LedgerError):
    """
    Raised when the backing store times out or drops the connection.
    Retryable.

    Expected Result: 503 Service Unavailable
    """
    pass
