class AMSError(Exception):
    """Base class for errors raised by the AMS service layer."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AMSError):
    """Local input problem. Reported inline and never sent to the backend."""

    status_code = 422


class RemoteError(AMSError):
    """A fetch or mutation against the backend failed."""

    status_code = 502


class NotFoundError(RemoteError):
    status_code = 404


class PermissionDeniedError(RemoteError):
    status_code = 403


class ConflictError(RemoteError):
    status_code = 409


class DivisionError(AMSError, ZeroDivisionError):
    """Percentage requested against a zero denominator."""

    status_code = 422
