class LmsError(Exception):
    """Base class for failures a caller can act on."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(LmsError):
    status_code = 404


class Forbidden(LmsError):
    status_code = 403


class ValidationFailed(LmsError):
    status_code = 400


class Conflict(LmsError):
    status_code = 409


class Unauthenticated(LmsError):
    status_code = 401
