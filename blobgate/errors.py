class ServiceError(Exception):
    """Request failure.

    Rendered as ``{"success": false, "message": ...}``, or as the bare message
    in plain text for the routes that answer in text.
    """

    status_code = 500

    def __init__(self, message: str, plain_text: bool = False):
        super().__init__(message)
        self.message = message
        self.plain_text = plain_text


class BadRequest(ServiceError):
    status_code = 400


class Unauthorized(ServiceError):
    status_code = 401


class Forbidden(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class TooManyRequests(ServiceError):
    status_code = 429


class Internal(ServiceError):
    status_code = 500
