class ServiceError(RuntimeError):
    """Recoverable service error carrying the HTTP status it maps to."""

    status = 500

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        if status is not None:
            self.status = status


class InvalidInput(ServiceError):
    status = 400


class EmptyContent(InvalidInput):
    pass


class ContentTooLong(InvalidInput):
    pass


class InvalidEmail(InvalidInput):
    pass


class InvalidTimeFormat(InvalidInput):
    pass


class LeadTimeTooShort(InvalidInput):
    pass


class RateLimited(ServiceError):
    status = 429


class DailyQuotaExceeded(ServiceError):
    status = 429


class Unauthorized(ServiceError):
    status = 401


class NotFound(ServiceError):
    status = 404


class SignatureInvalid(ServiceError):
    status = 400


class TransportFailure(ServiceError):
    """Email provider rejected or never answered the dispatch call."""

    status = 502


class StorageUnavailable(ServiceError):
    status = 500
