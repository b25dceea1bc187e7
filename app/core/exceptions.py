from typing import Optional


class ServiceError(Exception):
    """Business rule violation raised by a service; mapped to an HTTP status by the app."""
    status_code: int = 400

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class NotFoundError(ServiceError):
    """Entity absent (or not visible to the requester)."""
    status_code = 404


class AccessDeniedError(ServiceError):
    """Entity exists but belongs to someone outside the requester's scope."""
    status_code = 403
