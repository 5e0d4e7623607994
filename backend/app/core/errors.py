# core/errors.py
from typing import Optional


class ServiceError(Exception):
    """Base for errors the API reports to callers with a stable code."""

    status_code = 500
    code = "internal"
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "code": self.code, "message": self.message}


class Unauthenticated(ServiceError):
    status_code = 401
    code = "unauthenticated"
    default_message = "User must be authenticated"


class PermissionDenied(ServiceError):
    status_code = 403
    code = "permission-denied"
    default_message = "Admin access required"


class InvalidArgument(ServiceError):
    status_code = 400
    code = "invalid-argument"
    default_message = "Invalid argument"


class NotFoundError(ServiceError):
    status_code = 404
    code = "not-found"
    default_message = "Not found"


class ConflictError(ServiceError):
    status_code = 409
    code = "failed-precondition"
    default_message = "Item has already been processed"


class UpstreamError(ServiceError):
    status_code = 502
    code = "unavailable"
    default_message = "Upstream service failed"


class DeviceNotRegistered(UpstreamError):
    default_message = "Push token is no longer registered"


class InternalError(ServiceError):
    status_code = 500
    code = "internal"
