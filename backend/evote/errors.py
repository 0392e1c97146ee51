"""Error taxonomy shared by the services and the HTTP layer.

Every error carries the HTTP status it maps to, so routers never have to
translate business failures by hand.
"""


class ServiceError(Exception):
    """Base exception for the election services"""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Raised for malformed or missing input"""

    status_code = 400


class ConflictError(ServiceError):
    """Raised when the request is incompatible with the current state"""

    status_code = 400


class NoCandidatesError(ConflictError):
    """Raised when a period would start with an empty ballot"""


class DuplicateUserError(ConflictError):
    """Raised when a username or email is already registered"""

    status_code = 409


class UnauthorizedError(ServiceError):
    """Raised when the credential is missing or invalid"""

    status_code = 401


class ForbiddenError(ServiceError):
    """Raised when the caller is authenticated but not entitled"""

    status_code = 403


class NotFoundError(ServiceError):
    """Raised when a referenced entity does not exist"""

    status_code = 404


class InternalError(ServiceError):
    """Raised on persistence or configuration failures"""

    status_code = 500


__all__ = [
    "ServiceError",
    "ValidationError",
    "ConflictError",
    "NoCandidatesError",
    "DuplicateUserError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "InternalError",
]
