# Overview: Service error taxonomy shared by services and routes.

"""
Service errors carry the HTTP status they map to.

Services raise these; the app-level handler registered in create_app()
rolls back the session and renders {"error": ..., "details": ...}.
"""


class ServiceError(Exception):
    """Base class for expected, client-facing failures."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(ServiceError):
    status_code = 400


class InsufficientStockError(ValidationError):
    """Raised when a cart line asks for more units than the size has."""


class ForbiddenError(ServiceError):
    status_code = 403


class NotFoundError(ServiceError):
    status_code = 404


class ConflictError(ServiceError):
    status_code = 409
