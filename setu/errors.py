"""
Setu - Error Taxonomy
Every domain error is an HTTPException so FastAPI renders it directly;
domain code stays free of status-code literals.
"""
from fastapi import HTTPException


class AppError(HTTPException):
    status = 500
    message = "Internal server error"

    def __init__(self, message: str = None, status: int = None):
        super().__init__(status or self.status, message or self.message)


class ValidationError(AppError):
    status = 400
    message = "Invalid request"


class NotFoundError(AppError):
    status = 404
    message = "Not found"


class ConflictError(AppError):
    """Uniqueness violation. `constraint` names the violated rule when known."""
    status = 409
    message = "Conflict"

    def __init__(self, message: str = None, constraint: str = None):
        super().__init__(message)
        self.constraint = constraint


class AuthError(AppError):
    """Missing/expired token (401), malformed token (400) or banned subject (403)."""
    status = 401
    message = "Access denied"


class ForbiddenError(AppError):
    status = 403
    message = "Forbidden"


class InternalError(AppError):
    status = 500
    message = "Internal server error"
