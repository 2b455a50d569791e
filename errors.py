"""
Error taxonomy

Services raise these; main.py turns them into JSON responses of the form
{"message": ..., "errors": [...]}.
"""
from typing import List, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors

    def to_dict(self) -> dict:
        body = {"message": self.message}
        if self.errors:
            body["errors"] = list(self.errors)
        return body


class ValidationError(AppError):
    status_code = 400


class AuthError(AppError):
    status_code = 401


class ForbiddenError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


# Duplicate unique fields are reported as a bad request, not 409
class ConflictError(AppError):
    status_code = 400


class InternalError(AppError):
    status_code = 500
