"""
Error taxonomy for the TaskFlow API.

Domain code raises these; ``main.py`` turns them into JSON responses with the
matching HTTP status. Nothing here knows about FastAPI.
"""

from typing import List, Optional


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict:
        return {"error": self.message}


class ValidationError(AppError):
    status_code = 400

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        super().__init__(message)
        self.errors = errors or [message]

    def to_body(self) -> dict:
        return {"errors": self.errors}


class AuthenticationError(AppError):
    status_code = 401


class AuthorizationError(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409
