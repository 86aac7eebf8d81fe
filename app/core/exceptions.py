# app/core/exceptions.py

from fastapi import status


class AppError(Exception):
    """Base class for domain errors translated at the route boundary."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(AppError):
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    # Upserts are idempotent, so the caller may simply retry
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
