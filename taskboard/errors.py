# taskboard/errors.py
# Domain errors; each maps to one HTTP status and renders as {"error": message, **flags}

from fastapi import status


class AppError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = "Internal server error"

    def __init__(self, message: str = None, **flags):
        self.message = message or self.default_message
        self.flags = flags
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message, **self.flags}


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Validation failed"


class DuplicateIdentity(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Username or email already exists"


class InvalidReference(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Referenced entity not found"


class InvalidOrExpiredToken(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid or expired token"


class WeakPassword(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Password must be at least 6 characters long"


class InvalidRole(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid role"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Could not validate credentials"


class InvalidCredentials(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid credentials"


class EmailNotVerified(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = (
        "Email not verified. Please check your email and verify your account before logging in."
    )

    def __init__(self, message: str = None):
        super().__init__(message, requiresVerification=True)


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class InternalError(AppError):
    pass
