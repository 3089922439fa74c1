"""
Domain errors raised by the session core and the user collaborator.

Every error carries a stable machine-readable code and the HTTP status the
API layer renders it with (see auth_api.errors).
"""
from __future__ import annotations


class DomainError(Exception):
    status_code = 500
    error_code = "DOMAIN_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {
            "statusCode": self.status_code,
            "errorCode": self.error_code,
            "message": self.message,
        }


class InvalidCredentials(DomainError):
    status_code = 401
    error_code = "INVALID_CREDENTIALS"

    def __init__(self):
        super().__init__("Invalid credentials")


class EmailAlreadyExists(DomainError):
    status_code = 409
    error_code = "EMAIL_ALREADY_EXISTS"

    def __init__(self, email: str):
        super().__init__(f"User with email {email} already exists")


class UserNotFound(DomainError):
    status_code = 404
    error_code = "USER_NOT_FOUND"

    def __init__(self, user_id: str):
        super().__init__(f"User with id {user_id} not found")


class InvalidEmail(DomainError):
    status_code = 400
    error_code = "INVALID_EMAIL"

    def __init__(self, email):
        super().__init__(f"Invalid email format: {email}")


class TokenInvalid(DomainError):
    status_code = 401
    error_code = "TOKEN_INVALID"

    def __init__(self, reason: str = "Invalid token"):
        super().__init__(reason)


class Forbidden(DomainError):
    status_code = 403
    error_code = "FORBIDDEN"

    def __init__(self, message: str = "Insufficient role"):
        super().__init__(message)
