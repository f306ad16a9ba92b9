"""Custom exception classes for the authorization engine.

Every class here is an expected, operational failure. The API layer turns
them into structured responses using ``status_code`` and ``code``; anything
else that escapes a request is treated as an internal error.
"""


class FieldForceError(Exception):
    """Base exception for FieldForce."""

    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class BadRequestError(FieldForceError):
    """Raised when a request is well-formed but cannot be honoured."""
    pass


class InvalidCredentialsError(FieldForceError):
    """Raised when the email/password pair does not match an account."""

    status_code = 401
    code = "INVALID_CREDENTIALS"

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message)


class AccountDisabledError(InvalidCredentialsError):
    """Raised when a deactivated account tries to log in.

    Surfaces exactly like InvalidCredentialsError so callers cannot probe
    which accounts exist; only the server log tells them apart.
    """
    pass


class TokenExpiredError(FieldForceError):
    """Raised when a correctly signed token is past its expiry."""

    status_code = 401
    code = "TOKEN_EXPIRED"

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class TokenInvalidError(FieldForceError):
    """Raised for malformed tokens, bad signatures, or the wrong token type."""

    status_code = 401
    code = "TOKEN_INVALID"

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class UnauthenticatedError(FieldForceError):
    """Raised when no usable bearer credential was presented."""

    status_code = 401
    code = "UNAUTHENTICATED"

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(FieldForceError):
    """Raised when an authenticated caller fails an authorization guard."""

    status_code = 403
    code = "FORBIDDEN"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class NotFoundError(FieldForceError):
    """Raised when a role, permission, entity, or user reference is unknown."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(FieldForceError):
    """Raised when a resource already exists."""

    status_code = 409
    code = "CONFLICT"


class RoleInUseError(ConflictError):
    """Raised when deleting a role that users still reference."""

    code = "ROLE_IN_USE"
