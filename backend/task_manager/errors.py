"""Sentinel exceptions shared by every layer.

Domain and use-case code raise these; only the HTTP layer decides which
status code each one maps to.
"""


class DomainError(Exception):
    """Base class for all domain-level exceptions."""
    default_message = "domain error"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# --- Validation ---

class ValidationFailedError(DomainError):
    """Bad input shape or a violated domain rule."""
    default_message = "validation failed"

    def __init__(self, reason: str = None):
        super().__init__(f"validation failed: {reason}" if reason else None)


# --- Not found ---

class TaskNotFoundError(DomainError):
    default_message = "task not found"


class UserNotFoundError(DomainError):
    default_message = "user not found"


# --- Conflicts and credentials ---

class UsernameTakenError(DomainError):
    default_message = "username already taken"


class InvalidCredentialsError(DomainError):
    """Unknown username or wrong password; callers cannot tell which."""
    default_message = "invalid credentials"


# --- Tokens ---

class InvalidTokenError(DomainError):
    """A token that cannot be trusted.

    `reason` records why (malformed, algorithm, signature, claims) for
    server-side logs; the message shown to clients is always the same.
    """
    default_message = "invalid token"

    def __init__(self, reason: str = "malformed"):
        self.reason = reason
        super().__init__()


class TokenExpiredError(DomainError):
    default_message = "token expired"


# --- Passwords ---

class PasswordMismatchError(DomainError):
    default_message = "password does not match"


class PasswordHashError(DomainError):
    """The stored digest is malformed or uses an unknown scheme."""
    default_message = "stored password hash is invalid"


# --- Storage ---

class RepositoryError(Exception):
    """Unclassified storage failure; chained to the driver exception."""
