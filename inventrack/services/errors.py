"""Auth error taxonomy.

Every error carries the HTTP status and the generic message shown to clients.
Messages never say which check failed (unknown email vs bad password, expired
vs revoked refresh token, missing secret vs wrong code).
"""


class AuthError(Exception):
    status_code: int = 400
    message: str = "Authentication failed"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message


class InvalidCredentials(AuthError):
    status_code = 401
    message = "Invalid email or password"


class InvalidCode(AuthError):
    status_code = 400
    message = "Invalid verification code"


class InvalidRefreshToken(AuthError):
    status_code = 401
    message = "Invalid refresh token"


class PrincipalNotFound(AuthError):
    status_code = 404
    message = "User not found"


class TwoFactorAlreadyEnabled(AuthError):
    status_code = 409
    message = "Two-factor authentication is already enabled"


class InvalidResetToken(AuthError):
    status_code = 400
    message = "Invalid or expired reset token"


class RegistrationConflict(AuthError):
    status_code = 409
    message = "User already exists"


class DecodeError(ValueError):
    """Malformed secret or token string."""
