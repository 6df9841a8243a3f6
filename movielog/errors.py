class ApiError(Exception):
    """Base class for errors reported to the caller as JSON."""

    status_code = 500
    kind = 'internal'
    default_message = 'Internal server error'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self):
        return {'message': self.message, 'error': self.kind}


class ValidationError(ApiError):
    status_code = 400
    kind = 'validation'
    default_message = 'Invalid input'


class InvalidInput(ValidationError):
    pass


class AuthError(ApiError):
    status_code = 401
    kind = 'auth'
    default_message = 'Authentication required'


class InvalidCredentials(AuthError):
    default_message = 'Invalid credentials'


class TokenRejected(AuthError):
    """Raised by the access gate; ``reason`` names the failed step."""

    reason = 'Rejected'

    def to_dict(self):
        data = super().to_dict()
        data['reason'] = self.reason
        return data


class MissingHeader(TokenRejected):
    reason = 'MissingHeader'
    default_message = 'Authorization header is required'


class MalformedToken(TokenRejected):
    reason = 'MalformedToken'
    default_message = 'Invalid token'


class BadSignature(TokenRejected):
    reason = 'BadSignature'
    default_message = 'Invalid token'


class ExpiredToken(TokenRejected):
    reason = 'ExpiredToken'
    default_message = 'Token expired'


class UnknownAccount(TokenRejected):
    reason = 'UnknownAccount'
    default_message = 'User not found'


class NotFound(ApiError):
    status_code = 404
    kind = 'not_found'
    default_message = 'Not found'


class Conflict(ApiError):
    status_code = 409
    kind = 'conflict'
    default_message = 'Conflict'


class DuplicateEmail(Conflict):
    default_message = 'Email already in use'


class DuplicateUsername(Conflict):
    default_message = 'Username already taken'


class ProviderError(ApiError):
    status_code = 502
    kind = 'provider'
    default_message = 'Movie metadata provider unavailable'
