# backend/errors.py
"""Error taxonomy shared by the core services and the request boundary.

Every failure a caller can observe is an ``ApiError``; the Flask error
handler registered in ``app_factory`` turns it into a single JSON body.
"""


class ApiError(Exception):
    status_code = 500
    code = "error"
    message = "Internal error"

    def __init__(self, message=None, detail=None):
        super().__init__(message or self.message)
        self.message = message or self.message
        self.detail = detail

    def to_dict(self, expose_detail=False):
        body = {"error": self.message, "code": self.code}
        if expose_detail and self.detail:
            body["detail"] = self.detail
        return body


class ValidationError(ApiError):
    status_code = 400
    code = "invalid_request"
    message = "Invalid request"


# --------------------
# AUTHENTICATION (401)
# --------------------
class AuthenticationError(ApiError):
    status_code = 401
    code = "unauthenticated"
    message = "Authentication required"


class NoCredential(AuthenticationError):
    code = "no_credential"
    message = "Token missing"


class BadScheme(AuthenticationError):
    code = "bad_scheme"
    message = "Authorization header must be 'Bearer <token>'"


class SignatureInvalid(AuthenticationError):
    code = "signature_invalid"
    message = "Invalid token"


class TokenExpired(AuthenticationError):
    code = "token_expired"
    message = "Token expired"


class ClaimsUnparseable(AuthenticationError):
    code = "claims_unparseable"
    message = "Invalid token claims"


class MissingSubject(AuthenticationError):
    code = "missing_subject"
    message = "Token carries no user_id/sub"


class InvalidCredentials(AuthenticationError):
    code = "invalid_credentials"
    message = "Invalid credentials"


# --------------------
# OTHER FAILURES
# --------------------
class AuthorizationError(ApiError):
    status_code = 403
    code = "forbidden"
    message = "Forbidden"


class NotFoundError(ApiError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class ConflictError(ApiError):
    status_code = 409
    code = "conflict"
    message = "Conflict"


class PersistenceError(ApiError):
    status_code = 500
    code = "persistence_error"
    message = "Storage error"


class ServerMisconfigured(ApiError):
    status_code = 500
    code = "server_misconfigured"
    message = "Token signing is not configured"
