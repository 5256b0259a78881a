"""Error taxonomy shared by services and routers.

Services raise these; ``apps.storefront.main`` renders them with the unified
error envelope. Raw storage errors never reach the client.
"""


class StorefrontError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, code: str, detail: str = "") -> None:
        super().__init__(detail or code)
        self.code = code
        self.detail = detail or code


class ValidationError(StorefrontError):
    status_code = 400
    default_message = "Invalid request"


class InvalidToken(ValidationError):
    def __init__(self, detail: str = "invalid_token") -> None:
        super().__init__("invalid_token", detail)


class AuthError(StorefrontError):
    status_code = 401
    default_message = "Invalid credentials"


class NotFoundError(StorefrontError):
    status_code = 404
    default_message = "Not found"


class StorageError(StorefrontError):
    status_code = 500
    default_message = "Storage failure"


class ConflictError(StorefrontError):
    status_code = 409
    default_message = "Conflict"


class ReconciliationConflict(ConflictError):
    """Token already carries a terminal payment state; callers treat it as a no-op."""

    default_message = "Payment already reconciled"
