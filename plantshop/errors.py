"""Error taxonomy for the shop services.

Services raise these; ``main`` renders them as JSON responses.
"""
from typing import Any, Dict, Optional


class ShopError(Exception):
    """Base exception for the shop"""

    status_code = 500

    def __init__(self, message: str, retry_after: Optional[int] = None, **extra: Any):
        self.message = message
        self.retry_after = retry_after
        self.extra: Dict[str, Any] = extra
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message}
        body.update(self.extra)
        if self.retry_after is not None:
            body["retryAfter"] = self.retry_after
        return body


class ValidationError(ShopError, ValueError):
    """Malformed, missing or out-of-range input"""
    status_code = 400


class ConflictError(ValidationError):
    """Duplicate value for a unique field"""


class InvalidCredentials(ShopError):
    status_code = 400


class Unauthorized(ShopError):
    status_code = 401


class Forbidden(ShopError):
    status_code = 403


class NotFound(ShopError):
    status_code = 404


class GatewayTimeout(ShopError):
    """The store did not answer within its deadline. Retryable."""
    status_code = 504

    def __init__(self, message: str, retry_after: Optional[int] = 30, **extra: Any):
        super().__init__(message, retry_after=retry_after, **extra)


class StoreUnavailable(ShopError):
    status_code = 500

    def __init__(self, message: str, retry_after: Optional[int] = 60, **extra: Any):
        super().__init__(message, retry_after=retry_after, **extra)
