"""Core utilities and security modules."""

from hostelhub.core.exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    ExternalServiceError,
    InvalidStateError,
    LockTimeoutError,
    NoCapacityError,
    NotFoundError,
    PreconditionError,
    RateLimitExceeded,
    ValidationError,
)
from hostelhub.core.locks import LocalLockProvider, LockProvider, RedisLockProvider, build_lock_provider
from hostelhub.core.security import create_access_token, create_actor_token, verify_token

__all__ = [
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "ExternalServiceError",
    "InvalidStateError",
    "LockTimeoutError",
    "NoCapacityError",
    "NotFoundError",
    "PreconditionError",
    "RateLimitExceeded",
    "ValidationError",
    "LocalLockProvider",
    "LockProvider",
    "RedisLockProvider",
    "build_lock_provider",
    "create_access_token",
    "create_actor_token",
    "verify_token",
]
