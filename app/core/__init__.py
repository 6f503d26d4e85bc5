"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (orders, payments,
dropshipping, notifications). No business logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its HTTP-aware subclasses

Permissions (import from core.permissions):
    - HasModelPermission: role checks via Django model permissions

Helpers (import from core.helpers):
    - sign_payload / verify_signature: HMAC-SHA256 webhook signing

Note:
    Models are NOT imported here to avoid AppRegistryNotReady errors.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    ValidationError,
)
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "RateLimitError",
    "ExternalServiceError",
]
