"""
Core Application - Infrastructure & Base Classes

This app contains infrastructure code shared by the domain apps:

- Generic, reusable base classes (no settlement logic)
- The exception hierarchy every service raises
- Infrastructure endpoints (health check)

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key

Services (import from core.services):
    - BaseService: Base class for service layer

Exceptions (import from core.exceptions):
    - BaseApplicationError: Base exception with error codes and HTTP status
    - ValidationError, PermissionDeniedError, NotFoundError, ConflictError,
      UnprocessableError, ServiceUnavailableError

Note:
    Django models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ServiceUnavailableError,
    UnprocessableError,
    ValidationError,
)
from .services import BaseService

__all__ = [
    # Services
    "BaseService",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "PermissionDeniedError",
    "NotFoundError",
    "ConflictError",
    "UnprocessableError",
    "ServiceUnavailableError",
]
