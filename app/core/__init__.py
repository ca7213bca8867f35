"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Exceptions (import from core.exceptions):
    - BaseApplicationError and its subclasses, each with an error code

Note:
    Models and model mixins are NOT imported here to avoid
    AppRegistryNotReady errors. Import them from their modules.
"""

from .services import BaseService, ServiceResult

from .exceptions import (
    AuthenticationError,
    BaseApplicationError,
    DecryptionError,
    PermissionDeniedError,
    PersistenceError,
    ValidationError,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "AuthenticationError",
    "ValidationError",
    "PermissionDeniedError",
    "PersistenceError",
    "DecryptionError",
]
