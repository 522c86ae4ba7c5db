"""
Core Application - Infrastructure & Base Classes

Generic building blocks shared by the domain apps (authentication, chat,
notifications). No chat logic lives here.

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - SoftDeleteMixin: Soft delete support (is_deleted, deleted_at)

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling
    - ErrorCode: Machine-readable failure codes

Exceptions (import from core.exceptions):
    - BaseApplicationError and one subclass per ErrorCode
    - application_exception_handler: DRF exception handler

Note:
    Models, model mixins and exceptions are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

from .services import BaseService, ErrorCode, ServiceResult

__all__ = [
    "BaseService",
    "ErrorCode",
    "ServiceResult",
]
