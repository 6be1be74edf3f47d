"""
Core Application - Infrastructure & Base Classes

Generic, reusable building blocks shared by the domain apps
(fleet, operations, contracts, settlements).

Models (import from core.models):
    - BaseModel: Abstract model with timestamps (created_at, updated_at)

Model Mixins (import from core.model_mixins):
    - UUIDPrimaryKeyMixin: UUID as primary key
    - VersionedMixin: Optimistic locking version field

Services (import from core.services):
    - BaseService: Base class for service layer
    - ServiceResult: Standard result wrapper for success/failure handling

Locks (import from core.locks):
    - check_version: Version check under select_for_update
    - compare_and_set: Conditional single-row update

Exceptions (import from core.exceptions):
    - BaseApplicationError, ValidationError, NotFoundError,
      ConflictError, StaleRecordError, InvalidStateTransitionError,
      ExternalServiceError

Helpers (import from core.helpers):
    - calculate_pagination: Pagination metadata calculation
    - parse_money / quantize_money: Decimal money handling
    - validate_uuid: UUID validation

Note:
    Django models, model mixins and locks are NOT imported here to avoid
    AppRegistryNotReady errors. Import them directly from their modules.
"""

# Services (no Django model dependencies)
from .services import BaseService, ServiceResult

# Exceptions (no Django dependencies)
from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ExternalServiceError,
    InvalidStateTransitionError,
    NotFoundError,
    StaleRecordError,
    ValidationError,
)

# Helpers (no Django model dependencies)
from .helpers import (
    calculate_pagination,
    parse_money,
    quantize_money,
    validate_uuid,
)

__all__ = [
    # Services
    "BaseService",
    "ServiceResult",
    # Exceptions
    "BaseApplicationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "StaleRecordError",
    "InvalidStateTransitionError",
    "ExternalServiceError",
    # Helpers
    "calculate_pagination",
    "parse_money",
    "quantize_money",
    "validate_uuid",
]
