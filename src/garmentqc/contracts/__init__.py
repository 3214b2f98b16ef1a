"""Contracts and error taxonomy.

Key principle:
- Pydantic validates config and backend replies
- Contracts validate component guarantees
- Typed errors describe what the caller can do next
"""

from garmentqc.contracts.failure import (
    CaptureInProgressError,
    ContractViolation,
    DeviceModeRestoreFailure,
    GarmentQCError,
    PartialPersistenceWarning,
    RecordStoreError,
    StandardsDecodeError,
    TransportError,
    ValidationError,
    VisionBackendError,
)
from garmentqc.contracts.base import require
from garmentqc.contracts.capture import capture_defects
from garmentqc.contracts.standards import assert_standard_shape

__all__ = [
    "CaptureInProgressError",
    "ContractViolation",
    "DeviceModeRestoreFailure",
    "GarmentQCError",
    "PartialPersistenceWarning",
    "RecordStoreError",
    "StandardsDecodeError",
    "TransportError",
    "ValidationError",
    "VisionBackendError",
    "require",
    "capture_defects",
    "assert_standard_shape",
]
