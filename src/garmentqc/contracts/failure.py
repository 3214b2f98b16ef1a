"""Centralized error taxonomy for the kiosk console.

Every failure the core can surface is one of the types below. Callers
branch on the type, never on message text.

Key distinction:
- ValidationError: bad input, rejected before any write
- TransportError: the vision backend could not be reached or answered badly
- RecordStoreError: the durable report could not be written
- ContractViolation: a pipeline bug (programmer error)
- *Warning classes: logged and returned as detail, never raised
"""

class GarmentQCError(Exception):
    """Base class for all errors raised by ``garmentqc``."""


class TransportError(GarmentQCError):
    """Vision backend unreachable, timed out, or replied with garbage.

    Never interpreted as a QC outcome. The core does not retry; retry
    policy belongs to the caller.
    """


class VisionBackendError(TransportError):
    """Backend replied but reported a processing error (``{"error": ...}``)."""


class ValidationError(GarmentQCError, ValueError):
    """Input rejected before any write took place."""


class StandardsDecodeError(ValidationError):
    """Malformed size-standard table.

    Attributes
    ----------
    row : int or None
        1-based row number in the source table (header is row 1).
    column : str or None
        Column name or label where decoding failed.
    """

    def __init__(self, message: str, row: int = None, column: str = None):
        self.row = row
        self.column = column
        locator = []
        if row is not None:
            locator.append(f"row {row}")
        if column is not None:
            locator.append(f"column '{column}'")
        if locator:
            message = f"{message} ({', '.join(locator)})"
        super().__init__(message)


class RecordStoreError(GarmentQCError):
    """A measurement record could not be persisted."""


class CaptureInProgressError(GarmentQCError):
    """A capture was requested while another one is still outstanding."""


class ContractViolation(RuntimeError):
    """Raised when a pipeline contract is violated.

    This indicates a bug in pipeline logic, not bad user input. It means a
    stage did not produce the invariants it promised.
    """
    pass


class PartialPersistenceWarning(UserWarning):
    """An evidence upload or link failed after the record became durable.

    Instances are collected in ``ReportOutcome.warnings``; they are never
    raised.
    """

    def __init__(self, stage: str, role: str, message: str):
        self.stage = stage
        self.role = role
        self.message = message
        super().__init__(f"{stage} failed for {role} image: {message}")


class DeviceModeRestoreFailure(UserWarning):
    """Restoring the device mode on scope exit failed. Logged only."""
