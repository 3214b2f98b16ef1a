"""Domain types shared by the session, report pipeline, and stores.

These are runtime values, not configuration: they are mutable where the
pipeline needs to build them up and are validated by Pydantic on
construction so a malformed vision-backend reply fails here rather than
deep inside the report pipeline.
"""

import base64
import binascii
import math
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DeviceMode(str, Enum):
    """Operating mode requested from the capture device."""
    RAW = "RAW"
    CALIBRATION = "CALIBRATION"
    MEASURE = "MEASURE"


class QCStatus(str, Enum):
    """QC verdict for the claimed size."""
    PASS = "PASS"
    FAIL = "FAIL"
    UNKNOWN = "UNKNOWN"


class ImageRole(str, Enum):
    """Role tag of an evidence image."""
    MEASURE = "MEASURE"
    DETECT = "DETECT"
    EDGE = "EDGE"
    DEBUG = "DEBUG"


# Backend reply key for each evidence role
IMAGE_FIELDS = {
    ImageRole.MEASURE: "measure_image",
    ImageRole.DETECT: "detect_image",
    ImageRole.EDGE: "edge_image",
    ImageRole.DEBUG: "debug_image",
}


def is_valid_pixels_per_cm(value) -> bool:
    """True for a strictly positive, finite number (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def coerce_pixels_per_cm(value) -> Optional[float]:
    """Numeric value of a backend ``pixels_per_cm`` field.

    Numbers and numeric strings (``"9.5"``) convert to float; anything
    else gives None. Validity is a separate check.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


class DomainModel(BaseModel):
    """Base for domain values: strict about unknown fields, enums kept as enums."""

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
    )


class EvidenceImage(DomainModel):
    """One evidence image: role, raw bytes, declared MIME type."""
    role: ImageRole
    data: bytes
    content_type: str = "image/png"

    @classmethod
    def from_data_url(cls, role: ImageRole, value: str) -> "EvidenceImage":
        """Decode ``data:<mime>;base64,<payload>`` (or bare base64) into bytes.

        Raises
        ------
        ValueError
            If the value is not a string or not valid base64.
        """
        if not isinstance(value, str):
            raise ValueError(f"{role.value} image must be a data URL string, got {type(value).__name__}")
        content_type = "image/png"
        payload = value
        if value.startswith("data:") and "," in value:
            header, payload = value.split(",", 1)
            mime = header[len("data:"):].split(";")[0]
            if mime:
                content_type = mime
        try:
            data = base64.b64decode(payload, validate=True)
        except (binascii.Error, ValueError) as e:
            raise ValueError(f"{role.value} image is not valid base64: {e}") from e
        return cls(role=role, data=data, content_type=content_type)


class Measurement(DomainModel):
    """One named measurement."""
    name: str
    value: float
    unit: str = "cm"

    @field_validator("unit", mode="before")
    @classmethod
    def default_unit(cls, v):
        """Backend omits the unit for centimetre values."""
        return v or "cm"


class CaptureResult(DomainModel):
    """Transient result of one measurement request."""
    images: list[EvidenceImage] = Field(default_factory=list)
    detected_size: Optional[str] = None
    confidence: float = 0.0
    qc_status: QCStatus = QCStatus.UNKNOWN
    qc_failures: list[str] = Field(default_factory=list)
    measurements: list[Measurement] = Field(default_factory=list)
    garment_type: Optional[str] = None
    garment_id: Optional[str] = None

    @field_validator("qc_status", mode="before")
    @classmethod
    def normalize_status(cls, v):
        """Unknown or missing verdicts collapse to UNKNOWN."""
        if isinstance(v, str):
            v = v.strip().upper()
            if v in QCStatus.__members__:
                return v
        if isinstance(v, QCStatus):
            return v
        return QCStatus.UNKNOWN

    @field_validator("confidence", mode="before")
    @classmethod
    def coerce_confidence(cls, v):
        """Accept null confidence from the backend."""
        return 0.0 if v is None else v

    def image(self, role: ImageRole) -> Optional[EvidenceImage]:
        """Return the evidence image for ``role`` or None when absent."""
        for img in self.images:
            if img.role == role:
                return img
        return None


class CalibrationOutcome(DomainModel):
    """Result of a calibration detection. Detection never applies itself."""
    success: bool
    pixels_per_cm: Optional[float] = None
    reason: Optional[str] = None
    debug_image: Optional[EvidenceImage] = None


class MeasurementOutcome(DomainModel):
    """A measurement that completed at the transport level.

    ``qc_failed`` is a valid, reportable outcome; ``defects`` lists
    inconsistencies in the backend reply (e.g. FAIL without reasons).
    """
    result: CaptureResult
    garment_type: str
    pixels_per_cm: float
    defects: list[str] = Field(default_factory=list)

    @property
    def qc_failed(self) -> bool:
        return self.result.qc_status == QCStatus.FAIL


class ReportContext(DomainModel):
    """Context the report pipeline needs besides the capture itself."""
    garment_type: str
    pixels_per_cm: float
    factory_id: str
    garment_ref: Optional[str] = None


class MeasurementRecord(DomainModel):
    """The durable QC report."""
    id: Optional[str] = None
    factory_id: str
    garment_ref: Optional[str] = None
    garment_type: str
    detected_size: Optional[str] = None
    confidence: float = 0.0
    pixels_per_cm: float
    qc_status: QCStatus = QCStatus.UNKNOWN
    qc_failures: list[str] = Field(default_factory=list)
    measurements: list[Measurement] = Field(default_factory=list)
    measured_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_capture(cls, capture: CaptureResult, context: ReportContext) -> "MeasurementRecord":
        """Build an unsaved record; the backend's garment type wins over the operator's."""
        return cls(
            factory_id=context.factory_id,
            garment_ref=context.garment_ref or capture.garment_id,
            garment_type=capture.garment_type or context.garment_type,
            detected_size=capture.detected_size,
            confidence=capture.confidence,
            pixels_per_cm=context.pixels_per_cm,
            qc_status=capture.qc_status,
            qc_failures=list(capture.qc_failures),
            measurements=list(capture.measurements),
        )

    def measurement_data(self) -> dict:
        """Measurements keyed by name, in capture order."""
        return {m.name: {"value": m.value, "unit": m.unit} for m in self.measurements}


class ImageAsset(DomainModel):
    """An uploaded evidence image and its durable reference."""
    role: ImageRole
    reference: str
    measurement_id: Optional[str] = None


class PomEntry(DomainModel):
    """Point-of-measure entry for one size."""
    code: str
    description: str = ""
    tol_minus: str = ""
    tol_plus: str = ""
    value: str = ""


class SizeStandard(DomainModel):
    """Per-size tolerance table for one (garment type, style code)."""
    garment_type: str
    style_code: str
    unit: str = "cm"
    sizes: dict[str, list[PomEntry]] = Field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @property
    def standard_id(self) -> str:
        return f"{self.garment_type}-{self.style_code}"

    @property
    def size_labels(self) -> list[str]:
        return list(self.sizes)
