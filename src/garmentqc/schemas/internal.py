"""InternalConfig: Authoritative runtime configuration.

This is the ONLY config schema that runtime code sees. It is fully validated,
normalized, and contains NO optional fields that processing code depends on.

All .get() calls, fallback defaults, and validation logic are FORBIDDEN in
runtime code - everything is explicit here.
"""

from typing import Literal, Optional
from pydantic import ConfigDict, Field, field_validator, model_validator
from garmentqc.schemas.base import GarmentQCBaseModel


# =============================================================================
# Nested Configuration Models (Runtime)
# =============================================================================

class InternalVisionConfig(GarmentQCBaseModel):
    """Runtime vision backend connection."""
    base_url: str
    timeout_sec: float
    calibrate_t1: int
    calibrate_t2: int

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v


class InternalDeviceConfig(GarmentQCBaseModel):
    """Runtime capture device settings."""
    default_mode: Literal["RAW", "CALIBRATION", "MEASURE"]
    default_garment_type: str


class InternalFactoryConfig(GarmentQCBaseModel):
    """Runtime tenant identity."""
    factory_id: str = Field(min_length=1)
    factory_name: str = Field(min_length=1)


class InternalCalibrationConfig(GarmentQCBaseModel):
    """Runtime calibration handling."""
    initial_pixels_per_cm: Optional[float]
    load_saved: bool


class InternalStorageConfig(GarmentQCBaseModel):
    """Runtime object storage settings."""
    backend: Literal["local", "s3"]
    bucket: Optional[str]
    endpoint_url: Optional[str]
    public_domain: Optional[str]
    region: str
    key_prefix: str

    @model_validator(mode="after")
    def require_bucket_for_s3(self):
        """An S3 backend without a bucket cannot store anything."""
        if self.backend == "s3" and not self.bucket:
            raise ValueError("storage.bucket is required when storage.backend is 's3'")
        return self


class InternalRecordsConfig(GarmentQCBaseModel):
    """Runtime record store settings."""
    db_filename: str


class InternalUploadConfig(GarmentQCBaseModel):
    """Runtime upload concurrency."""
    max_workers: int


class InternalStandardsConfig(GarmentQCBaseModel):
    """Runtime standards ingestion settings."""
    size_column_offset: int
    unit: str


class InternalReportsConfig(GarmentQCBaseModel):
    """Runtime QC history settings."""
    list_limit: int


class InternalLoggingConfig(GarmentQCBaseModel):
    """Runtime logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


# =============================================================================
# Main InternalConfig
# =============================================================================

class InternalConfig(GarmentQCBaseModel):
    """Authoritative runtime configuration.

    Runtime modules receive InternalConfig and access fields directly:

        def __init__(self, config: InternalConfig):
            self.timeout = config.vision.timeout_sec  # NOT .get()

    Rules
    -----
    - NO .get() calls
    - NO fallback defaults
    - NO validation

    All of that happens during config resolution, not in runtime code.
    """

    base_dir: Optional[str]
    vision: InternalVisionConfig
    device: InternalDeviceConfig
    factory: InternalFactoryConfig
    calibration: InternalCalibrationConfig
    storage: InternalStorageConfig
    records: InternalRecordsConfig
    upload: InternalUploadConfig
    standards: InternalStandardsConfig
    reports: InternalReportsConfig
    logging: InternalLoggingConfig

    model_config = ConfigDict(
        extra='forbid',
        validate_assignment=True,
        use_enum_values=True,
        str_strip_whitespace=True,
        frozen=True,  # Immutable after construction
    )
