"""ParamConfig: Expert defaults for the kiosk console.

This module defines the complete default configuration. ALL tunable
parameters must have defaults here. No runtime code should define fallback
values - this is the single source of truth for defaults.

Runtime code NEVER reads from ParamConfig directly - it only receives InternalConfig.
"""

from typing import Literal, Optional
from pydantic import Field, field_validator
from garmentqc.schemas.base import GarmentQCBaseModel


# =============================================================================
# Nested Configuration Models
# =============================================================================

class VisionConfig(GarmentQCBaseModel):
    """Vision backend connection."""
    base_url: str = "http://localhost:8000"
    timeout_sec: float = Field(30.0, gt=0, description="Per-request timeout in seconds")
    calibrate_t1: int = Field(50, ge=0, le=255, description="Lower edge-detection threshold")
    calibrate_t2: int = Field(150, ge=0, le=255, description="Upper edge-detection threshold")

    @field_validator("base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Endpoint paths are appended with a leading slash."""
        if isinstance(v, str):
            return v.strip().rstrip("/")
        return v


class DeviceConfig(GarmentQCBaseModel):
    """Capture device settings."""
    default_mode: Literal["RAW", "CALIBRATION", "MEASURE"] = "RAW"
    default_garment_type: str = "trousers"


class FactoryConfig(GarmentQCBaseModel):
    """Tenant identity stamped on every report."""
    factory_id: str = "00000000-0000-0000-0000-000000000000"
    factory_name: str = "FACTORY"


class CalibrationConfig(GarmentQCBaseModel):
    """Calibration constant handling."""
    initial_pixels_per_cm: Optional[float] = Field(8.8, gt=0)
    load_saved: bool = True


class StorageConfig(GarmentQCBaseModel):
    """Evidence image object storage.

    Credentials are NOT configured here; S3 access reads R2_ENDPOINT,
    R2_ACCESS_KEY and R2_SECRET_KEY from the environment.
    """
    backend: Literal["local", "s3"] = "local"
    bucket: Optional[str] = None
    endpoint_url: Optional[str] = None
    public_domain: Optional[str] = None
    region: str = "auto"
    key_prefix: str = "garment"


class RecordsConfig(GarmentQCBaseModel):
    """Record store settings."""
    db_filename: str = "garmentqc_reports.db"


class UploadConfig(GarmentQCBaseModel):
    """Report pipeline upload concurrency."""
    max_workers: int = Field(4, ge=1, le=16)


class StandardsConfig(GarmentQCBaseModel):
    """Size-standard ingestion."""
    size_column_offset: int = Field(5, ge=5, description="First size column (0-based)")
    unit: str = "cm"


class ReportsConfig(GarmentQCBaseModel):
    """QC history listing."""
    list_limit: int = Field(100, ge=1)


class LoggingConfig(GarmentQCBaseModel):
    """Logging configuration."""
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"


# =============================================================================
# Main ParamConfig
# =============================================================================

class ParamConfig(GarmentQCBaseModel):
    """Complete expert configuration with all defaults.

    This config is NOT used directly by runtime code. It serves as the
    base layer in config resolution:

        internal_cfg = resolve_config(param_cfg, user_cfg, cli_cfg)

    Runtime code only sees InternalConfig.
    """

    base_dir: Optional[str] = None
    vision: VisionConfig = Field(default_factory=VisionConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    factory: FactoryConfig = Field(default_factory=FactoryConfig)
    calibration: CalibrationConfig = Field(default_factory=CalibrationConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    records: RecordsConfig = Field(default_factory=RecordsConfig)
    upload: UploadConfig = Field(default_factory=UploadConfig)
    standards: StandardsConfig = Field(default_factory=StandardsConfig)
    reports: ReportsConfig = Field(default_factory=ReportsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
