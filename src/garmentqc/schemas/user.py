"""UserConfig: Forgiving, minimal user-facing configuration.

This schema accepts user inputs in a variety of formats, with aliases
for common naming patterns (e.g., FACTORY_ID → factory_id, VISION_URL → vision_url).

UserConfig is intentionally minimal - users only specify what they want
to override from the expert defaults.
"""

from typing import Literal, Optional, Any
from pydantic import Field, field_validator
from garmentqc.schemas.base import GarmentQCBaseModel


class UserVisionConfig(GarmentQCBaseModel):
    """User-facing vision backend config."""
    base_url: Optional[str] = None
    timeout_sec: Optional[float] = None
    calibrate_t1: Optional[int] = None
    calibrate_t2: Optional[int] = None


class UserStorageConfig(GarmentQCBaseModel):
    """User-facing storage config."""
    backend: Optional[str] = None
    bucket: Optional[str] = None
    endpoint_url: Optional[str] = None
    public_domain: Optional[str] = None
    region: Optional[str] = None
    key_prefix: Optional[str] = None

    @field_validator("backend", mode="before")
    @classmethod
    def normalize_backend(cls, v):
        """Normalize backend names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v


class UserStandardsConfig(GarmentQCBaseModel):
    """User-facing standards config."""
    size_column_offset: Optional[int] = None
    unit: Optional[str] = None


class UserConfig(GarmentQCBaseModel):
    """User-facing configuration schema.

    Minimal, forgiving, and uses common aliases. Users only specify
    what they want to override from ParamConfig defaults.

    Usage
    -----
        user_cfg = UserConfig(
            base_dir="/var/lib/garmentqc",
            factory_id="f3c1...",
            vision_url="http://kiosk-vision.local:8000",
            bucket="qc-evidence",
        )

        internal = resolve_config(param_cfg, user_cfg, cli_cfg)
    """

    # Top-level operational settings
    base_dir: Optional[str] = Field(None, alias="BASE_DIR")
    factory_id: Optional[str] = Field(None, alias="FACTORY_ID")
    factory_name: Optional[str] = Field(None, alias="FACTORY_NAME")

    # Vision backend (flat aliases)
    vision_url: Optional[str] = Field(None, alias="VISION_URL")
    vision_timeout_sec: Optional[float] = Field(None, alias="VISION_TIMEOUT_SEC")

    # Device / calibration
    default_garment_type: Optional[str] = Field(None, alias="GARMENT_TYPE")
    pixels_per_cm: Optional[float] = Field(None, alias="PIXELS_PER_CM")

    # Storage (flat aliases)
    storage_backend: Optional[str] = Field(None, alias="STORAGE_BACKEND")
    bucket: Optional[str] = Field(None, alias="BUCKET")
    public_domain: Optional[str] = Field(None, alias="PUBLIC_DOMAIN")

    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = Field(None, alias="LOG_LEVEL")

    # Nested overrides (advanced users)
    vision: Optional[UserVisionConfig] = None
    storage: Optional[UserStorageConfig] = None
    standards: Optional[UserStandardsConfig] = None
    upload: Optional[dict[str, Any]] = None
    reports: Optional[dict[str, Any]] = None

    model_config = GarmentQCBaseModel.model_config.copy()
    # Allow forgiving input dictionaries (ignore unknown legacy keys)
    model_config.update({"populate_by_name": True, "extra": "ignore"})

    @field_validator("pixels_per_cm", "vision_timeout_sec", mode="before")
    @classmethod
    def coerce_numeric_fields(cls, v):
        """Accept int or float for numeric fields."""
        if v is not None:
            return float(v)
        return v

    @field_validator("storage_backend", mode="before")
    @classmethod
    def normalize_backend(cls, v):
        """Normalize backend names to lowercase."""
        if isinstance(v, str):
            return v.lower().strip()
        return v

    def to_internal_overrides(self) -> dict:
        """Convert flat UserConfig to nested InternalConfig structure.

        Returns
        -------
        dict
            Nested dictionary matching InternalConfig structure
        """
        overrides = {}

        if self.base_dir is not None:
            overrides["base_dir"] = str(self.base_dir)

        # Factory section
        factory = {}
        if self.factory_id is not None:
            factory["factory_id"] = self.factory_id
        if self.factory_name is not None:
            factory["factory_name"] = self.factory_name
        if factory:
            overrides["factory"] = factory

        # Vision section
        vision = {}
        if self.vision_url is not None:
            vision["base_url"] = self.vision_url
        if self.vision_timeout_sec is not None:
            vision["timeout_sec"] = self.vision_timeout_sec
        if self.vision is not None:
            vision.update(self.vision.model_dump(exclude_none=True))
        if vision:
            overrides["vision"] = vision

        if self.default_garment_type is not None:
            overrides["device"] = {"default_garment_type": self.default_garment_type}

        if self.pixels_per_cm is not None:
            overrides["calibration"] = {"initial_pixels_per_cm": self.pixels_per_cm}

        # Storage section
        storage = {}
        if self.storage_backend is not None:
            storage["backend"] = self.storage_backend
        if self.bucket is not None:
            storage["bucket"] = self.bucket
        if self.public_domain is not None:
            storage["public_domain"] = self.public_domain
        if self.storage is not None:
            storage.update(self.storage.model_dump(exclude_none=True))
        if storage:
            overrides["storage"] = storage

        if self.standards is not None:
            standards = self.standards.model_dump(exclude_none=True)
            if standards:
                overrides["standards"] = standards

        if self.upload:
            overrides["upload"] = dict(self.upload)
        if self.reports:
            overrides["reports"] = dict(self.reports)

        if self.log_level is not None:
            overrides["logging"] = {"level": self.log_level}

        return overrides
