"""Garment QC kiosk user configuration.

This is the user-facing configuration file. Modify settings here for your
kiosk. Advanced settings are in garmentqc.schemas.param.

Storage credentials are NOT set here. For the s3 backend export
R2_ENDPOINT, R2_ACCESS_KEY and R2_SECRET_KEY.

Usage:
    python scripts/run_kiosk.py scripts/user_config.py reports
    python scripts/run_kiosk.py scripts/user_config.py measure --save
"""

CONFIG = {
    # ========================================================================
    # KIOSK IDENTITY
    # ========================================================================
    "FACTORY_ID": "00000000-0000-0000-0000-000000000000",
    "FACTORY_NAME": "FACTORY",
    "BASE_DIR": "./garmentqc_data",   # Database, logs and local evidence go here

    # ========================================================================
    # VISION BACKEND
    # ========================================================================
    "VISION_URL": "http://localhost:8000",
    "VISION_TIMEOUT_SEC": 30,

    # ========================================================================
    # MEASUREMENT
    # ========================================================================
    "GARMENT_TYPE": "trousers",       # "trousers" or "short_sleeve_top"
    "PIXELS_PER_CM": 8.8,             # Used until a calibration is applied

    # ========================================================================
    # EVIDENCE STORAGE
    # ========================================================================
    "STORAGE_BACKEND": "local",       # "local" or "s3"
    "BUCKET": None,                   # Required for "s3"
    "PUBLIC_DOMAIN": None,            # e.g. "https://evidence.example.com"

    "LOG_LEVEL": "INFO",
}
