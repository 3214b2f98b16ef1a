"""Kiosk runtime wiring.

Builds the record store, asset store, vision client, mode controller,
report pipeline and capture session from one ``InternalConfig`` and owns
their lifecycle.
"""

import logging
from typing import Optional

from garmentqc.contracts.failure import TransportError
from garmentqc.device.mode_controller import DeviceModeController
from garmentqc.device.vision_client import VisionBackendClient
from garmentqc.pipeline.report_pipeline import ReportPipeline
from garmentqc.schemas.domain import DeviceMode
from garmentqc.schemas.internal import InternalConfig
from garmentqc.session.capture_session import CaptureSession
from garmentqc.setup_directories import get_db_path, get_log_path, setup_output_directories
from garmentqc.storage.asset_uploader import AssetUploader, LocalAssetStore, S3AssetStore
from garmentqc.storage.record_store import SQLiteRecordStore

__all__ = ['KioskOrchestrator']

logger = logging.getLogger(__name__)


class KioskOrchestrator:
    """Owns every runtime component of one kiosk.

    **Components:**

    - ``record_store``: SQLite store for reports and size standards
    - ``uploader``: evidence uploader over a local or S3-compatible store
    - ``client``: vision backend HTTP client
    - ``controller``: device mode controller for the kiosk camera
    - ``pipeline``: report pipeline
    - ``session``: the single capture session for this device

    **Logging:**

    All output goes to both console and log file
    (logs/garmentqc_{factory_name}.log). Level comes from
    ``config.logging.level``.

    Example usage::

        config = resolve_config(ParamConfig(), user_cfg, cli_cfg)

        with KioskOrchestrator(config) as kiosk:
            outcome = kiosk.session.measure()
            kiosk.session.save_report(outcome)

    Parameters
    ----------
    config : InternalConfig
        Resolved runtime configuration.
    output_dirs : dict, optional
        Output paths from ``setup_output_directories``. Created from
        ``config.base_dir`` when omitted.
    http_session : requests.Session, optional
        Injected HTTP session for the vision client.
    asset_store : AssetStore, optional
        Injected object store; built from ``config.storage`` otherwise.
    """

    def __init__(self, config: InternalConfig, output_dirs: Optional[dict] = None,
                 http_session=None, asset_store=None):
        self.config = config
        self.output_dirs = output_dirs or setup_output_directories(config.base_dir)
        self._http_session = http_session
        self._asset_store = asset_store

        self.record_store = None
        self.uploader = None
        self.client = None
        self.controller = None
        self.pipeline = None
        self.session = None

        self._opened = False

    def _setup_logging(self):
        """Configure the root logger with file and console handlers."""
        log_level = getattr(logging, self.config.logging.level.upper(), logging.INFO)
        log_path = get_log_path(self.output_dirs, self.config.factory.factory_name)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        # Clear existing handlers and add new ones
        root = logging.getLogger()
        root.setLevel(log_level)
        for handler in root.handlers[:]:
            root.removeHandler(handler)

        fh = logging.FileHandler(log_path)
        fh.setLevel(log_level)
        fh.setFormatter(formatter)
        root.addHandler(fh)

        ch = logging.StreamHandler()
        ch.setLevel(log_level)
        ch.setFormatter(formatter)
        root.addHandler(ch)

        logger.info("Logging: level=%s, file=%s", logging.getLevelName(log_level), log_path)

    def _build_asset_store(self):
        storage = self.config.storage
        if self._asset_store is not None:
            return self._asset_store
        if storage.backend == "s3":
            logger.info("Asset store: s3 bucket=%s", storage.bucket)
            return S3AssetStore(
                bucket=storage.bucket,
                endpoint_url=storage.endpoint_url,
                public_domain=storage.public_domain,
                region=storage.region,
            )
        logger.info("Asset store: local %s", self.output_dirs["assets"])
        return LocalAssetStore(self.output_dirs["assets"])

    def open(self, setup_logging: bool = True, load_calibration: bool = False,
             reset_rotation: bool = False) -> "KioskOrchestrator":
        """Build all components. Calling it twice is a no-op.

        Parameters
        ----------
        setup_logging : bool
            Install the file and console log handlers.
        load_calibration : bool
            Pull the backend's saved calibration (needs the backend online).
        reset_rotation : bool
            Put the camera back to 0 degrees, as on kiosk start-up.
        """
        if self._opened:
            return self
        if setup_logging:
            self._setup_logging()

        cfg = self.config
        db_path = get_db_path(self.output_dirs, cfg.records.db_filename)
        self.record_store = SQLiteRecordStore(db_path)
        self.uploader = AssetUploader(self._build_asset_store(), key_prefix=cfg.storage.key_prefix)
        self.client = VisionBackendClient.from_config(cfg, session=self._http_session)
        self.controller = DeviceModeController(self.client, default_mode=DeviceMode(cfg.device.default_mode))
        self.pipeline = ReportPipeline(self.record_store, self.uploader, max_workers=cfg.upload.max_workers)
        self.session = CaptureSession(
            self.client,
            self.controller,
            pipeline=self.pipeline,
            factory_id=cfg.factory.factory_id,
            pixels_per_cm=cfg.calibration.initial_pixels_per_cm,
            default_garment_type=cfg.device.default_garment_type,
            calibrate_t1=cfg.vision.calibrate_t1,
            calibrate_t2=cfg.vision.calibrate_t2,
        )
        self._opened = True

        if reset_rotation:
            self.reset_rotation()
        if load_calibration:
            self.load_saved_calibration()

        logger.info("=" * 60)
        logger.info("Kiosk ready: factory=%s vision=%s", cfg.factory.factory_name, cfg.vision.base_url)
        logger.info("=" * 60)
        return self

    def reset_rotation(self) -> Optional[int]:
        """Rotate the camera to 0 degrees. Backend errors are logged, not raised."""
        try:
            return self.session.rotate_camera(0)
        except TransportError as e:
            logger.warning("Could not reset camera rotation: %s", e)
            return None

    def load_saved_calibration(self) -> Optional[float]:
        """Apply the backend's saved calibration when configured to.

        Backend errors are logged; the configured initial constant stays
        in effect.
        """
        if not self.config.calibration.load_saved:
            return self.session.pixels_per_cm
        try:
            return self.session.load_saved_calibration()
        except TransportError as e:
            logger.warning("Could not load saved calibration: %s", e)
            return self.session.pixels_per_cm

    def close(self):
        """Release the record store and HTTP session. Safe to call multiple times."""
        if self.record_store is not None:
            self.record_store.close()
        if self.client is not None:
            self.client.close()
        if self._opened:
            logger.info("Kiosk closed")
        self._opened = False

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
