"""HTTP client for the remote vision backend.

The backend runs the camera and the measurement algorithm. This client
only knows its request/response contracts:

- ``POST /api/set-mode``      mode, pixels_per_cm, garment_type
- ``POST /api/calibrate``     t1, t2 -> success, pixels_per_cm, message, debug_image
- ``POST /process``           pixels_per_cm, manual_garment_type -> capture payload
- ``POST /api/rotate-camera`` angle -> rotation
- ``GET  /api/calibration``   -> pixels_per_cm
- ``GET  /api/config``        -> garment type configuration
- ``POST /api/reference-garment`` garment_type, size, measurements (JSON), file

Every request carries an explicit timeout. Timeouts, connection errors,
non-2xx replies and unparseable bodies raise ``TransportError``; a reply
with an ``error`` key raises ``VisionBackendError``. Nothing is retried
here.
"""

import json
import logging
import mimetypes
from typing import Iterable, Optional

import requests
from pydantic import ValidationError as PydanticValidationError

from garmentqc.contracts.failure import TransportError, VisionBackendError
from garmentqc.schemas.domain import (
    IMAGE_FIELDS,
    CaptureResult,
    DeviceMode,
    EvidenceImage,
    ImageRole,
    Measurement,
    coerce_pixels_per_cm,
)

__all__ = ['VisionBackendClient']

logger = logging.getLogger(__name__)


class VisionBackendClient:
    """Thin request/response wrapper around the vision backend.

    Parameters
    ----------
    base_url : str
        Backend root URL, e.g. ``http://localhost:8000``.
    timeout_sec : float
        Per-request timeout.
    session : requests.Session, optional
        Injected session (tests pass a fake). A new one is created otherwise.
    """

    def __init__(self, base_url: str, timeout_sec: float = 30.0,
                 session: Optional[requests.Session] = None):
        if not base_url:
            raise ValueError("base_url is required")
        self._base_url = str(base_url).rstrip("/")
        self._timeout = float(timeout_sec)
        self._session = session or requests.Session()

    @classmethod
    def from_config(cls, config, session=None) -> "VisionBackendClient":
        """Build a client from ``InternalConfig.vision``."""
        return cls(config.vision.base_url, config.vision.timeout_sec, session=session)

    @property
    def base_url(self) -> str:
        return self._base_url

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, data: Optional[dict] = None,
                 files: Optional[dict] = None) -> dict:
        url = f"{self._base_url}{path}"
        logger.debug(f"{method} {url} {data or ''}")
        try:
            resp = self._session.request(method, url, data=data, files=files, timeout=self._timeout)
            resp.raise_for_status()
        except requests.Timeout as e:
            raise TransportError(f"{method} {path} timed out after {self._timeout}s") from e
        except requests.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        try:
            payload = resp.json()
        except ValueError as e:
            raise TransportError(f"{method} {path} returned a non-JSON body") from e

        if not isinstance(payload, dict):
            raise TransportError(f"{method} {path} returned {type(payload).__name__}, expected object")
        if payload.get("error"):
            raise VisionBackendError(f"{path}: {payload['error']}")
        return payload

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def set_mode(self, mode: DeviceMode, pixels_per_cm: Optional[float] = None,
                 garment_type: Optional[str] = None) -> dict:
        """Request a device mode. Returns once the request is acknowledged."""
        mode = DeviceMode(mode)
        data = {"mode": mode.value}
        if pixels_per_cm is not None:
            data["pixels_per_cm"] = str(pixels_per_cm)
        if garment_type:
            data["garment_type"] = garment_type
        return self._request("POST", "/api/set-mode", data)

    def calibrate(self, t1: int, t2: int) -> dict:
        """Run calibration detection with edge thresholds ``t1``/``t2``.

        Returns the raw reply; interpretation belongs to the session.
        """
        return self._request("POST", "/api/calibrate", {"t1": str(t1), "t2": str(t2)})

    def capture(self, pixels_per_cm: float, garment_type: str) -> CaptureResult:
        """Capture and measure one garment.

        Raises
        ------
        TransportError
            If the reply cannot be parsed into a ``CaptureResult``.
        """
        payload = self._request("POST", "/process", {
            "use_internal_cam": "true",
            "pixels_per_cm": str(pixels_per_cm),
            "manual_garment_type": garment_type,
            "save_report": "false",
        })
        return self.parse_capture(payload)

    def rotate_camera(self, angle: Optional[int] = None) -> int:
        """Rotate the camera; without ``angle`` the backend steps 90 degrees."""
        data = {"angle": str(angle)} if angle is not None else None
        payload = self._request("POST", "/api/rotate-camera", data)
        try:
            return int(payload["rotation"])
        except (KeyError, TypeError, ValueError) as e:
            raise TransportError("rotate-camera reply has no valid 'rotation'") from e

    def get_calibration(self) -> Optional[float]:
        """Calibration constant persisted on the backend, or None."""
        value = self._request("GET", "/api/calibration").get("pixels_per_cm")
        if value is None:
            return None
        number = coerce_pixels_per_cm(value)
        if number is None:
            raise TransportError(f"calibration reply has non-numeric pixels_per_cm: {value!r}")
        return number

    def get_garment_config(self) -> dict:
        """Garment types and the measurement names each one produces."""
        return self._request("GET", "/api/config")

    def save_reference_garment(self, garment_type: str, size: str,
                               measurements: Iterable[Measurement],
                               image: Optional[EvidenceImage] = None) -> dict:
        """Register a reference garment for one garment type and size label.

        Parameters
        ----------
        garment_type : str
            Garment type the reference belongs to.
        size : str
            Size label, e.g. ``M`` or ``32``.
        measurements : iterable of Measurement
            Sent as a JSON list of ``{name, value, unit}``.
        image : EvidenceImage, optional
            Reference photo. Manual entries have none; the backend still
            expects a ``file`` part, so an empty one is sent.

        Returns
        -------
        dict
            The backend's reply.
        """
        body = json.dumps([m.model_dump() for m in measurements])
        if image is not None:
            ext = mimetypes.guess_extension(image.content_type or "") or ".png"
            part = (f"reference{ext}", image.data, image.content_type)
        else:
            part = ("blob", b"", "text/plain")
        return self._request(
            "POST",
            "/api/reference-garment",
            {"garment_type": garment_type, "size": size, "measurements": body},
            files={"file": part},
        )

    # ------------------------------------------------------------------
    # Parsing
    # ------------------------------------------------------------------

    @staticmethod
    def parse_capture(payload: dict) -> CaptureResult:
        """Convert a ``/process`` reply into a ``CaptureResult``.

        Image fields are base64 data URLs; absent or empty fields are
        skipped. Measurements arrive as a list under ``data``.
        """
        try:
            images = []
            for role in ImageRole:
                value = payload.get(IMAGE_FIELDS[role])
                if value:
                    images.append(EvidenceImage.from_data_url(role, value))

            measurements = [
                Measurement(name=m.get("name"), value=m.get("value"), unit=m.get("unit"))
                for m in payload.get("data") or []
            ]

            return CaptureResult(
                images=images,
                detected_size=payload.get("detected_size"),
                confidence=payload.get("confidence"),
                qc_status=payload.get("qc_status"),
                qc_failures=list(payload.get("qc_failures") or []),
                measurements=measurements,
                garment_type=payload.get("garment_type"),
                garment_id=payload.get("garment_id"),
            )
        except (PydanticValidationError, ValueError, TypeError, AttributeError) as e:
            raise TransportError(f"Malformed capture reply: {e}") from e
