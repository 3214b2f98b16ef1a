"""Capture/calibration session for one physical kiosk device.

The session owns the calibration constant (pixels per centimetre) and
drives calibration and measurement requests against the vision backend.
Saving QC reports is delegated to the report pipeline; reference garments
are registered directly on the backend.

State rules:

- ``detect_calibration`` never changes the constant.
- ``apply_calibration`` is the only writer, and rejects anything that is
  not a strictly positive finite number.
- At most one measurement request is outstanding at a time.
"""

import logging
import math
import threading
from contextlib import contextmanager
from typing import Dict, List, Optional, Union

from garmentqc.contracts.capture import capture_defects
from garmentqc.contracts.failure import CaptureInProgressError, ValidationError
from garmentqc.schemas.domain import (
    CalibrationOutcome,
    DeviceMode,
    EvidenceImage,
    ImageRole,
    Measurement,
    MeasurementOutcome,
    ReportContext,
    coerce_pixels_per_cm,
    is_valid_pixels_per_cm,
)

__all__ = ['CaptureSession']

logger = logging.getLogger(__name__)


class CaptureSession:
    """One operator session on one capture device.

    Precondition: exactly one ``CaptureSession`` drives a given device.
    Two sessions sharing a device (or a ``DeviceModeController``) are not
    detected; the caller must prevent it.

    Parameters
    ----------
    client : VisionBackendClient
        Vision backend.
    controller : DeviceModeController
        Mode controller for the same device.
    pipeline : ReportPipeline, optional
        Needed only for ``save_report``.
    factory_id : str
        Tenant stamped on saved reports.
    pixels_per_cm : float, optional
        Initial calibration constant. Ignored if invalid.
    default_garment_type : str
        Garment type used when ``measure`` gets none.
    calibrate_t1, calibrate_t2 : int
        Default edge-detection thresholds.
    """

    def __init__(self, client, controller, pipeline=None, factory_id: str = "",
                 pixels_per_cm: Optional[float] = None, default_garment_type: str = "trousers",
                 calibrate_t1: int = 50, calibrate_t2: int = 150):
        self._client = client
        self._controller = controller
        self._pipeline = pipeline
        self.factory_id = factory_id
        self.garment_type = default_garment_type
        self.calibrate_t1 = calibrate_t1
        self.calibrate_t2 = calibrate_t2

        self._pixels_per_cm: Optional[float] = None
        self._capture_lock = threading.Lock()

        if pixels_per_cm is not None:
            if is_valid_pixels_per_cm(pixels_per_cm):
                self._pixels_per_cm = float(pixels_per_cm)
            else:
                logger.warning(f"Ignoring invalid initial calibration {pixels_per_cm!r}")

    @property
    def pixels_per_cm(self) -> Optional[float]:
        """Current calibration constant, or None if never calibrated."""
        return self._pixels_per_cm

    @property
    def is_calibrated(self) -> bool:
        return self._pixels_per_cm is not None

    # ------------------------------------------------------------------
    # Calibration
    # ------------------------------------------------------------------

    def detect_calibration(self, t1: Optional[int] = None, t2: Optional[int] = None) -> CalibrationOutcome:
        """Ask the backend to detect the calibration target.

        Success requires both the backend's ``success`` flag and a strictly
        positive finite ``pixels_per_cm``. Anything else is a failed outcome
        with a reason. The session's constant is never touched here.

        Raises
        ------
        TransportError
            Backend unreachable, timed out, or replied with garbage.
        """
        t1 = self.calibrate_t1 if t1 is None else t1
        t2 = self.calibrate_t2 if t2 is None else t2
        reply = self._client.calibrate(t1, t2)

        debug_image = None
        if reply.get("debug_image"):
            try:
                debug_image = EvidenceImage.from_data_url(ImageRole.DEBUG, reply["debug_image"])
            except ValueError as e:
                logger.warning(f"Discarding calibration debug image: {e}")

        raw_value = reply.get("pixels_per_cm")
        value = coerce_pixels_per_cm(raw_value)
        message = reply.get("message")
        if message is not None:
            message = str(message)

        if not reply.get("success"):
            reason = message or "Calibration target not detected"
            return CalibrationOutcome(success=False, reason=reason, debug_image=debug_image)

        if not is_valid_pixels_per_cm(value):
            reason = f"Backend reported success with invalid pixels_per_cm {raw_value!r}"
            logger.warning(reason)
            return CalibrationOutcome(success=False, reason=reason, debug_image=debug_image)

        logger.info(f"Calibration detected: {value:.3f} px/cm (t1={t1}, t2={t2})")
        return CalibrationOutcome(
            success=True,
            pixels_per_cm=value,
            reason=message,
            debug_image=debug_image,
        )

    def apply_calibration(self, value: Union[float, CalibrationOutcome]) -> float:
        """Make ``value`` the session's calibration constant.

        Accepts a number or a successful ``CalibrationOutcome``. Applying
        the same value twice is a no-op.

        Raises
        ------
        ValidationError
            For failed outcomes and non-positive, NaN or infinite values.
            The existing constant is kept.
        """
        if isinstance(value, CalibrationOutcome):
            if not value.success:
                raise ValidationError(f"Cannot apply failed calibration: {value.reason}")
            value = value.pixels_per_cm

        if not is_valid_pixels_per_cm(value):
            raise ValidationError(f"pixels_per_cm must be a positive finite number, got {value!r}")

        value = float(value)
        if value != self._pixels_per_cm:
            logger.info(f"Calibration applied: {self._pixels_per_cm} -> {value:.3f} px/cm")
        self._pixels_per_cm = value
        return value

    def load_saved_calibration(self) -> Optional[float]:
        """Apply the constant persisted on the backend, if it is valid.

        Returns the constant now in effect.
        """
        saved = self._client.get_calibration()
        if is_valid_pixels_per_cm(saved):
            return self.apply_calibration(saved)
        logger.info(f"No valid saved calibration on backend ({saved!r}); keeping {self._pixels_per_cm}")
        return self._pixels_per_cm

    # ------------------------------------------------------------------
    # Measurement
    # ------------------------------------------------------------------

    def measure(self, garment_type: Optional[str] = None) -> MeasurementOutcome:
        """Capture and measure one garment.

        A QC FAIL is a normal outcome (``outcome.qc_failed``). A FAIL
        without reasons is kept but listed in ``outcome.defects``.

        Raises
        ------
        ValidationError
            If the session has no calibration constant.
        CaptureInProgressError
            If another measurement on this session has not returned yet.
        TransportError
            Backend unreachable, timed out, or reported a processing error.
        """
        garment_type = garment_type or self.garment_type
        if not garment_type:
            raise ValidationError("garment_type is required")
        if self._pixels_per_cm is None:
            raise ValidationError("Session is not calibrated")

        if not self._capture_lock.acquire(blocking=False):
            raise CaptureInProgressError("A capture is already in progress on this session")
        try:
            pixels_per_cm = self._pixels_per_cm
            result = self._client.capture(pixels_per_cm, garment_type)
        finally:
            self._capture_lock.release()

        defects = capture_defects(result)
        for defect in defects:
            logger.warning(f"Vision backend reply defect: {defect}")

        logger.info(
            f"Measured {garment_type}: size={result.detected_size} "
            f"status={result.qc_status.value} images={len(result.images)}"
        )
        return MeasurementOutcome(
            result=result,
            garment_type=garment_type,
            pixels_per_cm=pixels_per_cm,
            defects=defects,
        )

    def save_report(self, outcome: MeasurementOutcome, garment_ref: Optional[str] = None):
        """Persist a measurement through the report pipeline.

        Returns
        -------
        ReportOutcome
            Always carries the record id once the record insert succeeded.
        """
        if self._pipeline is None:
            raise ValidationError("Session has no report pipeline")
        context = ReportContext(
            garment_type=outcome.garment_type,
            pixels_per_cm=outcome.pixels_per_cm,
            factory_id=self.factory_id,
            garment_ref=garment_ref,
        )
        return self._pipeline.save(outcome.result, context)

    def save_reference(self, size: str, outcome: Optional[MeasurementOutcome] = None,
                       manual_values: Optional[Dict[str, object]] = None,
                       garment_type: Optional[str] = None) -> dict:
        """Register a reference garment on the backend.

        Give exactly one source: a captured ``outcome`` (its measurements
        and MEASURE image are sent) or ``manual_values``, a mapping of
        measurement name to value in centimetres.

        Returns
        -------
        dict
            The backend's reply.

        Raises
        ------
        ValidationError
            Blank size label, zero or two sources, a capture without a
            MEASURE image, or an empty or non-numeric manual entry.
        TransportError
            Backend unreachable or rejected the reference.
        """
        size = (size or "").strip()
        if not size:
            raise ValidationError("Size label is required")
        if (outcome is None) == (manual_values is None):
            raise ValidationError("Give either a captured outcome or manual values")

        if outcome is not None:
            image = outcome.result.image(ImageRole.MEASURE)
            if image is None:
                raise ValidationError("Capture has no MEASURE image to store as reference")
            garment_type = garment_type or outcome.garment_type
            measurements = list(outcome.result.measurements)
        else:
            image = None
            garment_type = garment_type or self.garment_type
            measurements = self._manual_measurements(manual_values)

        if not garment_type:
            raise ValidationError("garment_type is required")

        reply = self._client.save_reference_garment(garment_type, size, measurements, image=image)
        logger.info(
            f"Reference saved: {garment_type} size {size}, {len(measurements)} measurement(s), "
            f"{'camera' if image is not None else 'manual'}"
        )
        return reply

    @staticmethod
    def _manual_measurements(values: Dict[str, object]) -> List[Measurement]:
        if not values:
            raise ValidationError("No manual measurements given")
        measurements = []
        for name, raw in values.items():
            try:
                value = float(raw)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"Manual value for '{name}' is not a number: {raw!r}") from e
            if not math.isfinite(value):
                raise ValidationError(f"Manual value for '{name}' must be finite, got {raw!r}")
            measurements.append(Measurement(name=name, value=value, unit="cm"))
        return measurements

    def rotate_camera(self, angle: Optional[int] = None) -> int:
        """Rotate the camera and return the backend's new rotation."""
        rotation = self._client.rotate_camera(angle)
        logger.info(f"Camera rotation: {rotation}")
        return rotation

    # ------------------------------------------------------------------
    # Screen scopes
    # ------------------------------------------------------------------

    @contextmanager
    def calibration_mode(self):
        """Calibration overlay for the duration of the block."""
        with self._controller.mode(DeviceMode.CALIBRATION):
            yield self

    @contextmanager
    def measure_mode(self, garment_type: Optional[str] = None):
        """Measurement preview for the duration of the block."""
        params = {"garment_type": garment_type or self.garment_type}
        if self._pixels_per_cm is not None:
            params["pixels_per_cm"] = self._pixels_per_cm
        with self._controller.mode(DeviceMode.MEASURE, **params):
            yield self
