"""Operator session: calibration and measurement on one device."""

from garmentqc.session.capture_session import CaptureSession

__all__ = ['CaptureSession']
