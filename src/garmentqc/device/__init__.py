"""Capture device access: vision backend client and mode controller."""

from garmentqc.device.mode_controller import DeviceModeController
from garmentqc.device.vision_client import VisionBackendClient

__all__ = ['DeviceModeController', 'VisionBackendClient']
