"""Device mode controller.

Tells the capture device which mode to run (raw passthrough, calibration
overlay, measurement) and guarantees the previous mode is requested again
when a scoped mode ends.

Mode changes are requests: the controller remembers what it last asked
for, not what the device is actually doing.

Precondition: one controller per physical device and one caller driving
it at a time. This is not lock-enforced.
"""

import logging
from contextlib import contextmanager
from typing import Callable, Optional

from garmentqc.contracts.failure import DeviceModeRestoreFailure
from garmentqc.schemas.domain import DeviceMode

__all__ = ['DeviceModeController']

logger = logging.getLogger(__name__)


class DeviceModeController:
    """Scoped device mode requests with restore-on-exit.

    Parameters
    ----------
    client : VisionBackendClient
        Anything with ``set_mode(mode, **params)``.
    default_mode : DeviceMode
        Mode restored when no mode has been requested yet.

    Examples
    --------
    >>> with controller.mode(DeviceMode.CALIBRATION):
    ...     session.detect_calibration()
    # RAW (or whatever was requested before) is requested again here
    """

    def __init__(self, client, default_mode: DeviceMode = DeviceMode.RAW):
        self._client = client
        self._default_mode = DeviceMode(default_mode)
        self._requested: Optional[DeviceMode] = None
        self._requested_params: dict = {}
        self.restore_failures: list[DeviceModeRestoreFailure] = []

    @property
    def requested_mode(self) -> DeviceMode:
        """Last successfully requested mode, or the default."""
        return self._requested or self._default_mode

    def set_mode(self, mode: DeviceMode, **params) -> None:
        """Send a mode request; returns once the backend acknowledged it.

        Raises whatever the client raises. On failure the remembered mode
        is left unchanged.
        """
        mode = DeviceMode(mode)
        self._client.set_mode(mode, **params)
        self._requested = mode
        self._requested_params = dict(params)
        logger.debug(f"Device mode requested: {mode.value}")

    @contextmanager
    def mode(self, mode: DeviceMode, **params):
        """Enter ``mode`` for the duration of a ``with`` block.

        If entering fails, the exception propagates before the block runs
        and nothing is restored. Once entered, the prior mode is requested
        again on every exit path: normal return, exception, interrupt or
        generator close. A failed restore is logged and never replaces the
        block's own result or exception.
        """
        previous = self.requested_mode
        previous_params = dict(self._requested_params)

        self.set_mode(mode, **params)
        try:
            yield self
        finally:
            self._restore(previous, previous_params)

    def with_mode(self, mode: DeviceMode, fn: Callable, *args, **kwargs):
        """Run ``fn(*args, **kwargs)`` inside ``mode`` and return its result."""
        with self.mode(mode):
            return fn(*args, **kwargs)

    def _restore(self, mode: DeviceMode, params: dict) -> None:
        try:
            self.set_mode(mode, **params)
        except Exception as e:
            failure = DeviceModeRestoreFailure(f"Could not restore device mode {mode.value}: {e}")
            self.restore_failures.append(failure)
            logger.warning(str(failure))
