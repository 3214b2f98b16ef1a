"""`garmentqc` - operator console core for a garment-measurement kiosk.

Subpackages:
- device: Vision backend client, device mode controller
- session: Calibration and measurement session
- pipeline: Report pipeline, kiosk orchestrator
- storage: Evidence uploads, record store
- standards: Size-standard ingestion
"""

__version__ = "0.1.0"
