"""Report persistence and kiosk runtime wiring."""

from garmentqc.pipeline.report_pipeline import ReportOutcome, ReportPipeline
from garmentqc.pipeline.orchestrator import KioskOrchestrator

__all__ = ['ReportOutcome', 'ReportPipeline', 'KioskOrchestrator']
