"""Report pipeline: durable QC report plus best-effort evidence.

Order of operations for one ``save`` call:

1. Validate the context, then insert the MeasurementRecord. If the insert
   fails the call fails and no upload is started.
2. Upload every present evidence image concurrently, one per role.
3. Wait for all uploads to settle.
4. Link each successfully uploaded image to the record.
5. Return the record id, whatever happened in steps 2-4.

Upload and link failures become ``PartialPersistenceWarning`` entries on the
result. A report without some of its images is still a valid report; the
gap shows up as missing images when the report is viewed.
"""

import logging
from concurrent.futures import ALL_COMPLETED, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import List

from garmentqc.contracts.base import require
from garmentqc.contracts.failure import PartialPersistenceWarning, ValidationError
from garmentqc.schemas.domain import (
    CaptureResult,
    EvidenceImage,
    ImageAsset,
    MeasurementRecord,
    ReportContext,
    is_valid_pixels_per_cm,
)

__all__ = ['ReportOutcome', 'ReportPipeline']

logger = logging.getLogger(__name__)


@dataclass
class ReportOutcome:
    """Result of one save: the record id is always set."""
    record_id: str
    linked_images: List[ImageAsset] = field(default_factory=list)
    warnings: List[PartialPersistenceWarning] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        """True when every present image was uploaded and linked."""
        return not self.warnings


class ReportPipeline:
    """Persist capture results as QC reports.

    Parameters
    ----------
    record_store : RecordStore
        Durable store for the record and its image links.
    uploader : AssetUploader
        Evidence image uploader.
    max_workers : int
        Upper bound on concurrent uploads; the pool never exceeds the
        number of images in the capture.
    """

    def __init__(self, record_store, uploader, max_workers: int = 4):
        require(max_workers >= 1, "max_workers must be >= 1")
        self.record_store = record_store
        self.uploader = uploader
        self.max_workers = max_workers

    def save(self, capture: CaptureResult, context: ReportContext) -> ReportOutcome:
        """Save one capture.

        Parameters
        ----------
        capture : CaptureResult
            Result of a measurement request.
        context : ReportContext
            Garment type, calibration constant, factory, optional garment ref.

        Returns
        -------
        ReportOutcome
            Record id, linked images, and non-fatal warnings.

        Raises
        ------
        ValidationError
            If the context is incomplete. Nothing is written.
        RecordStoreError
            If the record insert fails. Nothing is uploaded.
        """
        self._validate(context)

        record = MeasurementRecord.from_capture(capture, context)
        record_id = self.record_store.insert_measurement(record)
        require(bool(record_id), "Record store returned an empty id")
        logger.info(f"Saved measurement {record_id} ({record.qc_status.value})")

        outcome = ReportOutcome(record_id=record_id)

        images = self._evidence_images(capture, record_id)
        uploaded = self._upload_all(images, context.factory_id, record_id, outcome)
        if uploaded:
            self._link_all(uploaded, record_id, outcome)

        if outcome.warnings:
            logger.warning(
                f"Measurement {record_id} saved with {len(outcome.warnings)} evidence issue(s); "
                f"{len(outcome.linked_images)}/{len(images)} image(s) linked"
            )
        return outcome

    @staticmethod
    def _validate(context: ReportContext) -> None:
        if not context.factory_id:
            raise ValidationError("factory_id is required")
        if not context.garment_type:
            raise ValidationError("garment_type is required")
        if not is_valid_pixels_per_cm(context.pixels_per_cm):
            raise ValidationError(f"pixels_per_cm must be positive and finite, got {context.pixels_per_cm!r}")

    @staticmethod
    def _evidence_images(capture: CaptureResult, record_id: str) -> List[EvidenceImage]:
        """One image per role, first occurrence wins.

        Each role maps to one storage path and one link slot.
        """
        images = {}
        for image in capture.images:
            if image.role in images:
                logger.warning(f"Measurement {record_id}: dropping duplicate {image.role.value} image")
                continue
            images[image.role] = image
        return list(images.values())

    def _upload_all(self, images: List[EvidenceImage], factory_id: str, record_id: str,
                    outcome: ReportOutcome) -> List[ImageAsset]:
        """Upload every image; returns the successful uploads in capture order."""
        if not images:
            logger.debug(f"Measurement {record_id} has no evidence images")
            return []

        workers = min(self.max_workers, len(images))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="evidence-upload") as pool:
            futures = [
                (image, pool.submit(self.uploader.upload, image, factory_id, record_id))
                for image in images
            ]
            wait([f for _, f in futures], return_when=ALL_COMPLETED)

        uploaded = []
        for image, future in futures:
            error = future.exception()
            if error is None:
                uploaded.append(future.result())
                continue
            warning = PartialPersistenceWarning("upload", image.role.value, str(error))
            outcome.warnings.append(warning)
            logger.warning(f"Measurement {record_id}: {warning}")
        return uploaded

    def _link_all(self, assets: List[ImageAsset], record_id: str, outcome: ReportOutcome) -> None:
        for asset in assets:
            try:
                self.record_store.link_image(record_id, asset.role, asset.reference)
            except Exception as e:
                warning = PartialPersistenceWarning("link", asset.role.value, str(e))
                outcome.warnings.append(warning)
                logger.warning(f"Measurement {record_id}: {warning}")
                continue
            outcome.linked_images.append(asset)
