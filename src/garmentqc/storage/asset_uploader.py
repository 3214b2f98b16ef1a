"""Evidence image upload to durable object storage.

``AssetStore`` is the object-store port: ``put(data, content_type, path)``
returns a stable reference and overwrites whatever is at ``path``.
``AssetUploader`` adds the deterministic path layout on top. Neither knows
anything about QC verdicts.

Path layout::

    {key_prefix}/{factory}/{record_id}_{ROLE}{ext}

e.g. ``garment/Lahore_Unit_2/3f2c..._MEASURE.png``. The same record and role always
map to the same path, so a re-run overwrites instead of duplicating.
"""

import logging
import mimetypes
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import boto3

from garmentqc.contracts.base import require
from garmentqc.schemas.domain import EvidenceImage, ImageAsset, ImageRole

__all__ = ['AssetStore', 'LocalAssetStore', 'S3AssetStore', 'AssetUploader', 'safe_segment']

logger = logging.getLogger(__name__)

_UNSAFE = re.compile(r"[^A-Za-z0-9_-]")


def safe_segment(value: str) -> str:
    """Replace characters other than letters, digits, ``-`` and ``_`` with ``_``."""
    return _UNSAFE.sub("_", str(value))


class AssetStore(ABC):
    """Object storage port."""

    @abstractmethod
    def put(self, data: bytes, content_type: str, path: str) -> str:
        """Store ``data`` at ``path`` (overwriting) and return its reference."""
        ...


class LocalAssetStore(AssetStore):
    """Store objects as files under ``root_dir``; the reference is the file path."""

    def __init__(self, root_dir: Path | str):
        self.root_dir = Path(root_dir)
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def put(self, data: bytes, content_type: str, path: str) -> str:
        target = self.root_dir / path
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        return str(target)


class S3AssetStore(AssetStore):
    """S3-compatible object store (AWS S3, Cloudflare R2, MinIO).

    Credentials come from the environment: ``R2_ENDPOINT`` (used when no
    ``endpoint_url`` is given), ``R2_ACCESS_KEY`` and ``R2_SECRET_KEY``.

    Parameters
    ----------
    bucket : str
        Target bucket.
    endpoint_url : str, optional
        S3 API endpoint.
    public_domain : str, optional
        When set, references are public URLs ``{public_domain}/{path}``;
        otherwise the object key itself.
    region : str
        Region name; R2 expects ``auto``.
    client : optional
        Pre-built boto3 S3 client (tests inject a stub).
    """

    def __init__(self, bucket: str, endpoint_url: Optional[str] = None,
                 public_domain: Optional[str] = None, region: str = "auto", client=None):
        require(bool(bucket), "S3AssetStore requires a bucket")
        self.bucket = bucket
        self.public_domain = public_domain.rstrip("/") if public_domain else None
        self._client = client or boto3.client(
            "s3",
            endpoint_url=endpoint_url or os.environ.get("R2_ENDPOINT"),
            aws_access_key_id=os.environ.get("R2_ACCESS_KEY"),
            aws_secret_access_key=os.environ.get("R2_SECRET_KEY"),
            region_name=region,
        )

    def put(self, data: bytes, content_type: str, path: str) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=path,
            Body=data,
            ContentType=content_type,
        )
        if self.public_domain:
            return f"{self.public_domain}/{path}"
        return path


class AssetUploader:
    """Upload evidence images under deterministic, per-record paths."""

    def __init__(self, store: AssetStore, key_prefix: str = "garment"):
        self.store = store
        self.key_prefix = key_prefix.strip("/")

    def build_path(self, factory_id: str, record_id: str, role: ImageRole,
                   content_type: str = "image/png") -> str:
        """Storage path for one evidence image.

        Raises
        ------
        ContractViolation
            If the factory or record identifier is empty.
        """
        require(bool(factory_id), "Upload path requires a factory id")
        require(bool(record_id), "Upload path requires a record id")
        role = ImageRole(role)
        ext = mimetypes.guess_extension(content_type or "") or ".png"
        name = f"{safe_segment(record_id)}_{role.value}{ext}"
        parts = [p for p in (self.key_prefix, safe_segment(factory_id), name) if p]
        return "/".join(parts)

    def upload(self, image: EvidenceImage, factory_id: str, record_id: str) -> ImageAsset:
        """Upload one image and return its asset reference.

        Store errors propagate; the report pipeline decides what they mean.
        """
        path = self.build_path(factory_id, record_id, image.role, image.content_type)
        reference = self.store.put(image.data, image.content_type, path)
        logger.debug(f"Uploaded {image.role.value} image ({len(image.data)} bytes) -> {path}")
        return ImageAsset(role=image.role, reference=reference, measurement_id=record_id)
