"""Durable storage: evidence objects and the record store."""

from garmentqc.storage.asset_uploader import (
    AssetStore,
    AssetUploader,
    LocalAssetStore,
    S3AssetStore,
)
from garmentqc.storage.record_store import RecordStore, SQLiteRecordStore

__all__ = [
    'AssetStore',
    'AssetUploader',
    'LocalAssetStore',
    'S3AssetStore',
    'RecordStore',
    'SQLiteRecordStore',
]
