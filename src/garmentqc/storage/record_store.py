"""Record store: measurement reports, image links and size standards.

``RecordStore`` is the port the report pipeline and standards ingestion
write through. ``SQLiteRecordStore`` is the bundled implementation.

**Database Schema:**

- ``measurements``: one row per saved QC report. ``qc_failures`` and
  ``measurement_data`` are JSON; ``measurement_data`` maps measurement
  name to ``{"value", "unit"}`` in capture order.
- ``measurement_images``: one row per (measurement, role), pointing at the
  uploaded object. Re-linking a role replaces its reference.
- ``garment_standards``: one row per (garment type, style code) holding the
  full size map as JSON. Upserts replace the whole map.
"""

import json
import logging
import sqlite3
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from garmentqc.contracts.failure import RecordStoreError
from garmentqc.schemas.domain import (
    ImageAsset,
    ImageRole,
    Measurement,
    MeasurementRecord,
    PomEntry,
    SizeStandard,
)

__all__ = ['RecordStore', 'SQLiteRecordStore']

logger = logging.getLogger(__name__)


class RecordStore(ABC):
    """Persistence port for reports and standards."""

    @abstractmethod
    def insert_measurement(self, record: MeasurementRecord) -> str:
        """Persist a record and return its generated id."""
        ...

    @abstractmethod
    def link_image(self, measurement_id: str, role: ImageRole, reference: str) -> None:
        """Associate an uploaded image with a saved record."""
        ...

    @abstractmethod
    def list_measurements(self, limit: int = 100, newest_first: bool = True) -> List[MeasurementRecord]:
        """Most recent records first (by default)."""
        ...

    @abstractmethod
    def upsert_standard(self, garment_type: str, style_code: str,
                        size_map: Dict[str, List[PomEntry]], unit: str) -> SizeStandard:
        """Insert or fully replace the standard for (garment type, style code)."""
        ...

    @abstractmethod
    def get_standard(self, garment_type: str, style_code: str) -> Optional[SizeStandard]:
        ...


class SQLiteRecordStore(RecordStore):
    """SQLite-backed record store.

    All methods are thread-safe via an internal lock; the report pipeline's
    upload workers never touch the store, but link writes and listing may
    come from different threads.

    Typical Usage::

        with SQLiteRecordStore(db_path) as store:
            record_id = store.insert_measurement(record)
            store.link_image(record_id, ImageRole.MEASURE, url)
            print(store.get_statistics())
    """

    def __init__(self, db_path: Path | str):
        """Initialize store.

        Parameters
        ----------
        db_path : Path or str
            Path to SQLite database file, or ``":memory:"``. Created if it
            doesn't exist. Typically: output_dirs/db/garmentqc_reports.db
        """
        self.db_path = db_path if str(db_path) == ":memory:" else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._conn = None
        self._lock = threading.Lock()

        self._init_database()
        logger.info(f"Record store initialized: {self.db_path}")

    def _get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
        return self._conn

    def _init_database(self):
        """Create database schema if it doesn't exist."""
        conn = self._get_connection()

        with self._lock:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS measurements (
                    id TEXT PRIMARY KEY,
                    factory_id TEXT NOT NULL,
                    garment_ref TEXT,
                    garment_type TEXT NOT NULL,
                    detected_size TEXT,
                    confidence REAL,
                    pixels_per_cm REAL NOT NULL,
                    qc_status TEXT NOT NULL,
                    qc_failures TEXT NOT NULL DEFAULT '[]',
                    measurement_data TEXT NOT NULL DEFAULT '{}',
                    measured_at TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS measurement_images (
                    measurement_id TEXT NOT NULL REFERENCES measurements(id) ON DELETE CASCADE,
                    image_type TEXT NOT NULL,
                    url TEXT NOT NULL,
                    created_at TEXT DEFAULT CURRENT_TIMESTAMP,
                    UNIQUE (measurement_id, image_type)
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS garment_standards (
                    garment_type TEXT NOT NULL,
                    style_code TEXT NOT NULL,
                    unit TEXT NOT NULL,
                    size_map TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (garment_type, style_code)
                )
            """)

            conn.execute("CREATE INDEX IF NOT EXISTS idx_measured_at ON measurements(measured_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_factory_id ON measurements(factory_id)")

            conn.commit()

    # ------------------------------------------------------------------
    # Measurements
    # ------------------------------------------------------------------

    def insert_measurement(self, record: MeasurementRecord) -> str:
        """Persist a QC report.

        Parameters
        ----------
        record : MeasurementRecord
            Unsaved record. Its ``id`` is ignored; a new UUID is generated.

        Returns
        -------
        str
            The generated record id. The record exists if and only if
            this returns.

        Raises
        ------
        RecordStoreError
            If the insert fails. Nothing is written in that case.
        """
        record_id = str(uuid.uuid4())
        conn = self._get_connection()

        with self._lock:
            try:
                conn.execute("""
                    INSERT INTO measurements
                    (id, factory_id, garment_ref, garment_type, detected_size, confidence,
                     pixels_per_cm, qc_status, qc_failures, measurement_data, measured_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    record_id,
                    record.factory_id,
                    record.garment_ref,
                    record.garment_type,
                    record.detected_size,
                    record.confidence,
                    record.pixels_per_cm,
                    record.qc_status.value,
                    json.dumps(record.qc_failures),
                    json.dumps(record.measurement_data()),
                    record.measured_at.isoformat(),
                ))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise RecordStoreError(f"Measurement insert failed: {e}") from e

        logger.debug(f"Inserted measurement {record_id} ({record.qc_status.value})")
        return record_id

    def link_image(self, measurement_id: str, role: ImageRole, reference: str) -> None:
        """Associate an uploaded image with a record; re-linking a role replaces it.

        Raises
        ------
        RecordStoreError
            If the write fails (e.g. unknown measurement id).
        """
        role = ImageRole(role)
        conn = self._get_connection()

        with self._lock:
            try:
                conn.execute("""
                    INSERT INTO measurement_images (measurement_id, image_type, url)
                    VALUES (?, ?, ?)
                    ON CONFLICT (measurement_id, image_type) DO UPDATE SET url = excluded.url
                """, (measurement_id, role.value, reference))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise RecordStoreError(f"Image link failed for {measurement_id}/{role.value}: {e}") from e

    def get_images(self, measurement_id: str) -> List[ImageAsset]:
        """Linked images of one record, in role order."""
        conn = self._get_connection()

        with self._lock:
            rows = conn.execute("""
                SELECT image_type, url FROM measurement_images
                WHERE measurement_id = ?
            """, (measurement_id,)).fetchall()

        order = list(ImageRole)
        assets = [
            ImageAsset(role=ImageRole(row["image_type"]), reference=row["url"], measurement_id=measurement_id)
            for row in rows
        ]
        return sorted(assets, key=lambda a: order.index(a.role))

    def get_measurement(self, measurement_id: str) -> Optional[MeasurementRecord]:
        conn = self._get_connection()

        with self._lock:
            row = conn.execute("SELECT * FROM measurements WHERE id = ?", (measurement_id,)).fetchone()

        return self._row_to_record(row) if row else None

    def list_measurements(self, limit: int = 100, newest_first: bool = True) -> List[MeasurementRecord]:
        """List saved reports.

        Parameters
        ----------
        limit : int
            Maximum number of records.
        newest_first : bool
            Order by ``measured_at`` descending (default) or ascending.
        """
        order = "DESC" if newest_first else "ASC"
        conn = self._get_connection()

        with self._lock:
            rows = conn.execute(f"""
                SELECT * FROM measurements
                ORDER BY measured_at {order}, rowid {order}
                LIMIT ?
            """, (int(limit),)).fetchall()

        return [self._row_to_record(row) for row in rows]

    def get_statistics(self, limit: Optional[int] = None) -> Dict:
        """Summary of QC outcomes.

        Parameters
        ----------
        limit : int, optional
            Only count the ``limit`` most recent reports. All when None.

        Returns
        -------
        dict
            - `total`: reports counted
            - `passed`, `failed`, `unknown`: per-status counts
            - `pass_rate`: integer percent of PASS, 0 when empty
        """
        conn = self._get_connection()
        limit_clause = "LIMIT ?" if limit is not None else ""
        params = (int(limit),) if limit is not None else ()

        with self._lock:
            row = conn.execute(f"""
                SELECT
                    COUNT(*) as total,
                    SUM(CASE WHEN qc_status = 'PASS' THEN 1 ELSE 0 END) as passed,
                    SUM(CASE WHEN qc_status = 'FAIL' THEN 1 ELSE 0 END) as failed,
                    SUM(CASE WHEN qc_status = 'UNKNOWN' THEN 1 ELSE 0 END) as unknown
                FROM (
                    SELECT qc_status FROM measurements
                    ORDER BY measured_at DESC, rowid DESC
                    {limit_clause}
                )
            """, params).fetchone()

        stats = {key: int(row[key] or 0) for key in ("total", "passed", "failed", "unknown")}
        stats["pass_rate"] = round(100 * stats["passed"] / stats["total"]) if stats["total"] else 0
        return stats

    def reports_frame(self, limit: int = 100) -> pd.DataFrame:
        """Recent reports as a DataFrame, newest first."""
        conn = self._get_connection()

        with self._lock:
            df = pd.read_sql_query("""
                SELECT id, measured_at, factory_id, garment_ref, garment_type,
                       detected_size, confidence, pixels_per_cm, qc_status
                FROM measurements
                ORDER BY measured_at DESC, rowid DESC
                LIMIT ?
            """, conn, params=(int(limit),))

        df["measured_at"] = pd.to_datetime(df["measured_at"], utc=True, format="ISO8601")
        return df

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MeasurementRecord:
        data = json.loads(row["measurement_data"] or "{}")
        return MeasurementRecord(
            id=row["id"],
            factory_id=row["factory_id"],
            garment_ref=row["garment_ref"],
            garment_type=row["garment_type"],
            detected_size=row["detected_size"],
            confidence=row["confidence"] or 0.0,
            pixels_per_cm=row["pixels_per_cm"],
            qc_status=row["qc_status"],
            qc_failures=json.loads(row["qc_failures"] or "[]"),
            measurements=[
                Measurement(name=name, value=item["value"], unit=item.get("unit"))
                for name, item in data.items()
            ],
            measured_at=datetime.fromisoformat(row["measured_at"]),
        )

    # ------------------------------------------------------------------
    # Standards
    # ------------------------------------------------------------------

    def upsert_standard(self, garment_type: str, style_code: str,
                        size_map: Dict[str, List[PomEntry]], unit: str) -> SizeStandard:
        """Insert or fully replace one size standard.

        Sizes absent from ``size_map`` are gone afterwards; nothing is
        merged with the previous map.
        """
        standard = SizeStandard(
            garment_type=garment_type,
            style_code=style_code,
            unit=unit,
            sizes=size_map,
            updated_at=datetime.now(timezone.utc),
        )
        payload = json.dumps({
            size: [entry.model_dump() for entry in entries]
            for size, entries in standard.sizes.items()
        })
        conn = self._get_connection()

        with self._lock:
            try:
                conn.execute("""
                    INSERT INTO garment_standards (garment_type, style_code, unit, size_map, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (garment_type, style_code) DO UPDATE SET
                        unit = excluded.unit,
                        size_map = excluded.size_map,
                        updated_at = excluded.updated_at
                """, (garment_type, style_code, unit, payload, standard.updated_at.isoformat()))
                conn.commit()
            except sqlite3.Error as e:
                conn.rollback()
                raise RecordStoreError(f"Standard upsert failed for {standard.standard_id}: {e}") from e

        logger.info(f"Saved standard {standard.standard_id}: {len(standard.sizes)} size(s)")
        return standard

    def get_standard(self, garment_type: str, style_code: str) -> Optional[SizeStandard]:
        conn = self._get_connection()

        with self._lock:
            row = conn.execute("""
                SELECT * FROM garment_standards WHERE garment_type = ? AND style_code = ?
            """, (garment_type, style_code)).fetchone()

        if row is None:
            return None
        sizes = {
            size: [PomEntry(**entry) for entry in entries]
            for size, entries in json.loads(row["size_map"]).items()
        }
        return SizeStandard(
            garment_type=row["garment_type"],
            style_code=row["style_code"],
            unit=row["unit"],
            sizes=sizes,
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )

    def list_standards(self) -> List[Dict]:
        """Summary of stored standards: id, garment type, style, sizes, updated_at."""
        conn = self._get_connection()

        with self._lock:
            rows = conn.execute("""
                SELECT garment_type, style_code, unit, size_map, updated_at
                FROM garment_standards ORDER BY garment_type, style_code
            """).fetchall()

        return [
            {
                "standard_id": f"{row['garment_type']}-{row['style_code']}",
                "garment_type": row["garment_type"],
                "style_code": row["style_code"],
                "unit": row["unit"],
                "sizes": list(json.loads(row["size_map"])),
                "updated_at": row["updated_at"],
            }
            for row in rows
        ]

    def close(self):
        """Close database connection. Safe to call multiple times."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
