from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from garmentqc.contracts.failure import RecordStoreError
from garmentqc.schemas.domain import (
    ImageRole,
    Measurement,
    MeasurementRecord,
    PomEntry,
    QCStatus,
)
from garmentqc.storage.record_store import SQLiteRecordStore

pytestmark = [pytest.mark.unit, pytest.mark.storage]

T0 = datetime(2025, 3, 5, 12, 0, tzinfo=timezone.utc)


def make_record(status="PASS", minutes=0, **kwargs):
    return MeasurementRecord(
        factory_id=kwargs.pop("factory_id", "factory-1"),
        garment_type=kwargs.pop("garment_type", "trousers"),
        pixels_per_cm=kwargs.pop("pixels_per_cm", 8.8),
        qc_status=status,
        detected_size=kwargs.pop("detected_size", "M"),
        confidence=0.9,
        measured_at=T0 + timedelta(minutes=minutes),
        measurements=[Measurement(name="waist", value=82.4), Measurement(name="hip", value=101.0)],
        **kwargs,
    )


class TestMeasurements:

    def test_insert_and_fetch_round_trip(self, record_store):
        record_id = record_store.insert_measurement(
            make_record("FAIL", garment_ref="PO-7", qc_failures=["waist +2cm"])
        )

        saved = record_store.get_measurement(record_id)

        assert saved.id == record_id
        assert saved.qc_status == QCStatus.FAIL
        assert saved.qc_failures == ["waist +2cm"]
        assert saved.garment_ref == "PO-7"
        assert [m.name for m in saved.measurements] == ["waist", "hip"]
        assert saved.measured_at == T0

    def test_each_insert_gets_a_new_id(self, record_store):
        first = record_store.insert_measurement(make_record())
        second = record_store.insert_measurement(make_record())
        assert first != second

    def test_unknown_id_returns_none(self, record_store):
        assert record_store.get_measurement("missing") is None

    def test_list_newest_first_with_limit(self, record_store):
        for minutes, size in [(0, "S"), (10, "M"), (5, "L")]:
            record_store.insert_measurement(make_record(minutes=minutes, detected_size=size))

        newest = record_store.list_measurements(limit=2)
        oldest = record_store.list_measurements(limit=3, newest_first=False)

        assert [r.detected_size for r in newest] == ["M", "L"]
        assert [r.detected_size for r in oldest] == ["S", "L", "M"]

    def test_insert_failure_raises_record_store_error(self, temp_dir):
        store = SQLiteRecordStore(temp_dir / "broken.db")
        store._get_connection().execute("DROP TABLE measurements")
        try:
            with pytest.raises(RecordStoreError):
                store.insert_measurement(make_record())
        finally:
            store.close()


class TestImageLinks:

    def test_link_and_relink_role(self, record_store):
        record_id = record_store.insert_measurement(make_record())

        record_store.link_image(record_id, ImageRole.DETECT, "https://cdn/a_DETECT.png")
        record_store.link_image(record_id, ImageRole.MEASURE, "https://cdn/a_MEASURE.png")
        record_store.link_image(record_id, ImageRole.MEASURE, "https://cdn/b_MEASURE.png")

        images = record_store.get_images(record_id)
        assert [(a.role, a.reference) for a in images] == [
            (ImageRole.MEASURE, "https://cdn/b_MEASURE.png"),
            (ImageRole.DETECT, "https://cdn/a_DETECT.png"),
        ]

    def test_link_to_unknown_record_fails(self, record_store):
        with pytest.raises(RecordStoreError):
            record_store.link_image("no-such-record", ImageRole.MEASURE, "x")


class TestStatistics:

    def test_empty_store(self, record_store):
        assert record_store.get_statistics() == {
            "total": 0, "passed": 0, "failed": 0, "unknown": 0, "pass_rate": 0,
        }

    def test_counts_and_pass_rate(self, record_store):
        for i, status in enumerate(["PASS", "PASS", "FAIL", "UNKNOWN"]):
            record_store.insert_measurement(make_record(status, minutes=i))

        stats = record_store.get_statistics()

        assert stats == {"total": 4, "passed": 2, "failed": 1, "unknown": 1, "pass_rate": 50}

    def test_limit_counts_most_recent_only(self, record_store):
        record_store.insert_measurement(make_record("FAIL", minutes=0))
        record_store.insert_measurement(make_record("PASS", minutes=1))
        record_store.insert_measurement(make_record("PASS", minutes=2))

        stats = record_store.get_statistics(limit=2)

        assert stats["total"] == 2
        assert stats["pass_rate"] == 100

    def test_reports_frame(self, record_store):
        record_store.insert_measurement(make_record("PASS", minutes=0))
        record_store.insert_measurement(make_record("FAIL", minutes=1))

        df = record_store.reports_frame(limit=10)

        assert isinstance(df, pd.DataFrame)
        assert list(df["qc_status"]) == ["FAIL", "PASS"]
        assert pd.api.types.is_datetime64_any_dtype(df["measured_at"])


class TestStandards:

    def sizes(self, *labels):
        return {
            label: [PomEntry(code="P1", description="Waist", tol_minus="-1", tol_plus="1", value=str(80 + i))]
            for i, label in enumerate(labels)
        }

    def test_upsert_and_get(self, record_store):
        record_store.upsert_standard("trousers", "ST-204", self.sizes("S", "M"), "cm")

        standard = record_store.get_standard("trousers", "ST-204")

        assert standard.standard_id == "trousers-ST-204"
        assert standard.size_labels == ["S", "M"]
        assert standard.sizes["M"][0].value == "81"
        assert standard.updated_at is not None

    def test_upsert_replaces_whole_size_map(self, record_store):
        record_store.upsert_standard("trousers", "ST-204", self.sizes("S", "M", "L"), "cm")
        record_store.upsert_standard("trousers", "ST-204", self.sizes("M", "XL"), "in")

        standard = record_store.get_standard("trousers", "ST-204")

        assert standard.size_labels == ["M", "XL"]
        assert standard.unit == "in"
        assert len(record_store.list_standards()) == 1

    def test_missing_standard_returns_none(self, record_store):
        assert record_store.get_standard("trousers", "nope") is None

    def test_list_standards(self, record_store):
        record_store.upsert_standard("trousers", "B", self.sizes("S"), "cm")
        record_store.upsert_standard("short_sleeve_top", "A", self.sizes("M"), "cm")

        ids = [s["standard_id"] for s in record_store.list_standards()]

        assert ids == ["short_sleeve_top-A", "trousers-B"]


def test_context_manager_closes(temp_dir):
    with SQLiteRecordStore(temp_dir / "ctx.db") as store:
        store.insert_measurement(make_record())
    assert store._conn is None


def test_in_memory_database():
    store = SQLiteRecordStore(":memory:")
    try:
        record_id = store.insert_measurement(make_record())
        assert store.get_measurement(record_id) is not None
    finally:
        store.close()
