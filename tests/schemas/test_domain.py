import base64
import math

import pytest

from garmentqc.schemas.domain import (
    CaptureResult,
    EvidenceImage,
    ImageRole,
    Measurement,
    MeasurementRecord,
    QCStatus,
    ReportContext,
    SizeStandard,
    coerce_pixels_per_cm,
    is_valid_pixels_per_cm,
)

pytestmark = pytest.mark.unit


@pytest.mark.parametrize("value,expected", [
    (8.8, True), (1, True), (0, False), (-1.5, False),
    (math.nan, False), (math.inf, False), (None, False), ("9", False), (True, False),
])
def test_is_valid_pixels_per_cm(value, expected):
    assert is_valid_pixels_per_cm(value) is expected


@pytest.mark.parametrize("value,expected", [
    (9.5, 9.5), (8, 8.0), ("9.5", 9.5), (" 10 ", 10.0),
    ("abc", None), ("", None), (None, None), (True, None), ([9.5], None),
])
def test_coerce_pixels_per_cm(value, expected):
    assert coerce_pixels_per_cm(value) == expected


def test_evidence_image_from_data_url():
    url = "data:image/jpeg;base64," + base64.b64encode(b"jpeg-bytes").decode()

    image = EvidenceImage.from_data_url(ImageRole.DETECT, url)

    assert image.data == b"jpeg-bytes"
    assert image.content_type == "image/jpeg"


def test_evidence_image_from_bare_base64_defaults_to_png():
    image = EvidenceImage.from_data_url(ImageRole.EDGE, base64.b64encode(b"raw").decode())
    assert image.content_type == "image/png"


def test_evidence_image_rejects_bad_base64():
    with pytest.raises(ValueError, match="not valid base64"):
        EvidenceImage.from_data_url(ImageRole.MEASURE, "data:image/png;base64,!!!")


@pytest.mark.parametrize("value", [123, None, b"data:image/png;base64,AAAA", {"url": "x"}])
def test_evidence_image_rejects_non_string_input(value):
    with pytest.raises(ValueError, match="must be a data URL string"):
        EvidenceImage.from_data_url(ImageRole.DEBUG, value)


@pytest.mark.parametrize("raw,expected", [
    ("PASS", QCStatus.PASS), ("fail", QCStatus.FAIL), (" Unknown ", QCStatus.UNKNOWN),
    ("", QCStatus.UNKNOWN), (None, QCStatus.UNKNOWN), ("WARN", QCStatus.UNKNOWN),
])
def test_capture_status_normalization(raw, expected):
    assert CaptureResult(qc_status=raw).qc_status == expected


def test_capture_null_confidence_is_zero():
    assert CaptureResult(confidence=None).confidence == 0.0


def test_measurement_unit_defaults_to_cm():
    assert Measurement(name="waist", value=80, unit=None).unit == "cm"
    assert Measurement(name="waist", value=31.5, unit="in").unit == "in"


def test_record_from_capture_prefers_backend_garment_type():
    capture = CaptureResult(garment_type="short_sleeve_top", garment_id="G-77", qc_status="PASS")
    context = ReportContext(garment_type="trousers", pixels_per_cm=8.8, factory_id="f1")

    record = MeasurementRecord.from_capture(capture, context)

    assert record.garment_type == "short_sleeve_top"
    assert record.garment_ref == "G-77"
    assert record.id is None


def test_record_from_capture_operator_ref_wins():
    capture = CaptureResult(garment_id="G-77")
    context = ReportContext(garment_type="trousers", pixels_per_cm=8.8, factory_id="f1", garment_ref="PO-1")

    record = MeasurementRecord.from_capture(capture, context)

    assert record.garment_type == "trousers"
    assert record.garment_ref == "PO-1"


def test_size_standard_id():
    standard = SizeStandard(garment_type="trousers", style_code="ST-204", sizes={"S": [], "M": []})
    assert standard.standard_id == "trousers-ST-204"
    assert standard.size_labels == ["S", "M"]
