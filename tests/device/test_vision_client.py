import json

import pytest
import requests

from garmentqc.contracts.failure import TransportError, VisionBackendError
from garmentqc.device.vision_client import VisionBackendClient
from garmentqc.schemas.domain import DeviceMode, EvidenceImage, ImageRole, Measurement, QCStatus

from tests.helpers.fakes import FakeHTTPSession, FakeResponse, PNG_BYTES, png_data_url

pytestmark = [pytest.mark.unit, pytest.mark.device]


def make_client(replies=None, error=None, timeout=5.0):
    session = FakeHTTPSession(replies, error=error)
    return VisionBackendClient("http://kiosk:8000/", timeout, session=session), session


def process_reply(**overrides):
    reply = {
        "measure_image": png_data_url(),
        "detect_image": png_data_url(b"detect"),
        "edge_image": "",
        "detected_size": "L",
        "confidence": 0.87,
        "qc_status": "FAIL",
        "qc_failures": ["waist +2.1cm over tolerance"],
        "data": [{"name": "waist", "value": 90.1, "unit": "cm"}, {"name": "hip", "value": 104}],
        "garment_type": "trousers",
    }
    reply.update(overrides)
    return reply


def test_base_url_trailing_slash_is_stripped():
    client, _ = make_client()
    assert client.base_url == "http://kiosk:8000"


def test_set_mode_posts_form_fields_with_timeout():
    client, session = make_client({"/api/set-mode": FakeResponse({"status": "ok"})})

    client.set_mode(DeviceMode.MEASURE, pixels_per_cm=8.8, garment_type="trousers")

    req = session.requests[0]
    assert req["method"] == "POST"
    assert req["url"] == "http://kiosk:8000/api/set-mode"
    assert req["data"] == {"mode": "MEASURE", "pixels_per_cm": "8.8", "garment_type": "trousers"}
    assert req["timeout"] == 5.0


def test_capture_parses_images_and_measurements():
    client, session = make_client({"/process": FakeResponse(process_reply())})

    result = client.capture(8.8, "trousers")

    assert session.requests[0]["data"]["manual_garment_type"] == "trousers"
    assert session.requests[0]["data"]["save_report"] == "false"
    assert [img.role for img in result.images] == [ImageRole.MEASURE, ImageRole.DETECT]
    assert result.image(ImageRole.MEASURE).data == PNG_BYTES
    assert result.image(ImageRole.EDGE) is None
    assert result.qc_status == QCStatus.FAIL
    assert result.qc_failures == ["waist +2.1cm over tolerance"]
    assert [(m.name, m.value, m.unit) for m in result.measurements] == [
        ("waist", 90.1, "cm"), ("hip", 104.0, "cm"),
    ]


def test_capture_unknown_status_becomes_unknown():
    client, _ = make_client({"/process": FakeResponse(process_reply(qc_status="maybe", qc_failures=[]))})

    assert client.capture(8.8, "trousers").qc_status == QCStatus.UNKNOWN


def test_backend_error_key_raises_vision_backend_error():
    client, _ = make_client({"/process": FakeResponse({"error": "No garment detected"})})

    with pytest.raises(VisionBackendError, match="No garment detected"):
        client.capture(8.8, "trousers")


def test_vision_backend_error_is_a_transport_error():
    assert issubclass(VisionBackendError, TransportError)


def test_timeout_raises_transport_error():
    client, _ = make_client(error=requests.Timeout("slow camera"))

    with pytest.raises(TransportError, match="timed out"):
        client.calibrate(50, 150)


def test_connection_error_raises_transport_error():
    client, _ = make_client(error=requests.ConnectionError("refused"))

    with pytest.raises(TransportError):
        client.set_mode(DeviceMode.RAW)


def test_http_error_status_raises_transport_error():
    client, _ = make_client({"/api/calibrate": FakeResponse({}, status_code=500)})

    with pytest.raises(TransportError):
        client.calibrate(50, 150)


def test_non_json_body_raises_transport_error():
    client, _ = make_client({"/api/calibrate": FakeResponse(text="<html>")})

    with pytest.raises(TransportError, match="non-JSON"):
        client.calibrate(50, 150)


def test_malformed_image_raises_transport_error():
    client, _ = make_client({"/process": FakeResponse(process_reply(measure_image="data:image/png;base64,@@@"))})

    with pytest.raises(TransportError, match="Malformed capture reply"):
        client.capture(8.8, "trousers")


def test_rotate_camera_returns_rotation():
    client, session = make_client({"/api/rotate-camera": FakeResponse({"rotation": 180})})

    assert client.rotate_camera(180) == 180
    assert session.requests[0]["data"] == {"angle": "180"}


def test_get_calibration_handles_missing_value():
    client, _ = make_client({"/api/calibration": FakeResponse({})})

    assert client.get_calibration() is None


def test_get_calibration_returns_float():
    client, session = make_client({"/api/calibration": FakeResponse({"pixels_per_cm": "9.25"})})

    assert client.get_calibration() == 9.25
    assert session.requests[0]["method"] == "GET"


@pytest.mark.parametrize("value", ["n/a", [9.5], {"v": 1}])
def test_get_calibration_non_numeric_is_transport_error(value):
    client, _ = make_client({"/api/calibration": FakeResponse({"pixels_per_cm": value})})

    with pytest.raises(TransportError, match="non-numeric"):
        client.get_calibration()


def test_close_closes_session():
    client, session = make_client()
    client.close()
    assert session.closed is True


def test_save_reference_garment_with_image_sends_file_and_measurements():
    client, session = make_client({"/api/reference-garment": FakeResponse({"status": "saved"})})
    image = EvidenceImage(role=ImageRole.MEASURE, data=PNG_BYTES)

    reply = client.save_reference_garment(
        "trousers", "M", [Measurement(name="waist", value=82.4)], image=image,
    )

    req = session.requests[0]
    assert reply == {"status": "saved"}
    assert req["method"] == "POST"
    assert req["url"] == "http://kiosk:8000/api/reference-garment"
    assert req["data"]["garment_type"] == "trousers"
    assert req["data"]["size"] == "M"
    assert json.loads(req["data"]["measurements"]) == [{"name": "waist", "value": 82.4, "unit": "cm"}]
    assert req["files"] == {"file": ("reference.png", PNG_BYTES, "image/png")}


def test_save_reference_garment_without_image_sends_empty_file_part():
    client, session = make_client({"/api/reference-garment": FakeResponse({"status": "saved"})})

    client.save_reference_garment("short_sleeve_top", "L", [])

    req = session.requests[0]
    assert json.loads(req["data"]["measurements"]) == []
    assert req["files"] == {"file": ("blob", b"", "text/plain")}


def test_save_reference_garment_backend_error():
    client, _ = make_client({"/api/reference-garment": FakeResponse({"error": "unknown garment type"})})

    with pytest.raises(VisionBackendError, match="unknown garment type"):
        client.save_reference_garment("cape", "M", [])
