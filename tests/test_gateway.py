from __future__ import annotations

import random
import re
from datetime import datetime, timezone

import pytest

from caresubmit.gateway import GatewayError, MockGateway, OfflineQueue, describe_gateway_error, offline_reference

NOW = datetime(2024, 2, 20, 9, 30, tzinfo=timezone.utc)


def test_mock_references():
    gateway = MockGateway(rng=random.Random(1), clock=lambda: NOW)
    claim = gateway.submit_claim({"total_amount": 100.0})
    auth = gateway.submit_authorization({})
    assert re.fullmatch(r"DAMAN-CL-2024-\d{5}", claim["reference_number"])
    assert re.fullmatch(r"DAMAN-PA-2024-\d{5}", auth["reference_number"])
    assert claim["status"] == auth["status"] == "in-review"
    assert claim["estimated_completion"].startswith("2024-02-27")


def test_offline_reference_format():
    assert re.fullmatch(r"OFFLINE-[A-Z0-9]{8}", offline_reference(random.Random(5)))
    assert re.fullmatch(r"OFFLINE-[A-Z0-9]{8}", offline_reference())


@pytest.mark.parametrize(
    ("error", "online", "expected"),
    [
        (GatewayError("x", 429), True, "Too many requests"),
        (GatewayError("x", 503), True, "experiencing issues"),
        (GatewayError("x", 401), True, "not authorized"),
        (GatewayError("x", 403), True, "not authorized"),
        (GatewayError("Reference not found", 404), True, "Reference not found"),
        (GatewayError("x", 503), False, "currently offline"),
    ],
)
def test_describe_gateway_error(error, online, expected):
    assert expected in describe_gateway_error(error, "submission", online=online)


def test_queue_keeps_unsent_items_on_failure():
    queue = OfflineQueue()
    queue.enqueue("claim", "OFFLINE-A", {"n": 1}, queued_at=NOW)
    queue.enqueue("claim", "OFFLINE-B", {"n": 2}, queued_at=NOW)
    sent = []

    def send(item):
        if item["reference_number"] == "OFFLINE-B":
            raise GatewayError("down", 503)
        sent.append(item["reference_number"])
        return {}

    with pytest.raises(GatewayError):
        list(queue.drain(send))
    assert sent == ["OFFLINE-A"]
    assert [item["reference_number"] for item in queue.pending()] == ["OFFLINE-B"]


def test_reserved_references_are_never_issued():
    reserved = {f"DAMAN-CL-2024-{number:05d}" for number in range(100000) if number != 42}
    gateway = MockGateway(rng=random.Random(8), clock=lambda: NOW, reserved=reserved)
    assert gateway.submit_claim({})["reference_number"] == "DAMAN-CL-2024-00042"


@pytest.mark.parametrize(
    ("reference", "reviewer"),
    [
        ("DAMAN-CL-2024-00456", "Daman Claims Department"),
        ("DAMAN-PA-2024-00456", "Daman Medical Review"),
    ],
)
def test_tracking_text_follows_reference_kind(reference, reviewer):
    gateway = MockGateway(rng=random.Random(2), clock=lambda: NOW)
    for _ in range(4):
        response = gateway.track(reference)
        assert response["reviewer"] == reviewer
        if reference.startswith("DAMAN-PA-"):
            assert "service logs" not in response["comments"]
            assert response["tracking"]["processing_stage"] == "Clinical Review"
