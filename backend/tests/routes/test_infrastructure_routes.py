"""Health, metrics and root endpoints, plus the error envelopes."""

from unittest.mock import MagicMock

import pytest

from tests.factories.booking_builders import booking_payload
from tutorbook.api.dependencies import get_booking_service
from tutorbook.core.exceptions import RepositoryException
from tutorbook.main import app

BOOKING_ID = "01HF4G12ABCDEF3456789XYZAB"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["database"] == "ok"
    assert body["service"] == "Tutorbook API"
    assert response.headers["cache-control"] == "no-store"


def test_prometheus_metrics(client, student, teacher):
    client.post("/api/v1/bookings", json=booking_payload(student.id, teacher.id))

    response = client.get("/metrics/prometheus")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "tutorbook_service_operations_total" in response.text


def test_root(client):
    body = client.get("/").json()
    assert body["docs"] == "/docs"
    assert "version" in body


def test_unknown_route_uses_problem_envelope(client):
    response = client.get("/api/v1/nowhere")
    assert response.status_code == 404
    assert response.json()["title"] == "Not Found"


def test_request_validation_problem(client):
    response = client.post("/api/v1/bookings", json={"subject": "Maths"})
    assert response.status_code == 422
    problem = response.json()
    assert problem["code"] == "validation_error"
    assert problem["instance"] == "/api/v1/bookings"
    assert problem["errors"]


@pytest.mark.parametrize(
    "message, status_code, code",
    [
        ("QueuePool limit of size 10 overflow 5 reached", 503, "store_unavailable"),
        ("relation bookings does not exist", 500, "store_error"),
    ],
)
def test_repository_failures_map_to_store_errors(client, message, status_code, code):
    broken = MagicMock()
    broken.get_booking_for_user.side_effect = RepositoryException(message)
    app.dependency_overrides[get_booking_service] = lambda: broken

    response = client.get(f"/api/v1/bookings/{BOOKING_ID}", params={"actor_id": "someone"})

    assert response.status_code == status_code
    assert response.json()["code"] == code
    if status_code == 503:
        assert response.headers["retry-after"] == "2"
