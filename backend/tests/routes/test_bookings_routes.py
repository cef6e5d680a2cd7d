"""
Route tests for /api/v1/bookings.

Covers request/response shapes and the problem-details error envelope;
business rules are covered by the service tests.
"""

from fastapi.testclient import TestClient

from tests.factories.booking_builders import booking_payload

MISSING_ID = "01HF4G12ABCDEF3456789XYZAB"


def _create(client: TestClient, student, teacher, **overrides) -> dict:
    response = client.post("/api/v1/bookings", json=booking_payload(student.id, teacher.id, **overrides))
    assert response.status_code == 201, response.text
    return response.json()


class TestCreateBookingRoute:
    def test_create_returns_201(self, client, student, teacher):
        body = _create(client, student, teacher, time="9:00", duration=90)

        assert body["status"] == "pending"
        assert body["booking_date"] == "2025-07-10"
        assert body["start_time"] == "09:00"
        assert body["end_time"] == "10:30"
        assert body["price"] == 75.0
        assert body["hourly_rate"] == 50.0
        assert body["payment_status"] == "pending"
        assert body["rescheduled_from"] is None
        assert body["feedback"] is None

    def test_conflict_is_409_problem(self, client, student, other_student, teacher):
        _create(client, student, teacher, time="10:00")

        response = client.post(
            "/api/v1/bookings", json=booking_payload(other_student.id, teacher.id, time="10:30")
        )

        assert response.status_code == 409
        problem = response.json()
        assert problem["code"] == "BOOKING_CONFLICT"
        assert problem["status"] == 409
        assert problem["title"] == "Conflict"
        assert problem["instance"] == "/api/v1/bookings"
        assert problem["errors"]["conflicts"][0]["start_time"] == "10:00"

    def test_malformed_time_is_422(self, client, student, teacher):
        response = client.post(
            "/api/v1/bookings", json=booking_payload(student.id, teacher.id, time="25:00")
        )
        assert response.status_code == 422
        assert response.json()["code"] == "validation_error"

    def test_unknown_field_is_422(self, client, student, teacher):
        payload = booking_payload(student.id, teacher.id)
        payload["price"] = 1
        response = client.post("/api/v1/bookings", json=payload)
        assert response.status_code == 422

    def test_missing_subject_is_422(self, client, student, teacher):
        payload = booking_payload(student.id, teacher.id)
        del payload["subject"]
        assert client.post("/api/v1/bookings", json=payload).status_code == 422

    def test_bad_duration_is_400(self, client, student, teacher):
        response = client.post(
            "/api/v1/bookings", json=booking_payload(student.id, teacher.id, duration=10)
        )
        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_DURATION"

    def test_unknown_teacher_is_404(self, client, student):
        response = client.post("/api/v1/bookings", json=booking_payload(student.id, MISSING_ID))
        assert response.status_code == 404
        assert response.json()["code"] == "TEACHER_NOT_FOUND"


class TestBookingDetailsRoute:
    def test_party_gets_details(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.get(f"/api/v1/bookings/{created['id']}", params={"actor_id": teacher.id})
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]

    def test_stranger_is_403(self, client, student, other_student, teacher):
        created = _create(client, student, teacher)
        response = client.get(
            f"/api/v1/bookings/{created['id']}", params={"actor_id": other_student.id}
        )
        assert response.status_code == 403
        assert response.json()["code"] == "NOT_A_PARTY"

    def test_missing_is_404(self, client, student):
        response = client.get(f"/api/v1/bookings/{MISSING_ID}", params={"actor_id": student.id})
        assert response.status_code == 404

    def test_malformed_id_is_422(self, client, student):
        response = client.get("/api/v1/bookings/not-a-ulid", params={"actor_id": student.id})
        assert response.status_code == 422

    def test_actor_required(self, client, student, teacher):
        created = _create(client, student, teacher)
        assert client.get(f"/api/v1/bookings/{created['id']}").status_code == 422


class TestListBookingsRoute:
    def test_lists_with_pagination(self, client, student, teacher):
        for hour in ("09:00", "11:00", "13:00"):
            _create(client, student, teacher, time=hour)

        response = client.get(
            "/api/v1/bookings", params={"actor_id": student.id, "page": 1, "limit": 2}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 3
        assert body["per_page"] == 2
        assert body["total_pages"] == 2
        assert [b["start_time"] for b in body["bookings"]] == ["13:00", "11:00"]

    def test_status_filter(self, client, student, teacher):
        created = _create(client, student, teacher)
        client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={"actor_id": student.id, "new_status": "cancelled"},
        )
        body = client.get(
            "/api/v1/bookings", params={"actor_id": student.id, "status": "pending"}
        ).json()
        assert body["total"] == 0

    def test_unknown_status_filter_is_422(self, client, student):
        response = client.get("/api/v1/bookings", params={"actor_id": student.id, "status": "done"})
        assert response.status_code == 422


class TestStatusRoute:
    def test_confirm(self, client, student, teacher, dispatcher):
        created = _create(client, student, teacher)
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={
                "actor_id": teacher.id,
                "new_status": "confirmed",
                "meeting_link": "https://meet.example.com/room",
            },
        )
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["meeting_link"] == "https://meet.example.com/room"
        assert body["confirmed_at"] is not None
        assert dispatcher.payloads[-1]["to_status"] == "confirmed"

    def test_invalid_transition_is_422(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={"actor_id": teacher.id, "new_status": "completed"},
        )
        assert response.status_code == 422
        problem = response.json()
        assert problem["code"] == "INVALID_TRANSITION"
        assert problem["errors"] == {"current_status": "pending", "requested_status": "completed"}

    def test_cancel_reason_too_long_is_422(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={"actor_id": student.id, "new_status": "cancelled", "cancel_reason": "x" * 301},
        )
        assert response.status_code == 422

    def test_missing_booking_is_404_even_without_reschedule_target(self, client, student):
        response = client.patch(
            f"/api/v1/bookings/{MISSING_ID}/status",
            json={"actor_id": student.id, "new_status": "rescheduled"},
        )
        assert response.status_code == 404
        assert response.json()["code"] == "BOOKING_NOT_FOUND"

    def test_stranger_is_403_even_without_reschedule_target(self, client, student, other_student, teacher):
        created = _create(client, student, teacher)
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/status",
            json={"actor_id": other_student.id, "new_status": "rescheduled"},
        )
        assert response.status_code == 403

    def test_reschedule_through_status(self, client, student, teacher):
        created = _create(client, student, teacher, time="14:00")
        url = f"/api/v1/bookings/{created['id']}/status"
        client.patch(url, json={"actor_id": teacher.id, "new_status": "confirmed"})

        response = client.patch(
            url,
            json={
                "actor_id": teacher.id,
                "new_status": "rescheduled",
                "new_date": "2025-07-11",
                "new_time": "16:00",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "rescheduled"
        assert body["rescheduled_from"] == {"date": "2025-07-10", "time": "14:00"}


class TestRescheduleRoute:
    def test_reschedule(self, client, student, teacher):
        created = _create(client, student, teacher, time="14:00")
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/reschedule",
            json={"actor_id": student.id, "new_date": "2025-07-11", "new_time": "15:00"},
        )
        assert response.status_code == 200
        body = response.json()
        assert body["booking_date"] == "2025-07-11"
        assert body["start_time"] == "15:00"
        assert body["rescheduled_from"] == {"date": "2025-07-10", "time": "14:00"}

    def test_conflict_is_409(self, client, student, other_student, teacher):
        created = _create(client, student, teacher, time="14:00")
        _create(client, other_student, teacher, time="16:00")
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/reschedule",
            json={"actor_id": student.id, "new_date": "2025-07-10", "new_time": "15:30"},
        )
        assert response.status_code == 409


class TestFeedbackRoute:
    def test_feedback_on_completed_lesson(self, client, student, teacher):
        created = _create(client, student, teacher)
        url = f"/api/v1/bookings/{created['id']}"
        client.patch(f"{url}/status", json={"actor_id": teacher.id, "new_status": "confirmed"})
        client.patch(f"{url}/status", json={"actor_id": teacher.id, "new_status": "completed"})

        response = client.post(
            f"{url}/feedback", json={"actor_id": student.id, "rating": 5, "comment": "Clear"}
        )

        assert response.status_code == 200
        assert response.json()["feedback"]["rating"] == 5

    def test_rating_out_of_range_is_422(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.post(
            f"/api/v1/bookings/{created['id']}/feedback",
            json={"actor_id": student.id, "rating": 7},
        )
        assert response.status_code == 422

    def test_not_completed_is_400(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.post(
            f"/api/v1/bookings/{created['id']}/feedback",
            json={"actor_id": student.id, "rating": 4},
        )
        assert response.status_code == 400
        assert response.json()["code"] == "BOOKING_NOT_COMPLETED"


class TestPaymentStatusRoute:
    def test_update(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/payment-status", json={"payment_status": "paid"}
        )
        assert response.status_code == 200
        body = response.json()
        assert body["payment_status"] == "paid"
        assert body["status"] == "pending"

    def test_refund_before_payment_is_400(self, client, student, teacher):
        created = _create(client, student, teacher)
        response = client.patch(
            f"/api/v1/bookings/{created['id']}/payment-status", json={"payment_status": "refunded"}
        )
        assert response.status_code == 400
