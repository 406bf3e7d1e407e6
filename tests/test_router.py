"""Tests for the /scheduling API routes."""

from unittest.mock import patch

from practice_app.domain.scheduling.errors import StoreUnavailable

APPOINTMENT = {
    "title": "Initial assessment",
    "contact_id": "contact-7",
    "start_time": "2024-03-04T10:00:00",
    "end_time": "2024-03-04T11:00:00",
}


def create_series(client, count=3, **pattern):
    pattern = pattern or {"type": "daily", "interval": 1}
    return client.post(
        "/scheduling/series",
        json={"base": APPOINTMENT, "pattern": pattern, "count": count},
    )


class TestHealthRoutes:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}


class TestRecurrenceRoutes:
    def test_next_occurrence(self, client):
        response = client.post(
            "/scheduling/recurrence/next",
            json={
                "current": "2024-01-01T09:00:00",
                "pattern": {"type": "weekly", "days_of_week": [1, 3]},
            },
        )
        assert response.status_code == 200
        assert response.json() == {"next": "2024-01-03T09:00:00"}

    def test_invalid_pattern_is_400(self, client):
        response = client.post(
            "/scheduling/recurrence/next",
            json={"current": "2024-01-01T09:00:00", "pattern": {"type": "daily", "interval": 0}},
        )
        assert response.status_code == 400
        assert "interval" in response.json()["detail"]

    def test_preview(self, client):
        response = client.post(
            "/scheduling/series/preview",
            json={"base": APPOINTMENT, "pattern": {"type": "daily"}, "count": 3},
        )
        assert response.status_code == 200
        assert [d["start_time"] for d in response.json()] == [
            "2024-03-04T10:00:00",
            "2024-03-05T10:00:00",
            "2024-03-06T10:00:00",
        ]


class TestSeriesRoutes:
    def test_create_and_get_series(self, client):
        response = create_series(client)
        assert response.status_code == 201
        data = response.json()
        assert len(data["created"]) == 3
        assert data["failed"] == []

        listed = client.get(f"/scheduling/series/{data['series_id']}")
        assert listed.status_code == 200
        assert [a["start_time"][:10] for a in listed.json()] == ["2024-03-04", "2024-03-05", "2024-03-06"]

    def test_missing_title_is_400(self, client):
        response = client.post(
            "/scheduling/series",
            json={"base": {**APPOINTMENT, "title": "  "}, "pattern": {"type": "daily"}},
        )
        assert response.status_code == 400
        assert "Appointment title is required" in response.json()["detail"]

    def test_base_end_before_start_is_400(self, client):
        response = client.post(
            "/scheduling/series",
            json={
                "base": {**APPOINTMENT, "end_time": "2024-03-04T09:00:00"},
                "pattern": {"type": "daily"},
            },
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Start time must be before end time"

    def test_unknown_series_is_404(self, client):
        assert client.get("/scheduling/series/unknown").status_code == 404

    def test_update_series_from_date(self, client):
        series_id = create_series(client).json()["series_id"]
        response = client.patch(
            f"/scheduling/series/{series_id}",
            json={"from_date": "2024-03-05T00:00:00", "updates": {"location": "Room 3"}},
        )
        assert response.status_code == 200
        assert response.json() == {"series_id": series_id, "updated": 2}

    def test_series_update_cannot_change_status(self, client):
        series_id = create_series(client).json()["series_id"]
        response = client.patch(
            f"/scheduling/series/{series_id}",
            json={"from_date": "2024-03-05T00:00:00", "updates": {"status": "completed"}},
        )
        assert response.status_code == 400

    def test_cancel_series(self, client):
        series_id = create_series(client).json()["series_id"]
        response = client.post(
            f"/scheduling/series/{series_id}/cancel",
            json={"from_date": "2024-03-06T00:00:00", "reason": "Discharged"},
        )
        assert response.json()["updated"] == 1

        statuses = [a["status"] for a in client.get(f"/scheduling/series/{series_id}").json()]
        assert statuses == ["scheduled", "scheduled", "cancelled"]

    def test_exceptions(self, client):
        series_id = create_series(client).json()["series_id"]
        response = client.post(
            f"/scheduling/series/{series_id}/exceptions",
            json={
                "original_date": "2024-03-05T10:00:00",
                "exception_type": "rescheduled",
                "new_start_time": "2024-03-05T15:00:00",
                "new_end_time": "2024-03-05T16:00:00",
                "reason": "Clinic closed in the morning",
            },
        )
        assert response.status_code == 201
        assert response.json()["exception_type"] == "rescheduled"

        exceptions = client.get(f"/scheduling/series/{series_id}/exceptions").json()
        assert len(exceptions) == 1
        starts = [a["start_time"] for a in client.get(f"/scheduling/series/{series_id}").json()]
        assert "2024-03-05T15:00:00" in starts

    def test_exception_for_unknown_instance_is_404(self, client):
        series_id = create_series(client).json()["series_id"]
        response = client.post(
            f"/scheduling/series/{series_id}/exceptions",
            json={"original_date": "2024-03-05T08:00:00", "exception_type": "cancelled"},
        )
        assert response.status_code == 404


class TestConflictAndAvailabilityRoutes:
    def test_conflicts(self, client):
        booked = client.post("/scheduling/appointments", json=APPOINTMENT).json()

        overlapping = client.get(
            "/scheduling/conflicts",
            params={"start": "2024-03-04T10:30:00", "end": "2024-03-04T11:30:00"},
        )
        assert overlapping.json() == {"has_conflict": True, "conflicting_ids": [booked["id"]]}

        touching = client.get(
            "/scheduling/conflicts",
            params={"start": "2024-03-04T11:00:00", "end": "2024-03-04T12:00:00"},
        )
        assert touching.json() == {"has_conflict": False, "conflicting_ids": []}

    def test_availability(self, client):
        client.post("/scheduling/appointments", json=APPOINTMENT)
        response = client.get(
            "/scheduling/availability", params={"date": "2024-03-04", "duration_minutes": 60}
        )
        assert response.status_code == 200
        starts = [slot["start"][11:16] for slot in response.json()]
        assert starts == ["09:00", "11:00", "12:00", "13:00", "14:00", "15:00", "16:00"]

    def test_availability_invalid_duration_is_400(self, client):
        response = client.get(
            "/scheduling/availability", params={"date": "2024-03-04", "duration_minutes": 0}
        )
        assert response.status_code == 400

    def test_store_unavailable_is_503(self, client):
        with patch(
            "practice_app.domain.scheduling.repository.AppointmentRepository.find_overlapping",
            side_effect=StoreUnavailable("Could not check for overlapping appointments"),
        ):
            response = client.get(
                "/scheduling/availability", params={"date": "2024-03-04", "duration_minutes": 60}
            )
        assert response.status_code == 503
        assert response.json()["detail"] == "Could not complete the scheduling operation, please retry."


class TestAppointmentRoutes:
    def test_create_and_get(self, client):
        response = client.post("/scheduling/appointments", json=APPOINTMENT)
        assert response.status_code == 201
        appointment_id = response.json()["id"]

        fetched = client.get(f"/scheduling/appointments/{appointment_id}")
        assert fetched.status_code == 200
        assert fetched.json()["status"] == "scheduled"

    def test_double_booking_is_409(self, client):
        client.post("/scheduling/appointments", json=APPOINTMENT)
        response = client.post("/scheduling/appointments", json=APPOINTMENT)
        assert response.status_code == 409
        assert len(response.json()["conflicting_ids"]) == 1

    def test_update(self, client):
        appointment_id = client.post("/scheduling/appointments", json=APPOINTMENT).json()["id"]
        response = client.patch(
            f"/scheduling/appointments/{appointment_id}", json={"notes": "Bring referral"}
        )
        assert response.status_code == 200
        assert response.json()["notes"] == "Bring referral"

    def test_update_round_trips_free_text(self, client):
        appointment_id = client.post("/scheduling/appointments", json=APPOINTMENT).json()["id"]
        client.patch(
            f"/scheduling/appointments/{appointment_id}",
            json={"title": "Smith & Jones", "notes": "knee <left>"},
        )
        fetched = client.get(f"/scheduling/appointments/{appointment_id}").json()
        assert fetched["title"] == "Smith & Jones"
        assert fetched["notes"] == "knee <left>"

    def test_clearing_required_field_is_400(self, client):
        appointment_id = client.post("/scheduling/appointments", json=APPOINTMENT).json()["id"]
        response = client.patch(f"/scheduling/appointments/{appointment_id}", json={"title": None})
        assert response.status_code == 400
        assert "Appointment title is required" in response.json()["detail"]
        assert client.get(f"/scheduling/appointments/{appointment_id}").json()["title"] == APPOINTMENT["title"]

    def test_blank_contact_is_400(self, client):
        appointment_id = client.post("/scheduling/appointments", json=APPOINTMENT).json()["id"]
        response = client.patch(f"/scheduling/appointments/{appointment_id}", json={"contact_id": "   "})
        assert response.status_code == 400
        assert "Patient selection is required" in response.json()["detail"]

    def test_series_exception_clearing_contact_is_400(self, client):
        series_id = create_series(client).json()["series_id"]
        response = client.post(
            f"/scheduling/series/{series_id}/exceptions",
            json={
                "original_date": "2024-03-05T10:00:00",
                "exception_type": "modified",
                "updates": {"contact_id": None},
            },
        )
        assert response.status_code == 400
        assert client.get(f"/scheduling/series/{series_id}/exceptions").json() == []

    def test_status_workflow(self, client):
        appointment_id = client.post("/scheduling/appointments", json=APPOINTMENT).json()["id"]

        done = client.post(f"/scheduling/appointments/{appointment_id}/status", json={"status": "completed"})
        assert done.json()["status"] == "completed"

        again = client.post(f"/scheduling/appointments/{appointment_id}/status", json={"status": "confirmed"})
        assert again.status_code == 400

    def test_delete(self, client):
        appointment_id = client.post("/scheduling/appointments", json=APPOINTMENT).json()["id"]
        assert client.delete(f"/scheduling/appointments/{appointment_id}").status_code == 200
        assert client.get(f"/scheduling/appointments/{appointment_id}").status_code == 404


class TestBlockedTimeAndWorkingHoursRoutes:
    def test_blocked_slot_removes_availability(self, client):
        response = client.post(
            "/scheduling/blocked-slots",
            json={
                "title": "Staff meeting",
                "start_time": "2024-03-04T09:00:00",
                "end_time": "2024-03-04T10:00:00",
            },
        )
        assert response.status_code == 201
        slot_id = response.json()["id"]

        slots = client.get(
            "/scheduling/availability", params={"date": "2024-03-04", "duration_minutes": 60}
        ).json()
        assert "2024-03-04T09:00:00" not in [slot["start"] for slot in slots]

        listed = client.get(
            "/scheduling/blocked-slots",
            params={"start": "2024-03-04T00:00:00", "end": "2024-03-05T00:00:00"},
        )
        assert [b["id"] for b in listed.json()] == [slot_id]

        assert client.delete(f"/scheduling/blocked-slots/{slot_id}").status_code == 200
        assert client.delete(f"/scheduling/blocked-slots/{slot_id}").status_code == 404

    def test_blocked_slot_end_before_start_is_400(self, client):
        response = client.post(
            "/scheduling/blocked-slots",
            json={
                "title": "Leave",
                "start_time": "2024-03-04T10:00:00",
                "end_time": "2024-03-04T09:00:00",
            },
        )
        assert response.status_code == 400

    def test_working_hours_shape_availability(self, client):
        response = client.put(
            "/scheduling/providers/dr-lee/working-hours/1",
            json={
                "start_time": "10:00:00",
                "end_time": "14:00:00",
                "break_start_time": "12:00:00",
                "break_end_time": "13:00:00",
            },
        )
        assert response.status_code == 200
        assert response.json()["day_of_week"] == 1

        slots = client.get(
            "/scheduling/availability",
            params={"date": "2024-03-04", "duration_minutes": 60, "provider_id": "dr-lee"},
        ).json()
        assert [slot["start"][11:16] for slot in slots] == ["10:00", "11:00", "13:00"]

        hours = client.get("/scheduling/providers/dr-lee/working-hours").json()
        assert [h["start_time"] for h in hours] == ["10:00:00"]

    def test_working_hours_invalid_weekday_is_400(self, client):
        response = client.put(
            "/scheduling/providers/dr-lee/working-hours/9",
            json={"start_time": "10:00:00", "end_time": "14:00:00"},
        )
        assert response.status_code == 400

    def test_working_hours_break_outside_hours_is_400(self, client):
        response = client.put(
            "/scheduling/providers/dr-lee/working-hours/1",
            json={
                "start_time": "10:00:00",
                "end_time": "14:00:00",
                "break_start_time": "15:00:00",
                "break_end_time": "16:00:00",
            },
        )
        assert response.status_code == 400

    def test_availability_buffer(self, client):
        client.post("/scheduling/appointments", json=APPOINTMENT)
        slots = client.get(
            "/scheduling/availability",
            params={"date": "2024-03-04", "duration_minutes": 60, "buffer_minutes": 15},
        ).json()
        starts = [slot["start"][11:16] for slot in slots]
        assert "09:00" not in starts
        assert "11:00" in starts
