"""
Integration tests for the REST surface and the notification WebSocket.
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect
from unittest.mock import AsyncMock

from hms_realtime.config import Settings
from hms_realtime.core.health_tip_generator import HealthTipGenerationError
from hms_realtime.database import SessionLocal
from hms_realtime.main import create_app

WS_PATH = "/ws/notifications"

APPOINTMENT = {
    "doctorId": "doc1",
    "patientName": "Jane Doe",
    "patientId": "p1",
    "appointmentDate": "2026-10-21",
    "timeSlot": "10:30",
    "department": "Cardiology",
    "location": "OPD Block B"
}


@pytest.fixture
def app(db_engine, tip_generator):
    settings = Settings(database_url="sqlite://", scheduler_enabled=False)
    return create_app(settings, db_engine=db_engine, generator=tip_generator)


@pytest.fixture
def client(app):
    return TestClient(app)


def connect(client, user_id, role):
    return client.websocket_connect(f"{WS_PATH}?userId={user_id}&userRole={role}")


def ping(websocket):
    # Round trip guarantees the server has registered the socket
    websocket.send_json({"type": "ping"})
    assert websocket.receive_json() == {"type": "pong"}


class TestWebSocket:

    def test_ping_pong_and_registration(self, client):
        with connect(client, "doc1", "DOCTOR") as websocket:
            ping(websocket)
            status = client.get("/api/realtime/status").json()
            assert status == {
                "connectedUsers": 1,
                "totalConnections": 1,
                "connectionsByRole": {"DOCTOR": 1}
            }

        assert client.get("/api/realtime/status").json()["connectedUsers"] == 0

    def test_unknown_role_is_rejected(self, client):
        with connect(client, "u1", "JANITOR") as websocket:
            with pytest.raises(WebSocketDisconnect) as exc:
                websocket.receive_text()

        assert exc.value.code == 1008
        assert client.get("/api/realtime/status").json()["connectedUsers"] == 0

    def test_anonymous_socket_stays_open_but_unregistered(self, client):
        with client.websocket_connect(f"{WS_PATH}?userId=u1") as websocket:
            ping(websocket)
            assert client.get("/api/realtime/status").json()["totalConnections"] == 0

    def test_invalid_frames_are_ignored(self, client):
        with connect(client, "n1", "NURSE") as websocket:
            websocket.send_text("not json")
            websocket.send_json({"type": "subscribe"})
            ping(websocket)

    def test_binary_frames_keep_connection_registered(self, client):
        with connect(client, "p1", "PATIENT") as websocket:
            websocket.send_bytes(b"\x00\xff\xfe")
            ping(websocket)
            assert client.get("/api/realtime/status").json()["connectedUsers"] == 1

            websocket.send_bytes(b'{"type": "ping"}')
            assert websocket.receive_json() == {"type": "pong"}

            client.post("/api/user-notifications", json={
                "user_id": "p1",
                "user_role": "PATIENT",
                "type": "system",
                "title": "Lab report ready",
                "message": "Your CBC report is available"
            })
            assert websocket.receive_json()["type"] == "notification"

    def test_booking_pushes_to_connected_doctor_and_admin(self, client):
        with connect(client, "doc1", "DOCTOR") as doctor, connect(client, "admin1", "ADMIN") as admin:
            ping(doctor)
            ping(admin)

            response = client.post("/api/appointments", json=APPOINTMENT)
            assert response.status_code == 201

            notification = doctor.receive_json()
            assert notification["type"] == "notification"
            assert notification["notification"]["title"] == "New Appointment Booked"
            update = doctor.receive_json()
            assert update["type"] == "appointment_update"
            assert update["appointmentId"] == response.json()["id"]

            dashboard = admin.receive_json()
            assert dashboard["event"] == "appointment_created"


class TestAppointmentsApi:

    def test_create_and_fetch(self, client):
        created = client.post("/api/appointments", json=APPOINTMENT).json()

        assert created["status"] == "scheduled"
        assert client.get(f"/api/appointments/{created['id']}").json()["patientName"] == "Jane Doe"
        assert len(client.get("/api/appointments").json()) == 1

        doctor_notes = client.get("/api/user-notifications/doc1").json()
        patient_notes = client.get("/api/user-notifications/p1").json()
        assert len(doctor_notes) == 1
        assert doctor_notes[0]["relatedEntityId"] == created["id"]
        assert patient_notes[0]["title"] == "Appointment Confirmed"

    def test_patient_name_used_when_no_patient_id(self, client):
        payload = {key: value for key, value in APPOINTMENT.items() if key != "patientId"}

        client.post("/api/appointments", json=payload)

        assert len(client.get("/api/user-notifications/Jane Doe").json()) == 1

    def test_invalid_time_slot(self, client):
        response = client.post("/api/appointments", json={**APPOINTMENT, "timeSlot": "whenever"})

        assert response.status_code == 422

    def test_status_update_notifies_doctor(self, client):
        created = client.post("/api/appointments", json=APPOINTMENT).json()

        response = client.patch(f"/api/appointments/{created['id']}/status", json={"status": "cancelled"})

        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"
        titles = [n["title"] for n in client.get("/api/user-notifications/doc1").json()]
        assert "Appointment cancelled" in titles

    def test_missing_appointment(self, client):
        assert client.get("/api/appointments/nope").status_code == 404
        response = client.patch("/api/appointments/nope/status", json={"status": "confirmed"})
        assert response.status_code == 404

    def test_notification_failure_does_not_fail_booking(self, app, client, monkeypatch):
        storage = app.state.storage

        def broken(notification):
            raise RuntimeError("notifications table locked")

        monkeypatch.setattr(storage, "create_user_notification", broken)

        response = client.post("/api/appointments", json=APPOINTMENT)

        assert response.status_code == 201
        assert storage.get_appointment(response.json()["id"]) is not None


class TestUserNotificationsApi:

    def create(self, client, user_id="p1", role="PATIENT", **extra):
        payload = {
            "user_id": user_id,
            "user_role": role,
            "type": "system",
            "title": "Lab report ready",
            "message": "Your CBC report is available",
            **extra
        }
        response = client.post("/api/user-notifications", json=payload)
        assert response.status_code == 201
        return response.json()

    def test_create_and_get(self, client):
        created = self.create(client, metadata={"reportId": "r1"})

        fetched = client.get(f"/api/user-notifications/notification/{created['id']}").json()

        assert fetched["userId"] == "p1"
        assert fetched["isRead"] is False
        assert fetched["metadata"] == '{"reportId": "r1"}'

    def test_create_rejects_unknown_role(self, client):
        response = client.post("/api/user-notifications", json={
            "user_id": "x", "user_role": "JANITOR", "type": "system", "title": "t", "message": "m"
        })

        assert response.status_code == 422

    def test_by_role(self, client):
        self.create(client)
        self.create(client, user_id="doc1", role="DOCTOR")

        doctors = client.get("/api/user-notifications/role/DOCTOR").json()

        assert [n["userId"] for n in doctors] == ["doc1"]

    def test_mark_read_and_incoming(self, client):
        first = self.create(client)
        self.create(client)

        assert len(client.get("/api/user-notifications/p1/incoming").json()) == 2

        response = client.patch(f"/api/user-notifications/{first['id']}/read")
        assert response.json()["isRead"] is True
        assert len(client.get("/api/user-notifications/p1/incoming").json()) == 1

        response = client.patch("/api/user-notifications/p1/read-all")
        assert response.json() == {"success": True, "updated": 1}
        assert client.get("/api/user-notifications/p1/incoming").json() == []

    def test_delete(self, client):
        created = self.create(client)

        assert client.delete(f"/api/user-notifications/{created['id']}").json() == {"success": True}
        assert client.get(f"/api/user-notifications/notification/{created['id']}").status_code == 404
        assert client.delete(f"/api/user-notifications/{created['id']}").status_code == 404

    def test_mark_read_missing(self, client):
        assert client.patch("/api/user-notifications/nope/read").status_code == 404


class TestHealthTipsApi:

    def test_manual_generation(self, client):
        response = client.post("/api/health-tips/generate", json={"slot": "9PM"})

        assert response.status_code == 201
        assert response.json()["scheduledFor"] == "9PM"
        tips = client.get("/api/health-tips").json()
        assert [tip["title"] for tip in tips] == ["Stay Hydrated"]

    def test_manual_generation_broadcasts(self, client):
        with connect(client, "p1", "PATIENT") as websocket:
            ping(websocket)
            client.post("/api/health-tips/generate", json={"slot": "9AM"})

            message = websocket.receive_json()
            assert message["type"] == "health_tip"
            assert message["tip"]["scheduledFor"] == "9AM"

    def test_invalid_slot(self, client):
        assert client.post("/api/health-tips/generate", json={"slot": "noon"}).status_code == 422

    def test_generator_failure(self, client, tip_generator):
        tip_generator.generate = AsyncMock(side_effect=HealthTipGenerationError("model unavailable"))

        response = client.post("/api/health-tips/generate", json={"slot": "9AM"})

        assert response.status_code == 502
        assert client.get("/api/health-tips").json() == []


class TestAppFactory:

    def test_default_engine_uses_shared_session_factory(self):
        app = create_app(Settings(database_url="sqlite://", scheduler_enabled=False))

        assert app.state.storage.session_factory is SessionLocal

    def test_injected_engine_gets_its_own_sessions(self, app, db_engine):
        factory = app.state.storage.session_factory

        assert factory is not SessionLocal
        assert factory.kw["bind"] is db_engine
