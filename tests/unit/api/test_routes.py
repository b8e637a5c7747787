import datetime as dt
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from contatori.api.app import create_app
from contatori.config import ApiConfig, AppConfig
from contatori.domain.models import AppointmentStatus, Operator
from contatori.notifier.adapters.fake import FakeNotifier
from contatori.store.adapters.fake import FakeAppointmentStore


def _config(api_token: str = "", enable_test_endpoints: bool = False) -> AppConfig:
    return AppConfig(
        api=ApiConfig(api_token=api_token, enable_test_endpoints=enable_test_endpoints)
    )


@pytest.fixture
def seeded_store(fake_store: FakeAppointmentStore) -> FakeAppointmentStore:
    fake_store.operators[7] = Operator(
        operator_id=7, first_name="Luca", last_name="Bianchi", phone="3339998887"
    )
    fake_store.add(
        matricola="TEST123456",
        customer_name="Mario Rossi Test",
        address="Via Roma 123",
        municipality="Milano",
        point_id="PDR123456",
        date=dt.date(2024, 7, 25),
        time_slot="09:00-12:00",
        phone="3331234567",
        activity_type="sostituzione contatore gas",
        operator_id=7,
    )
    return fake_store


def _client(
    config: AppConfig,
    store: FakeAppointmentStore,
    notifier: FakeNotifier,
    now: dt.datetime,
) -> TestClient:
    return TestClient(create_app(config, store=store, notifier=notifier, clock=lambda: now))


@pytest.fixture
def client(
    seeded_store: FakeAppointmentStore, fake_notifier: FakeNotifier, fixed_now: dt.datetime
) -> Iterator[TestClient]:
    with _client(_config(), seeded_store, fake_notifier, fixed_now) as test_client:
        yield test_client


class TestSearchAppointment:
    def test_found(self, client: TestClient) -> None:
        response = client.post("/api/search-appointment", json={"matricola": "TEST123456"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["found"] is True
        assert body["appointment"]["indirizzo"] == "Via Roma 123"
        assert body["appointment"]["comune"] == "Milano"
        assert body["appointment"]["data"] == "25/7/2024"
        assert body["appointment"]["operatore"] == "Luca Bianchi"
        assert "Via Roma 123, Milano" in body["message"]

    def test_not_found_is_a_normal_answer(self, client: TestClient) -> None:
        response = client.post("/api/search-appointment", json={"matricola": "XYZ"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["found"] is False
        assert "per la matricola XYZ" in body["message"]

    def test_numeric_matricola_is_read_as_text(
        self, client: TestClient, seeded_store: FakeAppointmentStore
    ) -> None:
        seeded_store.add(matricola="987654", date=dt.date(2026, 11, 3), time_slot="08:00-10:00")

        response = client.post("/api/search-appointment", json={"matricola": 987654})

        assert response.status_code == 200
        body = response.json()
        assert body["found"] is True
        assert body["appointment"]["matricola"] == "987654"

    @pytest.mark.parametrize("payload", [{}, {"matricola": "  "}], ids=["missing", "blank"])
    def test_missing_matricola(self, client: TestClient, payload: dict[str, str]) -> None:
        response = client.post("/api/search-appointment", json=payload)

        assert response.status_code == 400
        assert response.json() == {"success": False, "error": "Matricola richiesta"}

    def test_store_outage_is_500(
        self, client: TestClient, seeded_store: FakeAppointmentStore
    ) -> None:
        seeded_store.lookup_error = RuntimeError("connection refused")

        response = client.post("/api/search-appointment", json={"matricola": "TEST123456"})

        assert response.status_code == 500
        assert response.json()["success"] is False


class TestConfirmAppointment:
    def test_confirms_and_notifies_operator(
        self,
        client: TestClient,
        seeded_store: FakeAppointmentStore,
        fake_notifier: FakeNotifier,
    ) -> None:
        response = client.post("/api/confirm-appointment", json={"matricola": "TEST123456"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["operator_notified"] is True
        assert "25/7/2024" in body["message"]
        assert "Il tecnico incaricato è stato avvisato." in body["message"]
        assert seeded_store.appointments[1].status == AppointmentStatus.CONFIRMED
        assert [phone for phone, _ in fake_notifier.sent] == ["3339998887"]

    def test_sms_failure_still_confirms(
        self, client: TestClient, fake_notifier: FakeNotifier
    ) -> None:
        fake_notifier.failure = "GatewayAPI returned 500"

        response = client.post("/api/confirm-appointment", json={"appointment_id": 1})

        body = response.json()
        assert response.status_code == 200
        assert body["success"] is True
        assert body["operator_notified"] is False
        assert "avvisato" not in body["message"]

    def test_unknown_appointment(self, client: TestClient) -> None:
        response = client.post("/api/confirm-appointment", json={"matricola": "NOPE"})

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "Appuntamento non trovato"}

    def test_requires_a_reference(self, client: TestClient) -> None:
        response = client.post(
            "/api/confirm-appointment", json={"appointment_id": "", "matricola": ""}
        )

        assert response.status_code == 400


class TestRescheduleAppointment:
    def test_moves_appointment(
        self,
        client: TestClient,
        seeded_store: FakeAppointmentStore,
        fake_notifier: FakeNotifier,
    ) -> None:
        response = client.post(
            "/api/reschedule-appointment",
            json={
                "matricola": "TEST123456",
                "new_date": "2024-08-01",
                "new_time_slot": "09:00-12:00",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["new_date"] == "2024-08-01"
        assert body["new_time_slot"] == "09:00-12:00"
        assert "1/8/2024" in body["message"]
        moved = seeded_store.appointments[1]
        assert moved.status == AppointmentStatus.RESCHEDULED
        assert moved.reschedule_notes == "Riprogrammato su richiesta cliente"
        assert "Prima: 25/7/2024 09:00-12:00" in fake_notifier.sent[0][1]

    def test_full_slot_offers_alternatives(
        self, client: TestClient, seeded_store: FakeAppointmentStore
    ) -> None:
        for i in range(5):
            seeded_store.add(
                matricola=f"FULL{i}", date=dt.date(2026, 10, 20), time_slot="13:00-17:00"
            )

        response = client.post(
            "/api/reschedule-appointment",
            json={
                "matricola": "TEST123456",
                "new_date": "2026-10-20",
                "new_time_slot": "13:00-17:00",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["alternatives"] == [
            {"date": "2026-10-20", "time": "08:00-12:00"},
            {"date": "2026-10-20", "time": "13:00-17:00"},
        ]
        assert seeded_store.appointments[1].date == dt.date(2024, 7, 25)

    def test_malformed_date_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/api/reschedule-appointment",
            json={"matricola": "TEST123456", "new_date": "domani", "new_time_slot": "09:00-12:00"},
        )

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Richiesta non valida"
        assert body["details"]


class TestDates:
    def test_get_current_date(self, client: TestClient) -> None:
        response = client.get("/api/get-current-date")

        body = response.json()
        assert body["current_date"] == "2026-10-17"
        assert body["current_date_display"] == "sabato 17 ottobre 2026"
        assert len(body["available_dates"]) == 10
        assert body["available_dates"][0] == {
            "date": "2026-10-19",
            "display": "lunedì 19 ottobre 2026",
            "weekday": "lunedì",
        }
        assert "2026-10-18" not in [d["date"] for d in body["available_dates"]]
        assert len(body["time_slots"]) == 5

    def test_get_current_date_accepts_post(self, client: TestClient) -> None:
        assert client.post("/api/get-current-date").status_code == 200

    @pytest.mark.parametrize(
        ("proposed", "reason"),
        [("2026-10-17", "past_date"), ("2026-10-01", "past_date"), ("2026-10-18", "sunday")],
        ids=["today", "past", "sunday"],
    )
    def test_invalid_dates_come_with_suggestions(
        self, client: TestClient, proposed: str, reason: str
    ) -> None:
        response = client.post("/api/validate-date", json={"proposed_date": proposed})

        body = response.json()
        assert body["is_valid"] is False
        assert body["reason"] == reason
        assert [d["date"] for d in body["suggested_dates"]] == [
            "2026-10-19",
            "2026-10-20",
            "2026-10-21",
            "2026-10-22",
            "2026-10-23",
        ]

    def test_valid_date(self, client: TestClient) -> None:
        response = client.post(
            "/api/validate-date", json={"proposed_date": "2026-10-20", "time_slot": "08:00-10:00"}
        )

        body = response.json()
        assert body["is_valid"] is True
        assert body["date_display"] == "martedì 20 ottobre 2026"
        assert len(body["time_slots"]) == 5


class TestGetInfo:
    def test_known_topic(self, client: TestClient) -> None:
        body = client.post("/api/get-info", json={"topic": "costi"}).json()

        assert body["success"] is True
        assert "gratuito" in body["info"]

    def test_unknown_topic(self, client: TestClient) -> None:
        body = client.post("/api/get-info", json={"topic": "parcheggio"}).json()

        assert body["success"] is True
        assert "ufficio tecnico" in body["message"]


class TestAuth:
    @pytest.fixture
    def secured(
        self,
        seeded_store: FakeAppointmentStore,
        fake_notifier: FakeNotifier,
        fixed_now: dt.datetime,
    ) -> Iterator[TestClient]:
        with _client(
            _config(api_token="s3cret"), seeded_store, fake_notifier, fixed_now
        ) as test_client:
            yield test_client

    def test_rejects_missing_token(self, secured: TestClient) -> None:
        response = secured.post("/api/search-appointment", json={"matricola": "TEST123456"})

        assert response.status_code == 401

    def test_rejects_wrong_token(self, secured: TestClient) -> None:
        response = secured.get(
            "/api/get-current-date", headers={"Authorization": "Bearer nope"}
        )

        assert response.status_code == 401

    @pytest.mark.parametrize(
        "headers",
        [{"Authorization": "Bearer s3cret"}, {"X-API-Key": "s3cret"}],
        ids=["bearer", "api-key"],
    )
    def test_accepts_token(self, secured: TestClient, headers: dict[str, str]) -> None:
        response = secured.get("/api/get-current-date", headers=headers)

        assert response.status_code == 200

    def test_public_routes_stay_open(self, secured: TestClient) -> None:
        assert secured.get("/health").status_code == 200
        assert secured.post("/voice").status_code == 200


class TestOperationalRoutes:
    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()

        assert body["status"] == "OK"
        assert body["timestamp"] == "2026-10-17T10:00:00"

    def test_voice_returns_twiml(self, client: TestClient) -> None:
        response = client.post("/voice")

        assert response.headers["content-type"].startswith("text/xml")
        assert "<Gather" in response.text
        assert 'language="it-IT"' in response.text

    def test_appointments_listing(self, client: TestClient) -> None:
        body = client.get("/api/appointments").json()

        assert body["count"] == 1
        assert body["appointments"][0]["matricola"] == "TEST123456"

    def test_test_appointment_disabled_by_default(self, client: TestClient) -> None:
        assert client.post("/api/test-appointment").status_code == 404

    def test_test_appointment_when_enabled(
        self, fake_store: FakeAppointmentStore, fake_notifier: FakeNotifier, fixed_now: dt.datetime
    ) -> None:
        config = _config(enable_test_endpoints=True)
        with _client(config, fake_store, fake_notifier, fixed_now) as test_client:
            response = test_client.post("/api/test-appointment")

        assert response.status_code == 200
        assert response.json()["appointment"]["matricola"] == "TEST123456"
        assert [a.municipality for a in fake_store.appointments.values()] == ["Milano"]

    def test_lifespan_migrates_and_closes(
        self, fake_store: FakeAppointmentStore, fake_notifier: FakeNotifier, fixed_now: dt.datetime
    ) -> None:
        with _client(_config(), fake_store, fake_notifier, fixed_now):
            assert fake_store.migrated is True

        assert fake_store.closed is True
        assert fake_notifier.closed is True
