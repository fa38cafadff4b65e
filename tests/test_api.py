"""
Тесты REST API
"""
import pytest
from fastapi.testclient import TestClient

from api.dependencies import (
    get_identity_provider, get_reservation_service, get_sweeper, get_waiting_list_service
)
from api.main import create_app
from config import settings
from database.models import TableType
from services.identity import IdentityProvider

OWNER, MAITRE, WAITER, CLIENT, OTHER_CLIENT = 1, 3, 4, 100, 200

TOKENS = {
    'owner-token': OWNER,
    'maitre-token': MAITRE,
    'waiter-token': WAITER,
    'client-token': CLIENT,
    'other-token': OTHER_CLIENT,
}


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(monkeypatch, reservation_service, waiting_list_service, sweeper):
    monkeypatch.setattr(settings, 'OWNER_IDS', [OWNER])
    monkeypatch.setattr(settings, 'SUPERVISOR_IDS', [])
    monkeypatch.setattr(settings, 'MAITRE_IDS', [MAITRE])
    monkeypatch.setattr(settings, 'WAITER_IDS', [WAITER])

    app = create_app()
    app.dependency_overrides[get_identity_provider] = lambda: IdentityProvider(TOKENS)
    app.dependency_overrides[get_reservation_service] = lambda: reservation_service
    app.dependency_overrides[get_waiting_list_service] = lambda: waiting_list_service
    app.dependency_overrides[get_sweeper] = lambda: sweeper
    return TestClient(app)


def create(client, table_id, time="20:30", party_size=2, token='client-token'):
    return client.post(
        "/reservations",
        json={"table_id": table_id, "date": "2025-03-01", "time": time, "party_size": party_size},
        headers=auth(token),
    )


class TestAuth:

    def test_missing_token(self, client):
        assert client.get("/reservations/my-reservations").status_code == 401

    def test_unknown_token(self, client):
        response = client.get("/reservations/my-reservations", headers=auth("nope"))
        assert response.status_code == 401


class TestReservationsApi:

    def test_create(self, client, make_table):
        table = make_table()

        response = create(client, table.id)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["time"] == "20:30"
        assert data["date"] == "2025-03-01"
        assert data["client_id"] == CLIENT

    def test_create_error_codes(self, client, make_table):
        table = make_table(capacity=2)
        create(client, table.id)

        assert create(client, table.id, time="7pm").status_code == 400
        assert create(client, table.id, time="12:00").status_code == 400
        assert create(client, table.id, time="21:00").status_code == 409
        assert create(client, table.id, time="23:00", party_size=4).status_code == 422
        assert create(client, 404).status_code == 404

    def test_error_body_has_message(self, client, make_table):
        table = make_table()
        create(client, table.id)

        response = create(client, table.id, time="20:45")

        assert response.json() == {"detail": "Этот слот больше недоступен"}

    def test_decide_only_admins(self, client, make_table):
        table = make_table()
        reservation_id = create(client, table.id).json()["data"]["id"]

        response = client.put(
            f"/reservations/{reservation_id}/status",
            json={"status": "approved"}, headers=auth("maitre-token"),
        )
        assert response.status_code == 403

        response = client.put(
            f"/reservations/{reservation_id}/status",
            json={"status": "rejected"}, headers=auth("owner-token"),
        )
        assert response.status_code == 400

        response = client.put(
            f"/reservations/{reservation_id}/status",
            json={"status": "approved"}, headers=auth("owner-token"),
        )
        assert response.status_code == 200
        assert response.json()["data"]["approved_by"] == OWNER

    def test_cancel(self, client, make_table):
        table = make_table()
        reservation_id = create(client, table.id).json()["data"]["id"]

        other = client.put(f"/reservations/{reservation_id}/cancel", headers=auth("other-token"))
        own = client.put(f"/reservations/{reservation_id}/cancel", headers=auth("client-token"))

        assert other.status_code == 403
        assert own.status_code == 200
        assert own.json()["data"]["status"] == "cancelled"

    def test_get_reservation(self, client, make_table):
        table = make_table()
        reservation_id = create(client, table.id).json()["data"]["id"]

        assert client.get(f"/reservations/{reservation_id}", headers=auth("waiter-token")).status_code == 200
        assert client.get(f"/reservations/{reservation_id}", headers=auth("other-token")).status_code == 403
        assert client.get("/reservations/999", headers=auth("client-token")).status_code == 404

    def test_all_reservations_for_admins(self, client, make_table):
        table = make_table()
        create(client, table.id)

        assert client.get("/reservations/all", headers=auth("client-token")).status_code == 403
        response = client.get("/reservations/all", headers=auth("owner-token"))
        assert len(response.json()["data"]) == 1

    def test_my_reservations(self, client, make_table):
        table = make_table()
        create(client, table.id)
        create(client, table.id, time="23:00", token='other-token')

        response = client.get("/reservations/my-reservations", headers=auth("client-token"))

        assert [r["time"] for r in response.json()["data"]] == ["20:30"]


class TestAvailabilityApi:

    def test_day_availability(self, client, make_table):
        table = make_table()
        create(client, table.id)

        response = client.get(
            "/reservations/availability", params={"date": "2025-03-01"}, headers=auth("client-token")
        )

        slots = response.json()["data"]
        assert len(slots) == 11
        assert slots[0] == {
            "time": "19:00", "available": True, "table_id": table.id,
            "table_number": table.number, "table_capacity": table.capacity,
        }
        assert slots[1]["available"] is False

    def test_table_availability(self, client, make_table):
        table = make_table()
        response = client.get(
            "/reservations/table-availability",
            params={"table_id": table.id, "date": "2025-03-01"},
            headers=auth("client-token"),
        )
        assert all(slot["available"] for slot in response.json()["data"])

    def test_tables_filter(self, client, make_table):
        make_table(capacity=2, table_type=TableType.VIP)
        big = make_table(capacity=6, table_type=TableType.VIP)
        make_table(capacity=6)

        response = client.get(
            "/reservations/tables", params={"type": "vip", "capacity": 4}, headers=auth("client-token")
        )

        assert [t["id"] for t in response.json()["data"]] == [big.id]

    def test_available_tables_and_alternatives(self, client, make_table):
        first = make_table(capacity=4, table_type=TableType.VIP)
        second = make_table(capacity=4, table_type=TableType.VIP)
        create(client, first.id, time="20:30", party_size=4)
        create(client, second.id, time="19:30", party_size=4, token='other-token')
        params = {"type": "vip", "capacity": 4, "date": "2025-03-01", "time": "20:00"}

        available = client.get("/reservations/available-tables", params=params, headers=auth("client-token"))
        alternatives = client.get(
            "/reservations/alternatives",
            params={"type": "vip", "party_size": 4, "date": "2025-03-01", "time": "20:00"},
            headers=auth("client-token"),
        )

        assert available.json()["data"] == []
        assert alternatives.json()["data"] == ["19:15", "20:45"]

    def test_check_table_reserved_for_hosts(self, client, make_table):
        table = make_table()
        reservation_id = create(client, table.id).json()["data"]["id"]
        client.put(
            f"/reservations/{reservation_id}/status",
            json={"status": "approved"}, headers=auth("owner-token"),
        )
        params = {"table_id": table.id, "date": "2025-03-01", "time": "20:00"}

        assert client.get(
            "/reservations/check-table-reserved", params=params, headers=auth("waiter-token")
        ).status_code == 403
        response = client.get("/reservations/check-table-reserved", params=params, headers=auth("maitre-token"))
        assert response.json()["data"] == {"table_id": table.id, "reserved": True}


class TestWaitingListApi:

    def join(self, client, token='client-token', **extra):
        body = {"party_size": 2}
        body.update(extra)
        return client.post("/tables/waiting-list", json=body, headers=auth(token))

    def test_join_and_position(self, client):
        response = self.join(client)
        assert response.status_code == 201
        assert self.join(client).status_code == 409

        position = client.get("/tables/waiting-list/my-position", headers=auth("client-token"))
        assert position.json()["data"]["position"] == 1

    def test_staff_joins_on_behalf(self, client):
        assert self.join(client, token='other-token', client_id=CLIENT).status_code == 403

        response = self.join(client, token='maitre-token', client_id=CLIENT)
        assert response.json()["data"]["client_id"] == CLIENT

        position = client.get(f"/tables/waiting-list/position/{CLIENT}", headers=auth("maitre-token"))
        assert position.json()["data"]["entry"]["client_id"] == CLIENT

    def test_waiting_list_for_hosts(self, client):
        self.join(client)
        assert client.get("/tables/waiting-list", headers=auth("waiter-token")).status_code == 403
        response = client.get("/tables/waiting-list", headers=auth("maitre-token"))
        assert response.json()["data"]["total"] == 1

    def test_cancel_and_no_show(self, client):
        entry_id = self.join(client).json()["data"]["id"]
        other_id = self.join(client, token='other-token').json()["data"]["id"]

        assert client.put(f"/tables/waiting-list/{entry_id}/cancel", headers=auth("other-token")).status_code == 403
        assert client.put(f"/tables/waiting-list/{entry_id}/cancel", headers=auth("client-token")).status_code == 200
        assert client.put(f"/tables/waiting-list/{other_id}/no-show", headers=auth("client-token")).status_code == 403
        response = client.put(f"/tables/waiting-list/{other_id}/no-show", headers=auth("maitre-token"))
        assert response.json()["data"]["status"] == "no_show"

    def test_assign_arrive_free(self, client, make_table):
        table = make_table(capacity=4)
        entry_id = self.join(client).json()["data"]["id"]

        assigned = client.post(
            "/tables/assign", json={"waiting_entry_id": entry_id, "table_id": table.id},
            headers=auth("maitre-token"),
        )
        assert assigned.json()["data"]["claimant_id"] == CLIENT

        arrived = client.post(f"/tables/{table.id}/activate", headers=auth("client-token"))
        assert arrived.json()["data"]["occupied"] is True

        status = client.get("/tables/status", headers=auth("waiter-token")).json()["data"]
        assert status["occupied"] == 1

        freed = client.post(f"/tables/{table.id}/free", headers=auth("waiter-token"))
        assert freed.json()["data"]["claimant_id"] is None

    def test_assign_errors(self, client, make_table):
        small = make_table(capacity=2)
        entry_id = self.join(client, party_size=5).json()["data"]["id"]
        body = {"waiting_entry_id": entry_id, "table_id": small.id}

        assert client.post("/tables/assign", json=body, headers=auth("client-token")).status_code == 403
        assert client.post("/tables/assign", json=body, headers=auth("maitre-token")).status_code == 422

    def test_sweep(self, client):
        response = client.post("/reservations/sweep", headers=auth("waiter-token"))
        assert response.status_code == 200
        assert response.json()["data"]["activated"] == []
        assert client.post("/reservations/sweep", headers=auth("client-token")).status_code == 403
