"""HTTP surface: routing, schemas and error mapping."""

from conftest import EXTERIOR, MONDAY, RETIRED, SATURDAY

from washbook.errors import UnavailableError


def create_hold(client, holder_id="A", time="10:00", date=MONDAY, service_id=EXTERIOR):
    return client.post("/holds", json={
        "date": date.isoformat(),
        "time": time,
        "service_id": service_id,
        "holder_id": holder_id,
    })


CHECKOUT = {
    "customer_name": "Dana Example",
    "customer_email": "Dana@Example.com",
    "customer_phone": "+1 (555) 0100",
    "vehicle_type": "suv",
}


class TestSlots:
    def test_day(self, client):
        response = client.get("/slots/day", params={"date": MONDAY.isoformat(), "service_id": EXTERIOR})

        assert response.status_code == 200
        body = response.json()
        assert body["is_open"] is True
        assert body["service_duration_min"] == 45
        assert body["slots"][0] == {
            "time": "08:00",
            "end_time": "08:45",
            "is_available": True,
            "max_capacity": 1,
            "current_bookings": 0,
            "available_capacity": 1,
            "conflicts": [],
        }

    def test_closed_day(self, client):
        response = client.get("/slots/day", params={"date": SATURDAY.isoformat(), "service_id": EXTERIOR})
        assert response.status_code == 200
        assert response.json()["is_open"] is False
        assert response.json()["slots"] == []

    def test_unknown_service(self, client):
        response = client.get("/slots/day", params={"date": MONDAY.isoformat(), "service_id": 999})
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    def test_inactive_service(self, client):
        response = client.get("/slots/day", params={"date": MONDAY.isoformat(), "service_id": RETIRED})
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_service"

    def test_first(self, client):
        response = client.get("/slots/first", params={"date": MONDAY.isoformat(), "service_id": EXTERIOR})
        assert response.status_code == 200
        assert response.json()["time"] == "08:00"

    def test_first_on_closed_day(self, client):
        response = client.get("/slots/first", params={"date": SATURDAY.isoformat(), "service_id": EXTERIOR})
        assert response.status_code == 404

    def test_calendar(self, client):
        response = client.get("/slots/calendar", params={
            "service_id": EXTERIOR,
            "start_date": MONDAY.isoformat(),
            "end_date": SATURDAY.isoformat(),
        })

        assert response.status_code == 200
        days = {d["date"]: d for d in response.json()["days"]}
        assert days[MONDAY.isoformat()]["open_slots_count"] == 14
        assert days[SATURDAY.isoformat()]["has_slots"] is False

    def test_calendar_is_clamped_to_horizon(self, client):
        response = client.get("/slots/calendar", params={"service_id": EXTERIOR})
        body = response.json()
        assert len(body["days"]) == body["horizon_days"] + 1


class TestHolds:
    def test_create_and_get(self, client):
        response = create_hold(client)

        assert response.status_code == 201
        body = response.json()
        assert body["expires_in"] == 300
        assert body["status"] == "active"

        fetched = client.get(f"/holds/{body['token']}")
        assert fetched.status_code == 200
        assert fetched.json()["time"] == "10:00"

    def test_conflict(self, client):
        create_hold(client, "A")
        response = create_hold(client, "B")

        assert response.status_code == 409
        error = response.json()["error"]
        assert error["message"] == "This slot was just taken."
        assert error["conflicts"][0]["type"] == "hold"

    def test_other_holder_sees_conflict_in_listing(self, client):
        create_hold(client, "A")
        response = client.get("/slots/day", params={
            "date": MONDAY.isoformat(), "service_id": EXTERIOR, "holder_id": "B",
        })
        slot = next(s for s in response.json()["slots"] if s["time"] == "10:00")
        assert slot["is_available"] is False
        assert slot["conflicts"][0]["type"] == "hold"

    def test_release_then_rehold(self, client):
        token = create_hold(client, "A").json()["token"]

        assert client.delete(f"/holds/{token}").status_code == 204
        assert client.delete(f"/holds/{token}").status_code == 404
        assert create_hold(client, "B").status_code == 201

    def test_bad_time_format(self, client):
        assert create_hold(client, time="9:00").status_code == 422

    def test_time_not_offered(self, client):
        response = create_hold(client, time="12:00")
        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_input"

    def test_store_outage(self, client, holds, monkeypatch):
        def down(*args, **kwargs):
            raise UnavailableError("redis down")

        monkeypatch.setattr(holds, "put", down)
        response = create_hold(client)

        assert response.status_code == 503
        assert response.json()["error"]["message"] == "Please try again in a moment."


class TestConfirm:
    def test_confirm(self, client, events):
        token = create_hold(client).json()["token"]

        response = client.post(f"/holds/{token}/confirm", json=CHECKOUT)

        assert response.status_code == 201
        booking = response.json()
        assert booking["status"] == "pending"
        assert booking["start_time"] == "10:00"
        assert booking["end_time"] == "10:45"
        assert booking["customer_email"] == "dana@example.com"
        assert booking["customer_phone"] == "+15550100"
        assert "booking_created" in events.types()
        assert client.get(f"/holds/{token}").status_code == 404

    def test_confirm_expired(self, client, clock):
        token = create_hold(client).json()["token"]
        clock.advance(minutes=5, seconds=1)

        assert client.get(f"/holds/{token}").json()["status"] == "expired"
        response = client.post(f"/holds/{token}/confirm", json=CHECKOUT)

        assert response.status_code == 410
        assert response.json()["error"]["message"] == (
            "Your reservation expired, please pick a time again."
        )

    def test_confirm_unknown(self, client):
        response = client.post("/holds/nope/confirm", json=CHECKOUT)
        assert response.status_code == 404

    def test_invalid_email(self, client):
        token = create_hold(client).json()["token"]
        response = client.post(f"/holds/{token}/confirm", json={**CHECKOUT, "customer_email": "nope"})
        assert response.status_code == 422


class TestBookings:
    def book(self, client, time="10:00"):
        token = create_hold(client, time=time).json()["token"]
        return client.post(f"/holds/{token}/confirm", json=CHECKOUT).json()

    def test_list_and_get(self, client):
        first = self.book(client, "10:00")
        self.book(client, "14:00")

        listed = client.get("/bookings/", params={"date": MONDAY.isoformat()}).json()
        assert [b["start_time"] for b in listed] == ["10:00", "14:00"]

        assert client.get(f"/bookings/{first['id']}").json()["confirmation_code"] == first["confirmation_code"]
        assert client.get("/bookings/999").status_code == 404

    def test_status_update(self, client, events):
        booking = self.book(client)

        response = client.patch(f"/bookings/{booking['id']}/status", json={
            "status": "confirmed",
            "actor": "staff",
        })

        assert response.status_code == 200
        assert response.json()["status"] == "confirmed"
        assert "booking_status_changed" in events.types()

        listed = client.get("/bookings/", params={"status": "confirmed"}).json()
        assert [b["id"] for b in listed] == [booking["id"]]

    def test_cancel_frees_slot(self, client):
        booking = self.book(client)

        response = client.patch(f"/bookings/{booking['id']}/status", json={
            "status": "cancelled",
            "actor": "customer",
            "reason": "Plans changed",
        })

        assert response.status_code == 200
        assert response.json()["cancel_reason"] == "Plans changed"
        assert create_hold(client, "B").status_code == 201

    def test_invalid_transition(self, client):
        booking = self.book(client)
        response = client.patch(f"/bookings/{booking['id']}/status", json={
            "status": "completed",
            "actor": "customer",
        })
        assert response.status_code == 400

    def test_transitions(self, client):
        booking = self.book(client)

        response = client.get(f"/bookings/{booking['id']}/transitions", params={"actor": "admin"})

        assert response.status_code == 200
        assert response.json() == ["confirmed", "cancelled"]
        assert client.get(
            f"/bookings/{booking['id']}/transitions", params={"actor": "nobody"}
        ).status_code == 400

    def test_delete_not_allowed(self, client):
        assert client.delete("/bookings/1").status_code == 405


class TestHoldBackend:
    def test_memory_backend(self, monkeypatch):
        from washbook import deps
        from washbook.services.slots import InMemoryHoldStore

        monkeypatch.setattr(deps.settings, "hold_backend", "memory")
        deps.get_hold_store.cache_clear()
        try:
            assert isinstance(deps.get_hold_store(), InMemoryHoldStore)
        finally:
            deps.get_hold_store.cache_clear()
