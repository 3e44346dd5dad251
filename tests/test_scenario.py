from tests.conftest import promote, signup


def test_owner_to_reservation_walkthrough(app, client):
    uid, headers = signup(client, email="a@example.com")

    resp = client.post(
        "/api/facilities",
        json={"name": "Garage A", "capacity": 3, "latitude": 40.4168, "longitude": -3.7038},
        headers=headers,
    )
    assert resp.status_code == 201
    lot_id = resp.get_json()["id"]

    assert client.post("/api/spots", json={"facility_id": lot_id, "count": 3}, headers=headers).status_code == 200
    resp = client.post(
        "/api/spots/status", json={"facility_id": lot_id, "number": 2, "occupied": True}, headers=headers
    )
    assert resp.status_code == 200

    detail = client.get(f"/api/facilities/{lot_id}/detail").get_json()
    assert (detail["total"], detail["occupied"], detail["free"]) == (3, 1, 2)

    reservation = f"/api/facilities/{lot_id}/reservation"
    assert client.post(reservation, headers=headers).status_code == 403

    promote(app, uid)
    assert client.post(reservation, headers=headers).status_code == 201
    assert client.post(reservation, headers=headers).status_code == 409
    assert client.delete(reservation, headers=headers).status_code == 200
    assert client.delete(reservation, headers=headers).status_code == 404


def test_cors_headers_and_preflight(client):
    resp = client.open("/api/facilities", method="OPTIONS")
    assert resp.status_code == 200
    assert resp.headers["Access-Control-Allow-Origin"] == "*"
    assert "Authorization" in resp.headers["Access-Control-Allow-Headers"]


def test_persistence_detail_hidden_unless_enabled(app, client, monkeypatch):
    from sqlalchemy.exc import OperationalError

    from backend.occupancy import OccupancyLedger

    def broken(self, lot_id):
        raise OperationalError("SELECT", {}, Exception("disk on fire"))

    monkeypatch.setattr(OccupancyLedger, "read_spots", broken)

    resp = client.get("/api/facilities/1/spots")
    assert resp.status_code == 500
    assert resp.get_json() == {"error": "Storage error", "code": "persistence_error"}

    app.config["EXPOSE_ERROR_DETAILS"] = True
    assert "disk on fire" in client.get("/api/facilities/1/spots").get_json()["detail"]
