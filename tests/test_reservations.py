import threading

import pytest

from app_factory import db
from backend.errors import AuthorizationError, ConflictError, NotFoundError, PersistenceError
from backend.models import STATUS_ACTIVE, TIER_PREMIUM, ParkingLot, Reservation, User
from backend.reservations import ReservationController
from tests.conftest import create_lot, make_app, promote, signup


def _user(session, email, tier="standard"):
    user = User(email=email, tier=tier)
    user.set_password("secret123")
    session.add(user)
    session.commit()
    return user.id


def _lot(session, owner_id):
    lot = ParkingLot(owner_id=owner_id, name="Plaza", capacity=2, latitude=1.0, longitude=2.0)
    session.add(lot)
    session.commit()
    return lot.id


def _active_rows(session, user_id, lot_id):
    return (
        session.query(Reservation)
        .filter_by(user_id=user_id, lot_id=lot_id, status=STATUS_ACTIVE)
        .count()
    )


@pytest.fixture
def controller(session):
    return ReservationController(session)


def test_standard_user_is_forbidden(controller, session):
    uid = _user(session, "std@example.com")
    lot_id = _lot(session, uid)
    with pytest.raises(AuthorizationError):
        controller.create(uid, lot_id)
    # regardless of the lot existing
    with pytest.raises(AuthorizationError):
        controller.create(uid, 9999)
    assert session.query(Reservation).count() == 0


def test_premium_lifecycle(controller, session):
    uid = _user(session, "vip@example.com", TIER_PREMIUM)
    lot_id = _lot(session, uid)

    assert controller.is_active(uid, lot_id) is False
    res = controller.create(uid, lot_id)
    assert res.status == STATUS_ACTIVE
    assert controller.is_active(uid, lot_id) is True

    with pytest.raises(ConflictError):
        controller.create(uid, lot_id)
    assert _active_rows(session, uid, lot_id) == 1

    controller.cancel(uid, lot_id)
    assert controller.is_active(uid, lot_id) is False
    canceled = session.get(Reservation, res.id)
    assert canceled.status == "canceled"
    assert canceled.canceled_at is not None

    # the pair may cycle again; history is kept
    controller.create(uid, lot_id)
    controller.cancel(uid, lot_id)
    controller.create(uid, lot_id)
    assert session.query(Reservation).filter_by(user_id=uid).count() == 3
    assert _active_rows(session, uid, lot_id) == 1
    assert [r.status for r in controller.history(uid)] == ["active", "canceled", "canceled"]


def test_cancel_without_active_is_not_found(controller, session):
    uid = _user(session, "vip@example.com", TIER_PREMIUM)
    lot_id = _lot(session, uid)
    controller.create(uid, lot_id)
    controller.cancel(uid, lot_id)
    before = [(r.id, r.status, r.canceled_at) for r in session.query(Reservation).all()]

    with pytest.raises(NotFoundError):
        controller.cancel(uid, lot_id)
    with pytest.raises(NotFoundError):
        controller.cancel(uid, 777)

    session.expire_all()
    after = [(r.id, r.status, r.canceled_at) for r in session.query(Reservation).all()]
    assert before == after


def test_reservations_are_per_lot(controller, session):
    uid = _user(session, "vip@example.com", TIER_PREMIUM)
    first, second = _lot(session, uid), _lot(session, uid)
    controller.create(uid, first)
    controller.create(uid, second)
    assert controller.is_active(uid, first) and controller.is_active(uid, second)


def test_unknown_lot_is_not_found(controller, session):
    uid = _user(session, "vip@example.com", TIER_PREMIUM)
    with pytest.raises(NotFoundError):
        controller.create(uid, 4242)


def test_concurrent_admission_keeps_one_active(tmp_path):
    app = make_app(f"sqlite:///{tmp_path / 'race.db'}")
    with app.app_context():
        uid = _user(db.session, "vip@example.com", TIER_PREMIUM)
        lot_id = _lot(db.session, uid)

    workers = 8
    barrier = threading.Barrier(workers)
    outcomes = []
    lock = threading.Lock()

    def attempt():
        with app.app_context():
            barrier.wait()
            try:
                ReservationController(db.session).create(uid, lot_id)
                outcome = "created"
            except ConflictError:
                outcome = "conflict"
            except PersistenceError:
                outcome = "error"
            finally:
                db.session.remove()
            with lock:
                outcomes.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(outcomes) == workers
    assert outcomes.count("created") == 1
    with app.app_context():
        assert _active_rows(db.session, uid, lot_id) == 1
        db.session.remove()
        db.engine.dispose()


# --------------------
# routes
# --------------------
def test_reservation_routes(app, client, owner):
    uid, headers = owner
    lot_id = create_lot(client, headers)
    path = f"/api/facilities/{lot_id}/reservation"

    resp = client.post(path, headers=headers)
    assert resp.status_code == 403
    assert client.get(path, headers=headers).get_json() == {"active": False}

    promote(app, uid)
    assert client.post(path, headers=headers).status_code == 201
    assert client.get(path, headers=headers).get_json() == {"active": True}
    assert client.post(path, headers=headers).status_code == 409

    history = client.get("/api/reservations", headers=headers).get_json()["reservations"]
    assert [(r["lot_id"], r["status"]) for r in history] == [(lot_id, "active")]

    assert client.delete(path, headers=headers).status_code == 200
    assert client.delete(path, headers=headers).status_code == 404
    assert client.post(path).status_code == 401


def test_other_user_cannot_cancel(app, client, owner):
    uid, headers = owner
    lot_id = create_lot(client, headers)
    promote(app, uid)
    client.post(f"/api/facilities/{lot_id}/reservation", headers=headers)

    _, other = signup(client, email="other@example.com")
    assert client.delete(f"/api/facilities/{lot_id}/reservation", headers=other).status_code == 404
    assert client.get(f"/api/facilities/{lot_id}/reservation", headers=headers).get_json() == {"active": True}
