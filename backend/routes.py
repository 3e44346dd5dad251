from flask import Blueprint, request, jsonify, current_app
from app_factory import db
from backend.accounts import AccountService
from backend.auth import create_token, token_required
from backend.directory import FacilityDirectory
from backend.errors import ValidationError
from backend.models import MAX_DB_INT
from backend.occupancy import OccupancyLedger
from backend.ownership import require_owner
from backend.reservations import ReservationController

bp = Blueprint("app_routes", __name__)

# ids beyond a 64-bit column never match a route
LOT = f"<int(max={MAX_DB_INT}):lot_id>"


# --------------------
# REQUEST HELPERS
# --------------------
def json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON body")
    return data


def int_field(data, key):
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{key} must be an integer")
    if not -MAX_DB_INT - 1 <= value <= MAX_DB_INT:
        raise ValidationError(f"{key} is out of range")
    return value


def bool_field(data, key):
    value = data.get(key)
    if not isinstance(value, bool):
        raise ValidationError(f"{key} must be true or false")
    return value


def float_arg(name, default=None):
    raw = request.args.get(name, default)
    if raw is None:
        return None
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name} parameter")


def reservation_dict(r):
    return {
        "id": r.id,
        "lot_id": r.lot_id,
        "lot_name": r.lot.name if r.lot else None,
        "status": r.status,
        "created_at": r.created_at.isoformat() if r.created_at else None,
        "canceled_at": r.canceled_at.isoformat() if r.canceled_at else None,
    }


# ----------------------------------------------------------
# AUTH ROUTES
# ----------------------------------------------------------
@bp.route("/api/register", methods=["POST"])
def register():
    data = json_body()
    user = AccountService(db.session).register(data.get("email"), data.get("password"))
    current_app.logger.info("Registered user %s", user.id)
    return jsonify({"id": user.id, "email": user.email}), 201


@bp.route("/api/login", methods=["POST"])
def login():
    data = json_body()
    user = AccountService(db.session).authenticate(data.get("email"), data.get("password"))
    token = create_token(
        user,
        current_app.config.get("JWT_SECRET"),
        ttl_hours=current_app.config["TOKEN_TTL_HOURS"],
    )
    return jsonify({"token": token, "user_id": user.id, "tier": user.tier})


# ----------------------------------------------------------
# OWNER ROUTES
# ----------------------------------------------------------
@bp.route("/api/facilities", methods=["POST"])
@token_required
def create_facility(user_id):
    result = FacilityDirectory(db.session).create(user_id, json_body())
    failed = [w.index for w in result.windows if not w.ok]
    if failed:
        current_app.logger.warning("Lot %s: attention windows %s were not stored", result.lot_id, failed)
    return jsonify({
        "id": result.lot_id,
        "windows_stored": len(result.windows) - len(failed),
        "windows_failed": failed,
    }), 201


@bp.route("/api/my-facilities", methods=["GET"])
@token_required
def my_facilities(user_id):
    return jsonify({"facilities": FacilityDirectory(db.session).list_owned_by(user_id)})


@bp.route("/api/spots", methods=["POST"])
@token_required
def init_spots(user_id):
    data = json_body()
    lot_id = int_field(data, "facility_id")
    count = int_field(data, "count")
    if count < 0:
        raise ValidationError("count must be >= 0")

    require_owner(db.session, lot_id, user_id)
    results = OccupancyLedger(db.session).initialize_spots(lot_id, count)
    return jsonify({"message": "OK", "written": sum(1 for r in results if r.ok)})


@bp.route("/api/spots", methods=["PUT"])
@token_required
def bulk_set_spots(user_id):
    data = json_body()
    lot_id = int_field(data, "facility_id")
    spots = data.get("spots")
    if not isinstance(spots, list) or any(not isinstance(s, dict) for s in spots):
        raise ValidationError("spots must be a list of objects")
    items = [(int_field(s, "number"), bool_field(s, "occupied")) for s in spots]

    require_owner(db.session, lot_id, user_id)
    results = OccupancyLedger(db.session).bulk_set_spots(lot_id, items)
    return jsonify({
        "message": "OK",
        "results": [{"number": r.number, "ok": r.ok} for r in results],
    })


@bp.route("/api/spots/status", methods=["POST"])
@token_required
def set_spot_status(user_id):
    data = json_body()
    lot_id = int_field(data, "facility_id")
    number = int_field(data, "number")
    occupied = bool_field(data, "occupied")

    require_owner(db.session, lot_id, user_id)
    OccupancyLedger(db.session).set_spot_occupied(lot_id, number, occupied)
    return jsonify({"message": "OK"})


# ----------------------------------------------------------
# PUBLIC ROUTES
# ----------------------------------------------------------
@bp.route(f"/api/facilities/{LOT}/spots", methods=["GET"])
def read_spots(lot_id):
    spots = OccupancyLedger(db.session).read_spots(lot_id)
    return jsonify({"spots": [s._asdict() for s in spots]})


@bp.route(f"/api/facilities/{LOT}/detail", methods=["GET"])
def facility_detail(lot_id):
    return jsonify(FacilityDirectory(db.session).get_detail(lot_id))


@bp.route(f"/api/facilities/{LOT}/summary", methods=["GET"])
def facility_summary(lot_id):
    return jsonify(OccupancyLedger(db.session).aggregate(lot_id)._asdict())


@bp.route("/api/facilities", methods=["GET"])
def list_facilities():
    lat = float_arg("lat")
    lng = float_arg("lng")
    directory = FacilityDirectory(db.session)

    if lat is None and lng is None:
        return jsonify({"facilities": directory.list_all()})
    if lat is None or lng is None:
        raise ValidationError("lat and lng must be given together")

    radius = float_arg("km", "1")
    return jsonify({"facilities": directory.near(lat, lng, radius)})


# ----------------------------------------------------------
# RESERVATION ROUTES
# ----------------------------------------------------------
@bp.route(f"/api/facilities/{LOT}/reservation", methods=["POST"])
@token_required
def reserve(user_id, lot_id):
    res = ReservationController(db.session).create(user_id, lot_id)
    return jsonify({"message": "Reserved", "reservation": reservation_dict(res)}), 201


@bp.route(f"/api/facilities/{LOT}/reservation", methods=["DELETE"])
@token_required
def cancel_reservation(user_id, lot_id):
    ReservationController(db.session).cancel(user_id, lot_id)
    return jsonify({"message": "Canceled"})


@bp.route(f"/api/facilities/{LOT}/reservation", methods=["GET"])
@token_required
def reservation_status(user_id, lot_id):
    return jsonify({"active": ReservationController(db.session).is_active(user_id, lot_id)})


@bp.route("/api/reservations", methods=["GET"])
@token_required
def my_reservations(user_id):
    history = ReservationController(db.session).history(user_id)
    return jsonify({"reservations": [reservation_dict(r) for r in history]})
