# backend/directory.py
"""Facility (parking lot) metadata, listings and proximity search."""
import logging
from typing import List, NamedTuple, Optional

from sqlalchemy.exc import SQLAlchemyError

from backend.errors import NotFoundError, PersistenceError, ValidationError
from backend.geo import great_circle_km, valid_coordinates
from backend.models import AMENITIES, COVER_TYPES, DAY_ORDER, MAX_DB_INT, AttentionWindow, ParkingLot
from backend.occupancy import Availability, OccupancyLedger

logger = logging.getLogger(__name__)

ALL_DAY = ("00:00", "23:59")


class WindowWriteResult(NamedTuple):
    index: int
    ok: bool
    error: Optional[str] = None


class LotCreateResult(NamedTuple):
    lot_id: int
    windows: List[WindowWriteResult]


# --------------------
# INPUT HELPERS
# --------------------
def _number(data, key, required=False, integer=False):
    value = data.get(key)
    if value is None:
        if required:
            raise ValidationError(f"{key} is required")
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{key} must be numeric")
    if integer:
        if isinstance(value, float) and not value.is_integer():
            raise ValidationError(f"{key} must be an integer")
        if not -MAX_DB_INT - 1 <= value <= MAX_DB_INT:
            raise ValidationError(f"{key} is out of range")
        return int(value)
    return float(value)


def normalize_amenities(tags):
    """Keep known amenity tags (in vocabulary order); unknown tags are dropped."""
    if tags is None:
        return []
    if not isinstance(tags, list):
        raise ValidationError("amenities must be a list")
    wanted = {t.strip().lower() for t in tags if isinstance(t, str)}
    return [a for a in AMENITIES if a in wanted]


def window_sort_key(window):
    day = (window.day or "").lower()
    rank = DAY_ORDER.index(day) if day in DAY_ORDER else len(DAY_ORDER)
    return rank, window.id


def all_hours(windows):
    """True/False when windows exist, None when there are none."""
    if not windows:
        return None
    return all((w.start_time, w.end_time) == ALL_DAY for w in windows)


def _summary(lot, availability=None, distance_km=None):
    item = {
        "id": lot.id,
        "name": lot.name,
        "latitude": lot.latitude,
        "longitude": lot.longitude,
    }
    if availability is None:
        item["capacity"] = lot.capacity
    else:
        item.update(availability._asdict())
    if distance_km is not None:
        item["distance_km"] = round(distance_km, 4)
    return item


class FacilityDirectory:
    def __init__(self, session, ledger=None):
        self.session = session
        self.ledger = ledger or OccupancyLedger(session)

    # --------------------
    # CREATE
    # --------------------
    def create(self, owner_id, data):
        name = data.get("name")
        name = name.strip() if isinstance(name, str) else ""
        if not name:
            raise ValidationError("name is required")

        capacity = _number(data, "capacity", required=True, integer=True)
        if capacity < 0:
            raise ValidationError("capacity must be >= 0")

        lat = _number(data, "latitude", required=True)
        lng = _number(data, "longitude", required=True)
        if not valid_coordinates(lat, lng):
            raise ValidationError("latitude/longitude out of range")

        cover = data.get("cover_type")
        if cover is not None and cover not in COVER_TYPES:
            raise ValidationError(f"cover_type must be one of {', '.join(COVER_TYPES)}")

        windows = data.get("windows") or []
        if not isinstance(windows, list) or any(not isinstance(w, dict) for w in windows):
            raise ValidationError("windows must be a list of objects")

        lot = ParkingLot(
            owner_id=owner_id,
            name=name,
            capacity=capacity,
            latitude=lat,
            longitude=lng,
            price_per_hour=_number(data, "price_per_hour"),
            cover_type=cover,
            amenities=",".join(normalize_amenities(data.get("amenities"))),
            has_restroom=data.get("restroom") is True,
            max_height_m=_number(data, "max_height_m"),
        )
        try:
            self.session.add(lot)
            self.session.commit()  # so lot.id is available
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(detail=str(exc))

        return LotCreateResult(lot.id, self._store_windows(lot.id, windows))

    def _store_windows(self, lot_id, windows):
        results = []
        for index, w in enumerate(windows):
            try:
                self.session.add(AttentionWindow(
                    lot_id=lot_id,
                    day=w.get("day"),
                    start_time=w.get("start"),
                    end_time=w.get("end"),
                ))
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.warning("Attention window %s for lot %s not stored: %s", index, lot_id, exc)
                results.append(WindowWriteResult(index, False, str(exc)))
            else:
                results.append(WindowWriteResult(index, True))
        return results

    # --------------------
    # READ
    # --------------------
    def list_owned_by(self, user_id):
        lots = (
            self.session.query(ParkingLot)
            .filter(ParkingLot.owner_id == user_id)
            .order_by(ParkingLot.id)
            .all()
        )
        return [_summary(lot) for lot in lots]

    def get_detail(self, lot_id):
        lot = self.session.get(ParkingLot, lot_id)
        if lot is None:
            raise NotFoundError("Parking lot not found")

        windows = sorted(
            self.session.query(AttentionWindow).filter(AttentionWindow.lot_id == lot.id).all(),
            key=window_sort_key,
        )
        availability = Availability.from_counts(lot.capacity, self.ledger.occupied_count(lot.id))

        detail = _summary(lot, availability)
        detail.update({
            "owner_id": lot.owner_id,
            "capacity": lot.capacity,
            "price_per_hour": lot.price_per_hour,
            "cover_type": lot.cover_type,
            "amenities": lot.amenity_list,
            "restroom": bool(lot.has_restroom),
            "max_height_m": lot.max_height_m,
            "created_at": lot.created_at.isoformat() if lot.created_at else None,
            "all_hours": all_hours(windows),
            "windows": [{"day": w.day, "start": w.start_time, "end": w.end_time} for w in windows],
        })
        return detail

    def _lots_with_availability(self):
        occupied = self.ledger.occupied_counts()
        lots = self.session.query(ParkingLot).order_by(ParkingLot.id).all()
        return [(lot, Availability.from_counts(lot.capacity, occupied.get(lot.id, 0))) for lot in lots]

    def list_all(self):
        return [_summary(lot, availability) for lot, availability in self._lots_with_availability()]

    def near(self, lat, lng, radius_km):
        if not valid_coordinates(lat, lng):
            raise ValidationError("latitude/longitude out of range")
        if radius_km < 0:
            raise ValidationError("radius must be >= 0")

        found = []
        for lot, availability in self._lots_with_availability():
            distance = great_circle_km(lat, lng, lot.latitude, lot.longitude)
            if distance <= radius_km:
                found.append((distance, lot, availability))

        found.sort(key=lambda item: item[0])
        return [_summary(lot, availability, distance) for distance, lot, availability in found]
