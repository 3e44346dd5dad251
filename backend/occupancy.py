# backend/occupancy.py
"""Spot-level occupancy and the facility availability derived from it."""
import logging
from typing import NamedTuple, Optional

from sqlalchemy import func
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from backend.errors import NotFoundError, PersistenceError, ValidationError
from backend.models import ParkingLot, ParkingSpot

logger = logging.getLogger(__name__)


class SpotState(NamedTuple):
    number: int
    occupied: bool


class SpotWriteResult(NamedTuple):
    number: int
    ok: bool
    error: Optional[str] = None


class Availability(NamedTuple):
    total: int
    occupied: int
    free: int

    @classmethod
    def from_counts(cls, capacity, occupied):
        # not clamped: a negative free count exposes inconsistent data
        return cls(capacity, occupied, capacity - occupied)


def _upsert_statement(dialect, lot_id, number, occupied, overwrite):
    """INSERT a spot; on (lot_id, number) conflict update occupied or leave the row alone."""
    table = ParkingSpot.__table__
    values = {"lot_id": lot_id, "number": number, "occupied": occupied}

    if dialect in ("mysql", "mariadb"):
        stmt = mysql.insert(table).values(**values)
        if overwrite:
            return stmt.on_duplicate_key_update(occupied=stmt.inserted.occupied)
        return stmt.on_duplicate_key_update(number=table.c.number)

    if dialect == "postgresql":
        stmt = postgresql.insert(table).values(**values)
    elif dialect == "sqlite":
        stmt = sqlite.insert(table).values(**values)
    else:
        raise PersistenceError(f"Unsupported database dialect: {dialect}")

    keys = ["lot_id", "number"]
    if overwrite:
        return stmt.on_conflict_do_update(index_elements=keys, set_={"occupied": stmt.excluded.occupied})
    return stmt.on_conflict_do_nothing(index_elements=keys)


class OccupancyLedger:
    def __init__(self, session):
        self.session = session

    @property
    def dialect(self):
        return self.session.get_bind().dialect.name

    # --------------------
    # WRITES
    # --------------------
    def _apply(self, lot_id, items, overwrite):
        """Write every item in its own transaction; a failure never stops the rest."""
        results = []
        for number, occupied in items:
            try:
                stmt = _upsert_statement(self.dialect, lot_id, number, occupied, overwrite)
                self.session.execute(stmt)
                self.session.commit()
            except (SQLAlchemyError, OverflowError) as exc:
                self.session.rollback()
                logger.warning("Spot write failed for lot %s, spot %s: %s", lot_id, number, exc)
                results.append(SpotWriteResult(number, False, str(exc)))
            else:
                results.append(SpotWriteResult(number, True))
        return results

    def initialize_spots(self, lot_id, count):
        """Make sure spots 1..count exist. Existing spots keep their occupied flag."""
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValidationError("count must be a non-negative integer")
        return self._apply(lot_id, ((n, False) for n in range(1, count + 1)), overwrite=False)

    def bulk_set_spots(self, lot_id, items):
        return self._apply(lot_id, items, overwrite=True)

    def set_spot_occupied(self, lot_id, number, occupied):
        try:
            updated = (
                self.session.query(ParkingSpot)
                .filter(ParkingSpot.lot_id == lot_id, ParkingSpot.number == number)
                .update({ParkingSpot.occupied: bool(occupied)}, synchronize_session=False)
            )
            self.session.commit()
        except OverflowError:
            # a number no column can hold names no spot
            self.session.rollback()
            updated = 0
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(detail=str(exc))

        if updated == 0:
            raise NotFoundError(f"Spot {number} does not exist in lot {lot_id}")

    # --------------------
    # READS
    # --------------------
    def read_spots(self, lot_id):
        rows = (
            self.session.query(ParkingSpot.number, ParkingSpot.occupied)
            .filter(ParkingSpot.lot_id == lot_id)
            .order_by(ParkingSpot.number.asc())
            .all()
        )
        return [SpotState(number, bool(occupied)) for number, occupied in rows]

    def occupied_count(self, lot_id):
        return (
            self.session.query(func.count(ParkingSpot.id))
            .filter(ParkingSpot.lot_id == lot_id, ParkingSpot.occupied.is_(True))
            .scalar()
        ) or 0

    def occupied_counts(self):
        """Occupied spot count per lot id, for every lot with at least one occupied spot."""
        rows = (
            self.session.query(ParkingSpot.lot_id, func.count(ParkingSpot.id))
            .filter(ParkingSpot.occupied.is_(True))
            .group_by(ParkingSpot.lot_id)
            .all()
        )
        return {lot_id: count for lot_id, count in rows}

    def aggregate(self, lot_id):
        capacity = (
            self.session.query(ParkingLot.capacity).filter(ParkingLot.id == lot_id).scalar()
        )
        if capacity is None:
            raise NotFoundError("Parking lot not found")
        return Availability.from_counts(capacity, self.occupied_count(lot_id))
