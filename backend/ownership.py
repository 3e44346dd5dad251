# backend/ownership.py
import logging

from sqlalchemy.exc import SQLAlchemyError

from backend.errors import AuthorizationError
from backend.models import ParkingLot

logger = logging.getLogger(__name__)


def is_owner(session, lot_id, user_id):
    """True only when the lot exists and belongs to user_id. Storage errors count as False."""
    try:
        count = (
            session.query(ParkingLot.id)
            .filter(ParkingLot.id == lot_id, ParkingLot.owner_id == user_id)
            .count()
        )
    except (SQLAlchemyError, OverflowError) as exc:
        logger.warning("Ownership check failed for lot %s, user %s: %s", lot_id, user_id, exc)
        session.rollback()
        return False
    return count > 0


def require_owner(session, lot_id, user_id):
    if not is_owner(session, lot_id, user_id):
        raise AuthorizationError("You do not own this parking lot")
