# backend/reservations.py
"""Reservation admission.

A (user, lot) pair moves none -> active -> canceled and may start over, but
never holds two active rows: the unique constraint on
``Reservation.active_marker`` decides races at INSERT time.
"""
import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.errors import AuthorizationError, ConflictError, NotFoundError, PersistenceError
from backend.models import STATUS_ACTIVE, STATUS_CANCELED, ParkingLot, Reservation, User

logger = logging.getLogger(__name__)


class ReservationController:
    def __init__(self, session):
        self.session = session

    def _active(self, user_id, lot_id):
        return self.session.query(Reservation).filter(
            Reservation.user_id == user_id,
            Reservation.lot_id == lot_id,
            Reservation.status == STATUS_ACTIVE,
        )

    def create(self, user_id, lot_id):
        user = self.session.get(User, user_id)
        if user is None or not user.is_premium:
            raise AuthorizationError("Reservations require a premium account")

        if self.session.get(ParkingLot, lot_id) is None:
            raise NotFoundError("Parking lot not found")

        res = Reservation(user_id=user_id, lot_id=lot_id, status=STATUS_ACTIVE, active_marker=True)
        try:
            self.session.add(res)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("You already have an active reservation for this lot")
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(detail=str(exc))

        logger.info("Reservation %s created for user %s at lot %s", res.id, user_id, lot_id)
        return res

    def cancel(self, user_id, lot_id):
        try:
            updated = self._active(user_id, lot_id).update(
                {
                    Reservation.status: STATUS_CANCELED,
                    Reservation.active_marker: None,
                    Reservation.canceled_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(detail=str(exc))

        if updated == 0:
            raise NotFoundError("No active reservation for this lot")

    def is_active(self, user_id, lot_id):
        return self._active(user_id, lot_id).count() > 0

    def history(self, user_id):
        return (
            self.session.query(Reservation)
            .filter(Reservation.user_id == user_id)
            .order_by(Reservation.created_at.desc(), Reservation.id.desc())
            .all()
        )
