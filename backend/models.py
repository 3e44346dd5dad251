# backend/models.py
from datetime import datetime
from app_factory import db

TIER_STANDARD = "standard"
TIER_PREMIUM = "premium"

STATUS_ACTIVE = "active"
STATUS_CANCELED = "canceled"

COVER_TYPES = ("covered", "partially-covered", "none")
MAX_DB_INT = 2**63 - 1
AMENITIES = ("cameras", "guard")
DAY_ORDER = ("mon", "tue", "wed", "thu", "fri", "sat", "sun")


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    tier = db.Column(db.String(20), nullable=False, default=TIER_STANDARD)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    lots = db.relationship("ParkingLot", backref="owner", lazy=True)
    reservations = db.relationship("Reservation", backref="user", lazy=True)

    @property
    def is_premium(self):
        return self.tier == TIER_PREMIUM

    def set_password(self, pwd):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(pwd)

    def check_password(self, pwd):
        from werkzeug.security import check_password_hash
        return check_password_hash(self.password_hash, pwd)


class ParkingLot(db.Model):
    __tablename__ = "parking_lot"

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False)
    capacity = db.Column(db.Integer, nullable=False)
    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    price_per_hour = db.Column(db.Float, nullable=True)
    cover_type = db.Column(db.String(20), nullable=True)
    amenities = db.Column(db.String(100), nullable=False, default="")
    has_restroom = db.Column(db.Boolean, nullable=False, default=False)
    max_height_m = db.Column(db.Float, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    spots = db.relationship("ParkingSpot", backref="lot", lazy=True)
    windows = db.relationship("AttentionWindow", backref="lot", lazy=True)

    @property
    def amenity_list(self):
        return [a for a in (self.amenities or "").split(",") if a]


class AttentionWindow(db.Model):
    __tablename__ = "attention_window"

    id = db.Column(db.Integer, primary_key=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("parking_lot.id"), nullable=False, index=True)
    day = db.Column(db.String(20), nullable=False)
    start_time = db.Column(db.String(10), nullable=False)
    end_time = db.Column(db.String(10), nullable=False)


class ParkingSpot(db.Model):
    __tablename__ = "parking_spot"
    __table_args__ = (db.UniqueConstraint("lot_id", "number", name="uq_spot_lot_number"),)

    id = db.Column(db.Integer, primary_key=True)
    lot_id = db.Column(db.Integer, db.ForeignKey("parking_lot.id"), nullable=False)
    number = db.Column(db.Integer, nullable=False)
    occupied = db.Column(db.Boolean, nullable=False, default=False)


class Reservation(db.Model):
    __tablename__ = "reservation"
    # active_marker is True while active and NULL afterwards; NULLs never
    # collide, so only one active row per (user, lot) can exist
    __table_args__ = (
        db.UniqueConstraint("user_id", "lot_id", "active_marker", name="uq_reservation_active"),
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    lot_id = db.Column(db.Integer, db.ForeignKey("parking_lot.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    active_marker = db.Column(db.Boolean, nullable=True, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    canceled_at = db.Column(db.DateTime, nullable=True)

    lot = db.relationship("ParkingLot", lazy=True)
