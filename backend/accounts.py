# backend/accounts.py
import re

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from backend.errors import InvalidCredentials, NotFoundError, PersistenceError, ValidationError
from backend.models import TIER_PREMIUM, User

MIN_PASSWORD_LENGTH = 6


def is_valid_email(email: str) -> bool:
    pattern = r"^[a-zA-Z0-9_.+-]+@[a-zA-Z0-9-]+\.[a-zA-Z0-9-.]+$"
    return re.match(pattern, email) is not None


class AccountService:
    def __init__(self, session):
        self.session = session

    def _by_email(self, email):
        return self.session.query(User).filter(User.email == email).first()

    def register(self, email, password):
        email = email.strip().lower() if isinstance(email, str) else ""
        if not email or not isinstance(password, str) or not password:
            raise ValidationError("Missing fields")
        if not is_valid_email(email):
            raise ValidationError("Invalid email format")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if self._by_email(email):
            raise ValidationError("Email already registered")

        user = User(email=email)
        user.set_password(password)
        try:
            self.session.add(user)
            self.session.commit()
        except IntegrityError:
            # lost a race with a concurrent registration of the same address
            self.session.rollback()
            raise ValidationError("Email already registered")
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise PersistenceError(detail=str(exc))
        return user

    def authenticate(self, email, password):
        if not isinstance(email, str) or not isinstance(password, str):
            raise InvalidCredentials()
        user = self._by_email(email.strip().lower())
        if not user or not user.check_password(password):
            raise InvalidCredentials()
        return user

    def promote(self, email):
        user = self._by_email((email or "").strip().lower())
        if user is None:
            raise NotFoundError(f"No user with email {email}")
        user.tier = TIER_PREMIUM
        self.session.commit()
        return user
