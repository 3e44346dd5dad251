import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name, default="false"):
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Settings read from the environment (a local .env file is honoured)."""

    def __init__(self):
        # relative sqlite paths land in the Flask instance folder
        self.SQLALCHEMY_DATABASE_URI = os.environ.get("DATABASE_URL", "sqlite:///parking.db")
        self.SQLALCHEMY_TRACK_MODIFICATIONS = False

        # signing secret may be missing; token operations then fail per request
        self.JWT_SECRET = os.environ.get("JWT_SECRET") or None
        self.TOKEN_TTL_HOURS = int(os.environ.get("TOKEN_TTL_HOURS", "24"))

        self.EXPOSE_ERROR_DETAILS = _flag("EXPOSE_ERROR_DETAILS")
        self.LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
        self.PORT = int(os.environ.get("PORT", "8080"))

    def as_dict(self):
        return {k: v for k, v in vars(self).items() if k.isupper()}
