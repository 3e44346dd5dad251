# backend/auth.py
"""Bearer-token issue and verification.

Tokens are HMAC-signed JWTs carrying ``user_id`` (``sub`` is accepted as a
fallback for tokens minted elsewhere) and ``exp``. Verification never
touches the database: it only turns a header into a user id or raises one
of the ``AuthenticationError`` subclasses.
"""
import enum
import math
import time
from datetime import datetime, timedelta, timezone
from functools import wraps
from typing import NamedTuple, Optional

import jwt
from flask import current_app, request

from backend.errors import (
    BadScheme,
    ClaimsUnparseable,
    MissingSubject,
    NoCredential,
    ServerMisconfigured,
    SignatureInvalid,
    TokenExpired,
)
from backend.models import MAX_DB_INT

ALGORITHMS = ["HS256", "HS384", "HS512"]
SUBJECT_CLAIMS = ("user_id", "sub")


# --------------------
# SUBJECT RESOLUTION
# --------------------
class SubjectState(enum.Enum):
    RESOLVED = "resolved"
    MISSING = "missing"
    MALFORMED = "malformed"


class SubjectResolution(NamedTuple):
    state: SubjectState
    user_id: Optional[int] = None


def _coerce_id(value):
    """Return the integer id carried by ``value``; raise ValueError if it has none."""
    if isinstance(value, bool):
        raise ValueError("boolean is not an id")
    if isinstance(value, int):
        uid = value
    elif isinstance(value, float):
        if not value.is_integer():
            raise ValueError("fractional id")
        uid = int(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text.lstrip("-").isdigit():
            raise ValueError("non-numeric id")
        uid = int(text)
    else:
        raise ValueError(f"unsupported id type {type(value).__name__}")
    if not -MAX_DB_INT - 1 <= uid <= MAX_DB_INT:
        raise ValueError("id out of range")
    return uid


def resolve_subject(claims) -> SubjectResolution:
    """Look up the user id under ``user_id`` first, then ``sub``.

    Zero counts as absent so that a defaulted value can never pass for a
    real user.
    """
    malformed = False
    for name in SUBJECT_CLAIMS:
        if claims.get(name) is None:
            continue
        try:
            uid = _coerce_id(claims[name])
        except ValueError:
            malformed = True
            continue
        if uid != 0:
            return SubjectResolution(SubjectState.RESOLVED, uid)

    if malformed:
        return SubjectResolution(SubjectState.MALFORMED)
    return SubjectResolution(SubjectState.MISSING)


# --------------------
# VERIFY / ISSUE
# --------------------
def extract_bearer(header):
    header = (header or "").strip()
    if not header:
        raise NoCredential()

    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer":
        raise BadScheme()
    token = token.strip()
    if not token:
        raise NoCredential()
    return token


def verify_credential(header, secret, now=None) -> int:
    token = extract_bearer(header)
    if not secret:
        raise ServerMisconfigured()

    try:
        # sub may be numeric and exp is checked below, so PyJWT only verifies
        # the signature and that exp is present
        claims = jwt.decode(
            token,
            secret,
            algorithms=ALGORITHMS,
            options={"verify_sub": False, "verify_exp": False, "require": ["exp"]},
        )
    except (jwt.InvalidAlgorithmError, jwt.DecodeError):
        raise SignatureInvalid()
    except jwt.InvalidTokenError:
        raise ClaimsUnparseable()

    if not isinstance(claims, dict):
        raise ClaimsUnparseable()

    exp = claims["exp"]
    if isinstance(exp, bool):
        raise ClaimsUnparseable()
    try:
        expires_at = float(exp)
    except (TypeError, ValueError):
        raise ClaimsUnparseable()
    if not math.isfinite(expires_at):
        raise ClaimsUnparseable()
    if expires_at < (time.time() if now is None else now):
        raise TokenExpired()

    resolution = resolve_subject(claims)
    if resolution.state is SubjectState.MALFORMED:
        raise ClaimsUnparseable()
    if resolution.state is SubjectState.MISSING:
        raise MissingSubject()
    return resolution.user_id


def create_token(user, secret, ttl_hours=24):
    if not secret:
        raise ServerMisconfigured()
    payload = {
        "user_id": user.id,
        "email": user.email,
        "tier": user.tier,
        "exp": datetime.now(timezone.utc) + timedelta(hours=ttl_hours),
    }
    token = jwt.encode(payload, secret, algorithm="HS256")
    # PyJWT>=2 returns str, older returns bytes
    return token if isinstance(token, str) else token.decode("utf-8")


def token_required(f):
    @wraps(f)
    def decorator(*args, **kwargs):
        user_id = verify_credential(
            request.headers.get("Authorization"),
            current_app.config.get("JWT_SECRET"),
        )
        return f(user_id, *args, **kwargs)
    return decorator
