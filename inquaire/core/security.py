from __future__ import annotations

import hashlib
import re
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
from jose import jwt

from inquaire.core.config import get_settings
from inquaire.core.errors import BusinessException, ErrorCode

_PASSWORD_RULES: list[tuple[str, re.Pattern[str]]] = [
    ("at least one uppercase letter", re.compile(r"[A-Z]")),
    ("at least one lowercase letter", re.compile(r"[a-z]")),
    ("at least one digit", re.compile(r"\d")),
    ("at least one special character (@$!%*?&)", re.compile(r"[@$!%*?&]")),
]
PASSWORD_MIN_LENGTH = 8


def password_failures(password: str) -> list[str]:
    if not password:
        return ["password is required"]
    failures = []
    if len(password) < PASSWORD_MIN_LENGTH:
        failures.append(f"at least {PASSWORD_MIN_LENGTH} characters")
    failures.extend(label for label, pattern in _PASSWORD_RULES if not pattern.search(password))
    return failures


def ensure_strong_password(password: str) -> None:
    failures = password_failures(password)
    if failures:
        raise BusinessException(
            ErrorCode.VALIDATION_WEAK_PASSWORD,
            f"Password must contain {', '.join(failures)}",
            {"failures": failures},
        )


def hash_secret(value: str) -> str:
    rounds = get_settings().password_hash_rounds
    return bcrypt.hashpw(value.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_secret(value: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(value.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        return False


def lookup_hash(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def create_access_token(user_id: uuid.UUID, email: str, role: str) -> tuple[str, int]:
    settings = get_settings()
    expires_in = settings.access_token_expires_minutes * 60
    now = datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires_in


def new_refresh_token() -> str:
    return str(uuid.uuid4())
