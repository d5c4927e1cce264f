import secrets
import string
import uuid
from datetime import datetime, timedelta, timezone

from passlib.context import CryptContext
from jose import jwt, JWTError
from ..config import settings

pwd = CryptContext(
    schemes=["bcrypt_sha256"],
    deprecated="auto",
    bcrypt_sha256__truncate_error=False,
)

_SPECIAL = "!@#$%^&*"


class PasswordHasher:
    def hash(self, plain: str) -> str: return pwd.hash(plain)
    def verify(self, plain: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        return pwd.verify(plain, hashed)


def create_access_token(sub: str, role: str = "user", minutes: int | None = None) -> str:
    exp = datetime.now(timezone.utc) + timedelta(minutes=minutes or settings.ACCESS_TOKEN_MINUTES)
    payload = {"sub": sub, "role": role, "exp": exp}
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Claims of a valid token; raises JWTError otherwise."""
    payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    if not payload.get("sub"):
        raise JWTError("No subject")
    return payload


def generate_invitation_code() -> str:
    return uuid.uuid4().hex[:8]


def generate_reset_token() -> str:
    return secrets.token_urlsafe(32)


def generate_random_password(length: int = 12) -> str:
    """Random password with at least one upper, lower, digit and special char."""
    charset = string.ascii_letters + string.digits + _SPECIAL
    chars = [
        secrets.choice(string.ascii_uppercase),
        secrets.choice(string.ascii_lowercase),
        secrets.choice(string.digits),
        secrets.choice(_SPECIAL),
    ]
    chars += [secrets.choice(charset) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)
