from datetime import datetime, timedelta, timezone
from jose import jwt, JWTError
from src.config import settings


def create_operator_token(operator_id: str, expires_minutes: int | None = None) -> str:
    """Create a signed JWT for an operator."""
    minutes = expires_minutes if expires_minutes is not None else settings.operator_token_expiration_minutes
    now = datetime.now(timezone.utc)
    payload = {
        "sub": operator_id,
        "type": "operator",
        "exp": now + timedelta(minutes=minutes),
        "iat": now,
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_operator_token(token: str) -> dict | None:
    """Decode and validate an operator JWT. Returns payload or None if invalid."""
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    if payload.get("type") != "operator" or not payload.get("sub"):
        return None
    return payload
