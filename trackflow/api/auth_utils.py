import os
from datetime import UTC, datetime, timedelta
from typing import Any, cast

from jose import jwt

SECRET_KEY = os.environ.get("TRACKFLOW_SECRET_KEY", "dev-secret-unsafe")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24  # 24 hours


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
    now_utc: datetime | None = None,
    algorithm: str = ALGORITHM,
) -> str:
    """
    Create a JWT access token.

    Args:
        data: Claims to encode in the token; "sub" carries the owner id
        expires_delta: Optional custom expiration delta
        now_utc: Current UTC time (for testing/determinism). Defaults to datetime.now(UTC).
        algorithm: Signing algorithm
    """
    to_encode = data.copy()
    current_time = now_utc if now_utc is not None else datetime.now(UTC)

    if expires_delta:
        expire = current_time + expires_delta
    else:
        expire = current_time + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    encoded_jwt: str = jwt.encode(to_encode, SECRET_KEY, algorithm=algorithm)
    return encoded_jwt


def decode_access_token(token: str, algorithm: str = ALGORITHM) -> dict[str, Any] | None:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[algorithm])
        return cast(dict[str, Any], payload)
    except jwt.JWTError:
        return None
