from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

ALGORITHM = "HS256"


def create_access_token(
    subject: str,
    ttl_minutes: int,
    secret: str,
    *,
    token_id: uuid.UUID | None = None,
) -> str:
    now = datetime.now(tz=timezone.utc)
    payload: Dict[str, Any] = {
        "sub": subject,
        "exp": now + timedelta(minutes=ttl_minutes),
        "iat": now,
    }
    if token_id:
        payload["jti"] = str(token_id)
    return jwt.encode(payload, secret, algorithm=ALGORITHM)


def decode_access_token(token: str, secret: str) -> dict[str, Any]:
    return jwt.decode(token, secret, algorithms=[ALGORITHM])
