from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import jwt

from src.api.config import ACCESS_TOKEN_EXPIRE_MINUTES, JWT_ALGORITHM, JWT_SECRET_KEY


def create_access_token(*, subject: UUID, role: str, expires_minutes: Optional[int] = None) -> str:
    """
    Create a signed JWT access token.

    Tokens are normally issued by the account service; this is used by
    operators and tests sharing the same secret.

    Payload fields:
    - sub: principal id (UUID string)
    - role: rider | driver
    - exp: expiration (UTC)
    - iat: issued-at (UTC)
    """
    expire_in = expires_minutes if expires_minutes is not None else ACCESS_TOKEN_EXPIRE_MINUTES
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(subject),
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expire_in)).timestamp()),
    }
    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token, raising jwt exceptions if invalid."""
    return jwt.decode(token, JWT_SECRET_KEY, algorithms=[JWT_ALGORITHM])
