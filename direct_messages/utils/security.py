from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt

from direct_messages.config import get_settings
from direct_messages.schemas.user import TokenPayload


def create_access_token(user_id: str, expires_in: timedelta = timedelta(hours=1)) -> str:
    settings = get_settings()
    expire = datetime.now(timezone.utc) + expires_in
    payload = {"sub": user_id, "exp": int(expire.timestamp())}
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Decode and verify a bearer token.

    Raises ``jwt.InvalidTokenError`` (including ``ExpiredSignatureError``) on a bad token.
    """
    settings = get_settings()
    payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    return TokenPayload(**payload).model_dump()
