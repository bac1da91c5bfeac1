from typing import Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import ValidationError

from direct_messages.database.connection import mongo_db_dependency
from direct_messages.repositories.message_repository import MessageRepository
from direct_messages.repositories.user_repository import UserRepository
from direct_messages.services.chat_service import ChatService
from direct_messages.utils.security import decode_access_token


bearer_scheme = HTTPBearer(auto_error=False)


def get_chat_service(db = Depends(mongo_db_dependency)) -> ChatService:
    msg_repo = MessageRepository(db)
    user_repo = UserRepository(db)
    return ChatService(msg_repo, user_repo)


async def get_current_user_id_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    """Return the caller's user id, or None when no token was sent."""
    if credentials is None:
        return None
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token has expired")
    except (jwt.InvalidTokenError, ValidationError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid access token")
    return payload["sub"]


async def get_current_user_id(user_id: Optional[str] = Depends(get_current_user_id_optional)) -> str:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id
