from typing import Optional

from fastapi import APIRouter, Depends, status

from direct_messages.schemas.message import SendMessageRequest, SendMessageResult
from direct_messages.services.chat_service import ChatService
from direct_messages.utils.dependencies import get_chat_service, get_current_user_id, get_current_user_id_optional


router = APIRouter(prefix="/messages", tags=["chat"])


@router.post("", response_model=SendMessageResult, status_code=status.HTTP_201_CREATED)
async def send_message(payload: SendMessageRequest, current_user_id: Optional[str] = Depends(get_current_user_id_optional), service: ChatService = Depends(get_chat_service)):
    # a missing actor is a validation failure raised by the service, not a 401
    return await service.send_message(current_user_id, payload.receiver_id, payload.body)


@router.get("/unread")
async def get_unread(from_user_id: Optional[str] = None, current_user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    count = await service.count_unread(current_user_id, from_user_id)
    return {"unread": count}
