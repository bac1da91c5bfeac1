from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from direct_messages.exceptions import StoreUnavailable
from direct_messages.schemas.message import (
    ConversationList,
    ErrorInfo,
    MarkReadResult,
    OpenConversationResult,
    ThreadView,
)
from direct_messages.services.chat_service import ChatService
from direct_messages.utils.dependencies import get_chat_service, get_current_user_id


router = APIRouter(prefix="/conversations", tags=["chat"])


def _degraded(response: Response, error: Optional[ErrorInfo]) -> None:
    if error is None:
        return
    if error.code == StoreUnavailable.code:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        response.status_code = status.HTTP_502_BAD_GATEWAY


@router.get("", response_model=ConversationList)
async def list_conversations(response: Response, current_user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    result = await service.list_conversations(current_user_id)
    _degraded(response, result.error)
    return result


@router.get("/{partner_id}/messages", response_model=ThreadView)
async def list_messages(partner_id: str, response: Response, current_user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    result = await service.load_thread(current_user_id, partner_id)
    _degraded(response, result.error)
    return result


@router.post("/{partner_id}/open", response_model=OpenConversationResult)
async def open_conversation(partner_id: str, response: Response, current_user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    # thread first, then mark-read, then the refreshed list
    result = await service.open_conversation(current_user_id, partner_id)
    _degraded(response, result.error)
    return result


@router.post("/{partner_id}/read", response_model=MarkReadResult)
async def mark_read(partner_id: str, response: Response, current_user_id: str = Depends(get_current_user_id), service: ChatService = Depends(get_chat_service)):
    result = await service.mark_conversation_read(current_user_id, partner_id)
    _degraded(response, result.error or result.conversations.error)
    return result
