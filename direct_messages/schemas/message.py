from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from direct_messages.exceptions import MessagingError


class ErrorInfo(BaseModel):

    code: str
    message: str

    @classmethod
    def from_exception(cls, exc: MessagingError) -> "ErrorInfo":
        return cls(**exc.to_dict())


class MessagePublic(BaseModel):

    id: str
    sender_id: str
    receiver_id: str
    body: str
    created_at: datetime
    read: bool = False

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "MessagePublic":
        return cls(
            id=str(doc["_id"]),
            sender_id=doc["sender_id"],
            receiver_id=doc["receiver_id"],
            body=doc["body"],
            created_at=doc["created_at"],
            read=bool(doc.get("read", False)),
        )


class ConversationPublic(BaseModel):

    partner_id: str
    partner_display_name: str
    last_message_body: str
    last_message_at: datetime
    unread_count: int = 0


class ConversationList(BaseModel):

    items: List[ConversationPublic] = Field(default_factory=list)
    error: Optional[ErrorInfo] = None


class ThreadView(BaseModel):

    partner_id: str
    items: List[MessagePublic] = Field(default_factory=list)
    error: Optional[ErrorInfo] = None


class MarkReadResult(BaseModel):

    partner_id: str
    updated: int = 0
    conversations: ConversationList
    error: Optional[ErrorInfo] = None


class OpenConversationResult(BaseModel):

    thread: ThreadView
    updated: int = 0
    conversations: ConversationList
    error: Optional[ErrorInfo] = None


class SendMessageRequest(BaseModel):

    receiver_id: Optional[str] = None
    body: str = ""


class SendMessageResult(BaseModel):

    message: MessagePublic
    thread: ThreadView
    conversations: ConversationList
