import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from direct_messages.config import get_settings
from direct_messages.exceptions import MessagingError, ValidationFailed
from direct_messages.repositories.message_repository import MessageRepository
from direct_messages.repositories.user_repository import UserRepository
from direct_messages.schemas.message import (
    ConversationList,
    ConversationPublic,
    ErrorInfo,
    MarkReadResult,
    MessagePublic,
    OpenConversationResult,
    SendMessageResult,
    ThreadView,
)


logger = logging.getLogger(__name__)


def partner_of(message: Mapping[str, Any], user_id: str) -> Optional[str]:
    """Return the other participant of ``message`` relative to ``user_id``.

    None when the user is not a participant or the message is addressed to its sender.
    """
    sender_id = message.get("sender_id")
    receiver_id = message.get("receiver_id")
    if sender_id == receiver_id:
        return None
    if sender_id == user_id:
        return receiver_id
    if receiver_id == user_id:
        return sender_id
    return None


def fold_conversations(
    messages: Iterable[Mapping[str, Any]],
    user_id: str,
    display_names: Optional[Mapping[str, str]] = None,
) -> List[ConversationPublic]:
    """Fold newest-first messages into one conversation per partner.

    The first message seen for a partner is its most recent one, so it fixes
    the preview; later ones only add to the unread count. The result keeps
    first-seen order, i.e. most recently active partner first.
    """
    display_names = display_names or {}
    conversations: Dict[str, ConversationPublic] = {}
    for msg in messages:
        partner_id = partner_of(msg, user_id)
        if partner_id is None:
            if msg.get("sender_id") == msg.get("receiver_id"):
                logger.warning("Skipping self-addressed message %s", msg.get("_id"))
            continue
        unread = 1 if msg["receiver_id"] == user_id and not msg.get("read", False) else 0
        conversation = conversations.get(partner_id)
        if conversation is None:
            conversations[partner_id] = ConversationPublic(
                partner_id=partner_id,
                partner_display_name=display_names.get(partner_id, partner_id),
                last_message_body=msg["body"],
                last_message_at=msg["created_at"],
                unread_count=unread,
            )
        else:
            conversation.unread_count += unread
    return list(conversations.values())


class ChatService:

    def __init__(
        self,
        message_repo: MessageRepository,
        user_repo: UserRepository,
        max_body_length: Optional[int] = None,
    ) -> None:
        self._message_repo = message_repo
        self._user_repo = user_repo
        self._max_body_length = max_body_length or get_settings().message_max_length

    async def list_conversations(self, user_id: Optional[str]) -> ConversationList:
        if not user_id:
            raise ValidationFailed("No authenticated user")
        try:
            messages = await self._message_repo.list_involving(user_id)
            partner_ids = [p for p in (partner_of(m, user_id) for m in messages) if p]
            names = await self._user_repo.get_display_names(partner_ids)
        except MessagingError as exc:
            logger.warning("Conversation aggregation failed for user %s: %s", user_id, exc.message)
            return ConversationList(items=[], error=ErrorInfo.from_exception(exc))
        return ConversationList(items=fold_conversations(messages, user_id, names))

    async def load_thread(self, user_id: Optional[str], partner_id: Optional[str]) -> ThreadView:
        if not user_id:
            raise ValidationFailed("No authenticated user")
        if not partner_id:
            raise ValidationFailed("No conversation selected")
        try:
            messages = await self._message_repo.list_thread(user_id, partner_id)
        except MessagingError as exc:
            logger.warning("Thread load failed for %s <-> %s: %s", user_id, partner_id, exc.message)
            return ThreadView(partner_id=partner_id, items=[], error=ErrorInfo.from_exception(exc))
        return ThreadView(partner_id=partner_id, items=[MessagePublic.from_document(m) for m in messages])

    async def mark_conversation_read(self, user_id: Optional[str], partner_id: Optional[str]) -> MarkReadResult:
        if not user_id:
            raise ValidationFailed("No authenticated user")
        if not partner_id:
            raise ValidationFailed("No conversation selected")
        updated = 0
        error = None
        try:
            updated = await self._message_repo.mark_read(receiver_id=user_id, sender_id=partner_id)
        except MessagingError as exc:
            logger.error("Mark-read failed for %s from %s: %s", user_id, partner_id, exc.message)
            error = ErrorInfo.from_exception(exc)
        else:
            logger.debug("Marked %d message(s) from %s as read for %s", updated, partner_id, user_id)
        # always re-read the store, never assume the badge was cleared
        conversations = await self.list_conversations(user_id)
        return MarkReadResult(partner_id=partner_id, updated=updated, conversations=conversations, error=error)

    async def open_conversation(self, user_id: Optional[str], partner_id: Optional[str]) -> OpenConversationResult:
        thread = await self.load_thread(user_id, partner_id)
        if thread.error is not None:
            # the thread was never shown, so leave its unread badge alone
            conversations = await self.list_conversations(user_id)
            return OpenConversationResult(thread=thread, updated=0, conversations=conversations, error=thread.error)
        marked = await self.mark_conversation_read(user_id, partner_id)
        # reload so the thread carries the read flags the store now holds
        refreshed = await self.load_thread(user_id, partner_id)
        if refreshed.error is None:
            thread = refreshed
        return OpenConversationResult(
            thread=thread,
            updated=marked.updated,
            conversations=marked.conversations,
            error=marked.error or refreshed.error,
        )

    def validate_outgoing(self, sender_id: Optional[str], receiver_id: Optional[str], raw_body: Optional[str]) -> str:
        if not sender_id:
            raise ValidationFailed("No authenticated user")
        if not receiver_id:
            raise ValidationFailed("No recipient selected")
        body = (raw_body or "").strip()
        if not body:
            raise ValidationFailed("Message body cannot be empty")
        if receiver_id == sender_id:
            raise ValidationFailed("Cannot send a message to yourself")
        if len(body) > self._max_body_length:
            raise ValidationFailed(f"Message body exceeds {self._max_body_length} characters")
        return body

    async def send_message(self, sender_id: Optional[str], receiver_id: Optional[str], raw_body: Optional[str]) -> SendMessageResult:
        body = self.validate_outgoing(sender_id, receiver_id, raw_body)
        try:
            saved = await self._message_repo.insert_message(sender_id, receiver_id, body)
        except MessagingError as exc:
            logger.error("Failed to send message from %s to %s: %s", sender_id, receiver_id, exc.message)
            raise
        logger.info("Message %s sent from %s to %s", saved["_id"], sender_id, receiver_id)
        thread = await self.load_thread(sender_id, receiver_id)
        conversations = await self.list_conversations(sender_id)
        return SendMessageResult(
            message=MessagePublic.from_document(saved),
            thread=thread,
            conversations=conversations,
        )

    async def count_unread(self, user_id: str, from_user_id: Optional[str] = None) -> int:
        if from_user_id and from_user_id == user_id:
            raise ValidationFailed("Cannot count messages from yourself")
        return await self._message_repo.count_unread(user_id, from_user_id)
