"""
Per-user messaging session.

Holds what a messaging screen shows: the conversation list, the selected
partner and its thread, the unsent draft and the last reported error. Every
refresh is a re-query through ``ChatService``; nothing is patched in place.

Responses can come back out of order when the user switches conversations or
sends while a refresh is in flight. Thread responses are tagged with the
partner selected when the request was issued, conversation lists with a
generation number, and anything that no longer matches is discarded.
"""

import logging
from typing import List, Optional

from direct_messages.exceptions import MessagingError, ValidationFailed
from direct_messages.schemas.message import ConversationList, ConversationPublic, ErrorInfo, MessagePublic
from direct_messages.services.chat_service import ChatService


logger = logging.getLogger(__name__)


class ChatSession:

    def __init__(self, service: ChatService, user_id: Optional[str]) -> None:
        self._service = service
        self.user_id = user_id
        self.conversations: List[ConversationPublic] = []
        self.messages: List[MessagePublic] = []
        self.selected_partner_id: Optional[str] = None
        self.draft = ""
        self.sending = False
        self.last_error: Optional[ErrorInfo] = None
        self._generation = 0

    @property
    def selected_conversation(self) -> Optional[ConversationPublic]:
        for conversation in self.conversations:
            if conversation.partner_id == self.selected_partner_id:
                return conversation
        return None

    def _refuse(self, exc: ValidationFailed) -> ValidationFailed:
        self.last_error = ErrorInfo.from_exception(exc)
        return exc

    def _next_generation(self) -> int:
        self._generation += 1
        return self._generation

    def _apply_conversations(self, result: ConversationList, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Discarding stale conversation list (generation %d, current %d)", generation, self._generation)
            return
        self.conversations = result.items
        if result.error is not None:
            self.last_error = result.error

    async def refresh_conversations(self) -> List[ConversationPublic]:
        if not self.user_id:
            raise self._refuse(ValidationFailed("No authenticated user"))
        self.last_error = None
        generation = self._next_generation()
        result = await self._service.list_conversations(self.user_id)
        self._apply_conversations(result, generation)
        return self.conversations

    async def select_conversation(self, partner_id: str) -> None:
        """Show the thread with ``partner_id``, mark it read, then reload it."""
        if not self.user_id:
            raise self._refuse(ValidationFailed("No authenticated user"))
        if not partner_id:
            raise self._refuse(ValidationFailed("No conversation selected"))
        self.last_error = None
        self.selected_partner_id = partner_id
        self.messages = []

        thread = await self._service.load_thread(self.user_id, partner_id)
        if self.selected_partner_id != partner_id:
            logger.debug("Discarding stale thread for partner %s", partner_id)
            return
        self.messages = thread.items
        if thread.error is not None:
            self.last_error = thread.error
            return

        generation = self._next_generation()
        marked = await self._service.mark_conversation_read(self.user_id, partner_id)
        self._apply_conversations(marked.conversations, generation)
        if marked.error is not None:
            self.last_error = marked.error

        refreshed = await self._service.load_thread(self.user_id, partner_id)
        if self.selected_partner_id != partner_id:
            logger.debug("Discarding stale thread reload for partner %s", partner_id)
            return
        if refreshed.error is not None:
            self.last_error = refreshed.error
            return
        self.messages = refreshed.items

    async def submit(self, raw_body: Optional[str] = None) -> MessagePublic:
        """Send the draft (or ``raw_body``) to the selected partner.

        On any failure the draft is kept and the error is re-raised. A submit
        refused because another send is in flight keeps its text as the draft.
        """
        if self.sending:
            if raw_body is not None:
                self.draft = raw_body
            raise self._refuse(ValidationFailed("A message is already being sent"))
        if raw_body is not None:
            self.draft = raw_body
        sent_body = self.draft
        receiver_id = self.selected_partner_id
        self.last_error = None
        self.sending = True
        generation = self._next_generation()
        try:
            result = await self._service.send_message(self.user_id, receiver_id, sent_body)
        except MessagingError as exc:
            self.last_error = ErrorInfo.from_exception(exc)
            raise
        finally:
            self.sending = False

        # text typed while the send was in flight stays
        if self.draft == sent_body:
            self.draft = ""
        if self.selected_partner_id == receiver_id:
            self.messages = result.thread.items
            if result.thread.error is not None:
                self.last_error = result.thread.error
        self._apply_conversations(result.conversations, generation)
        return result.message
