"""
Conversation store - in-memory conversations and the active-conversation pointer.
Owns creation, mutation, truncation and deletion of conversations and messages.
"""

from typing import Dict, List, Optional

from services.chat_service.models import (
    Conversation,
    Message,
    MESSAGE_ROLES,
    new_id,
)
from services.errors import NoActiveConversationError
from utils.logging_config import get_logger, log_conversation_event


DEFAULT_TITLE = "New Conversation"
DEFAULT_MAX_MESSAGES = 30


class ConversationStore:
    """
    Arena of conversations keyed by id plus the active pointer.

    The store is only touched from one sequential flow (the session
    controller), so it does no locking.
    """

    def __init__(self, max_messages: int = DEFAULT_MAX_MESSAGES, default_title: str = DEFAULT_TITLE):
        self.logger = get_logger(__name__)
        self._conversations: Dict[str, Conversation] = {}
        self._active_id: Optional[str] = None
        self._max_messages = max(1, int(max_messages))
        self.default_title = default_title

    @property
    def max_messages(self) -> int:
        return self._max_messages

    @max_messages.setter
    def max_messages(self, value: int):
        # A lowered cap applies on the next append to each conversation
        self._max_messages = max(1, int(value))

    @property
    def active_conversation_id(self) -> Optional[str]:
        return self._active_id

    def __len__(self) -> int:
        return len(self._conversations)

    def __contains__(self, conversation_id: str) -> bool:
        return conversation_id in self._conversations

    def create_conversation(self, title: Optional[str] = None, system_prompt: Optional[str] = None) -> str:
        """
        Create a new empty conversation and make it active

        Args:
            title: Conversation title, defaults to the store's default title
            system_prompt: Optional per-conversation system prompt

        Returns:
            Id of the new conversation
        """
        conversation = Conversation(
            id=new_id(),
            title=title or self.default_title,
            system_prompt=system_prompt,
        )
        self._conversations[conversation.id] = conversation
        self._active_id = conversation.id

        log_conversation_event(self.logger, "created", conversation.id, title=conversation.title)
        return conversation.id

    def add_conversation(self, conversation: Conversation) -> None:
        """Insert an already-built conversation (used when restoring state)"""
        self._conversations[conversation.id] = conversation

    def get(self, conversation_id: str) -> Optional[Conversation]:
        return self._conversations.get(conversation_id)

    def get_active(self) -> Optional[Conversation]:
        if self._active_id is None:
            return None
        return self._conversations.get(self._active_id)

    def set_active(self, conversation_id: str) -> bool:
        """
        Switch the active pointer

        Callers routinely probe with stale ids from UI selectors, so an unknown
        id is reported with False rather than an exception.
        """
        if conversation_id not in self._conversations:
            self.logger.debug(f"Cannot activate unknown conversation: {conversation_id}")
            return False

        self._active_id = conversation_id
        log_conversation_event(self.logger, "activated", conversation_id)
        return True

    def ensure_active(self) -> Conversation:
        """Return the active conversation, synthesizing one if the pointer is missing or dangling"""
        conversation = self.get_active()
        if conversation is None:
            if self._active_id is not None:
                self.logger.warning(f"Active conversation pointer is dangling: {self._active_id}")
            self.create_conversation()
            conversation = self.get_active()
        return conversation

    def append(
        self,
        role: str,
        content: str,
        conversation_id: Optional[str] = None,
        is_error: bool = False,
        is_streaming: bool = False,
    ) -> Message:
        """
        Append a message to a conversation

        Args:
            role: "user", "assistant" or "system"
            content: Message text
            conversation_id: Target conversation, defaults to the active one
            is_error: Flag the message as an inline error
            is_streaming: Flag the message as still growing

        Returns:
            The stored message, with its freshly assigned id

        Raises:
            NoActiveConversationError: If no target conversation resolves
            ValueError: If the role is not a known message role
        """
        if role not in MESSAGE_ROLES:
            raise ValueError(f"Unknown message role: {role}")

        target_id = conversation_id or self._active_id
        conversation = self._conversations.get(target_id) if target_id else None
        if conversation is None:
            raise NoActiveConversationError(conversation_id)

        message = Message(
            id=new_id(),
            role=role,
            content=content,
            is_error=is_error,
            is_streaming=is_streaming,
        )
        conversation.messages.append(message)
        conversation.touch()

        overflow = len(conversation.messages) - self._max_messages
        if overflow > 0:
            # Keep the most recent N; older messages are dropped, not summarized
            del conversation.messages[:overflow]
            log_conversation_event(self.logger, "truncated", conversation.id, dropped=overflow)

        log_conversation_event(
            self.logger, "message_added", conversation.id,
            message_id=message.id, role=role
        )
        return message

    def update_in_place(
        self,
        message_id: str,
        content: str,
        is_streaming: bool,
        is_degraded: Optional[bool] = None,
    ) -> bool:
        """
        Update a message of the active conversation in place

        Streaming updates always target the conversation active at call time.
        A message that has been truncated away mid-stream is silently skipped.

        Returns:
            True if the message was found and updated
        """
        conversation = self.get_active()
        message = conversation.find_message(message_id) if conversation else None
        if message is None:
            self.logger.debug(f"Skipping update for missing message: {message_id}")
            return False

        message.content = content
        message.is_streaming = is_streaming
        if is_degraded is not None:
            message.is_degraded = is_degraded
        conversation.touch()
        return True

    def finish_streaming(self, message_id: str, conversation_id: str) -> bool:
        """Clear the streaming flag of a message in any conversation, keeping its content"""
        conversation = self._conversations.get(conversation_id)
        message = conversation.find_message(message_id) if conversation else None
        if message is None or not message.is_streaming:
            return False

        message.is_streaming = False
        conversation.touch()
        return True

    def remove_message(self, message_id: str, conversation_id: Optional[str] = None) -> bool:
        """Remove a single message; only regenerate uses this"""
        conversation = self._conversations.get(conversation_id or self._active_id or "")
        if conversation is None:
            return False

        index = conversation.index_of(message_id)
        if index < 0:
            return False

        del conversation.messages[index]
        conversation.touch()
        log_conversation_event(self.logger, "message_removed", conversation.id, message_id=message_id)
        return True

    def list_all(self) -> List[Conversation]:
        """All conversations, most recently updated first"""
        return sorted(self._conversations.values(), key=lambda c: c.updated_at, reverse=True)

    def delete(self, conversation_id: str) -> bool:
        """
        Delete a conversation

        Deleting the active conversation promotes the most recently updated
        remaining one, or creates a fresh conversation when none remain.
        """
        if conversation_id not in self._conversations:
            return False

        del self._conversations[conversation_id]
        log_conversation_event(self.logger, "deleted", conversation_id)

        if self._active_id == conversation_id:
            remaining = self.list_all()
            if remaining:
                self._active_id = remaining[0].id
            else:
                self.create_conversation()

        return True

    def rename(self, conversation_id: str, title: str) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False

        conversation.title = title
        conversation.touch()
        log_conversation_event(self.logger, "renamed", conversation_id, title=title)
        return True

    def clear(self, conversation_id: Optional[str] = None) -> bool:
        """Empty the message list of a conversation (the active one by default)"""
        target_id = conversation_id or self._active_id
        conversation = self._conversations.get(target_id) if target_id else None
        if conversation is None:
            return False

        conversation.messages = []
        conversation.touch()
        log_conversation_event(self.logger, "cleared", conversation.id)
        return True
