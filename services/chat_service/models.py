"""
Chat service data models for conversations and messages.
"""

from dataclasses import dataclass, field
from typing import List, Optional
import time
import uuid


USER = "user"
ASSISTANT = "assistant"
SYSTEM = "system"
MESSAGE_ROLES = (USER, ASSISTANT, SYSTEM)


def now_millis() -> int:
    """Current wall-clock time in epoch milliseconds"""
    return int(time.time() * 1000)


def new_id() -> str:
    return uuid.uuid4().hex


@dataclass
class Message:
    """Individual message in a conversation"""
    id: str
    role: str  # "user", "assistant", "system"
    content: str
    timestamp: int = field(default_factory=now_millis)
    is_error: bool = False
    is_streaming: bool = False
    is_degraded: bool = False  # final text came from the non-streaming fallback


@dataclass
class Conversation:
    """Conversation containing messages and metadata"""
    id: str
    title: str
    messages: List[Message] = field(default_factory=list)
    created_at: int = field(default_factory=now_millis)
    updated_at: int = field(default_factory=now_millis)
    system_prompt: Optional[str] = None

    def touch(self) -> None:
        """Bump ``updated_at`` without ever moving it backwards"""
        self.updated_at = max(self.updated_at, now_millis())

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def index_of(self, message_id: str) -> int:
        """Position of the message, or -1 when it is not (or no longer) present"""
        for index, message in enumerate(self.messages):
            if message.id == message_id:
                return index
        return -1

    @property
    def preview_text(self) -> str:
        for message in reversed(self.messages):
            if message.content and not message.is_error:
                return message.content[:80]
        return ""
