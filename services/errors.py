"""
Error taxonomy shared by the chat, AI and session services.
"""

from typing import Optional


class ChatSessionError(Exception):
    """Base class for all chat session errors"""
    pass


class NoActiveConversationError(ChatSessionError):
    """Raised when a message is appended but no target conversation resolves"""

    def __init__(self, conversation_id: Optional[str] = None):
        self.conversation_id = conversation_id
        if conversation_id:
            message = f"Conversation not found: {conversation_id}"
        else:
            message = "No active conversation"
        super().__init__(message)


class GenerationTransportError(ChatSessionError):
    """
    Failure reported by the generation endpoint.

    ``stage`` is ``"stream"`` for the incremental request and ``"invoke"`` for
    the atomic one. The provider exception is chained as ``__cause__``.
    """

    def __init__(self, message: str, stage: str = "invoke"):
        self.stage = stage
        super().__init__(message)


class PersistenceDecodeError(ChatSessionError):
    """Stored session state could not be decoded"""
    pass
