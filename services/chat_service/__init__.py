"""
Chat service - conversation data model, store and persistence codec.
"""

from .models import Message, Conversation, USER, ASSISTANT, SYSTEM
from .conversation_store import ConversationStore
from .persistence_codec import encode, decode

__all__ = [
    'Message',
    'Conversation',
    'USER',
    'ASSISTANT',
    'SYSTEM',
    'ConversationStore',
    'encode',
    'decode'
]
