"""
Persistence codec - converts a ConversationStore to and from a single JSON blob.

The blob carries no schema version, so decoding is defensive: anything it cannot
make sense of degrades to a safe, empty-but-valid store instead of raising.
"""

import json
import math
from typing import Any, Dict, List, Optional

from services.chat_service.conversation_store import (
    ConversationStore,
    DEFAULT_MAX_MESSAGES,
    DEFAULT_TITLE,
)
from services.chat_service.models import Conversation, Message, MESSAGE_ROLES, now_millis
from services.errors import PersistenceDecodeError
from utils.logging_config import get_logger, get_error_tracker

logger = get_logger(__name__)


def _message_to_dict(message: Message) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": message.id,
        "content": message.content,
        "role": message.role,
        "timestamp": message.timestamp,
    }
    if message.is_error:
        data["isError"] = True
    if message.is_streaming:
        data["isStreaming"] = True
    if message.is_degraded:
        data["isDegraded"] = True
    return data


def _conversation_to_dict(conversation: Conversation) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "id": conversation.id,
        "title": conversation.title,
        "messages": [_message_to_dict(m) for m in conversation.messages],
        "createdAt": conversation.created_at,
        "updatedAt": conversation.updated_at,
    }
    if conversation.system_prompt is not None:
        data["systemPrompt"] = conversation.system_prompt
    return data


def encode(store: ConversationStore) -> str:
    """
    Serialize the store to a JSON string

    Args:
        store: Store to serialize

    Returns:
        ``{"conversations": [...], "activeConversationId": ...}`` as text
    """
    payload = {
        "conversations": [_conversation_to_dict(c) for c in store.list_all()],
        "activeConversationId": store.active_conversation_id,
    }
    return json.dumps(payload, ensure_ascii=False)


def _as_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float) and math.isfinite(value):
        return int(value)
    return default


def _message_from_dict(data: Any) -> Optional[Message]:
    if not isinstance(data, dict):
        return None

    message_id = data.get("id")
    role = data.get("role")
    content = data.get("content")
    if not isinstance(message_id, str) or not message_id:
        return None
    if role not in MESSAGE_ROLES or not isinstance(content, str):
        return None

    return Message(
        id=message_id,
        role=role,
        content=content,
        timestamp=_as_int(data.get("timestamp"), 0),
        is_error=bool(data.get("isError", False)),
        is_streaming=bool(data.get("isStreaming", False)),
        is_degraded=bool(data.get("isDegraded", False)),
    )


def _conversation_from_dict(data: Any, default_title: str = DEFAULT_TITLE) -> Optional[Conversation]:
    if not isinstance(data, dict):
        return None

    conversation_id = data.get("id")
    if not isinstance(conversation_id, str) or not conversation_id:
        return None

    raw_messages = data.get("messages", [])
    if not isinstance(raw_messages, list):
        raw_messages = []

    messages: List[Message] = []
    seen_ids = set()
    for raw in raw_messages:
        message = _message_from_dict(raw)
        if message is None or message.id in seen_ids:
            logger.warning(f"Skipping malformed message in conversation {conversation_id}")
            continue
        seen_ids.add(message.id)
        messages.append(message)

    title = data.get("title")
    system_prompt = data.get("systemPrompt")
    now = now_millis()
    created_at = _as_int(data.get("createdAt"), now)

    return Conversation(
        id=conversation_id,
        title=title if isinstance(title, str) and title else default_title,
        messages=messages,
        created_at=created_at,
        updated_at=max(created_at, _as_int(data.get("updatedAt"), created_at)),
        system_prompt=system_prompt if isinstance(system_prompt, str) else None,
    )


def decode(
    text: Optional[str],
    max_messages: int = DEFAULT_MAX_MESSAGES,
    default_title: str = DEFAULT_TITLE,
) -> ConversationStore:
    """
    Build a fresh store from serialized state

    Never raises: malformed input yields a store holding a single empty
    conversation, and the problem is logged for diagnostics.

    Args:
        text: Serialized state, or None when nothing was stored yet
        max_messages: History cap for the new store
        default_title: Title used for synthesized conversations

    Returns:
        A store with at least one conversation and a valid active pointer
    """
    store = ConversationStore(max_messages=max_messages, default_title=default_title)

    if not text:
        store.ensure_active()
        return store

    try:
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise PersistenceDecodeError("Stored state is not an object")
        conversations = payload.get("conversations")
        if not isinstance(conversations, list):
            raise PersistenceDecodeError("'conversations' is not a list")
    except (ValueError, RecursionError, PersistenceDecodeError) as e:
        # json.JSONDecodeError is a ValueError; deeply nested input overflows the parser stack
        get_error_tracker().track_error(e, "persistence_decode", blob_length=len(text))
        store.ensure_active()
        return store

    for raw in conversations:
        conversation = _conversation_from_dict(raw, default_title)
        if conversation is None or conversation.id in store:
            logger.warning("Skipping malformed conversation entry in stored state")
            continue
        store.add_conversation(conversation)

    active_id = payload.get("activeConversationId")
    if not isinstance(active_id, str) or not store.set_active(active_id):
        # Missing or dangling pointer: start a fresh conversation
        store.ensure_active()

    logger.info(f"Restored {len(store)} conversations")
    return store
