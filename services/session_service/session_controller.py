"""
Session controller - orchestrates one conversation turn.

Appends the user message, drives the generation client, applies streamed and
final updates back into the store, handles cancellation and regeneration, and
persists the store after every finished turn.
"""

import asyncio
import re
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from config.app_config import AppConfig, get_config
from infrastructure.storage.state_storage import StateStorage
from services.ai_service.generation_client import (
    GenerationClient,
    describe_error,
    get_generation_client,
)
from services.ai_service.models import GenerationCallbacks, GenerationSettings
from services.chat_service.conversation_store import ConversationStore
from services.chat_service.models import ASSISTANT, USER, Conversation, Message
from services.chat_service.persistence_codec import decode, encode
from services.errors import NoActiveConversationError
from utils.logging_config import (
    ErrorTracker,
    get_error_tracker,
    get_logger,
    log_user_interaction,
)


ERROR_MESSAGE_TEXT = "Sorry, something went wrong while generating a response. Please try again."
SAVE_FAILED_TEXT = "⚠️ Could not save chat history."
MAX_TITLE_LENGTH = 60


class TurnState(Enum):
    """Lifecycle of a single user-message-plus-response turn"""
    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting_response"
    STREAMING = "streaming"
    COMPLETING = "completing"
    CANCELLED = "cancelled"


@dataclass
class Turn:
    """Bookkeeping for one in-flight turn; late callbacks check their own turn's flags"""
    conversation_id: str
    user_message_id: str
    assistant_message_id: str
    state: TurnState = TurnState.AWAITING_RESPONSE
    cancelled: bool = False
    completed: bool = False
    degraded: bool = False
    applied_chunks: int = 0
    last_error: Optional[Exception] = None


def derive_title(text: str) -> str:
    """Readable conversation title from an opening message"""
    words = re.findall(r"[\w']+", text)
    if not words:
        return "Untitled Chat"

    title = " ".join(words[:8])
    title = title[:1].upper() + title[1:]
    if len(title) <= MAX_TITLE_LENGTH:
        return title
    compact = title[:MAX_TITLE_LENGTH].rsplit(" ", 1)[0].strip()
    return compact or title[:MAX_TITLE_LENGTH]


class SessionController:
    """
    Drives conversation turns against a store, a generation client and a storage.

    Only one turn is in flight at a time. Cancelling a turn returns the
    controller to idle immediately; the underlying request keeps running but
    everything it produces afterwards is discarded.
    """

    def __init__(
        self,
        store: ConversationStore,
        generation_client: Optional[GenerationClient] = None,
        storage: Optional[StateStorage] = None,
        config: Optional[AppConfig] = None,
        on_update: Optional[Callable[[Message], None]] = None,
        on_notify: Optional[Callable[[str], None]] = None,
        error_tracker: Optional[ErrorTracker] = None,
    ):
        self.logger = get_logger(__name__)
        self.store = store
        self.generation_client = generation_client or get_generation_client()
        self.storage = storage
        self.config = config or get_config()
        self.on_update = on_update
        self.on_notify = on_notify
        self.error_tracker = error_tracker or get_error_tracker()
        self._turn: Optional[Turn] = None

    @classmethod
    def from_storage(
        cls,
        storage: StateStorage,
        config: Optional[AppConfig] = None,
        **kwargs
    ) -> 'SessionController':
        """
        Restore a controller from previously saved state

        Unreadable or malformed state never blocks start-up; the store falls
        back to a single empty conversation.
        """
        config = config or get_config()
        try:
            blob = storage.load()
        except OSError as e:
            get_error_tracker().track_error(e, "state_load")
            blob = None

        store = decode(
            blob,
            max_messages=config.chat.max_history_length,
            default_title=config.chat.default_title,
        )
        return cls(store, storage=storage, config=config, **kwargs)

    @property
    def state(self) -> TurnState:
        return self._turn.state if self._turn else TurnState.IDLE

    @property
    def is_busy(self) -> bool:
        return self._turn is not None

    @property
    def current_turn(self) -> Optional[Turn]:
        return self._turn

    @property
    def settings(self) -> GenerationSettings:
        return GenerationSettings.from_config(self.config)

    def _emit_update(self, conversation_id: str, message_id: str) -> None:
        if self.on_update is None:
            return
        conversation = self.store.get(conversation_id)
        message = conversation.find_message(message_id) if conversation else None
        if message is None:
            return
        try:
            self.on_update(message)
        except Exception:
            self.logger.exception("Update hook raised")

    def _notify(self, text: str) -> None:
        if self.on_notify is None:
            return
        try:
            self.on_notify(text)
        except Exception:
            self.logger.exception("Notify hook raised")

    def persist(self) -> bool:
        """
        Encode the store and hand it to the storage

        Returns:
            bool: True if the state was saved
        """
        if self.storage is None:
            return False
        try:
            self.storage.save(encode(self.store))
            return True
        except Exception as e:
            self.error_tracker.track_error(e, "persist")
            self._notify(SAVE_FAILED_TEXT)
            return False

    # ------------------------------------------------------------------
    # Turn lifecycle
    # ------------------------------------------------------------------

    def _resolve_conversation(self) -> Conversation:
        conversation = self.store.get_active()
        if conversation is None:
            # Invariant violation: log it and recover with a fresh conversation
            self.error_tracker.track_error(NoActiveConversationError(), "resolve_conversation")
            conversation = self.store.ensure_active()
        return conversation

    def _maybe_auto_title(self, conversation: Conversation, text: str) -> None:
        if not self.config.chat.auto_title or conversation.title != self.config.chat.default_title:
            return
        user_messages = [m for m in conversation.messages if m.role == USER]
        if len(user_messages) == 1:
            self.store.rename(conversation.id, derive_title(text))

    def _on_partial(self, turn: Turn, text: str) -> None:
        if turn.cancelled:
            return
        self.store.update_in_place(turn.assistant_message_id, text, True)
        turn.state = TurnState.STREAMING
        turn.applied_chunks += 1
        self._emit_update(turn.conversation_id, turn.assistant_message_id)

    def _on_complete(self, turn: Turn) -> None:
        turn.completed = True
        if not turn.cancelled:
            turn.state = TurnState.COMPLETING

    def _on_error(self, turn: Turn, error: Exception) -> None:
        turn.last_error = error
        if not turn.cancelled:
            self.logger.warning(f"Generation error in conversation {turn.conversation_id}: {error}")

    def _on_fallback(self, turn: Turn, error: Exception) -> None:
        turn.degraded = True

    def _finish_turn(self, turn: Turn, result: str) -> Optional[str]:
        if turn.cancelled:
            self.logger.info(f"Discarding result of cancelled turn ({len(result)} chars)")
            return None

        try:
            if turn.completed:
                updated = self.store.update_in_place(
                    turn.assistant_message_id, result, False, is_degraded=turn.degraded
                )
                if not updated:
                    # The user switched conversations mid-turn; stop the stale bubble spinning
                    self.store.finish_streaming(turn.assistant_message_id, turn.conversation_id)
                self._emit_update(turn.conversation_id, turn.assistant_message_id)
            else:
                self.store.finish_streaming(turn.assistant_message_id, turn.conversation_id)
                self._emit_update(turn.conversation_id, turn.assistant_message_id)
                try:
                    error_message = self.store.append(
                        ASSISTANT, ERROR_MESSAGE_TEXT,
                        conversation_id=turn.conversation_id, is_error=True
                    )
                    self._emit_update(turn.conversation_id, error_message.id)
                except NoActiveConversationError as e:
                    # Conversation deleted while the request was running
                    self.error_tracker.track_error(e, "append_error_message")
                    self.store.ensure_active()
                if turn.last_error is not None:
                    self.error_tracker.track_error(turn.last_error, "generation")
                    self._notify(describe_error(turn.last_error))
                else:
                    self._notify(describe_error(Exception(result)))
        finally:
            self._turn = None
            self.persist()
        return result

    async def send(self, text: str, context_text: Optional[str] = None) -> Optional[str]:
        """
        Run one turn for a user message

        Args:
            text: User message
            context_text: Optional reference text (e.g. the open document),
                used only when context awareness is enabled

        Returns:
            The final response text, or None if the send was rejected or the
            turn was cancelled
        """
        prompt = (text or "").strip()
        if not prompt:
            return None
        if self._turn is not None:
            self.logger.warning("Send rejected: a turn is already in flight")
            return None

        conversation = self._resolve_conversation()
        user_message = self.store.append(USER, prompt, conversation_id=conversation.id)
        self._maybe_auto_title(conversation, prompt)
        placeholder = self.store.append(ASSISTANT, "", conversation_id=conversation.id, is_streaming=True)

        turn = Turn(
            conversation_id=conversation.id,
            user_message_id=user_message.id,
            assistant_message_id=placeholder.id,
        )
        self._turn = turn
        self._emit_update(conversation.id, user_message.id)
        self._emit_update(conversation.id, placeholder.id)

        log_user_interaction(
            self.logger, "message_sent",
            conversation_id=conversation.id,
            query_length=len(prompt),
            with_context=bool(context_text)
        )

        callbacks = GenerationCallbacks(
            on_partial_response=lambda partial: self._on_partial(turn, partial),
            on_complete=lambda: self._on_complete(turn),
            on_error=lambda error: self._on_error(turn, error),
            on_fallback=lambda error: self._on_fallback(turn, error),
        )
        system_prompt = conversation.system_prompt or self.config.chat.system_prompt or None

        try:
            if context_text and self.config.chat.enable_context_awareness:
                result = await self.generation_client.generate_with_context(
                    self.settings, prompt, context_text,
                    callbacks=callbacks, system_prompt=system_prompt
                )
            else:
                result = await self.generation_client.generate(
                    self.settings, prompt,
                    callbacks=callbacks, system_prompt=system_prompt
                )
        except asyncio.CancelledError:
            # The awaiting task itself was cancelled: treat it as a user cancel
            if self._turn is turn:
                self.cancel()
            raise

        return self._finish_turn(turn, result)

    def cancel(self) -> bool:
        """
        Cancel the in-flight turn

        The assistant message keeps whatever text had been applied so far.

        Returns:
            bool: True if a turn was cancelled
        """
        turn = self._turn
        if turn is None or turn.state not in (TurnState.AWAITING_RESPONSE, TurnState.STREAMING):
            return False

        turn.cancelled = True
        turn.state = TurnState.CANCELLED
        self._turn = None

        self.store.finish_streaming(turn.assistant_message_id, turn.conversation_id)
        self._emit_update(turn.conversation_id, turn.assistant_message_id)
        log_user_interaction(
            self.logger, "turn_cancelled",
            conversation_id=turn.conversation_id,
            applied_chunks=turn.applied_chunks
        )
        self.persist()
        return True

    async def regenerate(self, message_id: str) -> Optional[str]:
        """
        Redo the answer to a user message

        The assistant message is removed and the user text it answered is sent
        again as a new message with a fresh id. Anything other than an
        assistant message directly preceded by a user message is a no-op.

        Returns:
            The new response text, or None if nothing was regenerated
        """
        if self._turn is not None:
            return None

        conversation = self.store.get_active()
        if conversation is None:
            return None

        index = conversation.index_of(message_id)
        if index <= 0 or conversation.messages[index].role != ASSISTANT:
            return None
        previous = conversation.messages[index - 1]
        if previous.role != USER:
            return None

        log_user_interaction(self.logger, "regenerate", conversation_id=conversation.id)
        self.store.remove_message(message_id, conversation.id)
        return await self.send(previous.content)

    # ------------------------------------------------------------------
    # Conversation management passthroughs for the UI
    # ------------------------------------------------------------------

    def new_conversation(self, title: Optional[str] = None) -> str:
        conversation_id = self.store.create_conversation(
            title or self.config.chat.default_title
        )
        self.persist()
        return conversation_id

    def switch_conversation(self, conversation_id: str) -> bool:
        switched = self.store.set_active(conversation_id)
        if switched:
            self.persist()
        return switched

    def delete_conversation(self, conversation_id: str) -> bool:
        deleted = self.store.delete(conversation_id)
        if deleted:
            self.persist()
        return deleted

    def rename_conversation(self, conversation_id: str, title: str) -> bool:
        title = title.strip()
        if not title:
            return False
        renamed = self.store.rename(conversation_id, title)
        if renamed:
            self.persist()
        return renamed

    def clear_conversation(self, conversation_id: Optional[str] = None) -> bool:
        cleared = self.store.clear(conversation_id)
        if cleared:
            self.persist()
        return cleared

    def set_max_history(self, max_messages: int) -> None:
        self.config.chat.max_history_length = max_messages
        self.store.max_messages = max_messages
