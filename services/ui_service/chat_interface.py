"""
Chat interface service - handles chat UI components and interactions.
Renders the conversation sidebar, the message list and the streamed reply,
and forwards user actions to the session controller.
"""

import asyncio
from datetime import datetime
from typing import Optional

import streamlit as st

from config.app_config import AppConfig, get_config
from infrastructure.storage.state_storage import create_state_storage
from services.chat_service.models import ASSISTANT, Conversation, Message
from services.session_service.session_controller import SessionController
from services.ui_service.stream_renderer import StreamRenderer
from utils.logging_config import get_error_tracker, get_logger


CONTROLLER_KEY = "session_controller"
CONTEXT_KEY = "reference_text"


def format_timestamp(millis: int) -> str:
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


class ChatInterface:
    """
    Service for chat interface components and interactions.
    Handles conversation sidebar, message rendering, and streaming.
    """

    def __init__(self, config: Optional[AppConfig] = None):
        self.logger = get_logger(__name__)
        self.config = config or get_config()

    @property
    def controller(self) -> SessionController:
        """Session controller kept for the lifetime of the browser session"""
        if CONTROLLER_KEY not in st.session_state:
            storage = create_state_storage(self.config.storage)
            st.session_state[CONTROLLER_KEY] = SessionController.from_storage(
                storage,
                config=self.config,
                on_notify=st.toast,
            )
            self.logger.info(f"Session controller created with {self.config.storage.backend} storage")
        return st.session_state[CONTROLLER_KEY]

    def recover_interrupted_turn(self):
        """
        Cancel a turn left in flight by an interrupted script run

        Any widget interaction during a stream (the stop button included)
        reruns the script and abandons the running request.
        """
        controller = self.controller
        if controller.is_busy and controller.cancel():
            st.toast("⏹️ Generation stopped")

    def render_conversation_sidebar(self):
        """Render the conversation sidebar"""
        controller = self.controller
        conversations = controller.store.list_all()
        active = controller.store.get_active()

        with st.sidebar:
            st.markdown("## 💬 Conversations")
            st.caption(f"📊 {len(conversations)} conversation{'s' if len(conversations) != 1 else ''}")

            if st.button("➕ New Conversation", use_container_width=True, type="secondary"):
                controller.new_conversation()
                st.rerun()

            st.markdown("### Select Conversation")
            for conversation in conversations:
                self._render_conversation_button(conversation, active)

            if active is not None:
                self._render_conversation_actions(active)

            self._render_settings()

    def _render_conversation_button(self, conversation: Conversation, active: Optional[Conversation]):
        label = conversation.title
        if active is not None and conversation.id == active.id:
            st.button(f"✅ {label}", key=f"current_{conversation.id}", use_container_width=True,
                      help="Currently active conversation", type="primary")
            return

        help_text = conversation.preview_text or None
        if st.button(f"💬 {label}", key=f"select_{conversation.id}", use_container_width=True, help=help_text):
            self.controller.switch_conversation(conversation.id)
            st.rerun()

    def _render_conversation_actions(self, active: Conversation):
        st.divider()
        with st.expander("✏️ Manage conversation"):
            new_title = st.text_input("Title", value=active.title, key=f"title_{active.id}")
            if st.button("Rename", key=f"rename_{active.id}", use_container_width=True):
                if self.controller.rename_conversation(active.id, new_title):
                    st.rerun()
                st.warning("Title cannot be empty")

            if st.button("🧹 Clear messages", key=f"clear_{active.id}", use_container_width=True):
                self.controller.clear_conversation(active.id)
                st.rerun()

            if st.button("🗑️ Delete conversation", key=f"delete_{active.id}", use_container_width=True):
                self.controller.delete_conversation(active.id)
                st.rerun()

    def _render_settings(self):
        """Model, history and reference-text settings"""
        config = self.config
        controller = self.controller

        st.markdown("### ⚙️ Settings")
        st.caption(f"Model: `{config.llm.model_name}`")

        max_history = st.number_input(
            "Max messages kept per conversation",
            min_value=1,
            value=config.chat.max_history_length,
            step=1,
        )
        if int(max_history) != config.chat.max_history_length:
            controller.set_max_history(int(max_history))

        if config.chat.enable_context_awareness:
            st.text_area(
                "📎 Reference text",
                key=CONTEXT_KEY,
                help="Sent along with your question so the answer can draw on it",
            )

        if st.button("🔌 Test API connection", use_container_width=True):
            with st.spinner("Contacting the model service..."):
                ok = asyncio.run(controller.generation_client.test_connection(controller.settings))
            if ok:
                st.success("✅ Connection successful")
            else:
                st.error("❌ Connection failed - check the API key and model name")

        if config.debug:
            st.divider()
            st.subheader("🔧 Debug Tools")
            tracker = get_error_tracker()
            last = tracker.last_error("generation")
            if last:
                st.caption(f"Last generation error at {last['at']}: {last['type']} - {last['message']}")
            st.json(tracker.get_error_summary())
            if st.button("🧹 Reset error log", use_container_width=True):
                tracker.reset()
                st.rerun()

    def render_message(self, message: Message, can_regenerate: bool = False):
        """Render one stored message"""
        with st.chat_message(message.role):
            if message.is_error:
                st.error(message.content)
            else:
                st.markdown(message.content)

            if message.is_degraded:
                st.caption("⚠️ Streaming failed - this answer was fetched in a single request")
            if self.config.ui.show_timestamps:
                st.caption(format_timestamp(message.timestamp))
            if can_regenerate and st.button("🔄 Regenerate", key=f"regenerate_{message.id}"):
                st.session_state["pending_regenerate"] = message.id
                st.rerun()

    def render_chat_messages(self):
        """Render the messages of the active conversation"""
        conversation = self.controller.store.ensure_active()
        messages = conversation.messages
        if not messages:
            st.info("👋 Start the conversation by typing a message below.")
            return

        last_assistant = next(
            (m.id for m in reversed(messages) if m.role == ASSISTANT and not m.is_error),
            None
        )
        for message in messages:
            self.render_message(message, can_regenerate=message.id == last_assistant)

    def _run_turn(self, user_text: Optional[str], regenerate_id: Optional[str] = None):
        """Run one turn while streaming into a fresh assistant bubble"""
        controller = self.controller

        if user_text:
            with st.chat_message("user"):
                st.markdown(user_text)

        with st.chat_message("assistant"):
            placeholder = st.empty()
            placeholder.markdown("_🤔 Thinking..._")
            st.button("⏹️ Stop", key="stop_generation")

        controller.on_update = StreamRenderer(placeholder, update_every=self.config.streaming.update_every)
        try:
            if regenerate_id:
                asyncio.run(controller.regenerate(regenerate_id))
            else:
                context_text = st.session_state.get(CONTEXT_KEY) or None
                asyncio.run(controller.send(user_text, context_text=context_text))
        finally:
            controller.on_update = None

    def handle_input(self):
        """Process chat input and pending regenerate requests"""
        regenerate_id = st.session_state.pop("pending_regenerate", None)
        if regenerate_id:
            self._run_turn(None, regenerate_id=regenerate_id)
            st.rerun()

        prompt = st.chat_input(self.config.ui.input_placeholder)
        if prompt:
            self._run_turn(prompt)
            st.rerun()


# Global interface instance
_chat_interface: Optional[ChatInterface] = None


def get_chat_interface() -> ChatInterface:
    """Get the global chat interface instance"""
    global _chat_interface
    if _chat_interface is None:
        _chat_interface = ChatInterface()
    return _chat_interface
