import streamlit as st

from config.environments import get_environment_config
from services.ui_service.chat_interface import ChatInterface
from utils.logging_config import initialize_logging, get_logger

# Get configuration
config = get_environment_config()

# Initialize logging and error tracking
error_tracker = initialize_logging(config)
logger = get_logger(__name__)


def main_app():
    """Main application content"""
    st.set_page_config(page_title=config.ui.app_title, page_icon="💬")

    # Improve overall layout
    st.markdown("""
    <style>
    .main-header {
        text-align: center;
        padding: 1rem 0;
        border-bottom: 2px solid #e3f2fd;
        margin-bottom: 1rem;
    }

    .stChatInput > div {
        border-radius: 25px;
        border: 2px solid #e3f2fd;
    }
    </style>
    """, unsafe_allow_html=True)

    st.markdown(f'<div class="main-header"><h1>{config.ui.app_title}</h1></div>', unsafe_allow_html=True)
    logger.debug("Rendering chat page")

    if not config.api.openai_api_key:
        st.warning("🔑 No OpenAI API key configured - set OPENAI_API_KEY or add it to Streamlit secrets.")

    interface = ChatInterface(config)

    try:
        interface.recover_interrupted_turn()
    except Exception as e:
        error_tracker.track_error(e, "session_initialization")
        st.error("Failed to restore the chat session. Please refresh the page.")
        return

    interface.render_conversation_sidebar()
    interface.render_chat_messages()
    interface.handle_input()


main_app()
