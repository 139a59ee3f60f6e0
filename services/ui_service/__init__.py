"""
UI service - handles user interface components and interactions.
"""

from .stream_renderer import StreamRenderer

# Lazy import so the service layer stays importable without a running Streamlit script
def get_chat_interface():
    from .chat_interface import get_chat_interface as _get_chat_interface
    return _get_chat_interface()

def get_chat_interface_class():
    from .chat_interface import ChatInterface
    return ChatInterface

__all__ = [
    'StreamRenderer',
    'get_chat_interface',
    'get_chat_interface_class'
]
