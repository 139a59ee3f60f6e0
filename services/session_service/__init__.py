"""
Session service - turn orchestration between the store, the generation client and storage.
"""

from .session_controller import (
    ERROR_MESSAGE_TEXT,
    SessionController,
    Turn,
    TurnState,
    derive_title,
)

__all__ = [
    'ERROR_MESSAGE_TEXT',
    'SessionController',
    'Turn',
    'TurnState',
    'derive_title',
]
