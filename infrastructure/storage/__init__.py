"""
Persistence adapters for serialized session state.
"""

from .state_storage import (
    StateStorage,
    InMemoryStateStorage,
    FileStateStorage,
    SessionStateStorage,
    create_state_storage
)

__all__ = [
    'StateStorage',
    'InMemoryStateStorage',
    'FileStateStorage',
    'SessionStateStorage',
    'create_state_storage'
]
