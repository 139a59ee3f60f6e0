"""
State storage adapters - the host-provided key-value blob store.

The session layer only ever sees ``load() -> str | None`` and ``save(text)``;
where the blob lives is decided here.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, MutableMapping, Optional, Protocol, runtime_checkable

from config.app_config import StorageConfig
from utils.logging_config import get_logger


@runtime_checkable
class StateStorage(Protocol):
    """Get/set pair over one opaque string value"""

    def load(self) -> Optional[str]:
        ...

    def save(self, data: str) -> None:
        ...


class InMemoryStateStorage:
    """Keeps the blob in process memory (tests, throwaway sessions)"""

    def __init__(self, initial: Optional[str] = None):
        self.data = initial
        self.save_count = 0

    def load(self) -> Optional[str]:
        return self.data

    def save(self, data: str) -> None:
        self.data = data
        self.save_count += 1


class FileStateStorage:
    """
    Stores the blob in a UTF-8 file.

    Writes go to a temporary file in the same directory which then replaces
    the target, so a crash mid-write never leaves a truncated state file.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = get_logger(__name__)

    def load(self) -> Optional[str]:
        if not self.path.exists():
            self.logger.info(f"No saved state at {self.path}")
            return None
        return self.path.read_text(encoding="utf-8")

    def save(self, data: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
        self.logger.debug(f"Saved state to {self.path} ({len(data)} chars)")


class SessionStateStorage:
    """Stores the blob under one key of a Streamlit session state (per browser session)"""

    def __init__(self, key: str = "chat_state", session_state: Optional[MutableMapping[str, Any]] = None):
        self.key = key
        self._session_state = session_state

    @property
    def session_state(self) -> MutableMapping[str, Any]:
        if self._session_state is None:
            import streamlit as st
            return st.session_state
        return self._session_state

    def load(self) -> Optional[str]:
        value = self.session_state.get(self.key)
        return value if isinstance(value, str) else None

    def save(self, data: str) -> None:
        self.session_state[self.key] = data


def create_state_storage(config: StorageConfig) -> StateStorage:
    """
    Build the storage adapter named by the configuration

    Raises:
        ValueError: If the backend name is unknown
    """
    if config.backend == "file":
        return FileStateStorage(config.state_file)
    if config.backend == "session":
        return SessionStateStorage(config.session_key)
    if config.backend == "memory":
        return InMemoryStateStorage()
    raise ValueError(f"Unsupported storage backend: {config.backend}")
