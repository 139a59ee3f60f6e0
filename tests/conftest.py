"""
Shared fixtures for the chat session tests
"""

from unittest.mock import Mock

import pytest

from config.app_config import AppConfig
from infrastructure.storage.state_storage import InMemoryStateStorage
from services.ai_service.generation_client import GenerationClient
from services.chat_service.conversation_store import ConversationStore
from tests.fakes import FakeChatModel


@pytest.fixture
def fake_model():
    return FakeChatModel()


@pytest.fixture
def client_for():
    """Build a generation client bound to a given fake model"""
    def _build(model: FakeChatModel) -> GenerationClient:
        return GenerationClient(model_factory=lambda settings: model)
    return _build


@pytest.fixture
def app_config(monkeypatch):
    monkeypatch.delenv("APP_ENV", raising=False)
    config = AppConfig()
    config.api.openai_api_key = "test-key"
    config.chat.max_history_length = 30
    return config


@pytest.fixture
def store():
    return ConversationStore(max_messages=30)


@pytest.fixture
def storage():
    return InMemoryStateStorage()


@pytest.fixture
def error_tracker():
    return Mock()
