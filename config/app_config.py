"""
Unified Configuration System for StreamChat

This module provides a centralized configuration system that consolidates all application settings,
supports environment-based overrides, and provides type-safe configuration access.
"""

from dataclasses import dataclass, field
from typing import Optional, List
import streamlit as st
import os
from pathlib import Path


DEFAULT_SYSTEM_PROMPT = (
    "You are a helpful AI assistant. Provide concise and accurate information."
)


@dataclass
class APIConfig:
    """API configuration settings"""
    openai_api_key: str = ""

    @classmethod
    def from_secrets(cls) -> 'APIConfig':
        """Load API config from Streamlit secrets"""
        # In test environment, prefer environment variables
        if os.getenv("PYTEST_CURRENT_TEST") is not None:
            return cls(openai_api_key=os.getenv("OPENAI_API_KEY", ""))

        try:
            return cls(openai_api_key=st.secrets.get("OPENAI_API_KEY", ""))
        except Exception:
            # Fallback to environment variables if secrets not available
            return cls(openai_api_key=os.getenv("OPENAI_API_KEY", ""))


@dataclass
class LLMConfig:
    """Language model configuration"""
    model_name: str = "gpt-4o-mini"
    temperature: float = 0.2
    max_tokens: int = 1000
    streaming: bool = True


@dataclass
class ChatConfig:
    """Conversation behaviour configuration"""
    max_history_length: int = 30
    enable_context_awareness: bool = True
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    default_title: str = "New Conversation"
    auto_title: bool = True


@dataclass
class StorageConfig:
    """Session state persistence configuration"""
    backend: str = "file"  # "file", "session" or "memory"
    state_file: str = "data/chat_state.json"
    session_key: str = "chat_state"


@dataclass
class StreamingConfig:
    """Streaming response configuration"""
    update_every: int = 1


@dataclass
class UIConfig:
    """User interface configuration"""
    app_title: str = "StreamChat"
    show_timestamps: bool = True
    input_placeholder: str = "Ask anything..."


@dataclass
class LoggingConfig:
    """Logging and monitoring configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    enable_file_logging: bool = True
    log_file: str = "logs/app.log"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class AppConfig:
    """Main application configuration"""
    api: APIConfig = field(default_factory=APIConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    streaming: StreamingConfig = field(default_factory=StreamingConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Environment settings
    environment: str = field(default_factory=lambda: os.getenv("APP_ENV", "development"))
    debug: bool = field(default_factory=lambda: os.getenv("DEBUG", "false").lower() == "true")

    @classmethod
    def load(cls) -> 'AppConfig':
        """Load configuration with environment overrides"""
        config = cls()

        # Load API configuration from secrets/environment
        config.api = APIConfig.from_secrets()
        config.apply_env_overrides()

        # Apply environment-specific overrides
        if config.environment == "production":
            config.debug = False
            config.logging.level = "WARNING"
        elif config.environment == "development":
            config.debug = True
            config.logging.level = "DEBUG"

        return config

    def apply_env_overrides(self) -> None:
        """Override individual settings from environment variables"""
        self.llm.model_name = os.getenv("LLM_MODEL", self.llm.model_name)
        self.llm.temperature = float(os.getenv("LLM_TEMPERATURE", str(self.llm.temperature)))
        self.llm.streaming = _env_bool("LLM_STREAMING", self.llm.streaming)
        self.chat.max_history_length = int(
            os.getenv("MAX_HISTORY_LENGTH", str(self.chat.max_history_length))
        )
        self.chat.enable_context_awareness = _env_bool(
            "ENABLE_CONTEXT_AWARENESS", self.chat.enable_context_awareness
        )
        self.storage.backend = os.getenv("STATE_BACKEND", self.storage.backend)
        self.storage.state_file = os.getenv("STATE_FILE", self.storage.state_file)

    def validate(self) -> List[str]:
        """Validate configuration and return list of errors"""
        errors = []

        # Check required API keys
        if not self.api.openai_api_key:
            errors.append("OpenAI API key is required")

        if not 0.0 <= self.llm.temperature <= 2.0:
            errors.append(f"Temperature out of range: {self.llm.temperature}")

        if self.chat.max_history_length < 1:
            errors.append("max_history_length must be at least 1")

        if self.storage.backend not in ("file", "session", "memory"):
            errors.append(f"Unknown storage backend: {self.storage.backend}")

        # Check file paths exist
        if self.storage.backend == "file":
            Path(self.storage.state_file).parent.mkdir(parents=True, exist_ok=True)

        if self.logging.enable_file_logging:
            log_dir = Path(self.logging.log_file).parent
            if not log_dir.exists():
                log_dir.mkdir(parents=True, exist_ok=True)

        return errors


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance"""
    global _config
    if _config is None:
        _config = AppConfig.load()

        # Validate configuration
        errors = _config.validate()
        if errors:
            import warnings
            for error in errors:
                warnings.warn(f"Configuration error: {error}")

    return _config


def reload_config() -> AppConfig:
    """Reload configuration (useful for testing)"""
    global _config
    _config = None
    return get_config()
