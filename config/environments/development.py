"""
Development environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class DevelopmentConfig(AppConfig):
    """Development environment configuration"""
    
    def __post_init__(self):
        
        # Development-specific overrides
        self.environment = "development"
        self.debug = True
        
        # More verbose logging in development
        self.logging.level = "DEBUG"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/dev-app.log"
        
        # Development UI changes
        self.ui.app_title = "🧪 StreamChat (DEV)"
        
        # Separate state file so local experiments never touch real history
        self.storage.state_file = "data/dev_chat_state.json"
        
        # Short histories make truncation easy to observe
        self.chat.max_history_length = 20


def get_development_config() -> DevelopmentConfig:
    """Get development-specific configuration"""
    config = DevelopmentConfig()
    config.api = APIConfig.from_secrets()
    config.apply_env_overrides()
    return config
