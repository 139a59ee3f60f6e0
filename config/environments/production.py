"""
Production environment configuration overrides
"""

from dataclasses import dataclass
from config.app_config import AppConfig, APIConfig


@dataclass
class ProductionConfig(AppConfig):
    """Production environment configuration"""
    
    def __post_init__(self):
        
        # Production-specific overrides
        self.environment = "production"
        self.debug = False
        
        # Production logging - less verbose, focus on errors
        self.logging.level = "INFO"
        self.logging.enable_file_logging = True
        self.logging.log_file = "logs/prod-app.log"
        
        # Production UI - clean and professional
        self.ui.app_title = "💬 StreamChat"
        
        # Production LLM settings - more conservative
        self.llm.temperature = 0.3  # More consistent responses
        self.llm.max_tokens = 1000
        self.chat.max_history_length = 30


def get_production_config() -> ProductionConfig:
    """Get production-specific configuration"""
    config = ProductionConfig()
    config.api = APIConfig.from_secrets()
    config.apply_env_overrides()
    return config
