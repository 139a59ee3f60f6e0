"""
Environment-specific configurations, selected by APP_ENV
"""

import logging
import os
from typing import Callable, Dict

from config.app_config import AppConfig
from .development import get_development_config
from .production import get_production_config


DEFAULT_ENVIRONMENT = "development"

ENVIRONMENTS: Dict[str, Callable[[], AppConfig]] = {
    "development": get_development_config,
    "production": get_production_config,
}

logger = logging.getLogger(__name__)


def get_environment_config() -> AppConfig:
    """
    Build the configuration for the environment named by APP_ENV

    Names are matched case-insensitively. An unknown name falls back to the
    base ``AppConfig.load()``.
    """
    env = os.getenv("APP_ENV", DEFAULT_ENVIRONMENT).strip().lower()

    factory = ENVIRONMENTS.get(env)
    if factory is None:
        logger.warning(f"Unknown APP_ENV {env!r}, using base configuration "
                       f"(known: {', '.join(sorted(ENVIRONMENTS))})")
        return AppConfig.load()

    logger.debug(f"Loading {env} configuration")
    return factory()
