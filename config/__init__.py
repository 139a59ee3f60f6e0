"""
Application configuration package.
"""

from .app_config import AppConfig, get_config, reload_config

__all__ = ['AppConfig', 'get_config', 'reload_config']
