"""
Utility modules for the link checker.
"""

from .config import CheckerOptions, Config, ConfigManager, load_config

__all__ = ['CheckerOptions', 'Config', 'ConfigManager', 'load_config']
