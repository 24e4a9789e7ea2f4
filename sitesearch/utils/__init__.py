"""
Utility modules for the site search system.
"""

from .config import Config, ConfigManager, SiteConfig, load_config

__all__ = ['Config', 'ConfigManager', 'SiteConfig', 'load_config']
