"""
Configuration module for the matching engine.

This module provides configuration management and settings
for the pair order book service.
"""

from .settings import Settings, get_settings, reload_settings

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
]
