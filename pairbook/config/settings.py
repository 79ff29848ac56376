"""
Configuration settings for the matching engine.

This module provides centralized configuration management
with environment variable support and validation.
"""

import os
from typing import Optional, Dict, Any

from ..core.order_types import PRICE_SCALE


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """
    Configuration settings for the matching engine.

    Supports environment variables and provides sensible defaults.
    """

    def __init__(self):
        """Initialize settings from environment variables."""
        # Trading pair
        self.base_asset = os.getenv("BASE_ASSET", "BASE")
        self.quote_asset = os.getenv("QUOTE_ASSET", "QUOTE")
        self.price_scale = int(os.getenv("PRICE_SCALE", str(PRICE_SCALE)))

        # Custody
        self.custody_account = os.getenv("CUSTODY_ACCOUNT", "pairbook-custody")
        self.verify_invariants = _env_flag("VERIFY_INVARIANTS", "false")

        # Server configuration
        self.rest_host = os.getenv("REST_HOST", "0.0.0.0")
        self.rest_port = int(os.getenv("REST_PORT", "5000"))
        self.websocket_host = os.getenv("WEBSOCKET_HOST", "localhost")
        self.websocket_port = int(os.getenv("WEBSOCKET_PORT", "8765"))

        # Logging configuration
        self.log_level = os.getenv("LOG_LEVEL", "INFO")
        self.log_file = os.getenv("LOG_FILE", "logs/pairbook.log")
        self.audit_log_file = os.getenv("AUDIT_LOG_FILE", "logs/audit.log")

        # WebSocket configuration
        self.websocket_ping_interval = int(os.getenv("WEBSOCKET_PING_INTERVAL", "20"))
        self.websocket_ping_timeout = int(os.getenv("WEBSOCKET_PING_TIMEOUT", "10"))

        # Performance monitoring
        self.enable_performance_monitoring = _env_flag("ENABLE_PERFORMANCE_MONITORING", "true")

        # Security
        self.enable_cors = _env_flag("ENABLE_CORS", "true")
        self.cors_origins = os.getenv("CORS_ORIGINS", "*").split(",")

        # Debug mode
        self.debug = _env_flag("DEBUG", "false")

    def to_dict(self) -> Dict[str, Any]:
        """Convert settings to dictionary."""
        return {
            "base_asset": self.base_asset,
            "quote_asset": self.quote_asset,
            "price_scale": str(self.price_scale),
            "custody_account": self.custody_account,
            "verify_invariants": self.verify_invariants,
            "rest_host": self.rest_host,
            "rest_port": self.rest_port,
            "websocket_host": self.websocket_host,
            "websocket_port": self.websocket_port,
            "log_level": self.log_level,
            "log_file": self.log_file,
            "audit_log_file": self.audit_log_file,
            "websocket_ping_interval": self.websocket_ping_interval,
            "websocket_ping_timeout": self.websocket_ping_timeout,
            "enable_performance_monitoring": self.enable_performance_monitoring,
            "enable_cors": self.enable_cors,
            "cors_origins": self.cors_origins,
            "debug": self.debug,
        }

    def validate(self) -> None:
        """Validate configuration settings."""
        errors = []

        if not self.base_asset or not self.quote_asset:
            errors.append("Base and quote asset must be set")

        if self.base_asset == self.quote_asset:
            errors.append(f"Base and quote asset must differ: {self.base_asset}")

        if self.price_scale <= 0:
            errors.append(f"Price scale must be positive: {self.price_scale}")

        if not self.custody_account:
            errors.append("Custody account must be set")

        if not (1 <= self.rest_port <= 65535):
            errors.append(f"Invalid REST port: {self.rest_port}")

        if not (1 <= self.websocket_port <= 65535):
            errors.append(f"Invalid WebSocket port: {self.websocket_port}")

        if self.websocket_ping_interval <= 0 or self.websocket_ping_timeout <= 0:
            errors.append("WebSocket ping interval and timeout must be positive")

        if errors:
            raise ValueError(f"Configuration validation failed: {'; '.join(errors)}")


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
        _settings.validate()
    return _settings


def reload_settings() -> Settings:
    """
    Reload settings from environment variables.

    Returns:
        New settings instance
    """
    global _settings
    _settings = Settings()
    _settings.validate()
    return _settings
