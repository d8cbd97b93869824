"""
extbridge Configuration Module

Provides centralized configuration management for extbridge.

Usage:
    from extbridge.configs import get_global_config

    config = get_global_config()
    timeout = config.get("request.timeout")
    bridge = config.get_section("ui_bridge")
"""
from .config_manager import (
    ConfigChange,
    ConfigManager,
    get_global_config,
    is_debug,
    reload_global_config,
    reset_global_config,
)

__all__ = [
    "ConfigChange",
    "ConfigManager",
    "get_global_config",
    "is_debug",
    "reload_global_config",
    "reset_global_config",
]
