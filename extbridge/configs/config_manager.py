"""
Configuration Manager for extbridge

Provides a centralized, thread-safe configuration loader with automatic
reload support using watchdog.  The manager reads
``configs/extbridge_config.yml`` (or the file named by ``EXTBRIDGE_CONFIG``),
merges it over built-in defaults, validates the structure and exposes
convenience methods for nested lookup and mutation.  Change notifications
are broadcast through a ``Hooks`` registry.
"""

from __future__ import annotations

import copy
import logging
import os
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import yaml
from watchdog.events import FileModifiedEvent, FileSystemEventHandler
from watchdog.observers import Observer

from ..core.hooks import Hooks, Unsubscribe
from ..core.utils import normalize_keys

logger = logging.getLogger(__name__)

CONFIG_ENV = "EXTBRIDGE_CONFIG"
DEBUG_ENV = "EXTBRIDGE_DEBUG"

DEFAULT_CONFIG: Dict[str, Any] = {
    "debug": False,
    "request": {
        "timeout": None,
        "user_agent": "extbridge/0.1",
    },
    "messaging": {
        "endpoint": "http://127.0.0.1:8765/message",
    },
    "ui_bridge": {
        "host": "127.0.0.1",
        "port": 8765,
    },
    "logging": {
        "level": "INFO",
    },
}

_MAPPING_SECTIONS = ("request", "messaging", "ui_bridge", "logging")


@dataclass(frozen=True)
class ConfigChange:
    path: str
    value: Any


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigFileHandler(FileSystemEventHandler):
    """File system event handler for config file changes."""

    def __init__(self, config_manager: ConfigManager):
        self.config_manager = config_manager
        self._last_modified = 0.0

    def on_modified(self, event):  # type: ignore[override]
        if not isinstance(event, FileModifiedEvent):
            return
        current_time = time.time()
        if current_time - self._last_modified < 0.5:
            return
        self._last_modified = current_time
        if Path(event.src_path) == self.config_manager.config_path:
            logger.info(f"Config file modified: {event.src_path}")
            try:
                self.config_manager.reload(notify=True)
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.error(f"Failed to reload config: {e}")


class ConfigManager:
    """
    Configuration manager for one YAML file.

    Thread safe for concurrent access.  Use ``get_global_config`` for the
    process-wide instance.
    """

    def __init__(self, config_path: Optional[Path] = None, watch: bool = False):
        self._lock = threading.RLock()
        self._config: Dict[str, Any] = {}
        self._observers: List[Observer] = []
        self.changes = Hooks("config")
        if config_path is None:
            env_path = os.environ.get(CONFIG_ENV)
            if env_path:
                config_path = Path(env_path)
            else:
                config_path = Path(__file__).parent / "extbridge_config.yml"
        self.config_path = Path(config_path)
        self.reload(notify=False)

        if watch:
            self.start_watching()

    def reload(self, notify: bool = True) -> None:
        with self._lock:
            logger.info(f"Loading configuration from {self.config_path}")
            if self.config_path.exists():
                loaded = self._load_file()
                self._config = _deep_merge(DEFAULT_CONFIG, loaded)
            else:
                logger.warning(f"Config file not found: {self.config_path}, falling back to defaults")
                self._config = copy.deepcopy(DEFAULT_CONFIG)
            valid, errors = self._validate_config(self._config)
            if not valid:
                error_msg = "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
                logger.error(error_msg)
                raise ValueError(error_msg)
        if notify:
            self._notify_change("*", self.export_to_dict())

    def _load_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load {self.config_path}: {e}")
            raise
        if not isinstance(config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")
        return config

    def _validate_config(self, config: Dict[str, Any]) -> Tuple[bool, List[str]]:
        errors: List[str] = []
        for section in _MAPPING_SECTIONS:
            if not isinstance(config.get(section), dict):
                errors.append(f"'{section}' must be a dict")
        if not isinstance(config.get("debug"), bool):
            errors.append("'debug' must be a boolean")
        timeout = config.get("request", {}).get("timeout") if isinstance(config.get("request"), dict) else None
        if timeout is not None and (not isinstance(timeout, (int, float)) or timeout < 0):
            errors.append("'request.timeout' must be a non-negative number or null")
        return len(errors) == 0, errors

    def _notify_change(self, path: str, value: Any) -> None:
        self.changes.fire(ConfigChange(path, value))

    def get(self, path: Any, default: Any = None) -> Any:
        with self._lock:
            value: Any = self._config
            for key in normalize_keys(path):
                if isinstance(value, dict):
                    value = value.get(key)
                elif isinstance(value, list):
                    try:
                        value = value[int(key)]
                    except (ValueError, IndexError):
                        return default
                else:
                    return default
                if value is None:
                    return default
            return value

    def get_section(self, section: str, default: Any = None) -> Dict[str, Any]:
        """Return a copy of a config section, or ``default`` if it is missing."""
        if default is None:
            default = {}
        with self._lock:
            val = self._config.get(section, default)
            if isinstance(val, dict):
                return copy.deepcopy(val)
            return default

    def set(self, path: Any, value: Any) -> None:
        """Set configuration value by dot-separated path."""
        keys = normalize_keys(path)
        if not keys:
            raise ValueError("Empty configuration path")
        with self._lock:
            target = self._config
            for key in keys[:-1]:
                if not isinstance(target.get(key), dict):
                    target[key] = {}
                target = target[key]
            target[keys[-1]] = value
        self._notify_change(".".join(str(k) for k in keys), value)

    def save(self) -> None:
        """Save configuration to disk atomically."""
        with self._lock:
            valid, errors = self._validate_config(self._config)
            if not valid:
                error_msg = "Cannot save invalid configuration:\n" + "\n".join(f"  - {e}" for e in errors)
                logger.error(error_msg)
                raise ValueError(error_msg)

            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            temp_path = self.config_path.with_suffix(".tmp")
            try:
                with open(temp_path, 'w', encoding='utf-8') as f:
                    yaml.safe_dump(
                        self._config,
                        f,
                        default_flow_style=False,
                        sort_keys=False,
                        allow_unicode=True,
                        indent=2
                    )
                temp_path.replace(self.config_path)
                logger.info(f"Configuration saved to {self.config_path}")
            except OSError as e:
                if temp_path.exists():
                    temp_path.unlink()
                logger.error(f"Failed to save configuration: {e}")
                raise

    @property
    def watching(self) -> bool:
        return bool(self._observers)

    def start_watching(self) -> None:
        """Start file system watcher for hot-reload."""
        if not self.config_path.exists():
            logger.warning(f"Cannot watch non-existent config: {self.config_path}")
            return
        event_handler = ConfigFileHandler(self)
        observer = Observer()
        observer.schedule(
            event_handler,
            path=str(self.config_path.parent),
            recursive=False
        )
        observer.start()
        self._observers.append(observer)
        logger.info(f"Started watching config file: {self.config_path}")

    def stop_watching(self) -> None:
        """Stop all file system watchers."""
        for observer in self._observers:
            observer.stop()
            observer.join()
        self._observers.clear()
        logger.info("Stopped watching config file")

    def register_change_callback(self, callback: Callable[[ConfigChange], Any]) -> Unsubscribe:
        """Register callback for configuration changes."""
        return self.changes.hook(callback)

    def export_to_dict(self) -> Dict[str, Any]:
        """Export full configuration as dictionary."""
        with self._lock:
            return copy.deepcopy(self._config)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop_watching()


_global_config: Optional[ConfigManager] = None


def get_global_config() -> ConfigManager:
    global _global_config
    if _global_config is None:
        _global_config = ConfigManager(watch=False)
    return _global_config


def reload_global_config() -> None:
    config = get_global_config()
    config.reload(notify=True)


def reset_global_config() -> None:
    global _global_config
    if _global_config is not None:
        _global_config.stop_watching()
    _global_config = None


def is_debug() -> bool:
    """Process-wide debug flag: ``EXTBRIDGE_DEBUG`` wins over the config file."""
    env_value = os.environ.get(DEBUG_ENV)
    if env_value is not None:
        return env_value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(get_global_config().get("debug", False))
