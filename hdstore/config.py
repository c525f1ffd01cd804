"""
Configuration loading and management for hdstore
"""

import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional
from watchdog.observers import Observer
from watchdog.events import FileSystemEventHandler
import time

from .models import (
    Config, ServerConfig, StorageConfig, SessionConfig, UserInfo,
    LoggingConfig, HotReloadConfig, DEMO_USER
)

logger = logging.getLogger(__name__)


class ConfigFileHandler(FileSystemEventHandler):
    """File system event handler for config file changes"""

    def __init__(self, config_path: Path, callback):
        self.config_path = config_path.resolve()
        self.callback = callback
        self.last_modified = 0
        self.debounce_ms = 1000

    def on_modified(self, event):
        if event.is_directory:
            return

        file_path = Path(event.src_path).resolve()
        if file_path == self.config_path:
            # Debounce multiple events
            now = time.time() * 1000
            if now - self.last_modified < self.debounce_ms:
                return
            self.last_modified = now

            logger.info(f"Configuration file changed: {file_path}")
            try:
                self.callback()
            except Exception as e:
                logger.error(f"Failed to reload configuration: {e}")


class ConfigManager:
    """Configuration manager with hot reload support"""

    def __init__(self, config_path: str = "hdstore.yaml"):
        self.config_path = Path(config_path).resolve()
        self.config: Optional[Config] = None
        self.observer: Optional[Observer] = None
        self.reload_callbacks = []

    def load_config(self) -> Config:
        """Load configuration from YAML file"""
        try:
            if not self.config_path.exists():
                logger.warning(f"Configuration file not found: {self.config_path}")
                config = Config()
                self.config = config
                return config

            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) or {}

            config = self._parse_config(data)
            self.config = config
            logger.info(f"Configuration loaded from {self.config_path}")
            return config

        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            config = Config()
            self.config = config
            return config

    def _parse_config(self, data: Dict[str, Any]) -> Config:
        """Parse configuration data into Config object"""

        # Server configuration
        server_data = data.get('server', {})
        server = ServerConfig(
            addr=server_data.get('addr', '0.0.0.0'),
            port=server_data.get('port', 8080),
            endpoint=server_data.get('endpoint', '/OnlineModule.php')
        )

        # Storage; a relative root is taken relative to the config file
        storage_data = data.get('storage', {})
        root = Path(storage_data.get('root', 'UserFiles'))
        if not root.is_absolute():
            root = self.config_path.parent / root
        storage = StorageConfig(
            root=root,
            max_upload_size=storage_data.get('max_upload_size', 52428800)
        )

        # Sessions
        session_data = data.get('sessions', {})
        sessions = SessionConfig(
            cookie_name=session_data.get('cookie_name', 'HDSESSID'),
            ttl_seconds=session_data.get('ttl_seconds', 1440)
        )

        # Users
        users = []
        for user_data in data.get('users', []):
            user = UserInfo(
                name=user_data['name'],
                pass_hash=user_data['pass'],
                is_bcrypt=user_data.get('pass_bcrypt', False),
                folder=user_data.get('folder', '')
            )
            users.append(user)

        # Logging
        logging_data = data.get('logging', {})
        logging_config = LoggingConfig(
            json=logging_data.get('json', False),
            file=logging_data.get('file', ''),
            level=logging_data.get('level', 'INFO'),
            max_size_mb=logging_data.get('max_size_mb', 100),
            backup_count=logging_data.get('backup_count', 5)
        )

        # Hot reload
        reload_data = data.get('hotReload', {})
        hot_reload = HotReloadConfig(
            enabled=reload_data.get('enabled', True),
            watchConfig=reload_data.get('watchConfig', True),
            debounceMs=reload_data.get('debounceMs', 1000)
        )

        return Config(
            server=server,
            storage=storage,
            sessions=sessions,
            users=users,
            logging=logging_config,
            hotReload=hot_reload
        )

    def start_watching(self):
        """Start watching configuration file for changes"""
        if not self.config or not self.config.hotReload.enabled or not self.config.hotReload.watchConfig:
            return

        if self.observer:
            return  # Already watching

        try:
            self.observer = Observer()
            handler = ConfigFileHandler(
                self.config_path,
                self._on_config_changed
            )
            handler.debounce_ms = self.config.hotReload.debounceMs

            watch_dir = self.config_path.parent
            self.observer.schedule(handler, str(watch_dir), recursive=False)
            self.observer.start()

            logger.info(f"Started watching configuration file: {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to start configuration file watcher: {e}")

    def stop_watching(self):
        """Stop watching configuration file"""
        if self.observer:
            self.observer.stop()
            self.observer.join()
            self.observer = None
            logger.info("Stopped watching configuration file")

    def _on_config_changed(self):
        """Handle configuration file changes"""
        try:
            old_config = self.config
            new_config = self.load_config()

            # Notify callbacks
            for callback in self.reload_callbacks:
                try:
                    callback(old_config, new_config)
                except Exception as e:
                    logger.error(f"Configuration reload callback failed: {e}")

            logger.info("Configuration reloaded successfully")

        except Exception as e:
            logger.error(f"Failed to reload configuration: {e}")

    def add_reload_callback(self, callback):
        """Add callback to be called when configuration is reloaded"""
        self.reload_callbacks.append(callback)

    def get_config(self) -> Config:
        """Get current configuration"""
        if self.config is None:
            self.config = self.load_config()
        return self.config

    def get_user_by_name(self, name: str) -> Optional[UserInfo]:
        """Get user by name; falls back to the demo account when no users are configured"""
        config = self.get_config()
        if not config.users:
            if name == DEMO_USER:
                return UserInfo(name=DEMO_USER, pass_hash=DEMO_USER, is_bcrypt=False)
            return None
        for user in config.users:
            if user.name == name:
                return user
        return None


# Global configuration manager instance
config_manager = ConfigManager()


def load_config(config_path: str = "hdstore.yaml") -> Config:
    """Load configuration from file"""
    global config_manager
    config_manager = ConfigManager(config_path)
    return config_manager.load_config()


def get_config_manager() -> ConfigManager:
    """Get the active configuration manager"""
    return config_manager


def get_user_by_name(name: str) -> Optional[UserInfo]:
    """Get user by name"""
    return config_manager.get_user_by_name(name)
