"""
Data models and constants for hdstore
"""

from enum import Enum
from typing import List, Optional
from dataclasses import dataclass, field
from pathlib import Path
import time


# Only these suffixes may ever be stored or addressed
ALLOWED_EXTENSIONS = (".json", ".jpg", ".png")

DEFAULT_EXTENSION = ".json"

# Reference credential pair used when no users are configured
DEMO_USER = "demo"


class Action(Enum):
    """Operations exposed through the single endpoint"""
    LOGIN = "login"
    LIST_FILES = "listFiles"
    LOAD = "load"
    EXISTS = "exists"
    SAVE = "save"
    DELETE = "delete"
    RENAME = "rename"
    COPY = "copy"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Action"]:
        """Return the matching action or None for unknown values"""
        try:
            return cls(value)
        except ValueError:
            return None


class TransferMode(Enum):
    """How a stored file is duplicated under a new name"""
    RENAME = "rename"
    COPY = "copy"


@dataclass
class UserInfo:
    """User information"""
    name: str
    pass_hash: str
    is_bcrypt: bool = False
    folder: str = ""

    def __post_init__(self):
        if not self.folder:
            self.folder = self.name


@dataclass
class Session:
    """Server-side login session"""
    session_id: str
    user_folder: str
    username: str
    created: float = field(default_factory=time.time)
    last_seen: float = field(default_factory=time.time)

    def is_expired(self, ttl_seconds: int, now: Optional[float] = None) -> bool:
        if ttl_seconds <= 0:
            return False
        now = time.time() if now is None else now
        return now - self.last_seen > ttl_seconds


@dataclass
class ServerConfig:
    """Server configuration"""
    addr: str = "0.0.0.0"
    port: int = 8080
    endpoint: str = "/OnlineModule.php"


@dataclass
class StorageConfig:
    """Storage configuration"""
    root: Path = Path("UserFiles")
    max_upload_size: Optional[int] = 52428800

    def __post_init__(self):
        if isinstance(self.root, str):
            self.root = Path(self.root)
        self.root = self.root.resolve()

        if self.max_upload_size is not None and self.max_upload_size <= 0:
            # Normalise non-positive values to unlimited
            self.max_upload_size = None


@dataclass
class SessionConfig:
    """Session cookie configuration"""
    cookie_name: str = "HDSESSID"
    ttl_seconds: int = 1440


@dataclass
class LoggingConfig:
    """Logging configuration"""
    json: bool = False
    file: str = ""
    level: str = "INFO"
    max_size_mb: int = 100
    backup_count: int = 5


@dataclass
class HotReloadConfig:
    """Hot reload configuration"""
    enabled: bool = True
    watchConfig: bool = True
    debounceMs: int = 1000


@dataclass
class Config:
    """Main configuration container"""
    server: ServerConfig = field(default_factory=ServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    sessions: SessionConfig = field(default_factory=SessionConfig)
    users: List[UserInfo] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    hotReload: HotReloadConfig = field(default_factory=HotReloadConfig)


# Common MIME types for stored assets
MIME_TYPES = {
    '.json': 'application/json',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.png': 'image/png',
}

# Default MIME type for unknown files
DEFAULT_MIME_TYPE = 'application/octet-stream'
