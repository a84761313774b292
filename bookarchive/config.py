"""
Configuration management for Book Archive.

Handles loading and saving user configuration from:
- XDG config directory: ~/.config/bookarchive/config.json
- Fallback: ~/.bookarchive/config.json

Command-line flags override whatever the file says.
"""

import json
import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_DB_PATH = "book_archive.db"
DEFAULT_LOG_FILE = "book_archive.log"

# Applied in order when the connection opens; each one is best-effort
DEFAULT_PRAGMAS = [
    "PRAGMA foreign_keys = ON;",
    "PRAGMA journal_mode = WAL;",
    "PRAGMA synchronous = NORMAL;",
    "PRAGMA cache_size = 1000;",
    "PRAGMA temp_store = MEMORY;",
]

LOG_LEVELS = ("DEBUG", "INFO", "ERROR")


@dataclass
class RetryPolicy:
    """Busy/locked retry policy: up to ``max_retries`` sleeps of ``base_delay * 2**n``."""
    max_retries: int = 5
    base_delay: float = 0.010

    def delay(self, retry: int) -> float:
        """Seconds to sleep before retry number ``retry`` (0-based)."""
        return self.base_delay * (2 ** retry)


@dataclass
class StoreConfig:
    """Database settings."""
    db_path: str = DEFAULT_DB_PATH
    pragmas: List[str] = field(default_factory=lambda: list(DEFAULT_PRAGMAS))
    max_retries: int = 5
    base_delay: float = 0.010
    # SQLite's own busy handler; 0 leaves contention to the retry policy
    busy_timeout: float = 0.0

    @property
    def retry(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, base_delay=self.base_delay)


@dataclass
class LoggingConfig:
    """Log settings."""
    level: str = "ERROR"
    log_file: Optional[str] = DEFAULT_LOG_FILE

    def __post_init__(self) -> None:
        self.level = parse_log_level(self.level)


@dataclass
class ShellConfig:
    """Interactive shell settings."""
    prompt: str = "> "
    history_file: Optional[str] = None


@dataclass
class AppConfig:
    """Main Book Archive configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "store": asdict(self.store),
            "logging": asdict(self.logging),
            "shell": asdict(self.shell),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AppConfig":
        """Create from dictionary."""
        return cls(
            store=StoreConfig(**data.get("store", {})),
            logging=LoggingConfig(**data.get("logging", {})),
            shell=ShellConfig(**data.get("shell", {})),
        )


def get_config_path() -> Path:
    """
    Get configuration file path.

    Follows XDG Base Directory specification:
    1. ~/.config/bookarchive/config.json
    2. Fallback: ~/.bookarchive/config.json
    """
    xdg_config_home = Path.home() / ".config"
    if xdg_config_home.exists():
        config_dir = xdg_config_home / "bookarchive"
    else:
        config_dir = Path.home() / ".bookarchive"

    return config_dir / "config.json"


def load_config(path: Optional[Path] = None) -> AppConfig:
    """
    Load configuration from file.

    Args:
        path: Explicit config file; defaults to get_config_path()

    Returns:
        AppConfig with loaded values, or defaults if the file is missing or invalid
    """
    config_path = Path(path) if path else get_config_path()

    if not config_path.exists():
        return AppConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return AppConfig.from_dict(data)
    except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
        logger.warning("Failed to load config from %s: %s; using defaults", config_path, e)
        return AppConfig()


def save_config(config: AppConfig, path: Optional[Path] = None) -> Path:
    """Write configuration to file and return its path."""
    config_path = Path(path) if path else get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)

    return config_path


def parse_log_level(
    level: str,
    default: str = "ERROR",
    warn: Optional[Callable[[str], None]] = None,
) -> str:
    """
    Normalise a level name; unknown names fall back to ``default``.

    Args:
        level: Level name in any case
        default: Level used when ``level`` is not one of LOG_LEVELS
        warn: Receives the warning for an unknown name; defaults to the module logger
    """
    name = (level or "").strip().upper()
    if name in LOG_LEVELS:
        return name
    message = f"Unknown log level '{level}'. Using default ({default})."
    if warn is None:
        logger.warning("%s", message)
    else:
        warn(message)
    return default
