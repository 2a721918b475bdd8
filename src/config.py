"""Configuration for the browser search service."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional


# Default database location (shared by record store and index snapshot)
DEFAULT_DB_PATH = Path.home() / ".browser-search" / "browser.db"


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off")


@dataclass
class IndexConfig:
    """Configuration for the search index."""
    refresh_interval: float = 300.0  # Seconds between scheduled rebuilds
    default_limit: int = 50  # Results returned when the caller gives no limit

    @classmethod
    def from_env(cls) -> "IndexConfig":
        """Create config from environment variables."""
        return cls(
            refresh_interval=float(os.environ.get("BROWSER_SEARCH_REFRESH_INTERVAL", "300")),
            default_limit=int(os.environ.get("BROWSER_SEARCH_DEFAULT_LIMIT", "50")),
        )


@dataclass
class Config:
    """Main configuration for the browser search service."""
    index: IndexConfig = field(default_factory=IndexConfig.from_env)
    db_path: Optional[Path] = None  # None = use default
    max_history_items: int = 1000
    auto_save_history: bool = True
    chrome_profile: str = "Default"  # Chrome profile used for bookmark import
    log_level: str = "WARNING"

    @property
    def resolved_db_path(self) -> Path:
        return self.db_path or DEFAULT_DB_PATH

    @classmethod
    def from_env(cls) -> "Config":
        """Create config from environment variables."""
        db_path_str = os.environ.get("BROWSER_SEARCH_DB")
        db_path = Path(db_path_str).expanduser() if db_path_str else None

        return cls(
            index=IndexConfig.from_env(),
            db_path=db_path,
            max_history_items=int(os.environ.get("BROWSER_SEARCH_MAX_HISTORY", "1000")),
            auto_save_history=_env_flag("BROWSER_SEARCH_AUTO_SAVE_HISTORY", True),
            chrome_profile=os.environ.get("BROWSER_SEARCH_CHROME_PROFILE", "Default"),
            log_level=os.environ.get("BROWSER_SEARCH_LOG_LEVEL", "WARNING").upper(),
        )


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global config instance.

    Returns:
        Config loaded from environment
    """
    global _config

    if _config is None:
        _config = Config.from_env()

    return _config
