"""Application configuration."""
import os
from dataclasses import dataclass
from typing import Optional


@dataclass
class ContentApiConfig:
    """Configuration for the remote content API."""

    base_url: str = "http://localhost:8080"
    api_key: str = ""  # Read from .env or user input
    timeout: int = 30

    @classmethod
    def from_env(cls) -> "ContentApiConfig":
        """Load config from environment variables."""
        return cls(
            base_url=os.getenv("CONTENT_API_URL", "http://localhost:8080"),
            api_key=os.getenv("CONTENT_API_KEY", ""),
            timeout=int(os.getenv("CONTENT_API_TIMEOUT", "30")),
        )


@dataclass
class AppConfig:
    """Application configuration."""

    config_dir: str = "./config"
    data_dir: str = "./data"
    storage_backend: str = "json"  # "json" or "http"
    encryption_keys_file: Optional[str] = None
    log_level: str = "INFO"
    content_api: ContentApiConfig = None

    def __post_init__(self):
        """Initialize default values."""
        if self.content_api is None:
            self.content_api = ContentApiConfig.from_env()

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config from environment variables."""
        return cls(
            config_dir=os.getenv("CONTENT_SYNC_CONFIG_DIR", "./config"),
            data_dir=os.getenv("CONTENT_SYNC_DATA_DIR", "./data"),
            storage_backend=os.getenv("CONTENT_SYNC_STORAGE", "json"),
            encryption_keys_file=os.getenv("CONTENT_SYNC_ENCRYPTION_KEYS"),
            log_level=os.getenv("CONTENT_SYNC_LOG_LEVEL", "INFO"),
            content_api=ContentApiConfig.from_env(),
        )


# Global instance
app_config = AppConfig.from_env()
