"""
Centralized Configuration Module

Provides configuration classes and environment variable loading for all components.

Usage:
    from tasador.config import get_config

    config = get_config()
    db_path = config.store.path
    quota = config.workspace.max_saved_valuations
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


def _get_project_root() -> Path:
    """Get the project root directory."""
    # config.py -> tasador -> src -> project_root
    current = Path(__file__).resolve()
    return current.parent.parent.parent


@dataclass
class StoreConfig:
    """Remote document store configuration."""

    backend: str = field(default_factory=lambda: os.getenv(
        "TASADOR_STORE_BACKEND", "sqlite"
    ).lower())
    path: str = field(default_factory=lambda: os.getenv(
        "TASADOR_DB_PATH",
        str(_get_project_root() / "tasador.db")
    ))

    def __post_init__(self):
        if self.backend not in ("sqlite", "memory"):
            self.backend = "sqlite"
        # Resolve relative paths
        if not os.path.isabs(self.path):
            self.path = str(_get_project_root() / self.path)


@dataclass
class WorkspaceConfig:
    """Per-agent workspace configuration."""

    agent_id: str = field(default_factory=lambda: os.getenv(
        "TASADOR_AGENT_ID", "local-agent"
    ))
    max_saved_valuations: int = field(default_factory=lambda: int(os.getenv(
        "TASADOR_MAX_SAVED_VALUATIONS", "30"
    )))

    def __post_init__(self):
        self.agent_id = self.agent_id.strip() or "local-agent"
        if self.max_saved_valuations < 1:
            self.max_saved_valuations = 30


@dataclass
class ImporterConfig:
    """Tabular import configuration."""

    timeout: float = field(default_factory=lambda: float(os.getenv(
        "TASADOR_IMPORT_TIMEOUT", "15"
    )))


@dataclass
class APIConfig:
    """API server configuration."""

    host: str = field(default_factory=lambda: os.getenv(
        "TASADOR_API_HOST", "127.0.0.1"
    ))
    port: int = field(default_factory=lambda: int(os.getenv(
        "TASADOR_API_PORT", "5000"
    )))
    debug: bool = field(default_factory=lambda: os.getenv(
        "TASADOR_DEBUG", "false"
    ).lower() in ("true", "1", "yes"))


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = field(default_factory=lambda: os.getenv(
        "TASADOR_LOG_LEVEL", "INFO"
    ).upper())
    log_file: Optional[str] = field(default_factory=lambda: os.getenv(
        "TASADOR_LOG_FILE"
    ))

    def __post_init__(self):
        # Validate log level
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if self.level not in valid_levels:
            self.level = "INFO"


@dataclass
class Config:
    """Main configuration container."""

    store: StoreConfig = field(default_factory=StoreConfig)
    workspace: WorkspaceConfig = field(default_factory=WorkspaceConfig)
    importer: ImporterConfig = field(default_factory=ImporterConfig)
    api: APIConfig = field(default_factory=APIConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


# Singleton instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get the global configuration instance.

    Returns:
        Config: The application configuration.
    """
    global _config
    if _config is None:
        _config = Config()
    return _config


def reset_config() -> None:
    """Reset the configuration (useful for testing)."""
    global _config
    _config = None
