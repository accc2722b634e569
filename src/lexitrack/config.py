"""Configuration settings for lexitrack."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
PROGRESS_FILE = Path(os.getenv("PROGRESS_FILE", str(DATA_DIR / "progress.json")))

# Supported progress store backends
STORE_BACKENDS = ("json", "sql", "memory")


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
        PROGRESS_FILE.parent,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR


@dataclass
class StorageSettings:
    """Progress store configuration settings."""
    backend: str = os.getenv("PROGRESS_BACKEND", "json").lower()
    progress_file: Path = PROGRESS_FILE
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///lexitrack.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class StudySettings:
    """Study queue settings."""
    queue_capacity: int = int(os.getenv("STUDY_QUEUE_CAPACITY", "20"))
    weak_words_limit: int = int(os.getenv("WEAK_WORDS_LIMIT", "10"))


@dataclass
class MonitoringSettings:
    """Prometheus exporter settings."""
    metrics_port: int = int(os.getenv("METRICS_PORT", "0"))  # 0 disables the exporter


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_storage_settings() -> StorageSettings:
    """Get storage settings."""
    return StorageSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_study_settings() -> StudySettings:
    """Get study settings."""
    return StudySettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    storage: StorageSettings = field(default_factory=get_storage_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    study: StudySettings = field(default_factory=get_study_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.storage.backend not in STORE_BACKENDS:
            raise ValueError(
                f"PROGRESS_BACKEND must be one of {', '.join(STORE_BACKENDS)}"
            )

        if self.study.queue_capacity < 0:
            raise ValueError("STUDY_QUEUE_CAPACITY cannot be negative")

        if self.study.weak_words_limit < 0:
            raise ValueError("WEAK_WORDS_LIMIT cannot be negative")

        if self.monitoring.metrics_port < 0:
            raise ValueError("METRICS_PORT cannot be negative")


# Create global settings instance
settings = Settings()
settings.validate()
