"""Application configuration.

Settings are read from a JSON file (``appsettings.json`` in the working
directory by default, or the path in ``PCI_CONFIG``). The file layout is
validated with pydantic and then frozen into a plain ``Settings`` value that
the pipeline receives explicitly.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field, field_validator

from parts_counter_ingest.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = Path("appsettings.json")
CONFIG_ENV_VAR = "PCI_CONFIG"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# On-disk layout


class ConnectionStringsSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    default_connection: str = Field(..., alias="DefaultConnection", min_length=1)


class FileSettingsSection(BaseModel):
    """Folder paths and file matching rules."""

    model_config = ConfigDict(populate_by_name=True)

    logs_source_path: str = Field(..., alias="LogsSourcePath", min_length=1)
    error_logs_path: str = Field(..., alias="ErrorLogsPath", min_length=1)
    archive_logs_path: str = Field(..., alias="ArchiveLogsPath", min_length=1)
    file_pattern: str = Field(default="*.xlsx", alias="FilePattern", min_length=1)
    numeric_month_folders: bool = Field(default=False, alias="NumericMonthFolders")


class LoggingSection(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    log_level: str = Field(default="INFO", alias="LogLevel")

    @field_validator("log_level")
    @classmethod
    def check_level_name(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {value!r}. Available: {list(LOG_LEVELS)}")
        return level


class SettingsFile(BaseModel):
    """Schema of the settings file."""

    model_config = ConfigDict(populate_by_name=True)

    connection_strings: ConnectionStringsSection = Field(..., alias="ConnectionStrings")
    file_settings: FileSettingsSection = Field(..., alias="FileSettings")
    logging_section: LoggingSection = Field(
        default_factory=LoggingSection, alias="Logging"
    )


# Runtime value


@dataclass(frozen=True)
class Settings:
    """Immutable service configuration."""

    connection_string: str
    source_dir: Path
    error_dir: Path
    archive_dir: Path
    file_pattern: str = "*.xlsx"
    numeric_month_folders: bool = False
    log_level: str = "INFO"

    def check_directories(self) -> None:
        """Fail fast if any of the three working folders is missing."""
        for label, path in (
            ("Source", self.source_dir),
            ("Error", self.error_dir),
            ("Archive", self.archive_dir),
        ):
            if not path.is_dir():
                raise ConfigurationError(f"{label} directory not found: {path}")

    @classmethod
    def from_file_model(cls, model: SettingsFile) -> Settings:
        files = model.file_settings
        return cls(
            connection_string=model.connection_strings.default_connection,
            source_dir=Path(files.logs_source_path),
            error_dir=Path(files.error_logs_path),
            archive_dir=Path(files.archive_logs_path),
            file_pattern=files.file_pattern,
            numeric_month_folders=files.numeric_month_folders,
            log_level=model.logging_section.log_level,
        )


def resolve_config_path(path: Optional[Path] = None) -> Path:
    """Explicit path first, then ``PCI_CONFIG``, then ./appsettings.json."""
    if path is not None:
        return Path(path)
    env_value = os.environ.get(CONFIG_ENV_VAR)
    if env_value:
        return Path(env_value)
    return DEFAULT_CONFIG_FILE


def load_settings(path: Optional[Path] = None) -> Settings:
    """Load and validate the settings file.

    Raises:
        ConfigurationError: if the file is missing, is not valid JSON,
            or does not match the expected layout.
    """
    config_path = resolve_config_path(path)
    if not config_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    try:
        with config_path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        raise ConfigurationError(
            f"Error loading configuration {config_path}: {e}"
        ) from e

    try:
        model = SettingsFile.model_validate(raw)
    except pydantic.ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {config_path}: {e}"
        ) from e

    settings = Settings.from_file_model(model)
    logger.debug("Loaded configuration from %s", config_path)
    return settings
