"""
Configuration Management Framework
Resolves a transfer job from .env files, an optional JSON/YAML file, environment variables and CLI overrides
"""
import os
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple
from enum import Enum
from pathlib import Path
import json
import yaml
from dotenv import load_dotenv

from ..core.database import StoreSettings
from ..core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_OUTPUT_DIR = "./backup"

class TransferMode(Enum):
    """Where the documents go"""
    LIVE = "live"
    EXPORT_JSON = "export_json"
    IMPORT_JSON = "import_json"

@dataclass(frozen=True)
class TransferJob:
    """A fully resolved, immutable transfer job"""
    source: StoreSettings
    target: Optional[StoreSettings] = None
    collections: Tuple[str, ...] = ()
    batch_size: int = DEFAULT_BATCH_SIZE
    mode: TransferMode = TransferMode.LIVE
    dry_run: bool = False
    output_dir: str = DEFAULT_OUTPUT_DIR

    def __post_init__(self):
        if isinstance(self.batch_size, bool) or not isinstance(self.batch_size, int) or self.batch_size <= 0:
            raise ConfigurationError(f"Batch size must be a positive integer, got {self.batch_size!r}")
        if self.needs_target and self.target is None:
            raise ConfigurationError(f"A target store is required in {self.mode.value} mode")
        # Accept any iterable of names but keep the job hashable
        object.__setattr__(self, "collections", tuple(self.collections))

    @property
    def needs_target(self) -> bool:
        return self.mode is not TransferMode.EXPORT_JSON

    @staticmethod
    def resolve_mode(export_json: bool = False, import_json: bool = False) -> TransferMode:
        if export_json and import_json:
            raise ConfigurationError("Cannot use export and import JSON modes together")
        if export_json:
            return TransferMode.EXPORT_JSON
        if import_json:
            return TransferMode.IMPORT_JSON
        return TransferMode.LIVE

    @classmethod
    def from_flags(cls, source: StoreSettings, target: Optional[StoreSettings] = None,
                   collections: Iterable[str] = (), batch_size: int = DEFAULT_BATCH_SIZE,
                   dry_run: bool = False, export_json: bool = False, import_json: bool = False,
                   output_dir: str = DEFAULT_OUTPUT_DIR) -> "TransferJob":
        """Build a job from the mutually exclusive export/import flags"""
        return cls(
            source=source,
            target=target,
            collections=tuple(collections),
            batch_size=batch_size,
            mode=cls.resolve_mode(export_json, import_json),
            dry_run=dry_run,
            output_dir=output_dir
        )

@dataclass
class LoggingSettings:
    """Log routing settings"""
    level: str = "INFO"
    to_file: bool = False
    path: str = "mongocopy.log"

@dataclass
class TransferSettings:
    """Everything read from files and the environment, before validation"""
    source_uri: str = ""
    target_uri: str = ""
    source_db_name: Optional[str] = None
    target_db_name: Optional[str] = None
    batch_size: int = DEFAULT_BATCH_SIZE
    output_dir: str = DEFAULT_OUTPUT_DIR
    logging: LoggingSettings = field(default_factory=LoggingSettings)

class ConfigManager:
    """
    Configuration manager with support for:
    - .env files (python-dotenv)
    - Configuration files (JSON/YAML)
    - Environment variables, prefixed first then plain names
    - Validation that reports every problem at once
    """

    def __init__(self, config_prefix: str = "MONGOCOPY", load_env_files: bool = True):
        self.config_prefix = config_prefix
        self.settings: Optional[TransferSettings] = None
        if load_env_files:
            self._load_environment_variables()

    def _load_environment_variables(self):
        """Load environment variables from the first .env file found"""
        env_files = ['.env_local', '.env', 'config.env']
        for env_file in env_files:
            if Path(env_file).exists():
                load_dotenv(env_file)
                logger.info(f"Loaded environment variables from {env_file}")
                break

    def _getenv(self, *names: str, default: Optional[str] = None) -> Optional[str]:
        """First non-empty value of PREFIX_NAME, then NAME, for each name in turn"""
        for name in names:
            for key in (f"{self.config_prefix}_{name}", name):
                value = os.getenv(key)
                if value:
                    return value
        return default

    def load_settings(self, config_file: Optional[str] = None) -> TransferSettings:
        """Load settings from file and environment variables"""
        config_data: Dict[str, Any] = {}

        if config_file:
            config_data.update(self._load_config_file(config_file))

        # Environment wins over the file, key by key inside the logging section
        env_data = self._load_from_environment()
        env_logging = env_data.pop("logging", None)
        config_data.update(env_data)
        if env_logging:
            file_logging = config_data.get("logging") or {}
            if not isinstance(file_logging, dict):
                raise ConfigurationError(f"'logging' must be a mapping, got {file_logging!r}")
            config_data["logging"] = {**file_logging, **env_logging}

        self.settings = self._create_settings_object(config_data)
        return self.settings

    def _load_config_file(self, config_file: str) -> Dict[str, Any]:
        """Load configuration from JSON, YAML, or dotenv file"""
        file_path = Path(config_file)

        if not file_path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_file}")

        suffix = file_path.suffix.lower()
        if suffix == '.env' or file_path.name.startswith('.env') or file_path.name.endswith('.env'):
            load_dotenv(config_file, override=True)
            return {}

        if suffix not in ['.json', '.yml', '.yaml']:
            raise ConfigurationError(f"Unsupported configuration file format: {file_path.suffix}")

        try:
            with open(file_path, 'r') as f:
                if suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Invalid configuration file {config_file}: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file {config_file}: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {config_file} must contain a mapping")

        logger.info(f"Loaded configuration file {config_file}")
        return data

    def _load_from_environment(self) -> Dict[str, Any]:
        """Only variables that are actually set, so file values survive"""
        config: Dict[str, Any] = {}

        candidates = {
            "source_uri": ("SOURCE_DB_URI", "SOURCE_URI"),
            "target_uri": ("TARGET_DB_URI", "DEST_URI"),
            "source_db_name": ("SOURCE_DB_NAME", "DB_NAME"),
            "target_db_name": ("TARGET_DB_NAME", "DB_NAME"),
            "batch_size": ("BATCH_SIZE",),
            "output_dir": ("OUTPUT_DIR",),
        }
        for key, names in candidates.items():
            value = self._getenv(*names)
            if value is not None:
                config[key] = value

        log_config = {}
        level = self._getenv("LOG_LEVEL")
        if level:
            log_config["level"] = level
        to_file = self._getenv("LOG_TO_FILE")
        if to_file:
            log_config["to_file"] = to_file.lower() == "true"
        path = self._getenv("LOG_PATH")
        if path:
            log_config["path"] = path
        if log_config:
            config["logging"] = log_config

        return config

    def _create_settings_object(self, config_data: Dict[str, Any]) -> TransferSettings:
        """Create TransferSettings object from dictionary"""
        batch_size = config_data.get("batch_size", DEFAULT_BATCH_SIZE)
        try:
            batch_size = int(batch_size)
        except (TypeError, ValueError):
            raise ConfigurationError(f"Batch size must be an integer, got {batch_size!r}")

        log_data = config_data.get("logging") or {}
        if not isinstance(log_data, dict):
            raise ConfigurationError(f"'logging' must be a mapping, got {log_data!r}")
        try:
            log_settings = LoggingSettings(**log_data)
        except TypeError as e:
            known = ", ".join(LoggingSettings.__dataclass_fields__)
            raise ConfigurationError(f"Unknown logging setting ({e}); expected one of: {known}") from e

        return TransferSettings(
            source_uri=config_data.get("source_uri", ""),
            target_uri=config_data.get("target_uri", ""),
            source_db_name=config_data.get("source_db_name"),
            target_db_name=config_data.get("target_db_name"),
            batch_size=batch_size,
            output_dir=config_data.get("output_dir", DEFAULT_OUTPUT_DIR),
            logging=log_settings
        )

    def get_settings(self) -> TransferSettings:
        """Get current settings"""
        if self.settings is None:
            raise RuntimeError("Settings not loaded. Call load_settings() first.")
        return self.settings

    def build_job(self, collections: Iterable[str] = (), batch_size: Optional[int] = None,
                  dry_run: bool = False, export_json: bool = False, import_json: bool = False,
                  output_dir: Optional[str] = None) -> TransferJob:
        """Merge CLI overrides into the loaded settings and validate"""
        settings = self.settings or self.load_settings()
        errors: List[str] = []

        if export_json and import_json:
            errors.append("Cannot use export and import JSON modes together")

        if not settings.source_uri:
            errors.append("Source connection string is required (SOURCE_DB_URI)")

        if not export_json and not settings.target_uri:
            errors.append("Target connection string is required (TARGET_DB_URI)")

        effective_batch_size = batch_size if batch_size is not None else settings.batch_size
        if effective_batch_size <= 0:
            errors.append(f"Batch size must be > 0, got {effective_batch_size}")

        if errors:
            raise ConfigurationError(f"Configuration validation failed: {'; '.join(errors)}")

        source = StoreSettings(connection_string=settings.source_uri, database_name=settings.source_db_name)
        target = None
        if settings.target_uri:
            target = StoreSettings(connection_string=settings.target_uri, database_name=settings.target_db_name)

        return TransferJob.from_flags(
            source=source,
            target=target,
            collections=collections,
            batch_size=effective_batch_size,
            dry_run=dry_run,
            export_json=export_json,
            import_json=import_json,
            output_dir=output_dir or settings.output_dir
        )
