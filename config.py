"""Configuration management for the CASES event harvester."""

import json
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, ValidationError, validator


class ConfigError(Exception):
    """Invalid or missing configuration. Fatal before any side effect."""


class FileType(str, Enum):
    """Raw file class."""
    PRIMARY = 'primary'
    EXTENDED = 'extended'


class FileTypeFilter(str, Enum):
    """Which raw file classes to harvest."""
    PRIMARY = 'primary'
    EXTENDED = 'extended'
    BOTH = 'both'

    @classmethod
    def parse(cls, value: str) -> 'FileTypeFilter':
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ', '.join(f.value for f in cls)
            raise ConfigError(f"Invalid file type filter {value!r} (expected one of: {choices})") from None


class SizeFailurePolicy(str, Enum):
    """What to assume about a deposition's size when Zenodo can't be asked."""
    ASSUME_EMPTY = 'assume_empty'
    ASSUME_FULL = 'assume_full'


def _expand(value: str) -> str:
    return os.path.expanduser(os.path.expandvars(value))


class FrozenModel(BaseModel):
    class Config:
        frozen = True


class PathConfig(FrozenModel):
    """File and directory paths configuration."""
    storage_roots: List[str]
    staging_dir: str = "./staging"
    archive_dir: str = "./archives"
    database_path: str = "./harvest_ledger.db"

    @validator('*', pre=True)
    def expand_paths(cls, v):
        """Expand environment variables and user home directory."""
        if isinstance(v, str):
            return _expand(v)
        if isinstance(v, (list, tuple)):
            return [_expand(item) if isinstance(item, str) else item for item in v]
        return v

    @validator('storage_roots')
    def require_roots(cls, v):
        if not v:
            raise ValueError("at least one storage root is required")
        return v


class HarvestConfig(FrozenModel):
    """Event window and raw file selection."""
    buffer_hours: int = 1
    file_type: FileTypeFilter = FileTypeFilter.PRIMARY
    type_prefixes: Dict[FileType, str] = {
        FileType.PRIMARY: 'dataout',
        FileType.EXTENDED: 'dataoutiq',
    }

    @validator('buffer_hours')
    def non_negative_buffer(cls, v):
        if v < 0:
            raise ValueError("buffer_hours must be >= 0")
        return v


class DecoderConfig(FrozenModel):
    """binflate location. An explicit executable wins over the firmware layout."""
    executable: Optional[str] = None
    firmware_root: str = "/data1/public/Data/cases"
    firmware_version: str = "gss1400"
    timeout_seconds: Optional[float] = None

    def resolve_executable(self, firmware_version: Optional[str] = None) -> Path:
        if self.executable:
            return Path(_expand(self.executable))
        version = firmware_version or self.firmware_version
        return Path(_expand(self.firmware_root)) / version / "binflate"


class ArchiveConfig(FrozenModel):
    """Archive staging configuration."""
    max_staged_bytes: int = 2 * 1024 ** 3  # 2GB
    compression_level: int = 6
    keep_archives: bool = True
    name_prefix: str = "cases_events"

    @validator('max_staged_bytes')
    def positive_ceiling(cls, v):
        if v <= 0:
            raise ValueError("max_staged_bytes must be positive")
        return v

    @validator('compression_level')
    def valid_compression(cls, v):
        if not 0 <= v <= 9:
            raise ValueError("compression_level must be between 0 and 9")
        return v


class MetadataConfig(FrozenModel):
    """Deposition metadata written when a part is created."""
    title: str = "CASES Scintillation Event Data"
    description: str = (
        "Processed CASES scintillation event data with IQ, ionospheric, scintillation, "
        "navigation, channel, and transmitter information."
    )
    upload_type: str = "dataset"
    creators: List[Dict[str, str]] = [{"name": "CASES Team", "affiliation": "Research Institution"}]
    keywords: List[str] = ["CASES", "scintillation", "GPS", "ionosphere"]


class ZenodoConfig(FrozenModel):
    """Zenodo deposition configuration."""
    base_url: str = "https://zenodo.org"
    max_part_bytes: int = 50 * 1024 ** 3  # 50GB per deposition
    size_failure_policy: SizeFailurePolicy = SizeFailurePolicy.ASSUME_EMPTY
    timeout_seconds: Optional[float] = None
    metadata: MetadataConfig = MetadataConfig()

    @validator('base_url')
    def strip_trailing_slash(cls, v):
        return v.rstrip('/')

    @validator('max_part_bytes')
    def positive_part_ceiling(cls, v):
        if v <= 0:
            raise ValueError("max_part_bytes must be positive")
        return v


class LoggingConfig(FrozenModel):
    """Logging configuration."""
    level: str = "INFO"
    directory: str = "."
    file_pattern: str = "processing_%Y%m%d_%H%M%S.log"

    def run_log_path(self, started: Optional[datetime] = None) -> Path:
        started = started or datetime.now()
        return Path(_expand(self.directory)) / started.strftime(self.file_pattern)


DEFAULT_RECEIVERS = ["grid108", "grid154", "grid160", "grid161", "grid162", "grid163"]


class Config(FrozenModel):
    """Main configuration model."""
    paths: PathConfig
    receivers: List[str] = DEFAULT_RECEIVERS
    harvest: HarvestConfig = HarvestConfig()
    decoder: DecoderConfig = DecoderConfig()
    archive: ArchiveConfig = ArchiveConfig()
    zenodo: ZenodoConfig = ZenodoConfig()
    logging: LoggingConfig = LoggingConfig()

    @validator('receivers')
    def require_receivers(cls, v):
        if not v:
            raise ValueError("at least one receiver is required")
        return v


def create_directories_if_needed(config: Config) -> None:
    """Create the local working directories for a run."""
    paths_to_check = [
        config.paths.staging_dir,
        config.paths.archive_dir,
        str(Path(config.paths.database_path).parent),
        _expand(config.logging.directory),
    ]

    for path_str in paths_to_check:
        Path(path_str).mkdir(parents=True, exist_ok=True)


def load_config(config_path: str = "config.json") -> Config:
    """Load configuration from a JSON file.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise ConfigError(f"Configuration file not found: {config_path}")

    try:
        with open(config_file, 'r') as f:
            config_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read configuration file {config_path}: {e}") from e

    # Drop "_comment" style keys
    config_data = {k: v for k, v in config_data.items() if not k.startswith('_')}

    try:
        return Config(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {config_path}:\n{e}") from e


def create_default_config(config_path: str = "config.json") -> None:
    """Create a default configuration file."""
    default_config = {
        "_comment": "The Zenodo token is not stored here; pass --token or set ZENODO_TOKEN",
        "paths": {
            "storage_roots": [
                "/data1/public/Data/cases/pfrr"
            ],
            "staging_dir": "./staging",
            "archive_dir": "./archives",
            "database_path": "./harvest_ledger.db"
        },
        "receivers": DEFAULT_RECEIVERS,
        "harvest": {
            "buffer_hours": 1,
            "file_type": "primary",
            "type_prefixes": {
                "primary": "dataout",
                "extended": "dataoutiq"
            }
        },
        "decoder": {
            "executable": None,
            "firmware_root": "/data1/public/Data/cases",
            "firmware_version": "gss1400",
            "timeout_seconds": None
        },
        "archive": {
            "max_staged_bytes": 2147483648,
            "compression_level": 6,
            "keep_archives": True,
            "name_prefix": "cases_events"
        },
        "zenodo": {
            "base_url": "https://zenodo.org",
            "max_part_bytes": 53687091200,
            "size_failure_policy": "assume_empty",
            "timeout_seconds": None,
            "metadata": MetadataConfig().dict()
        },
        "logging": {
            "level": "INFO",
            "directory": ".",
            "file_pattern": "processing_%Y%m%d_%H%M%S.log"
        }
    }

    with open(config_path, 'w') as f:
        json.dump(default_config, f, indent=2)
