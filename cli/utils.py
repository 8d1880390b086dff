"""Shared utilities for CLI commands."""

import logging
import sys
from pathlib import Path
from typing import Optional

import click

from config import Config, ConfigError, load_config
from models import DatabaseManager, LedgerService
from zenodo_upload.client import ZenodoClient
from zenodo_upload.manager import format_size


def load_app_config(config_path: str) -> Config:
    """Load application configuration.

    Args:
        config_path: Path to configuration file

    Returns:
        Validated Config

    Raises:
        ConfigError: If configuration cannot be loaded
    """
    return load_config(config_path)


def require_token(token: Optional[str]) -> str:
    if not token:
        raise ConfigError("Zenodo token is required (use --token or set ZENODO_TOKEN)")
    return token


def setup_logging(config: Config, verbose: bool = False, log_file: Optional[Path] = None) -> Optional[Path]:
    """Set up the run log plus a console handler.

    The console only shows warnings unless verbose is set; the run log gets
    everything at the configured level.

    Args:
        config: Application configuration
        verbose: Whether to show info logging on the console
        log_file: Run log path; no file handler when None

    Returns:
        The run log path, if any
    """
    root_logger = logging.getLogger()
    root_logger.handlers = []

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(getattr(logging, config.logging.level.upper(), logging.INFO))
        file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        file_handler.setFormatter(file_formatter)
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO if verbose else logging.WARNING)
    console_formatter = logging.Formatter('LOG: %(levelname)s - %(message)s')
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    root_logger.setLevel(logging.DEBUG)

    # Quiet HTTP libraries
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    return log_file


def get_ledger(config: Config, run_id: Optional[str] = None) -> LedgerService:
    """Open the SQLite ledger, creating tables as needed."""
    db_path = Path(config.paths.database_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    db_manager = DatabaseManager(f"sqlite:///{db_path}")
    db_manager.create_tables()
    return LedgerService(db_manager, run_id)


def get_zenodo_client(config: Config, token: str) -> ZenodoClient:
    return ZenodoClient(config.zenodo.base_url, token, timeout=config.zenodo.timeout_seconds)


def handle_error(error: Exception, verbose: bool = False):
    """Handle and display errors consistently.

    Args:
        error: Exception to handle
        verbose: Whether to show full traceback
    """
    click.echo(f"Error: {error}", err=True)
    if verbose:
        import traceback
        click.echo(traceback.format_exc(), err=True)
    sys.exit(1)


def format_time(seconds: float) -> str:
    """Format seconds as human-readable duration.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "2h 30m 45s")
    """
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        secs = int(seconds % 60)
        return f"{minutes}m {secs}s"
    else:
        hours = int(seconds // 3600)
        minutes = int((seconds % 3600) // 60)
        secs = int(seconds % 60)
        return f"{hours}h {minutes}m {secs}s"
