"""Configuration management commands."""

from pathlib import Path

import click

from config import create_default_config
from cli.utils import load_app_config, handle_error, format_size


def register_commands(cli):
    """Register config commands with main CLI."""

    @cli.group('config')
    @click.pass_context
    def config_group(ctx):
        """Configuration management commands."""
        pass

    @config_group.command('init')
    @click.pass_context
    def init_config(ctx):
        """Create a default configuration file.

        Creates config.json with default settings for:
        - Storage roots and local staging/archive directories
        - Receivers and event window buffer
        - binflate location
        - Archive and Zenodo size ceilings

        Examples:
            python -m main config init
            python -m main --config my_config.json config init
        """
        config_path = ctx.obj['config_path']

        if Path(config_path).exists():
            click.echo(f"Configuration file already exists: {config_path}")
            if not click.confirm("Overwrite existing configuration?"):
                return

        create_default_config(config_path)
        click.echo(f"✓ Created configuration file: {config_path}")
        click.echo("\nNext steps:")
        click.echo("  1. Set paths.storage_roots to every volume holding receiver data")
        click.echo("  2. Point decoder.executable (or firmware_root) at binflate")
        click.echo("  3. Check the configuration with: python -m main config show")

    @config_group.command('show')
    @click.pass_context
    def show_config(ctx):
        """Display current configuration settings."""
        config_path = ctx.obj['config_path']
        verbose = ctx.obj['verbose']

        try:
            config = load_app_config(config_path)

            click.echo(f"Configuration file: {config_path}")
            click.echo("\nStorage roots:")
            for root in config.paths.storage_roots:
                status = "✓" if Path(root).is_dir() else "✗ missing"
                click.echo(f"  {root}  {status}")

            click.echo("\nDirectories:")
            click.echo(f"  Staging:  {config.paths.staging_dir}")
            click.echo(f"  Archives: {config.paths.archive_dir}")
            click.echo(f"  Ledger:   {config.paths.database_path}")

            click.echo(f"\nReceivers: {' '.join(config.receivers)}")

            click.echo("\nHarvest:")
            click.echo(f"  Buffer:    {config.harvest.buffer_hours} hour(s)")
            click.echo(f"  File type: {config.harvest.file_type.value}")

            click.echo("\nDecoder:")
            click.echo(f"  binflate: {config.decoder.resolve_executable()}")

            click.echo("\nArchives:")
            click.echo(f"  Flush above: {format_size(config.archive.max_staged_bytes)}")
            click.echo(f"  Keep local:  {config.archive.keep_archives}")

            click.echo("\nZenodo:")
            click.echo(f"  URL:        {config.zenodo.base_url}")
            click.echo(f"  Part limit: {format_size(config.zenodo.max_part_bytes)}")
            click.echo(f"  On size query failure: {config.zenodo.size_failure_policy.value}")
            click.echo(f"  Title:      {config.zenodo.metadata.title}")

            click.echo("\nLogging:")
            click.echo(f"  Directory: {config.logging.directory}")
            click.echo(f"  Level:     {config.logging.level}")

        except Exception as e:
            handle_error(e, verbose)
