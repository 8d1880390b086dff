"""Main CLI entry point - Root command group with global options."""

import click

from version import __version__


@click.group()
@click.option('--config', '-c', default='config.json', help='Configuration file path')
@click.option('--verbose', '-v', is_flag=True, help='Show detailed logging on console')
@click.version_option(version=__version__, prog_name='CASES Event Harvester')
@click.pass_context
def cli(ctx, config, verbose):
    """CASES Event Harvester - decode receiver data per event and upload to Zenodo.

    For every event in an event list the harvester:
    - Finds raw bin files across all storage roots (largest copy wins)
    - Decodes the files inside the buffered event window with binflate
    - Stages the decoded logs per event and packs them into archives
    - Uploads archives to Zenodo, opening a new deposition part when full

    Examples:
        # Create a configuration file
        python -m main config init

        # Show which files each event would use
        python -m main locate List_of_events.txt

        # Full run
        python -m main run List_of_events.txt --token $ZENODO_TOKEN

        # Retry archives whose upload failed
        python -m main upload retry
    """
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose


def register_all_commands():
    """Register all command modules with the main CLI."""
    from cli import (
        config_commands,
        locate_commands,
        run_commands,
        upload_commands,
    )

    config_commands.register_commands(cli)
    locate_commands.register_commands(cli)
    run_commands.register_commands(cli)
    upload_commands.register_commands(cli)


# Register all commands when module is imported
register_all_commands()
