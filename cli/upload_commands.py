"""Upload maintenance commands: retry, status, publish."""

import logging
from pathlib import Path

import click
from tabulate import tabulate

from archive_stager import ArchiveStager
from cli.utils import (
    load_app_config,
    require_token,
    setup_logging,
    get_ledger,
    get_zenodo_client,
    handle_error,
    format_size,
)
from zenodo_upload.manager import DepositionManager, DepositionPart

logger = logging.getLogger(__name__)


def register_commands(cli):
    """Register upload commands with main CLI."""

    @cli.group('upload')
    @click.pass_context
    def upload_group(ctx):
        """Zenodo upload maintenance commands."""
        pass

    @upload_group.command('retry')
    @click.option('--token', envvar='ZENODO_TOKEN', help='Zenodo access token (or set ZENODO_TOKEN)')
    @click.option('--deposition-id', type=int, help='Upload into this deposition instead of the last recorded part')
    @click.pass_context
    def retry(ctx, token, deposition_id):
        """Upload archives whose earlier upload failed.

        Archives are taken from the ledger. By default they go to the last
        deposition part recorded; a new part is opened if it is full.

        Examples:
            python -m main upload retry
            python -m main upload retry --deposition-id 1234567
        """
        config_path = ctx.obj['config_path']
        verbose = ctx.obj['verbose']

        try:
            config = load_app_config(config_path)
            token = require_token(token)
            log_file = setup_logging(config, verbose, config.logging.run_log_path())

            ledger = get_ledger(config)
            if not any(Path(a.path).is_file() for a in ledger.pending_archives()):
                click.echo("✓ No pending archives")
                return

            with get_zenodo_client(config, token) as client:
                manager = DepositionManager(
                    client,
                    config.zenodo.metadata,
                    config.zenodo.max_part_bytes,
                    config.zenodo.size_failure_policy,
                    ledger=ledger,
                    show_progress=True,
                )

                if deposition_id is not None:
                    manager.resume(deposition_id)
                else:
                    latest = ledger.latest_part()
                    if latest is None:
                        click.echo("No deposition recorded in the ledger; pass --deposition-id")
                        return
                    prior = [
                        DepositionPart(int(p.deposition_id), p.bucket_url, p.part_number, p.html_url)
                        for p in ledger.parts_for_deposition_run(latest.run_id)
                        if p.part_number < latest.part_number
                    ]
                    manager.resume(int(latest.deposition_id), latest.part_number, prior)

                # Uploaded archives release their staged members
                stager = ArchiveStager(
                    config.paths.staging_dir,
                    config.paths.archive_dir,
                    config.archive.max_staged_bytes,
                    uploader=manager.upload,
                    compression_level=config.archive.compression_level,
                    keep_archives=config.archive.keep_archives,
                    name_prefix=config.archive.name_prefix,
                    ledger=ledger,
                )
                total = len(stager.pending)
                click.echo(f"Retrying {total} archive(s) into deposition {manager.current_part.deposition_id}")

                result = stager.retry_pending()

            for archive in result.uploaded:
                click.echo(f"  ✓ {archive.name}")
            for archive in result.failed:
                click.echo(f"  ✗ {archive.name}")

            click.echo(f"\nUploaded {len(result.uploaded)} of {total} archive(s)")
            click.echo(f"Check log file: {log_file}")

        except Exception as e:
            handle_error(e, verbose)

    @upload_group.command('status')
    @click.pass_context
    def status(ctx):
        """List recorded deposition parts and archives."""
        config_path = ctx.obj['config_path']
        verbose = ctx.obj['verbose']

        try:
            config = load_app_config(config_path)
            ledger = get_ledger(config)

            parts = ledger.list_parts()
            click.echo("\nDeposition parts:")
            if parts:
                rows = [[p.run_id, p.part_number, p.deposition_id, 'yes' if p.metadata_ok else 'no',
                         p.created_at.strftime('%Y-%m-%d %H:%M') if p.created_at else '']
                        for p in parts]
                click.echo(tabulate(rows, headers=['Run', 'Part', 'Deposition', 'Metadata', 'Created'],
                                    tablefmt='grid'))
            else:
                click.echo("  None recorded")

            archives = ledger.list_archives()
            click.echo("\nArchives:")
            if archives:
                rows = [[a.name, format_size(a.size_bytes or 0), a.member_count, a.status,
                         a.deposition_id or '', a.part_number or '', a.attempts]
                        for a in archives]
                click.echo(tabulate(rows, headers=['Archive', 'Size', 'Files', 'Status', 'Deposition',
                                                   'Part', 'Attempts'], tablefmt='grid'))
            else:
                click.echo("  None recorded")

        except Exception as e:
            handle_error(e, verbose)

    @upload_group.command('publish')
    @click.argument('deposition_id', type=int)
    @click.option('--token', envvar='ZENODO_TOKEN', help='Zenodo access token (or set ZENODO_TOKEN)')
    @click.pass_context
    def publish(ctx, deposition_id, token):
        """Publish a deposition. This cannot be undone on Zenodo."""
        config_path = ctx.obj['config_path']
        verbose = ctx.obj['verbose']

        try:
            config = load_app_config(config_path)
            token = require_token(token)
            setup_logging(config, verbose)

            if not click.confirm(f"Publish deposition {deposition_id}? Published records cannot be deleted"):
                click.echo("Cancelled.")
                return

            with get_zenodo_client(config, token) as client:
                deposition = client.publish(deposition_id)
            click.echo(f"✓ Published deposition {deposition.id}")
            if deposition.html_url:
                click.echo(f"  {deposition.html_url}")

        except Exception as e:
            handle_error(e, verbose)
