"""Full harvest run: decode events and upload to Zenodo."""

import logging
from datetime import datetime

import click

from archive_stager import ArchiveStager
from config import FileTypeFilter, create_directories_if_needed
from cli.utils import (
    load_app_config,
    require_token,
    setup_logging,
    get_ledger,
    get_zenodo_client,
    handle_error,
    format_time,
)
from event_pipeline import EventPipeline
from processing.decoder import BinflateDecoder
from processing.events import read_event_list
from processing.file_locator import BinFileLocator
from zenodo_upload.manager import DepositionManager

logger = logging.getLogger(__name__)


def register_commands(cli):
    """Register run command with main CLI."""

    @cli.command('run')
    @click.argument('events_file', type=click.Path())
    @click.option('--token', envvar='ZENODO_TOKEN', help='Zenodo access token (or set ZENODO_TOKEN)')
    @click.option('--title', help='Deposition title (overrides config)')
    @click.option('--description', help='Deposition description (overrides config)')
    @click.option('--file-type', '-t', type=click.Choice([f.value for f in FileTypeFilter]),
                  help='Raw file class to harvest (default from config)')
    @click.option('--firmware', help='Firmware version used to find binflate (overrides config)')
    @click.pass_context
    def run(ctx, events_file, token, title, description, file_type, firmware):
        """Harvest, decode, archive and upload every event in EVENTS_FILE.

        EVENTS_FILE has one event per line:

            year doy signal prn start_hour start_min end_hour end_min

        Examples:
            python -m main run List_of_events.txt --token $ZENODO_TOKEN
            python -m main run events.txt -t both --title "CASES 2021 events"
        """
        config_path = ctx.obj['config_path']
        verbose = ctx.obj['verbose']

        try:
            # Everything that can be wrong with the inputs is checked before
            # any directory, log file or deposition is created.
            config = load_app_config(config_path)
            token = require_token(token)
            type_filter = FileTypeFilter.parse(file_type) if file_type else config.harvest.file_type
            events = read_event_list(events_file)
            decoder = BinflateDecoder(
                str(config.decoder.resolve_executable(firmware)),
                timeout=config.decoder.timeout_seconds,
            )
            decoder.check_available()
        except Exception as e:
            handle_error(e, verbose)
            return

        try:
            started = datetime.now()
            create_directories_if_needed(config)
            log_file = setup_logging(config, verbose, config.logging.run_log_path(started))

            click.echo("CASES Data Processing and Zenodo Upload")
            click.echo("=" * 38)
            click.echo(f"Events file: {events_file}")
            click.echo(f"Total events to process: {len(events)}")
            click.echo(f"Receivers: {' '.join(config.receivers)}")
            click.echo(f"Log file: {log_file}")
            logger.info(f"Events file: {events_file} ({len(events)} events)")
            logger.info(f"Decoder: {decoder.executable}")

            metadata = config.zenodo.metadata
            overrides = {k: v for k, v in (('title', title), ('description', description)) if v}
            if overrides:
                metadata = metadata.copy(update=overrides)

            ledger = get_ledger(config, started.strftime('%Y%m%d_%H%M%S'))
            with get_zenodo_client(config, token) as client:
                manager = DepositionManager(
                    client,
                    metadata,
                    config.zenodo.max_part_bytes,
                    config.zenodo.size_failure_policy,
                    ledger=ledger,
                    show_progress=True,
                )

                part = manager.start()
                click.echo(f"Zenodo deposition ID: {part.deposition_id}")

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
                if stager.pending:
                    click.echo(f"Archives from earlier runs to retry first: {len(stager.pending)}")
                leftover = stager.staged_files()
                if leftover:
                    logger.warning(
                        f"Staging area {stager.staging_dir} already holds {len(leftover)} unarchived files "
                        f"from an earlier run; they will be included in the next archive"
                    )

                locator = BinFileLocator(config.paths.storage_roots, config.harvest.type_prefixes)
                pipeline = EventPipeline(config, locator, decoder, stager, type_filter=type_filter)

                summary = pipeline.run(events, show_progress=True)

            elapsed = (datetime.now() - started).total_seconds()
            click.echo("")
            click.echo("=" * 50)
            click.echo("Processing completed!")
            click.echo(f"Processed {summary.events_processed} events in {format_time(elapsed)}")
            click.echo(f"Raw files decoded: {summary.files_decoded} of {summary.files_located} located")
            click.echo(f"Decoded logs staged: {summary.logs_staged}")
            click.echo(f"Archives built: {summary.archives_built}")
            click.echo(f"Archives uploaded to Zenodo: {summary.archives_uploaded}")
            if summary.archives_pending:
                click.echo(f"Archives pending upload: {summary.archives_pending} "
                           f"(kept in {config.paths.archive_dir}; run 'upload retry')")
            for p in manager.parts:
                click.echo(f"Zenodo deposition ID (part {p.part_number}): {p.deposition_id}")
            click.echo(f"Check log file: {log_file}")
            click.echo("")
            click.echo("To publish the deposition(s), visit:")
            for p in manager.parts:
                click.echo(f"  {p.html_url or client.deposit_page_url(p.deposition_id)}")
            click.echo("Or use: python -m main upload publish <DEPOSITION_ID>")
            click.echo("=" * 50)

            logger.info(
                f"Run complete: {summary.events_processed} events, {summary.archives_uploaded}/"
                f"{summary.archives_built} archives uploaded, {len(manager.parts)} part(s)"
            )

        except Exception as e:
            logger.error(f"Run aborted: {e}")
            handle_error(e, verbose)
