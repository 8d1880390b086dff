"""Discovery preview command."""

import click
from tabulate import tabulate

from config import FileTypeFilter
from cli.utils import load_app_config, setup_logging, handle_error, format_size
from processing.events import read_event_list
from processing.file_locator import BinFileLocator
from processing.window_resolver import resolve_event_window


def register_commands(cli):
    """Register locate command with main CLI."""

    @cli.command('locate')
    @click.argument('events_file', type=click.Path())
    @click.option('--file-type', '-t', type=click.Choice([f.value for f in FileTypeFilter]),
                  help='Raw file class to look for (default from config)')
    @click.option('--receiver', '-r', multiple=True, help='Limit to receiver(s)')
    @click.pass_context
    def locate(ctx, events_file, file_type, receiver):
        """Show each event's window and the raw files it would decode.

        Nothing is decoded or uploaded.

        Examples:
            python -m main locate List_of_events.txt
            python -m main locate List_of_events.txt -t both -r grid108
        """
        config_path = ctx.obj['config_path']
        verbose = ctx.obj['verbose']

        try:
            config = load_app_config(config_path)
            setup_logging(config, verbose)

            type_filter = FileTypeFilter.parse(file_type) if file_type else config.harvest.file_type
            receivers = list(receiver) or list(config.receivers)
            events = read_event_list(events_file)

            locator = BinFileLocator(config.paths.storage_roots, config.harvest.type_prefixes)

            total_files = 0
            for event in events:
                window = resolve_event_window(event, config.harvest.buffer_hours)
                click.echo(f"\nEvent {event.sequence}: {event.describe()}")
                click.echo(f"  Window: {window.describe()}")

                rows = []
                for rx in receivers:
                    for cell in window.cells():
                        for record in locator.locate_records(cell.year, cell.doy, rx, type_filter):
                            if record.hour in cell:
                                rows.append([rx, record.filename, record.file_type.value,
                                             format_size(record.size), str(record.path.parent)])

                if rows:
                    click.echo(tabulate(rows, headers=['Receiver', 'File', 'Type', 'Size', 'Location'],
                                        tablefmt='grid'))
                else:
                    click.echo("  No files found")
                total_files += len(rows)

            click.echo(f"\n{len(events)} events, {total_files} files in window")

        except Exception as e:
            handle_error(e, verbose)
