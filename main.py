#!/usr/bin/env python3
"""CASES Event Harvester - CLI entry point.

Examples:
    # Get help
    python -m main --help
    python -m main run --help

    # Basic workflow
    python -m main config init                  # Write config.json
    python -m main locate List_of_events.txt    # Preview windows and files
    python -m main run List_of_events.txt       # Decode, archive, upload
    python -m main upload status                # Parts and archives so far
    python -m main upload retry                 # Re-upload failed archives
"""

from cli.main import cli

if __name__ == '__main__':
    cli()
