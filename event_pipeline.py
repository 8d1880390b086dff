"""Event harvest pipeline.

For each event: resolve the time window, locate deduplicated raw files per
receiver and day, decode the ones whose hour falls in the window into the
event's staging folder, then let the stager decide whether to flush.
Everything runs sequentially; the decoder is never run concurrently.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from tqdm import tqdm

from archive_stager import ArchiveStager, FlushResult
from config import Config, FileTypeFilter
from processing.decoder import BinflateDecoder
from processing.events import Event
from processing.file_locator import BinFileLocator, BinFileRecord
from processing.window_resolver import ResolvedWindow, resolve_event_window

logger = logging.getLogger(__name__)


@dataclass
class EventResult:
    """Outcome of harvesting one event."""
    event: Event
    window: ResolvedWindow
    files_located: int = 0
    files_decoded: int = 0
    logs_staged: int = 0
    receivers_with_data: List[str] = field(default_factory=list)


@dataclass
class RunSummary:
    """Tally printed at the end of a run."""
    events_total: int = 0
    events_processed: int = 0
    files_located: int = 0
    files_decoded: int = 0
    logs_staged: int = 0
    archives_built: int = 0
    archives_uploaded: int = 0
    archives_pending: int = 0
    staging_removed: bool = False
    event_results: List[EventResult] = field(default_factory=list)

    def add_flush(self, flush: FlushResult):
        self.archives_built += len(flush.built)
        self.archives_uploaded += len(flush.uploaded)


class EventPipeline:
    """Runs the harvest-window-package-upload sequence over an event list."""

    def __init__(self, config: Config, locator: BinFileLocator, decoder: BinflateDecoder,
                 stager: ArchiveStager, type_filter: Optional[FileTypeFilter] = None,
                 buffer_hours: Optional[int] = None):
        self.config = config
        self.locator = locator
        self.decoder = decoder
        self.stager = stager
        self.type_filter = type_filter or config.harvest.file_type
        self.buffer_hours = config.harvest.buffer_hours if buffer_hours is None else buffer_hours
        self.receivers = list(config.receivers)

    def select_files(self, window: ResolvedWindow, receiver: str) -> List[BinFileRecord]:
        """Canonical raw files for a receiver whose embedded hour is inside the window."""
        selected = []
        for cell in window.cells():
            records = self.locator.locate_records(cell.year, cell.doy, receiver, self.type_filter)
            for record in records:
                if record.hour in cell:
                    logger.info(f"  Processing: {record.filename} (hour {record.hour:02d} in window)")
                    selected.append(record)
        return selected

    def process_event(self, event: Event) -> EventResult:
        """Locate, decode and stage everything for one event."""
        window = resolve_event_window(event, self.buffer_hours)
        result = EventResult(event=event, window=window)

        logger.info("=" * 50)
        logger.info(f"Event {event.sequence}: {event.describe()}")
        logger.info(f"Resolved window: {window.describe()}")
        logger.info("=" * 50)

        destination = self.stager.event_folder(event)

        for receiver in self.receivers:
            logger.info(f"Processing receiver: {receiver}")
            records = self.select_files(window, receiver)
            result.files_located += len(records)

            if not records:
                logger.warning(f"No files in window for {receiver}")
                continue

            staged_for_receiver = 0
            for record in records:
                logs = self.decoder.decode(record.path, record.file_type, destination, receiver)
                if logs:
                    result.files_decoded += 1
                    staged_for_receiver += len(logs)

            result.logs_staged += staged_for_receiver
            if staged_for_receiver:
                result.receivers_with_data.append(receiver)
                logger.info(f"Success: staged {staged_for_receiver} logs for {receiver}")
            else:
                logger.warning(f"No logs decoded for {receiver}")

        logger.info(
            f"Completed event {event.sequence}: {result.files_decoded} files decoded, "
            f"{result.logs_staged} logs staged"
        )
        return result

    def run(self, events: Sequence[Event], show_progress: bool = False) -> RunSummary:
        """Process every event, flushing as the staging area fills, then flush the rest."""
        summary = RunSummary(events_total=len(events))

        for event in tqdm(events, desc="Events", unit="event", disable=not show_progress):
            event_result = self.process_event(event)
            summary.event_results.append(event_result)
            summary.events_processed += 1
            summary.files_located += event_result.files_located
            summary.files_decoded += event_result.files_decoded
            summary.logs_staged += event_result.logs_staged

            summary.add_flush(self.stager.maybe_flush())

        summary.add_flush(self.stager.final_flush())
        summary.archives_pending = len(self.stager.pending)
        summary.staging_removed = self.stager.cleanup()
        return summary
