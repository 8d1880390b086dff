"""
Event list parsing.

An event list holds one scintillation event per line:

    year doy signal prn start_hour start_min end_hour end_min

Blank lines and lines starting with '#' are ignored.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Union

from config import ConfigError

logger = logging.getLogger(__name__)

EVENT_FIELD_COUNT = 8


class EventListError(ConfigError):
    """Raised when the event list cannot be read or a line is malformed."""


@dataclass(frozen=True)
class Event:
    """One scintillation event driving a single harvest pass."""
    sequence: int
    year: int
    doy: int
    signal: int
    prn: int
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int

    @property
    def start_label(self) -> str:
        return f"{self.start_hour:02d}{self.start_minute:02d}"

    @property
    def end_label(self) -> str:
        return f"{self.end_hour:02d}{self.end_minute:02d}"

    @property
    def folder_name(self) -> str:
        """Deterministic staging folder / archive member prefix for this event."""
        return (
            f"event_{self.sequence:03d}_{self.year}_{self.doy:03d}"
            f"_L{self.signal}_PRN{self.prn:02d}_{self.start_label}-{self.end_label}"
        )

    def describe(self) -> str:
        return (
            f"Year {self.year}, DOY {self.doy:03d}, "
            f"{self.start_hour:02d}:{self.start_minute:02d}-{self.end_hour:02d}:{self.end_minute:02d}, "
            f"Signal L{self.signal}, PRN {self.prn}"
        )


def parse_event_line(line: str, sequence: int, line_number: int = 0) -> Event:
    """Parse one event list line into an Event.

    Raises:
        EventListError: If the line does not hold eight valid integer fields
    """
    fields = line.split()
    if len(fields) != EVENT_FIELD_COUNT:
        raise EventListError(
            f"Line {line_number}: expected {EVENT_FIELD_COUNT} fields, got {len(fields)}: {line.strip()!r}"
        )

    try:
        values = [int(field, 10) for field in fields]
    except ValueError:
        raise EventListError(f"Line {line_number}: non-integer field in {line.strip()!r}") from None

    year, doy, signal, prn, start_hour, start_minute, end_hour, end_minute = values

    if year <= 0 or doy <= 0 or doy > 366:
        raise EventListError(f"Line {line_number}: invalid year/day-of-year {year}/{doy}")
    for hour in (start_hour, end_hour):
        if not 0 <= hour <= 23:
            raise EventListError(f"Line {line_number}: hour out of range: {hour}")
    for minute in (start_minute, end_minute):
        if not 0 <= minute <= 59:
            raise EventListError(f"Line {line_number}: minute out of range: {minute}")
    if (end_hour, end_minute) < (start_hour, start_minute):
        raise EventListError(
            f"Line {line_number}: end {end_hour:02d}:{end_minute:02d} is before "
            f"start {start_hour:02d}:{start_minute:02d}"
        )

    return Event(
        sequence=sequence,
        year=year,
        doy=doy,
        signal=signal,
        prn=prn,
        start_hour=start_hour,
        start_minute=start_minute,
        end_hour=end_hour,
        end_minute=end_minute,
    )


def read_event_list(path: Union[str, Path]) -> List[Event]:
    """Read and validate every event in an event list file."""
    events_path = Path(path)

    if not events_path.is_file():
        raise EventListError(f"Events file not found: {events_path}")

    try:
        lines = events_path.read_text().splitlines()
    except (OSError, UnicodeDecodeError) as e:
        raise EventListError(f"Cannot read events file {events_path}: {e}") from e

    events = []
    for line_number, line in enumerate(lines, start=1):
        stripped = line.strip()
        if not stripped or stripped.startswith('#'):
            continue
        events.append(parse_event_line(stripped, len(events) + 1, line_number))

    logger.info(f"Read {len(events)} events from {events_path}")
    return events
