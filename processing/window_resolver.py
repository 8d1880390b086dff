"""
Time window resolution for events.

Raw files are named by calendar day and hour, but events can sit next to
midnight. The window is widened by a buffer on each side, clipped to the
event's own day, and any overflow is covered by the boundary hour of the
adjacent day (hour 23 of the previous day, hour 0 of the next day).
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, List, Optional, Tuple

from .day_utils import next_day, previous_day
from .events import Event

logger = logging.getLogger(__name__)

FIRST_HOUR = 0
LAST_HOUR = 23


@dataclass(frozen=True)
class DayCell:
    """The hours of one calendar day that fall inside a resolved window."""
    year: int
    doy: int
    hours: FrozenSet[int]

    def __contains__(self, hour: int) -> bool:
        return hour in self.hours


@dataclass(frozen=True)
class ResolvedWindow:
    """Effective inclusion window for one event."""
    year: int
    doy: int
    start_hour: int
    end_hour: int
    previous_day: Optional[Tuple[int, int]] = None
    next_day: Optional[Tuple[int, int]] = None

    @property
    def main_hours(self) -> FrozenSet[int]:
        return frozenset(range(self.start_hour, self.end_hour + 1))

    def cells(self) -> List[DayCell]:
        """Day cells in chronological order."""
        cells = []
        if self.previous_day:
            cells.append(DayCell(self.previous_day[0], self.previous_day[1], frozenset({LAST_HOUR})))
        cells.append(DayCell(self.year, self.doy, self.main_hours))
        if self.next_day:
            cells.append(DayCell(self.next_day[0], self.next_day[1], frozenset({FIRST_HOUR})))
        return cells

    def contains(self, year: int, doy: int, hour: int) -> bool:
        return any(
            cell.year == year and cell.doy == doy and hour in cell
            for cell in self.cells()
        )

    def describe(self) -> str:
        parts = [f"{self.year}/{self.doy:03d} hours {self.start_hour:02d}-{self.end_hour:02d}"]
        if self.previous_day:
            parts.insert(0, f"{self.previous_day[0]}/{self.previous_day[1]:03d} hour {LAST_HOUR}")
        if self.next_day:
            parts.append(f"{self.next_day[0]}/{self.next_day[1]:03d} hour {FIRST_HOUR:02d}")
        return ", ".join(parts)


def resolve_window(year: int, doy: int, start_hour: int, end_hour: int,
                   buffer_hours: int = 1) -> ResolvedWindow:
    """
    Compute the inclusion window for an event.

    Args:
        year: Event calendar year
        doy: Event day of year
        start_hour: Event start hour (0-23)
        end_hour: Event end hour (0-23)
        buffer_hours: Hours added on each side of the event

    Returns:
        ResolvedWindow with the clipped main-day range and any spill days
    """
    buffered_start = start_hour - buffer_hours
    buffered_end = end_hour + buffer_hours

    prev = None
    if buffered_start < FIRST_HOUR:
        prev = previous_day(year, doy)
        logger.debug(f"Window starts before midnight, including {prev[0]}/{prev[1]:03d} hour {LAST_HOUR}")

    nxt = None
    if buffered_end > LAST_HOUR:
        nxt = next_day(year, doy)
        logger.debug(f"Window ends after midnight, including {nxt[0]}/{nxt[1]:03d} hour {FIRST_HOUR}")

    return ResolvedWindow(
        year=year,
        doy=doy,
        start_hour=max(buffered_start, FIRST_HOUR),
        end_hour=min(buffered_end, LAST_HOUR),
        previous_day=prev,
        next_day=nxt,
    )


def resolve_event_window(event: Event, buffer_hours: int = 1) -> ResolvedWindow:
    return resolve_window(event.year, event.doy, event.start_hour, event.end_hour, buffer_hours)
