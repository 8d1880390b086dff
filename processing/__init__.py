"""
Processing package for CASES raw data.

This package contains the event reader, day arithmetic, window resolution,
raw file discovery and the binflate decoder adapter.
"""

from .day_utils import is_leap_year, days_in_year, previous_day, next_day, format_doy
from .events import Event, EventListError, parse_event_line, read_event_list
from .window_resolver import DayCell, ResolvedWindow, resolve_window, resolve_event_window
from .file_locator import BinFileRecord, BinFileLocator, parse_bin_filename, select_canonical
from .decoder import BinflateDecoder, DecoderNotFoundError, LOG_CATEGORIES, decoded_log_name

__all__ = [
    # Day arithmetic
    'is_leap_year',
    'days_in_year',
    'previous_day',
    'next_day',
    'format_doy',

    # Events
    'Event',
    'EventListError',
    'parse_event_line',
    'read_event_list',

    # Windows
    'DayCell',
    'ResolvedWindow',
    'resolve_window',
    'resolve_event_window',

    # Discovery
    'BinFileRecord',
    'BinFileLocator',
    'parse_bin_filename',
    'select_canonical',

    # Decoding
    'BinflateDecoder',
    'DecoderNotFoundError',
    'LOG_CATEGORIES',
    'decoded_log_name',
]
