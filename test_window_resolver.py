"""Tests for event window resolution."""

from processing.events import Event
from processing.window_resolver import resolve_event_window, resolve_window


def test_window_without_spill():
    window = resolve_window(2021, 45, 10, 12, buffer_hours=1)
    assert (window.start_hour, window.end_hour) == (9, 13)
    assert window.previous_day is None
    assert window.next_day is None
    assert [(c.year, c.doy, sorted(c.hours)) for c in window.cells()] == [
        (2021, 45, [9, 10, 11, 12, 13])
    ]


def test_window_spills_to_previous_day():
    window = resolve_window(2021, 45, 0, 1, buffer_hours=1)
    assert window.start_hour == 0
    assert window.end_hour == 2
    assert window.previous_day == (2021, 44)
    first = window.cells()[0]
    assert (first.year, first.doy, first.hours) == (2021, 44, frozenset({23}))


def test_window_spills_to_next_day():
    window = resolve_window(2021, 45, 22, 23, buffer_hours=1)
    assert window.start_hour == 21
    assert window.end_hour == 23
    assert window.next_day == (2021, 46)
    last = window.cells()[-1]
    assert (last.year, last.doy, last.hours) == (2021, 46, frozenset({0}))


def test_spill_crosses_year_boundaries():
    assert resolve_window(2021, 1, 0, 0).previous_day == (2020, 366)
    assert resolve_window(2021, 365, 23, 23).next_day == (2022, 1)


def test_wide_buffer_still_uses_only_boundary_hour():
    window = resolve_window(2021, 45, 1, 2, buffer_hours=3)
    assert window.start_hour == 0
    assert window.end_hour == 5
    assert window.contains(2021, 44, 23)
    assert not window.contains(2021, 44, 22)


def test_zero_buffer_is_raw_window():
    window = resolve_window(2021, 45, 0, 23, buffer_hours=0)
    assert (window.start_hour, window.end_hour) == (0, 23)
    assert window.previous_day is None and window.next_day is None


def test_resolve_event_window():
    event = Event(1, 2021, 45, 1, 12, 10, 0, 12, 0)
    window = resolve_event_window(event, buffer_hours=1)
    assert window.contains(2021, 45, 9)
    assert window.contains(2021, 45, 13)
    assert not window.contains(2021, 45, 14)
    assert not window.contains(2021, 46, 0)
