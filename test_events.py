"""Tests for event list parsing."""

import pytest

from processing.events import Event, EventListError, parse_event_line, read_event_list


def test_parse_event_line():
    event = parse_event_line("2021 045 1 12 10 00 12 00", sequence=1)
    assert event == Event(1, 2021, 45, 1, 12, 10, 0, 12, 0)


def test_folder_name_is_deterministic():
    event = parse_event_line("2021 45 1 12 10 0 12 30", sequence=3)
    assert event.folder_name == "event_003_2021_045_L1_PRN12_1000-1230"
    assert parse_event_line("2021 45 1 12 10 0 12 30", sequence=3).folder_name == event.folder_name


def test_read_event_list_skips_blank_and_comment_lines(tmp_path):
    events_file = tmp_path / "List_of_events.txt"
    events_file.write_text(
        "# year doy signal prn sh sm eh em\n"
        "2021 045 1 12 10 00 12 00\n"
        "\n"
        "2021 046 2 5 22 30 23 45\n"
    )
    events = read_event_list(events_file)
    assert [e.sequence for e in events] == [1, 2]
    assert events[1].doy == 46
    assert events[1].end_minute == 45


def test_missing_event_file(tmp_path):
    with pytest.raises(EventListError, match="not found"):
        read_event_list(tmp_path / "missing.txt")


@pytest.mark.parametrize("line", [
    "2021 045 1 12 10 00 12",            # too few fields
    "2021 045 1 12 10 00 12 00 extra",   # too many fields
    "2021 045 L1 12 10 00 12 00",        # non-integer
    "2021 045 1 12 24 00 12 00",         # hour out of range
    "2021 045 1 12 10 60 12 00",         # minute out of range
    "2021 045 1 12 12 00 10 00",         # ends before it starts
    "2021 400 1 12 10 00 12 00",         # bad day of year
])
def test_malformed_lines_are_rejected(line):
    with pytest.raises(EventListError):
        parse_event_line(line, sequence=1, line_number=7)


def test_error_names_line_number(tmp_path):
    events_file = tmp_path / "events.txt"
    events_file.write_text("2021 045 1 12 10 00 12 00\n2021 045 1\n")
    with pytest.raises(EventListError, match="Line 2"):
        read_event_list(events_file)
