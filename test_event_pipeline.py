"""End-to-end tests for the event pipeline with a fake decoder and Zenodo."""

from types import SimpleNamespace

from archive_stager import ArchiveStager
from config import Config, FileTypeFilter, PathConfig
from conftest import make_bin
from event_pipeline import EventPipeline
from processing.decoder import BinflateDecoder
from processing.events import parse_event_line
from processing.file_locator import BinFileLocator
from processing.window_resolver import resolve_event_window
from zenodo_upload.manager import DepositionManager


def make_config(tmp_path, receivers=("grid108",), **harvest):
    data = {
        'paths': {
            'storage_roots': [str(tmp_path / "vol1"), str(tmp_path / "vol2")],
            'staging_dir': str(tmp_path / "staging"),
            'archive_dir': str(tmp_path / "archives"),
            'database_path': str(tmp_path / "ledger.db"),
        },
        'receivers': list(receivers),
    }
    if harvest:
        data['harvest'] = harvest
    return Config(**data)


def pipeline_window(pipeline, line):
    return resolve_event_window(parse_event_line(line, 1), pipeline.buffer_hours)


def never_upload(path):
    raise AssertionError(f"unexpected upload of {path}")


def build_pipeline(config, binflate, uploader=never_upload, max_staged=10 ** 9):
    locator = BinFileLocator(config.paths.storage_roots)
    stager = ArchiveStager(config.paths.staging_dir, config.paths.archive_dir, max_staged, uploader)
    return EventPipeline(config, locator, BinflateDecoder(str(binflate)), stager)


def test_single_day_event_decodes_buffered_hours(tmp_path, fake_binflate):
    config = make_config(tmp_path)
    for hour in range(8, 15):
        make_bin(tmp_path / "vol1", 2021, 45, "grid108", f"{hour:02d}00")
    pipeline = build_pipeline(config, fake_binflate)
    event = parse_event_line("2021 045 1 12 10 00 12 00", 1)

    result = pipeline.process_event(event)

    assert result.files_located == 5
    assert result.files_decoded == 5
    assert result.logs_staged == 25
    assert result.receivers_with_data == ["grid108"]

    folder = tmp_path / "staging" / event.folder_name
    names = sorted(p.name for p in folder.iterdir())
    assert len(names) == 25
    hours = sorted({name.rsplit('_', 1)[1][:2] for name in names})
    assert hours == ["09", "10", "11", "12", "13"]


def test_midnight_event_pulls_previous_day_last_hour(tmp_path, fake_binflate):
    config = make_config(tmp_path)
    for hour in (21, 22, 23):
        make_bin(tmp_path / "vol2", 2020, 366, "grid108", f"{hour:02d}00")
    for hour in range(0, 4):
        make_bin(tmp_path / "vol1", 2021, 1, "grid108", f"{hour:02d}00")
    pipeline = build_pipeline(config, fake_binflate)

    records = pipeline.select_files(
        pipeline_window(pipeline, "2021 001 1 5 00 10 01 00"), "grid108"
    )

    assert [r.filename for r in records] == [
        "dataout_2020_366_2300.bin",
        "dataout_2021_001_0000.bin",
        "dataout_2021_001_0100.bin",
        "dataout_2021_001_0200.bin",
    ]


def test_receiver_without_data_is_skipped(tmp_path, fake_binflate):
    config = make_config(tmp_path, receivers=("grid108", "grid154"))
    make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000")
    pipeline = build_pipeline(config, fake_binflate)

    result = pipeline.process_event(parse_event_line("2021 045 1 12 10 00 10 30", 1))

    assert result.receivers_with_data == ["grid108"]
    assert result.logs_staged == 5


def test_extended_filter_decodes_iq(tmp_path, fake_binflate):
    config = make_config(tmp_path, file_type="both")
    make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000")
    make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000", prefix="dataoutiq")
    pipeline = build_pipeline(config, fake_binflate)
    assert pipeline.type_filter == FileTypeFilter.BOTH

    event = parse_event_line("2021 045 1 12 10 00 10 30", 1)
    result = pipeline.process_event(event)

    assert result.logs_staged == 6
    assert (tmp_path / "staging" / event.folder_name / "2021_045_iq_grid108_1000.log").exists()


def test_run_uploads_everything_and_cleans_up(tmp_path, fake_binflate):
    config = make_config(tmp_path)
    make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000")
    make_bin(tmp_path / "vol1", 2021, 46, "grid108", "2200")
    uploads = []

    def uploader(path):
        uploads.append(path.name)
        return SimpleNamespace(success=True, deposition_id=1, part_number=1, error=None)

    pipeline = build_pipeline(config, fake_binflate, uploader, max_staged=1)
    events = [
        parse_event_line("2021 045 1 12 10 00 10 30", 1),
        parse_event_line("2021 046 1 7 22 00 22 30", 2),
        parse_event_line("2021 100 1 7 05 00 05 30", 3),
    ]

    summary = pipeline.run(events)

    assert summary.events_processed == 3
    assert summary.files_decoded == 2
    assert summary.logs_staged == 10
    # one flush per event with data; the empty final flush builds nothing
    assert summary.archives_built == 2
    assert summary.archives_uploaded == 2
    assert summary.archives_pending == 0
    assert summary.staging_removed
    assert len(uploads) == 2
    assert not (tmp_path / "staging").exists()


def test_run_against_zenodo_splits_parts(tmp_path, fake_binflate, zenodo_client, fake_zenodo):
    config = make_config(tmp_path)
    make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000")
    make_bin(tmp_path / "vol1", 2021, 46, "grid108", "1000")

    manager = DepositionManager(zenodo_client, config.zenodo.metadata, max_part_bytes=1)
    manager.start()
    pipeline = build_pipeline(config, fake_binflate, manager.upload, max_staged=1)

    summary = pipeline.run([
        parse_event_line("2021 045 1 12 10 00 10 30", 1),
        parse_event_line("2021 046 1 12 10 00 10 30", 2),
    ])

    assert summary.archives_uploaded == 2
    assert [p.part_number for p in manager.parts] == [1, 2]
    assert len(fake_zenodo.depositions[1000]['files']) == 1
    assert len(fake_zenodo.depositions[1001]['files']) == 1
