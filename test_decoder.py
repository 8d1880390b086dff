"""Tests for the binflate decoder adapter."""

import os

import pytest

from config import FileType
from conftest import make_bin
from processing.decoder import BinflateDecoder, DecoderNotFoundError, decoded_log_name


def test_primary_file_yields_five_logs(tmp_path, fake_binflate):
    raw = make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000")
    dest = tmp_path / "staging" / "event"

    logs = BinflateDecoder(str(fake_binflate)).decode(raw, FileType.PRIMARY, dest, "grid108")

    assert sorted(p.name for p in logs) == [
        "2021_045_channel_grid108_1000.log",
        "2021_045_iono_grid108_1000.log",
        "2021_045_navsol_grid108_1000.log",
        "2021_045_scint_grid108_1000.log",
        "2021_045_txinfo_grid108_1000.log",
    ]
    assert all(p.parent == dest for p in logs)
    assert "temp_dataout_2021_045_1000.bin" in (dest / "2021_045_iono_grid108_1000.log").read_text()


def test_extended_file_yields_iq_only(tmp_path, fake_binflate):
    raw = make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000", prefix="dataoutiq")
    logs = BinflateDecoder(str(fake_binflate)).decode(raw, FileType.EXTENDED, tmp_path / "out", "grid108")
    assert [p.name for p in logs] == ["2021_045_iq_grid108_1000.log"]


def test_consecutive_decodes_do_not_overwrite(tmp_path, fake_binflate):
    decoder = BinflateDecoder(str(fake_binflate))
    dest = tmp_path / "out"
    for hhmm in ("1000", "1100"):
        raw = make_bin(tmp_path / "vol1", 2021, 45, "grid108", hhmm)
        decoder.decode(raw, FileType.PRIMARY, dest, "grid108")
    assert len(list(dest.iterdir())) == 10


def test_no_output_is_zero_files(tmp_path):
    silent = tmp_path / "silent"
    silent.write_text("#!/bin/sh\nexit 3\n")
    silent.chmod(0o755)
    raw = make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000")

    logs = BinflateDecoder(str(silent)).decode(raw, FileType.PRIMARY, tmp_path / "out", "grid108")
    assert logs == []


def test_source_file_is_untouched(tmp_path, fake_binflate):
    raw = make_bin(tmp_path / "vol1", 2021, 45, "grid108", "1000", size=128)
    BinflateDecoder(str(fake_binflate)).decode(raw, FileType.PRIMARY, tmp_path / "out", "grid108")
    assert raw.stat().st_size == 128


def test_check_available(tmp_path, fake_binflate):
    BinflateDecoder(str(fake_binflate)).check_available()

    with pytest.raises(DecoderNotFoundError):
        BinflateDecoder(str(tmp_path / "nope")).check_available()

    not_executable = tmp_path / "plain"
    not_executable.write_text("data")
    os.chmod(not_executable, 0o644)
    with pytest.raises(DecoderNotFoundError):
        BinflateDecoder(str(not_executable)).check_available()


def test_decoded_log_name():
    from pathlib import Path
    assert decoded_log_name(Path("dataout_2021_045_0900.bin"), "scint", "grid160") == \
        "2021_045_scint_grid160_0900.log"
