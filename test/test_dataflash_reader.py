################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

"""
Tests for the DataFlash log decoder
"""

from __future__ import annotations

from pathlib import Path

import pytest
from replay_log_builder import HOME_LAT
from replay_log_builder import DataflashLogBuilder

from oasis_replay.log.dataflash_reader import DataflashReader
from oasis_replay.log.log_types import LogFormat
from oasis_replay.log.log_types import LogRecord
from oasis_replay.replay.replay_errors import LogOpenError
from oasis_replay.replay.replay_errors import LogReadError


def _read_all(path: Path) -> list[LogRecord]:
    with DataflashReader(str(path)) as reader:
        return list(reader)


def test_format_records_are_yielded_and_registered(tmp_path: Path) -> None:
    builder: DataflashLogBuilder = DataflashLogBuilder()
    path: Path = builder.write(tmp_path / "log.bin")

    with DataflashReader(str(path)) as reader:
        records: list[LogRecord] = list(reader)
        formats: dict[str, LogFormat] = reader.formats()

    assert [record.type_name for record in records] == ["FMT"] * 8
    assert records[0].get("Name") == "PARM"
    assert records[0].get("Length") == 31
    assert formats["GPS"].labels == (
        "TimeUS",
        "Status",
        "Lat",
        "Lng",
        "Alt",
        "Spd",
        "GCrs",
        "VZ",
    )
    assert formats["IMU"].length == 35


def test_decodes_typed_fields(tmp_path: Path) -> None:
    builder: DataflashLogBuilder = DataflashLogBuilder()
    builder.add("PARM", 0, "EK2_ENABLE", 1.0)
    builder.add("GPS", 1020000, 3, HOME_LAT, 10, 584.5, 1.5, 90.0, -0.5)
    builder.add("ATT", 1030000, -12.34, 5.0, 179.99)
    path: Path = builder.write(tmp_path / "log.bin")

    records: list[LogRecord] = [
        record for record in _read_all(path) if record.type_name != "FMT"
    ]

    assert [record.type_name for record in records] == ["PARM", "GPS", "ATT"]

    parm: LogRecord = records[0]
    assert parm.get("Name") == "EK2_ENABLE"
    assert parm.get_float("Value") == 1.0

    gps: LogRecord = records[1]
    assert gps.timestamp_us() == 1020000
    assert gps.get("Status") == 3
    assert gps.get("Lat") == HOME_LAT
    assert gps.get_float("Alt") == pytest.approx(584.5)

    att: LogRecord = records[2]
    assert att.get_float("Roll") == pytest.approx(-12.34)
    assert att.get_float("Yaw") == pytest.approx(179.99)


def test_resynchronizes_after_garbage(tmp_path: Path) -> None:
    builder: DataflashLogBuilder = DataflashLogBuilder()
    builder.add_bytes(b"\x00\xa3\x11\xa3\x95\xff")
    builder.add("BARO", 1000000, 10.0, 101325.0)
    path: Path = builder.write(tmp_path / "log.bin")

    with DataflashReader(str(path)) as reader:
        records: list[LogRecord] = [
            record for record in reader if record.type_name != "FMT"
        ]
        skipped: int = reader.skipped_bytes

    assert [record.type_name for record in records] == ["BARO"]
    assert skipped == 6


def test_truncated_message_ends_the_log(tmp_path: Path) -> None:
    builder: DataflashLogBuilder = DataflashLogBuilder()
    builder.add("BARO", 1000000, 10.0, 101325.0)
    builder.add("BARO", 1100000, 11.0, 101320.0)
    data: bytes = builder.to_bytes()
    path: Path = tmp_path / "log.bin"
    path.write_bytes(data[:-4])

    records: list[LogRecord] = [
        record for record in _read_all(path) if record.type_name == "BARO"
    ]

    assert len(records) == 1
    assert records[0].get_float("Alt") == pytest.approx(10.0)


def test_unsupported_format_is_skipped(tmp_path: Path) -> None:
    builder: DataflashLogBuilder = DataflashLogBuilder(with_standard_formats=False)
    builder.add_format(140, "BARO", "Qff", "TimeUS,Alt,Press")
    # A format whose declared length does not match its fields
    builder.add_bytes(bytes([0xA3, 0x95, 128]))
    builder.add_bytes(bytes([141, 7]) + b"ODD\0".ljust(4, b"\0"))
    builder.add_bytes(b"QQ".ljust(16, b"\0") + b"A,B".ljust(64, b"\0"))
    builder.add_bytes(bytes([0xA3, 0x95, 141, 1, 2, 3, 4]))
    builder.add("BARO", 1000000, 10.0, 101325.0)
    path: Path = builder.write(tmp_path / "log.bin")

    types: list[str] = [record.type_name for record in _read_all(path)]

    assert types == ["FMT", "FMT", "BARO"]


def test_missing_file_raises_open_error(tmp_path: Path) -> None:
    reader: DataflashReader = DataflashReader(str(tmp_path / "missing.bin"))

    with pytest.raises(LogOpenError) as exc_info:
        reader.open()

    assert "missing.bin" in str(exc_info.value)
    assert exc_info.value.strerror


def test_reading_closed_log_raises(tmp_path: Path) -> None:
    reader: DataflashReader = DataflashReader(str(tmp_path / "never_opened.bin"))

    with pytest.raises(LogReadError):
        reader.read_record()
