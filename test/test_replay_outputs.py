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
Tests for the comparison tables written during replay
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Optional

import numpy as np
import pytest

from oasis_replay.log.log_reader import LogReferenceData
from oasis_replay.replay.replay_errors import OutputError
from oasis_replay.replay.replay_outputs import EKF1_FILE
from oasis_replay.replay.replay_outputs import EKF4_FILE
from oasis_replay.replay.replay_outputs import PLOT_FILE
from oasis_replay.replay.replay_outputs import ROW_FORMATTERS
from oasis_replay.replay.replay_outputs import TABLE_HEADERS
from oasis_replay.replay.replay_outputs import OutputSample
from oasis_replay.replay.replay_outputs import ReplayOutputs
from oasis_replay.replay.replay_outputs import clamp_int16
from oasis_replay.replay.replay_outputs import format_ekf1_row
from oasis_replay.replay.replay_outputs import format_ekf4_row
from oasis_replay.replay.replay_outputs import format_plot_row
from oasis_replay.replay.replay_outputs import make_sample
from oasis_replay.replay.replay_outputs import replay_seconds
from oasis_replay.replay.replay_outputs import to_int8
from oasis_replay.replay.replay_outputs import to_int16
from oasis_replay.replay.replay_outputs import to_uint16
from oasis_replay.replay.replay_outputs import wrap_180_cd
from oasis_replay.replay.replay_outputs import wrap_360_cd
from oasis_replay.vehicle.replay_ahrs import EstimatorSnapshot


def _build_sample(
    estimator: EstimatorSnapshot, reference: Optional[LogReferenceData] = None
) -> OutputSample:
    return make_sample(
        time_ms=1234,
        reference=reference if reference is not None else LogReferenceData(),
        baro_altitude=1.5,
        estimator=estimator,
        inav_position_cm=np.array([150.0, -50.0, 200.0]),
    )


@pytest.mark.parametrize(
    "value, expected",
    [
        (1.9, 1),
        (-1.9, -1),
        (32767.0, 32767),
        (40000.0, -25536),
        (math.nan, 0),
    ],
)
def test_to_int16(value: float, expected: int) -> None:
    assert to_int16(value) == expected


def test_narrow_integer_conversions() -> None:
    assert to_uint16(-1.0) == 65535
    assert to_uint16(70000.0) == 4464
    assert to_int8(200.0) == -56
    assert to_int8(-129.0) == 127


@pytest.mark.parametrize(
    "angle_cd, expected",
    [
        (0.0, 0),
        (27000.0, -9000),
        (-27000.0, 9000),
        (18000.0, 18000),
        (-18000.0, -18000),
        (400000.0, 4000),
    ],
)
def test_wrap_180_cd(angle_cd: float, expected: int) -> None:
    assert wrap_180_cd(angle_cd) == expected


def test_wrap_360_cd() -> None:
    assert wrap_360_cd(-100.0) == 35900
    assert wrap_360_cd(36000.0) == 0
    assert wrap_360_cd(45000.5) == 9000


def test_clamp_int16() -> None:
    assert clamp_int16(1.0e6) == 32767.0
    assert clamp_int16(-1.0e6) == -32768.0
    assert clamp_int16(12.5) == 12.5


def test_replay_seconds() -> None:
    assert "%.3f" % replay_seconds(1234) == "1.234"
    assert "%.3f" % replay_seconds(0) == "0.000"


def test_headers() -> None:
    assert list(TABLE_HEADERS) == [
        "plot.dat",
        "plot2.dat",
        "EKF1.dat",
        "EKF2.dat",
        "EKF3.dat",
        "EKF4.dat",
    ]
    assert TABLE_HEADERS[EKF1_FILE] == (
        "timestamp TimeMS Roll Pitch Yaw VN VE VD PN PE PD GX GY GZ"
    )
    assert TABLE_HEADERS[PLOT_FILE].startswith("time SIM.Roll SIM.Pitch SIM.Yaw")
    assert TABLE_HEADERS[PLOT_FILE].endswith("EKF.dN EKF.dE EKF.Alt")


def test_ekf1_row() -> None:
    estimator: EstimatorSnapshot = EstimatorSnapshot(
        euler=np.array([0.1, -0.2, -0.5]),
        vel_ned=np.array([1.0, 2.0, 3.0]),
        pos_ned=np.array([4.0, 5.0, -6.0]),
    )

    row: str = format_ekf1_row(_build_sample(estimator))

    assert row == "1.234 1234 572 -1145 33136 1.00 2.00 3.00 4.00 5.00 -6.00 0 0 0"


def test_ekf4_row_narrows_offsets() -> None:
    estimator: EstimatorSnapshot = EstimatorSnapshot(
        vel_var=0.5,
        pos_var=1.0e6,
        offset=np.array([300.0, -2.0]),
        fault_status=0x1FF,
    )

    fields: list[str] = format_ekf4_row(_build_sample(estimator)).split()

    assert fields[2] == "50"
    assert fields[3] == "32767"
    assert fields[9:] == ["44", "-2", "255"]


def test_plot_row_wraps_reference_yaw() -> None:
    reference: LogReferenceData = LogReferenceData()
    reference.attitude = np.array([1.0, 2.0, 270.0])

    fields: list[str] = format_plot_row(
        _build_sample(EstimatorSnapshot(), reference)
    ).split()

    assert fields[0] == "1.234"
    assert fields[4] == "1.50"
    assert fields[5:8] == ["1.0", "2.0", "-90.0"]
    assert fields[20:23] == ["1.50", "-0.50", "2.00"]


def test_field_counts() -> None:
    sample: OutputSample = _build_sample(EstimatorSnapshot())

    counts: dict[str, int] = {
        file_name: len(formatter(sample).split())
        for file_name, formatter in ROW_FORMATTERS.items()
    }

    assert counts == {
        "plot.dat": 26,
        "plot2.dat": 24,
        "EKF1.dat": 14,
        "EKF2.dat": 13,
        "EKF3.dat": 12,
        "EKF4.dat": 12,
    }
    for file_name in ROW_FORMATTERS:
        if file_name != EKF4_FILE:
            assert len(TABLE_HEADERS[file_name].split()) == counts[file_name]


def test_tables_written(tmp_path: Path) -> None:
    output_dir: Path = tmp_path / "out"
    sample: OutputSample = _build_sample(EstimatorSnapshot())

    with ReplayOutputs(output_dir) as outputs:
        assert outputs.is_open
        outputs.write(sample)
        outputs.write(sample)

    assert not outputs.is_open
    assert outputs.rows_written == 2
    for file_name, header in TABLE_HEADERS.items():
        lines: list[str] = (output_dir / file_name).read_text().splitlines()
        assert lines[0] == header
        assert len(lines) == 3


def test_unwritable_directory_raises(tmp_path: Path) -> None:
    blocker: Path = tmp_path / "file"
    blocker.write_text("")

    outputs: ReplayOutputs = ReplayOutputs(blocker / "out")

    with pytest.raises(OutputError):
        outputs.open()

    assert not outputs.is_open


class _FullDiskStream:
    def __init__(self, fail_on: str) -> None:
        self._fail_on: str = fail_on
        self.closed: bool = False

    def write(self, text: str) -> int:
        if self._fail_on == "write":
            raise OSError(28, "No space left on device")
        return len(text)

    def close(self) -> None:
        self.closed = True
        if self._fail_on == "close":
            raise OSError(28, "No space left on device")


def test_failed_row_write_raises_output_error(tmp_path: Path) -> None:
    outputs: ReplayOutputs = ReplayOutputs(tmp_path)
    outputs.open()
    outputs.close()
    outputs._files = {
        file_name: _FullDiskStream("write") for file_name in TABLE_HEADERS
    }

    with pytest.raises(OutputError, match="No space left on device"):
        outputs.write(_build_sample(EstimatorSnapshot()))

    assert outputs.rows_written == 0


def test_failed_close_closes_every_table(tmp_path: Path) -> None:
    streams: dict[str, _FullDiskStream] = {
        file_name: _FullDiskStream("close") for file_name in TABLE_HEADERS
    }
    outputs: ReplayOutputs = ReplayOutputs(tmp_path)
    outputs._files = dict(streams)

    with pytest.raises(OutputError, match="plot.dat"):
        outputs.close()

    assert all(stream.closed for stream in streams.values())
    assert not outputs.is_open
