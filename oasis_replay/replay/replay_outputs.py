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
Comparison tables written while a log is replayed

One row is appended to every table for each attitude record in the log. The
column layouts and fixed-point encodings are consumed by existing plotting
tools, so numeric conversions reproduce single-precision arithmetic and
C-style integer narrowing:

    plot.dat   Reference attitude against every estimator solution
    plot2.dat  Estimator state in engineering units
    EKF1.dat   Attitude, velocity, position, gyro bias
    EKF2.dat   Accel weighting and biases, wind, magnetic field
    EKF3.dat   Innovations
    EKF4.dat   Test ratios, position offset, fault status
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from typing import Optional
from typing import TextIO

import numpy as np

from oasis_replay.log.log_reader import LogReferenceData
from oasis_replay.replay.replay_errors import OutputError
from oasis_replay.vehicle.replay_ahrs import EstimatorSnapshot


_LOG: logging.Logger = logging.getLogger(__name__)


PLOT_FILE: str = "plot.dat"
PLOT2_FILE: str = "plot2.dat"
EKF1_FILE: str = "EKF1.dat"
EKF2_FILE: str = "EKF2.dat"
EKF3_FILE: str = "EKF3.dat"
EKF4_FILE: str = "EKF4.dat"

# Header line of each table, in the order the tables are written
TABLE_HEADERS: dict[str, str] = {
    PLOT_FILE: (
        "time SIM.Roll SIM.Pitch SIM.Yaw BAR.Alt FLIGHT.Roll FLIGHT.Pitch"
        " FLIGHT.Yaw FLIGHT.dN FLIGHT.dE FLIGHT.Alt AHR2.Roll AHR2.Pitch"
        " AHR2.Yaw DCM.Roll DCM.Pitch DCM.Yaw EKF.Roll EKF.Pitch EKF.Yaw"
        " INAV.dN INAV.dE INAV.Alt EKF.dN EKF.dE EKF.Alt"
    ),
    PLOT2_FILE: (
        "time E1 E2 E3 VN VE VD PN PE PD GX GY GZ WN WE MN ME MD MX MY MZ"
        " E1ref E2ref E3ref"
    ),
    EKF1_FILE: "timestamp TimeMS Roll Pitch Yaw VN VE VD PN PE PD GX GY GZ",
    EKF2_FILE: "timestamp TimeMS AX AY AZ VWN VWE MN ME MD MX MY MZ",
    EKF3_FILE: "timestamp TimeMS IVN IVE IVD IPN IPE IPD IMX IMY IMZ IVT",
    EKF4_FILE: "timestamp TimeMS SV SP SH SMX SMY SMZ SVT OFN EFE FS DS",
}

_INT16_MIN: int = -32768
_INT16_MAX: int = 32767

# Centidegrees in a full turn
_CD_PER_TURN: int = 36000


@dataclass(frozen=True)
class OutputSample:
    """
    Everything written for one attitude record

    Fields:
        time_ms: Replay clock in milliseconds
        reference: Values recorded by the vehicle
        baro_altitude: Barometric altitude above calibration, metres
        estimator: Estimator outputs
        inav_position: Dead-reckoned position in metres, (north, east, up)
    """

    time_ms: int
    reference: LogReferenceData
    baro_altitude: float
    estimator: EstimatorSnapshot
    inav_position: np.ndarray


################################################################################
# Numeric conversions
################################################################################


def f32(value: float) -> float:
    """
    Round a value to single precision
    """

    return float(np.float32(value))


def replay_seconds(time_ms: int) -> float:
    return float(np.float32(time_ms) * np.float32(0.001))


def _truncate(value: float) -> int:
    # Float to integer conversion rounds toward zero; NaN has no integer value
    if not math.isfinite(value):
        return 0
    return math.trunc(value)


def _narrow(value: int, bits: int, signed: bool) -> int:
    modulus: int = 1 << bits
    value %= modulus
    if signed and value >= modulus >> 1:
        value -= modulus
    return value


def to_int8(value: float) -> int:
    return _narrow(_truncate(value), 8, True)


def to_int16(value: float) -> int:
    return _narrow(_truncate(value), 16, True)


def to_uint16(value: float) -> int:
    return _narrow(_truncate(value), 16, False)


def to_int32(value: float) -> int:
    return _narrow(_truncate(value), 32, True)


def wrap_360_cd(angle_cd: float) -> int:
    """
    Wrap an angle in centidegrees to [0, 36000)
    """

    return to_int32(angle_cd) % _CD_PER_TURN


def wrap_180_cd(angle_cd: float) -> int:
    """
    Wrap an angle in centidegrees to [-18000, 18000]
    """

    error: int = to_int32(angle_cd)
    if error > 10 * _CD_PER_TURN or error < -10 * _CD_PER_TURN:
        error = int(math.fmod(error, _CD_PER_TURN))
    while error > _CD_PER_TURN // 2:
        error -= _CD_PER_TURN
    while error < -(_CD_PER_TURN // 2):
        error += _CD_PER_TURN
    return error


def clamp_int16(value: float) -> float:
    if math.isnan(value):
        return value
    return min(max(value, float(_INT16_MIN)), float(_INT16_MAX))


def _degrees(value: float) -> float:
    return f32(math.degrees(value))


################################################################################
# Row formatting
################################################################################


def format_plot_row(sample: OutputSample) -> str:
    ref: LogReferenceData = sample.reference
    est: EstimatorSnapshot = sample.estimator

    values: tuple[float, ...] = (
        replay_seconds(sample.time_ms),
        f32(ref.sim_attitude[0]),
        f32(ref.sim_attitude[1]),
        f32(ref.sim_attitude[2]),
        f32(sample.baro_altitude),
        f32(ref.attitude[0]),
        f32(ref.attitude[1]),
        f32(wrap_180_cd(f32(ref.attitude[2] * 100)) * 0.01),
        f32(ref.inav_pos[0]),
        f32(ref.inav_pos[1]),
        f32(ref.rel_alt),
        f32(ref.ahr2_attitude[0]),
        f32(ref.ahr2_attitude[1]),
        f32(wrap_180_cd(f32(ref.ahr2_attitude[2] * 100)) * 0.01),
        _degrees(est.dcm_euler[0]),
        _degrees(est.dcm_euler[1]),
        _degrees(est.dcm_euler[2]),
        _degrees(est.euler[0]),
        _degrees(est.euler[1]),
        _degrees(est.euler[2]),
        f32(sample.inav_position[0]),
        f32(sample.inav_position[1]),
        f32(sample.inav_position[2]),
        f32(est.pos_ned[0]),
        f32(est.pos_ned[1]),
        f32(-est.pos_ned[2]),
    )

    return (
        "%.3f %.1f %.1f %.1f %.2f %.1f %.1f %.1f %.2f %.2f %.2f %.1f %.1f %.1f"
        " %.1f %.1f %.1f %.1f %.1f %.1f %.2f %.2f %.2f %.2f %.2f %.2f" % values
    )


def format_plot2_row(sample: OutputSample) -> str:
    ref: LogReferenceData = sample.reference
    est: EstimatorSnapshot = sample.estimator

    # Yaw in [0, 360)
    yaw_deg: float = _degrees(est.euler[2])
    if yaw_deg < 0.0:
        yaw_deg = f32(yaw_deg + 360.0)

    values: tuple[float, ...] = (
        replay_seconds(sample.time_ms),
        _degrees(est.euler[0]),
        _degrees(est.euler[1]),
        yaw_deg,
        *(f32(value) for value in est.vel_ned),
        *(f32(value) for value in est.pos_ned),
        *(f32(60 * _degrees(value)) for value in est.gyro_bias),
        f32(est.wind_vel[0]),
        f32(est.wind_vel[1]),
        *(f32(value) for value in est.mag_ned),
        *(f32(value) for value in est.mag_xyz),
        f32(ref.attitude[0]),
        f32(ref.attitude[1]),
        f32(ref.attitude[2]),
    )

    return "%.3f" % values[0] + "".join(" %.1f" % value for value in values[1:])


def format_ekf1_row(sample: OutputSample) -> str:
    est: EstimatorSnapshot = sample.estimator

    return "%.3f %u %d %d %u %.2f %.2f %.2f %.2f %.2f %.2f %.0f %.0f %.0f" % (
        replay_seconds(sample.time_ms),
        sample.time_ms,
        to_int16(f32(100 * _degrees(est.euler[0]))),
        to_int16(f32(100 * _degrees(est.euler[1]))),
        to_uint16(wrap_360_cd(f32(100 * _degrees(est.euler[2])))),
        f32(est.vel_ned[0]),
        f32(est.vel_ned[1]),
        f32(est.vel_ned[2]),
        f32(est.pos_ned[0]),
        f32(est.pos_ned[1]),
        f32(est.pos_ned[2]),
        f32(6000 * _degrees(est.gyro_bias[0])),
        f32(6000 * _degrees(est.gyro_bias[1])),
        f32(6000 * _degrees(est.gyro_bias[2])),
    )


def format_ekf2_row(sample: OutputSample) -> str:
    est: EstimatorSnapshot = sample.estimator

    return "%.3f %d %d %d %d %d %d %d %d %d %d %d %d" % (
        replay_seconds(sample.time_ms),
        sample.time_ms,
        to_int8(f32(100 * est.accel_weighting)),
        to_int8(f32(100 * est.accel_z_bias1)),
        to_int8(f32(100 * est.accel_z_bias2)),
        to_int16(f32(100 * est.wind_vel[0])),
        to_int16(f32(100 * est.wind_vel[1])),
        to_int16(est.mag_ned[0]),
        to_int16(est.mag_ned[1]),
        to_int16(est.mag_ned[2]),
        to_int16(est.mag_xyz[0]),
        to_int16(est.mag_xyz[1]),
        to_int16(est.mag_xyz[2]),
    )


def format_ekf3_row(sample: OutputSample) -> str:
    est: EstimatorSnapshot = sample.estimator

    return "%.3f %d %d %d %d %d %d %d %d %d %d %d" % (
        replay_seconds(sample.time_ms),
        sample.time_ms,
        to_int16(f32(100 * est.vel_innov[0])),
        to_int16(f32(100 * est.vel_innov[1])),
        to_int16(f32(100 * est.vel_innov[2])),
        to_int16(f32(100 * est.pos_innov[0])),
        to_int16(f32(100 * est.pos_innov[1])),
        to_int16(f32(100 * est.pos_innov[2])),
        to_int16(est.mag_innov[0]),
        to_int16(est.mag_innov[1]),
        to_int16(est.mag_innov[2]),
        to_int16(f32(100 * est.tas_innov)),
    )


def format_ekf4_row(sample: OutputSample) -> str:
    est: EstimatorSnapshot = sample.estimator

    def ratio(value: float) -> int:
        return to_int16(clamp_int16(f32(100 * value)))

    # The offsets pass through an 8-bit field
    return "%.3f %u %d %d %d %d %d %d %d %d %d %d" % (
        replay_seconds(sample.time_ms),
        sample.time_ms,
        ratio(est.vel_var),
        ratio(est.pos_var),
        ratio(est.hgt_var),
        ratio(est.mag_var[0]),
        ratio(est.mag_var[1]),
        ratio(est.mag_var[2]),
        ratio(est.tas_var),
        to_int8(clamp_int16(f32(est.offset[0]))),
        to_int8(clamp_int16(f32(est.offset[1]))),
        est.fault_status & 0xFF,
    )


ROW_FORMATTERS: dict[str, Callable[[OutputSample], str]] = {
    PLOT_FILE: format_plot_row,
    PLOT2_FILE: format_plot2_row,
    EKF1_FILE: format_ekf1_row,
    EKF2_FILE: format_ekf2_row,
    EKF3_FILE: format_ekf3_row,
    EKF4_FILE: format_ekf4_row,
}


################################################################################
# Table files
################################################################################


class ReplayOutputs:
    """
    The set of comparison tables for one replay session

    Tables are created, with their header lines, when the outputs are opened.
    """

    def __init__(self, output_dir: Path) -> None:
        self._output_dir: Path = Path(output_dir)
        self._files: dict[str, TextIO] = {}
        self._rows_written: int = 0

    @property
    def output_dir(self) -> Path:
        return self._output_dir

    @property
    def rows_written(self) -> int:
        return self._rows_written

    @property
    def is_open(self) -> bool:
        return bool(self._files)

    def open(self) -> None:
        if self._files:
            return

        try:
            self._output_dir.mkdir(parents=True, exist_ok=True)
            for file_name, header in TABLE_HEADERS.items():
                stream: TextIO = open(
                    self._output_dir / file_name, "w", encoding="utf-8"
                )
                self._files[file_name] = stream
                stream.write(header + "\n")
        except OSError as exc:
            self._close_streams()
            raise OutputError(f"{self._output_dir}: {exc.strerror}") from exc

        _LOG.debug("Writing comparison tables to %s", self._output_dir)

    def write(self, sample: OutputSample) -> None:
        for file_name, stream in self._files.items():
            try:
                stream.write(ROW_FORMATTERS[file_name](sample) + "\n")
            except OSError as exc:
                raise OutputError(
                    f"{self._output_dir / file_name}: {exc.strerror}"
                ) from exc
        self._rows_written += 1

    def close(self) -> None:
        error: Optional[OutputError] = self._close_streams()
        if error is not None:
            raise error

    def _close_streams(self) -> Optional[OutputError]:
        files: dict[str, TextIO] = self._files
        self._files = {}

        # Buffered rows are flushed here, so every table is closed first
        error: Optional[OutputError] = None
        for file_name, stream in files.items():
            try:
                stream.close()
            except OSError as exc:
                if error is None:
                    error = OutputError(
                        f"{self._output_dir / file_name}: {exc.strerror}"
                    )
                    error.__cause__ = exc

        return error

    def __enter__(self) -> ReplayOutputs:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def make_sample(
    time_ms: int,
    reference: LogReferenceData,
    baro_altitude: float,
    estimator: EstimatorSnapshot,
    inav_position_cm: Optional[np.ndarray] = None,
) -> OutputSample:
    """
    Bundle the values written for one attitude record

    Args:
        inav_position_cm: Dead-reckoned position in centimetres, north/east/up
    """

    inav_position: np.ndarray = (
        np.zeros(3, dtype=np.float64)
        if inav_position_cm is None
        else np.asarray(inav_position_cm, dtype=np.float64) * 0.01
    )

    return OutputSample(
        time_ms=time_ms,
        reference=reference,
        baro_altitude=baro_altitude,
        estimator=estimator,
        inav_position=inav_position,
    )
