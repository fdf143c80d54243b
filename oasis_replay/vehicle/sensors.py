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
Sensor models fed from replayed log records

Each sensor separates injection from latching. The log reader injects the
values of a record as soon as it is decoded; the replay dispatcher decides
when the sensor latches them, just as a driver's update() would on a vehicle.
"""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from oasis_replay.log.log_types import FieldValue
from oasis_replay.log.log_types import LogRecord


# Number of IMU instances a log can carry
INS_MAX_INSTANCES: int = 2

# Degrees per 1e-7 degree unit used by integer lat/lng fields
_DEG_PER_E7: float = 1.0e-7

# Metres per 1e-7 degree of latitude
LOCATION_SCALING_FACTOR: float = 0.011131884502145034

# Centimetres per metre
_CM_PER_M: float = 100.0


class GpsStatus(enum.IntEnum):
    """
    Fix quality reported by a GPS record
    """

    NO_GPS = 0
    NO_FIX = 1
    OK_FIX_2D = 2
    OK_FIX_3D = 3
    OK_FIX_3D_DGPS = 4
    OK_FIX_3D_RTK = 5


@dataclass(frozen=True)
class Location:
    """
    Geographic location

    Fields:
        lat: Latitude in 1e-7 degrees
        lng: Longitude in 1e-7 degrees
        alt: Altitude above mean sea level in centimetres
    """

    lat: int = 0
    lng: int = 0
    alt: int = 0

    @property
    def lat_deg(self) -> float:
        return self.lat * _DEG_PER_E7

    @property
    def lng_deg(self) -> float:
        return self.lng * _DEG_PER_E7

    @property
    def alt_m(self) -> float:
        return self.alt / _CM_PER_M

    def offset_ned(self, other: Location) -> np.ndarray:
        """
        Return the NED position of other relative to this location, in metres
        """

        mean_lat_deg: float = 0.5 * (self.lat + other.lat) * _DEG_PER_E7
        scale: float = math.cos(math.radians(mean_lat_deg))
        d_north: float = (other.lat - self.lat) * LOCATION_SCALING_FACTOR
        d_east: float = (other.lng - self.lng) * LOCATION_SCALING_FACTOR * scale
        d_down: float = (self.alt - other.alt) / _CM_PER_M

        return np.array([d_north, d_east, d_down], dtype=np.float64)


def _is_finite(value: FieldValue) -> bool:
    return not isinstance(value, float) or math.isfinite(value)


def _to_e7(value: FieldValue) -> int:
    # Integer fields are already in 1e-7 degrees, float fields are degrees
    if isinstance(value, float):
        return int(round(value * 1.0e7))
    return int(value)


def _vector3(record: LogRecord, x: str, y: str, z: str) -> np.ndarray:
    return np.array(
        [record.get_float(x), record.get_float(y), record.get_float(z)],
        dtype=np.float64,
    )


class GpsSensor:
    def __init__(self) -> None:
        self._pending: Optional[LogRecord] = None
        self._pending_ms: int = 0

        self.status: GpsStatus = GpsStatus.NO_GPS
        self.location: Location = Location()
        self.velocity_ned: np.ndarray = np.zeros(3, dtype=np.float64)
        self.last_update_ms: int = 0
        self.update_count: int = 0

    def inject(self, record: LogRecord, time_ms: int) -> None:
        self._pending = record
        self._pending_ms = time_ms

    def update(self) -> None:
        """
        Latch the most recently injected GPS record
        """

        record: Optional[LogRecord] = self._pending
        if record is None:
            return
        self._pending = None

        # Receivers write NaN for unknown values; those keep the last good value
        status: float = record.get_float("Status")
        if math.isfinite(status):
            self.status = GpsStatus(
                max(0, min(int(status), int(GpsStatus.OK_FIX_3D_RTK)))
            )

        lat: FieldValue = record.get("Lat")
        lng: FieldValue = record.get("Lng")
        alt_m: float = record.get_float("Alt")
        if _is_finite(lat) and _is_finite(lng) and math.isfinite(alt_m):
            self.location = Location(
                lat=_to_e7(lat),
                lng=_to_e7(lng),
                alt=int(round(alt_m * _CM_PER_M)),
            )

        speed: float = record.get_float("Spd")
        course_rad: float = math.radians(record.get_float("GCrs"))
        velocity_ned: np.ndarray = np.array(
            [
                speed * math.cos(course_rad),
                speed * math.sin(course_rad),
                record.get_float("VZ"),
            ],
            dtype=np.float64,
        )
        if np.all(np.isfinite(velocity_ned)):
            self.velocity_ned = velocity_ned

        self.last_update_ms = self._pending_ms
        self.update_count += 1

    def has_3d_fix(self) -> bool:
        return self.status >= GpsStatus.OK_FIX_3D


class Barometer:
    def __init__(self) -> None:
        self._pending_alt_m: Optional[float] = None
        self._pending_press_pa: float = 0.0

        self._raw_altitude_m: float = 0.0
        self._ground_altitude_m: float = 0.0

        self.pressure_pa: float = 0.0
        self.calibrated: bool = False
        self.update_count: int = 0

    def inject(self, record: LogRecord) -> None:
        self._pending_alt_m = record.get_float("Alt")
        self._pending_press_pa = record.get_float("Press")

    def update(self) -> None:
        if self._pending_alt_m is None:
            return

        self._raw_altitude_m = self._pending_alt_m
        self.pressure_pa = self._pending_press_pa
        self._pending_alt_m = None
        self.update_count += 1

    def update_calibration(self) -> None:
        """
        Capture the current reading as the ground reference
        """

        self._ground_altitude_m = self._raw_altitude_m
        self.calibrated = True

    @property
    def altitude(self) -> float:
        """
        Altitude above the calibration reference, in metres
        """

        return self._raw_altitude_m - self._ground_altitude_m


class Compass:
    def __init__(self) -> None:
        self._pending_field: Optional[np.ndarray] = None

        # Units: milligauss, body frame
        self.field: np.ndarray = np.zeros(3, dtype=np.float64)
        self.has_field: bool = False
        self.initial_location: Optional[tuple[float, float]] = None

    def inject(self, record: LogRecord) -> None:
        self._pending_field = _vector3(record, "MagX", "MagY", "MagZ")

    def read(self) -> None:
        if self._pending_field is None:
            return

        self.field = self._pending_field
        self._pending_field = None
        self.has_field = bool(np.any(self.field != 0.0))

    def set_initial_location(self, lat: int, lng: int) -> None:
        """
        Set the location used as the magnetic declination reference
        """

        self.initial_location = (lat * _DEG_PER_E7, lng * _DEG_PER_E7)


class AirspeedSensor:
    def __init__(self) -> None:
        # Units: m/s
        self.airspeed: float = 0.0
        self.healthy: bool = False

    def inject(self, record: LogRecord) -> None:
        self.airspeed = record.get_float("Airspeed")
        self.healthy = True


class InertialSensor:
    """
    Gyro and accelerometer samples for up to two IMU instances

    Instances that are enabled by the accel and gyro masks and have received
    data are averaged to form the sample seen by the estimator.
    """

    def __init__(
        self, sample_rate_hz: int, accel_mask: int = 3, gyro_mask: int = 3
    ) -> None:
        self.sample_rate_hz: int = sample_rate_hz
        self.accel_mask: int = accel_mask
        self.gyro_mask: int = gyro_mask

        # Units: rad/s and m/s^2, one row per instance
        self._gyro: np.ndarray = np.zeros((INS_MAX_INSTANCES, 3), dtype=np.float64)
        self._accel: np.ndarray = np.zeros((INS_MAX_INSTANCES, 3), dtype=np.float64)

        self._has_data: list[bool] = [False] * INS_MAX_INSTANCES
        self._last_time_us: list[Optional[int]] = [None] * INS_MAX_INSTANCES
        self._delta_time: list[float] = [0.0] * INS_MAX_INSTANCES

    @property
    def nominal_delta_time(self) -> float:
        return 1.0 / float(self.sample_rate_hz)

    def inject_imu(self, instance: int, record: LogRecord) -> None:
        """
        Inject a sample of rates and accelerations (IMU, IMU2 records)
        """

        gyro: np.ndarray = _vector3(record, "GyrX", "GyrY", "GyrZ")
        accel: np.ndarray = _vector3(record, "AccX", "AccY", "AccZ")

        delta_time: float = self._elapsed(instance, record.timestamp_us())
        self._store(instance, gyro, accel, delta_time)

    def inject_delta(self, instance: int, record: LogRecord) -> None:
        """
        Inject a sample of integrated angles and velocities (IMT, IMT2 records)
        """

        delta_time: float = record.get_float("DelT")
        self._elapsed(instance, record.timestamp_us())
        if delta_time <= 0.0:
            return

        delta_angle: np.ndarray = _vector3(record, "DelAX", "DelAY", "DelAZ")
        delta_velocity: np.ndarray = _vector3(record, "DelVX", "DelVY", "DelVZ")

        self._store(
            instance, delta_angle / delta_time, delta_velocity / delta_time, delta_time
        )

    @property
    def delta_time(self) -> float:
        """
        Time in seconds covered by the most recent primary sample
        """

        for instance in range(INS_MAX_INSTANCES):
            if self._uses(self.gyro_mask, instance):
                if self._delta_time[instance] > 0.0:
                    return self._delta_time[instance]
                break

        return self.nominal_delta_time

    def gyro(self) -> np.ndarray:
        return self._blend(self._gyro, self.gyro_mask)

    def accel(self) -> np.ndarray:
        return self._blend(self._accel, self.accel_mask)

    def imu1_weighting(self) -> float:
        """
        Weight given to the first instance when blending accelerometers
        """

        used: list[int] = self._used_instances(self.accel_mask)
        if 0 not in used:
            return 0.0
        return 1.0 / float(len(used))

    def has_data(self) -> bool:
        return any(self._has_data)

    def _store(
        self, instance: int, gyro: np.ndarray, accel: np.ndarray, delta_time: float
    ) -> None:
        if not 0 <= instance < INS_MAX_INSTANCES:
            return

        self._gyro[instance] = gyro
        self._accel[instance] = accel
        self._delta_time[instance] = delta_time
        self._has_data[instance] = True

    def _elapsed(self, instance: int, time_us: Optional[int]) -> float:
        if not 0 <= instance < INS_MAX_INSTANCES or time_us is None:
            return self.nominal_delta_time

        last_us: Optional[int] = self._last_time_us[instance]
        self._last_time_us[instance] = time_us
        if last_us is None or time_us <= last_us:
            return self.nominal_delta_time

        return float(time_us - last_us) * 1.0e-6

    def _uses(self, mask: int, instance: int) -> bool:
        return bool(mask & (1 << instance))

    def _used_instances(self, mask: int) -> list[int]:
        return [
            instance
            for instance in range(INS_MAX_INSTANCES)
            if self._uses(mask, instance) and self._has_data[instance]
        ]

    def _blend(self, samples: np.ndarray, mask: int) -> np.ndarray:
        used: list[int] = self._used_instances(mask)
        if not used:
            return np.zeros(3, dtype=np.float64)
        return np.asarray(np.mean(samples[used], axis=0), dtype=np.float64)
