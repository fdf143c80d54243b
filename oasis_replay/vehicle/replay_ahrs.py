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
Attitude and navigation estimator driven by replayed sensors
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from dataclasses import field
from typing import Optional

import numpy as np

from oasis_replay.vehicle.madgwick_ahrs import MadgwickAhrs
from oasis_replay.vehicle.parameters import ParameterStore
from oasis_replay.vehicle.sensors import AirspeedSensor
from oasis_replay.vehicle.sensors import Barometer
from oasis_replay.vehicle.sensors import Compass
from oasis_replay.vehicle.sensors import GpsSensor
from oasis_replay.vehicle.sensors import InertialSensor
from oasis_replay.vehicle.sensors import Location


# Units: m/s^2. Meaning: standard gravity, positive down in NED
GRAVITY_MSS: float = 9.80665

# Units: unitless. Meaning: innovations are scored against this many sigma
INNOVATION_GATE: float = 5.0

# Updates required before the estimator may report healthy
HEALTHY_MIN_UPDATES: int = 10

# Units: unitless. Meaning: low-pass gain for wind and field references
REFERENCE_ALPHA: float = 0.05

# Centimetres per metre
_CM_PER_M: float = 100.0

# Fault status bits, one per measurement whose test ratio exceeds 1
FAULT_VELOCITY: int = 1 << 0
FAULT_POSITION: int = 1 << 1
FAULT_HEIGHT: int = 1 << 2
FAULT_MAGNETOMETER: int = 1 << 3
FAULT_AIRSPEED: int = 1 << 4

# Parameters owned by the estimator, with their defaults. The EKF_ names
# match the noise parameters found in the PARM records of flight logs
AHRS_PARAMETERS: dict[str, float] = {
    "AHRS_EKF_BETA": 0.1,
    "AHRS_DCM_BETA": 0.033,
    "EKF_GPS_GAIN": 0.2,
    "EKF_VELNE_NOISE": 0.5,
    "EKF_POSNE_NOISE": 0.5,
    "EKF_ALT_NOISE": 1.0,
    "EKF_MAG_NOISE": 50.0,
    "EKF_EAS_NOISE": 1.4,
}


def _zeros() -> np.ndarray:
    return np.zeros(3, dtype=np.float64)


@dataclass(frozen=True)
class EstimatorSnapshot:
    """
    Estimator outputs written to the comparison tables

    Fields:
        euler: Estimator roll, pitch, yaw in radians
        dcm_euler: Secondary attitude estimate in radians
        vel_ned: Velocity in m/s, NED
        pos_ned: Position relative to home in metres, NED
        gyro_bias: Gyro bias in rad/s
        accel_weighting: Weight of the first IMU in the accel blend
        accel_z_bias1: Z accel bias of the first IMU in m/s^2
        accel_z_bias2: Z accel bias of the second IMU in m/s^2
        wind_vel: Wind velocity in m/s, NED
        mag_ned: Earth field estimate in milligauss
        mag_xyz: Body field estimate in milligauss
        vel_innov: Velocity innovations in m/s
        pos_innov: Position innovations in metres
        mag_innov: Field innovations in milligauss
        tas_innov: Airspeed innovation in m/s
        vel_var: Velocity test ratio
        pos_var: Horizontal position test ratio
        hgt_var: Height test ratio
        mag_var: Field test ratios per axis
        tas_var: Airspeed test ratio
        offset: Horizontal position reset offset in metres
        fault_status: Bit field of failed measurement checks
    """

    euler: np.ndarray = field(default_factory=_zeros)
    dcm_euler: np.ndarray = field(default_factory=_zeros)
    vel_ned: np.ndarray = field(default_factory=_zeros)
    pos_ned: np.ndarray = field(default_factory=_zeros)
    gyro_bias: np.ndarray = field(default_factory=_zeros)
    accel_weighting: float = 0.0
    accel_z_bias1: float = 0.0
    accel_z_bias2: float = 0.0
    wind_vel: np.ndarray = field(default_factory=_zeros)
    mag_ned: np.ndarray = field(default_factory=_zeros)
    mag_xyz: np.ndarray = field(default_factory=_zeros)
    vel_innov: np.ndarray = field(default_factory=_zeros)
    pos_innov: np.ndarray = field(default_factory=_zeros)
    mag_innov: np.ndarray = field(default_factory=_zeros)
    tas_innov: float = 0.0
    vel_var: float = 0.0
    pos_var: float = 0.0
    hgt_var: float = 0.0
    mag_var: np.ndarray = field(default_factory=_zeros)
    tas_var: float = 0.0
    offset: np.ndarray = field(default_factory=lambda: np.zeros(2, dtype=np.float64))
    fault_status: int = 0


class ReplayAhrs:
    """
    Attitude, velocity and position estimator for log replay

    Attitude comes from a 9-axis Madgwick filter, with a 6-axis filter kept
    alongside as the secondary attitude solution. Velocity and position are
    propagated with the rotated specific force and pulled towards GPS and
    barometer measurements. Each measurement is scored as a test ratio,
    |innovation| / (gate * noise), and any ratio above 1 raises a fault bit.
    """

    def __init__(
        self,
        ins: InertialSensor,
        gps: GpsSensor,
        compass: Compass,
        barometer: Barometer,
        parameters: ParameterStore,
    ) -> None:
        self._ins: InertialSensor = ins
        self._gps: GpsSensor = gps
        self._compass: Compass = compass
        self._barometer: Barometer = barometer
        self._parameters: ParameterStore = parameters
        self._parameters.declare_all(AHRS_PARAMETERS)

        self._ekf: MadgwickAhrs = MadgwickAhrs(beta=AHRS_PARAMETERS["AHRS_EKF_BETA"])
        self._dcm: MadgwickAhrs = MadgwickAhrs(beta=AHRS_PARAMETERS["AHRS_DCM_BETA"])

        self._airspeed: Optional[AirspeedSensor] = None
        self._home: Optional[Location] = None

        self._vel_ned: np.ndarray = _zeros()
        self._pos_ned: np.ndarray = _zeros()
        self._wind_vel: np.ndarray = _zeros()
        self._mag_ned: np.ndarray = _zeros()

        self._vel_innov: np.ndarray = _zeros()
        self._pos_innov: np.ndarray = _zeros()
        self._mag_innov: np.ndarray = _zeros()
        self._tas_innov: float = 0.0

        self._vel_var: float = 0.0
        self._pos_var: float = 0.0
        self._hgt_var: float = 0.0
        self._mag_var: np.ndarray = _zeros()
        self._tas_var: float = 0.0

        self._last_gps_update: int = 0
        self._update_count: int = 0

    @property
    def update_count(self) -> int:
        return self._update_count

    @property
    def home(self) -> Optional[Location]:
        return self._home

    def set_home(self, location: Location) -> None:
        self._home = location

        # Home is the origin of the position estimate
        self._pos_ned[:2] = 0.0

    def set_airspeed(self, airspeed: AirspeedSensor) -> None:
        self._airspeed = airspeed

    @property
    def velocity_ned(self) -> np.ndarray:
        return np.array(self._vel_ned, copy=True)

    def update(self) -> None:
        """
        Run one full estimator step on the latest inertial sample
        """

        dt: float = self._ins.delta_time
        if dt <= 0.0 or not self._ins.has_data():
            return

        self._ekf.beta = self._parameters.get("AHRS_EKF_BETA")
        self._dcm.beta = self._parameters.get("AHRS_DCM_BETA")

        gx, gy, gz = (float(value) for value in self._ins.gyro())
        accel: np.ndarray = self._ins.accel()

        # Logs record specific force, which points up when level
        ax, ay, az = (float(-value) for value in accel)

        if self._compass.has_field:
            mx, my, mz = (float(value) for value in self._compass.field)
            self._ekf.update(gx, gy, gz, ax, ay, az, mx, my, mz, dt)
        else:
            self._ekf.update_imu(gx, gy, gz, ax, ay, az, dt)
        self._dcm.update_imu(gx, gy, gz, ax, ay, az, dt)

        self._propagate(accel, dt)

        if self._gps.update_count != self._last_gps_update:
            self._last_gps_update = self._gps.update_count
            self._fuse_gps()

        if self._barometer.calibrated:
            self._fuse_height()

        if self._compass.has_field:
            self._fuse_mag()

        self._fuse_airspeed()

        self._update_count += 1

    def estimate_wind(self) -> None:
        """
        Refresh the wind estimate from GPS velocity and the airspeed source
        """

        if self._airspeed is None or not self._airspeed.healthy:
            return

        yaw: float = float(self._ekf.euler_angles()[2])
        air_ne: np.ndarray = self._airspeed.airspeed * np.array(
            [math.cos(yaw), math.sin(yaw)], dtype=np.float64
        )
        wind_ne: np.ndarray = self._gps.velocity_ned[:2] - air_ne

        self._wind_vel[:2] = (1.0 - REFERENCE_ALPHA) * self._wind_vel[
            :2
        ] + REFERENCE_ALPHA * wind_ne

    def fault_status(self) -> int:
        status: int = 0
        if self._vel_var > 1.0:
            status |= FAULT_VELOCITY
        if self._pos_var > 1.0:
            status |= FAULT_POSITION
        if self._hgt_var > 1.0:
            status |= FAULT_HEIGHT
        if float(np.max(self._mag_var)) > 1.0:
            status |= FAULT_MAGNETOMETER
        if self._tas_var > 1.0:
            status |= FAULT_AIRSPEED
        return status

    def healthy(self) -> bool:
        if self._update_count < HEALTHY_MIN_UPDATES:
            return False
        if not np.all(np.isfinite(self._vel_ned)):
            return False
        return self.fault_status() == 0

    def snapshot(self) -> EstimatorSnapshot:
        euler: np.ndarray = self._ekf.euler_angles()
        mag_xyz: np.ndarray = _zeros()
        if self._compass.has_field:
            mag_xyz = np.array(self._compass.field, copy=True)

        return EstimatorSnapshot(
            euler=euler,
            dcm_euler=self._dcm.euler_angles(),
            vel_ned=np.array(self._vel_ned, copy=True),
            pos_ned=np.array(self._pos_ned, copy=True),
            gyro_bias=_zeros(),
            accel_weighting=self._ins.imu1_weighting(),
            wind_vel=np.array(self._wind_vel, copy=True),
            mag_ned=np.array(self._mag_ned, copy=True),
            mag_xyz=mag_xyz,
            vel_innov=np.array(self._vel_innov, copy=True),
            pos_innov=np.array(self._pos_innov, copy=True),
            mag_innov=np.array(self._mag_innov, copy=True),
            tas_innov=self._tas_innov,
            vel_var=self._vel_var,
            pos_var=self._pos_var,
            hgt_var=self._hgt_var,
            mag_var=np.array(self._mag_var, copy=True),
            tas_var=self._tas_var,
            fault_status=self.fault_status(),
        )

    def _gain(self) -> float:
        return min(1.0, max(0.0, self._parameters.get("EKF_GPS_GAIN")))

    def _ratio(self, innovation: float, noise_name: str) -> float:
        noise: float = self._parameters.get(noise_name)
        if noise <= 0.0:
            return 0.0
        return abs(innovation) / (INNOVATION_GATE * noise)

    def _propagate(self, accel_body: np.ndarray, dt: float) -> None:
        accel_ned: np.ndarray = self._ekf.body_to_world() @ accel_body
        accel_ned[2] += GRAVITY_MSS

        self._pos_ned += self._vel_ned * dt + 0.5 * accel_ned * dt * dt
        self._vel_ned += accel_ned * dt

    def _fuse_gps(self) -> None:
        if not self._gps.has_3d_fix():
            return

        gain: float = self._gain()

        self._vel_innov = self._gps.velocity_ned - self._vel_ned
        self._vel_ned += gain * self._vel_innov
        self._vel_var = self._ratio(
            float(np.linalg.norm(self._vel_innov[:2])), "EKF_VELNE_NOISE"
        )

        if self._home is None:
            return

        gps_pos_ned: np.ndarray = self._home.offset_ned(self._gps.location)
        self._pos_innov = gps_pos_ned - self._pos_ned
        self._pos_ned[:2] += gain * self._pos_innov[:2]
        self._pos_var = self._ratio(
            float(np.linalg.norm(self._pos_innov[:2])), "EKF_POSNE_NOISE"
        )

    def _fuse_height(self) -> None:
        height_innov: float = -self._barometer.altitude - float(self._pos_ned[2])
        self._pos_innov[2] = height_innov
        self._pos_ned[2] += self._gain() * height_innov
        self._hgt_var = self._ratio(height_innov, "EKF_ALT_NOISE")

    def _fuse_mag(self) -> None:
        body_to_world: np.ndarray = self._ekf.body_to_world()
        measured_ned: np.ndarray = body_to_world @ self._compass.field

        if not np.any(self._mag_ned):
            self._mag_ned = measured_ned
        else:
            self._mag_ned = (
                1.0 - REFERENCE_ALPHA
            ) * self._mag_ned + REFERENCE_ALPHA * measured_ned

        predicted_body: np.ndarray = body_to_world.T @ self._mag_ned
        self._mag_innov = self._compass.field - predicted_body
        self._mag_var = np.array(
            [self._ratio(float(value), "EKF_MAG_NOISE") for value in self._mag_innov],
            dtype=np.float64,
        )

    def _fuse_airspeed(self) -> None:
        if self._airspeed is None or not self._airspeed.healthy:
            return

        air_vel: np.ndarray = self._vel_ned - self._wind_vel
        self._tas_innov = self._airspeed.airspeed - float(np.linalg.norm(air_vel))
        self._tas_var = self._ratio(self._tas_innov, "EKF_EAS_NOISE")


class InertialNav:
    """
    Dead-reckoned position, integrated from the estimator velocity

    Position is kept in centimetres as (north, east, up).
    """

    def __init__(self, ahrs: ReplayAhrs) -> None:
        self._ahrs: ReplayAhrs = ahrs
        self._position_cm: np.ndarray = _zeros()

    def update(self, dt: float) -> None:
        if dt <= 0.0:
            return

        vel_ned: np.ndarray = self._ahrs.velocity_ned
        vel_neu: np.ndarray = np.array([vel_ned[0], vel_ned[1], -vel_ned[2]])
        self._position_cm += vel_neu * _CM_PER_M * dt

    def get_position(self) -> np.ndarray:
        return np.array(self._position_cm, copy=True)
