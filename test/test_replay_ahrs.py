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
Tests for the replay estimator
"""

from __future__ import annotations

import numpy as np
from replay_log_builder import gps_record
from replay_log_builder import imu_record
from replay_log_builder import record

from oasis_replay.vehicle.replay_ahrs import FAULT_VELOCITY
from oasis_replay.vehicle.replay_ahrs import HEALTHY_MIN_UPDATES
from oasis_replay.vehicle.replay_ahrs import EstimatorSnapshot
from oasis_replay.vehicle.replay_vehicle import ReplayVehicle


def _update_stationary(vehicle: ReplayVehicle, count: int, start_us: int = 0) -> None:
    for index in range(count):
        vehicle.ins.inject_imu(0, imu_record(start_us + index * 20000))
        vehicle.ahrs.update()


def test_declares_estimator_parameters() -> None:
    vehicle: ReplayVehicle = ReplayVehicle.create(50)

    assert vehicle.parameters.is_known("AHRS_EKF_BETA")
    assert vehicle.parameters.is_known("EKF_VELNE_NOISE")


def test_no_update_without_inertial_data() -> None:
    vehicle: ReplayVehicle = ReplayVehicle.create(50)

    vehicle.ahrs.update()

    assert vehicle.ahrs.update_count == 0


def test_healthy_after_minimum_updates() -> None:
    vehicle: ReplayVehicle = ReplayVehicle.create(50)

    _update_stationary(vehicle, HEALTHY_MIN_UPDATES - 1)
    assert not vehicle.ahrs.healthy()

    _update_stationary(vehicle, 1, start_us=1000000)
    assert vehicle.ahrs.healthy()
    np.testing.assert_allclose(vehicle.ahrs.velocity_ned, [0.0, 0.0, 0.0])


def test_velocity_disagreement_raises_fault() -> None:
    vehicle: ReplayVehicle = ReplayVehicle.create(50)
    _update_stationary(vehicle, HEALTHY_MIN_UPDATES)

    vehicle.gps.inject(
        record("GPS", 1000000, Status=3, Lat=1, Lng=1, Alt=0.0, Spd=20.0), 1000
    )
    vehicle.gps.update()
    _update_stationary(vehicle, 1, start_us=1000000)

    assert vehicle.ahrs.fault_status() & FAULT_VELOCITY
    assert not vehicle.ahrs.healthy()


def test_snapshot_shape() -> None:
    vehicle: ReplayVehicle = ReplayVehicle.create(50)
    vehicle.gps.inject(gps_record(1000000, 3), 1000)
    vehicle.gps.update()
    vehicle.ahrs.set_home(vehicle.gps.location)
    _update_stationary(vehicle, 3)

    snapshot: EstimatorSnapshot = vehicle.ahrs.snapshot()

    assert snapshot.euler.shape == (3,)
    assert snapshot.offset.shape == (2,)
    assert snapshot.accel_weighting == 1.0
    assert snapshot.fault_status == 0
    np.testing.assert_allclose(snapshot.pos_ned, [0.0, 0.0, 0.0], atol=1.0e-9)
    np.testing.assert_allclose(snapshot.mag_xyz, [0.0, 0.0, 0.0])


def test_inertial_nav_follows_velocity() -> None:
    vehicle: ReplayVehicle = ReplayVehicle.create(50)
    _update_stationary(vehicle, 5)

    vehicle.inertial_nav.update(0.02)
    vehicle.inertial_nav.update(0.0)

    np.testing.assert_allclose(vehicle.inertial_nav.get_position(), [0.0, 0.0, 0.0])
