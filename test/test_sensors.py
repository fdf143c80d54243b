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
Tests for the sensor models fed from replayed records
"""

from __future__ import annotations

import math

import numpy as np
from replay_log_builder import HOME_LAT
from replay_log_builder import HOME_LNG
from replay_log_builder import gps_record
from replay_log_builder import record

from oasis_replay.vehicle.sensors import GpsSensor
from oasis_replay.vehicle.sensors import GpsStatus
from oasis_replay.vehicle.sensors import Location


def _build_locked_gps() -> GpsSensor:
    gps: GpsSensor = GpsSensor()
    gps.inject(gps_record(1000000, 3), 1000)
    gps.update()
    return gps


def test_latches_injected_fix() -> None:
    gps: GpsSensor = _build_locked_gps()

    assert gps.has_3d_fix()
    assert gps.location == Location(lat=HOME_LAT, lng=HOME_LNG, alt=58400)
    assert gps.last_update_ms == 1000
    assert gps.update_count == 1


def test_float_coordinates_are_degrees() -> None:
    gps: GpsSensor = GpsSensor()
    gps.inject(record("GPS", 0, Status=3, Lat=-35.363261, Lng=149.16523), 0)
    gps.update()

    assert gps.location.lat == HOME_LAT
    assert gps.location.lng == HOME_LNG


def test_nan_fields_keep_last_good_values() -> None:
    gps: GpsSensor = _build_locked_gps()

    gps.inject(
        record(
            "GPS",
            1200000,
            Status=math.nan,
            Lat=1,
            Lng=1,
            Alt=math.nan,
            Spd=math.nan,
            GCrs=0.0,
            VZ=0.0,
        ),
        1200,
    )
    gps.update()

    assert gps.status == GpsStatus.OK_FIX_3D
    assert gps.location == Location(lat=HOME_LAT, lng=HOME_LNG, alt=58400)
    np.testing.assert_allclose(gps.velocity_ned, [0.0, 0.0, 0.0])
    assert gps.last_update_ms == 1200
    assert gps.update_count == 2


def test_nan_coordinate_keeps_last_location() -> None:
    gps: GpsSensor = _build_locked_gps()

    gps.inject(record("GPS", 1200000, Status=3, Lat=math.nan, Lng=1.0, Alt=1.0), 1200)
    gps.update()

    assert gps.location.lat == HOME_LAT
    assert gps.has_3d_fix()
