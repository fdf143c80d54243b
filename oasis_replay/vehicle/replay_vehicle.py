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
The simulated vehicle that a log is replayed into
"""

from __future__ import annotations

from dataclasses import dataclass

from oasis_replay.vehicle.parameters import ParameterStore
from oasis_replay.vehicle.replay_ahrs import InertialNav
from oasis_replay.vehicle.replay_ahrs import ReplayAhrs
from oasis_replay.vehicle.replay_clock import ReplayClock
from oasis_replay.vehicle.sensors import AirspeedSensor
from oasis_replay.vehicle.sensors import Barometer
from oasis_replay.vehicle.sensors import Compass
from oasis_replay.vehicle.sensors import GpsSensor
from oasis_replay.vehicle.sensors import InertialSensor


@dataclass
class ReplayVehicle:
    """
    Sensors, estimator and state of a replayed vehicle

    Fields:
        clock: Replay time, advanced by record timestamps
        parameters: Vehicle configuration parameters
        ins: Inertial sensors
        gps: GPS receiver
        compass: Magnetometer
        barometer: Pressure altimeter
        airspeed: Airspeed sensor
        ahrs: Attitude and navigation estimator
        inertial_nav: Dead-reckoned position integrator
        armed: True once the arm time has passed. Reported state only; the
            estimator does not depend on it
    """

    clock: ReplayClock
    parameters: ParameterStore
    ins: InertialSensor
    gps: GpsSensor
    compass: Compass
    barometer: Barometer
    airspeed: AirspeedSensor
    ahrs: ReplayAhrs
    inertial_nav: InertialNav
    armed: bool = False

    @classmethod
    def create(
        cls, update_rate: int, accel_mask: int = 3, gyro_mask: int = 3
    ) -> ReplayVehicle:
        """
        Build a vehicle whose inertial sensors run at update_rate Hz
        """

        parameters: ParameterStore = ParameterStore()
        ins: InertialSensor = InertialSensor(
            update_rate, accel_mask=accel_mask, gyro_mask=gyro_mask
        )
        gps: GpsSensor = GpsSensor()
        compass: Compass = Compass()
        barometer: Barometer = Barometer()
        ahrs: ReplayAhrs = ReplayAhrs(ins, gps, compass, barometer, parameters)

        return cls(
            clock=ReplayClock(),
            parameters=parameters,
            ins=ins,
            gps=gps,
            compass=compass,
            barometer=barometer,
            airspeed=AirspeedSensor(),
            ahrs=ahrs,
            inertial_nav=InertialNav(ahrs),
        )
