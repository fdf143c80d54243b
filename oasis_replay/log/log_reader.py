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
Feeds decoded log records into the sensors of a replayed vehicle
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import Callable
from typing import Iterable
from typing import Iterator
from typing import Optional

import numpy as np

from oasis_replay.log.log_types import PARM_TYPE
from oasis_replay.log.log_types import LogRecord
from oasis_replay.vehicle.replay_vehicle import ReplayVehicle


_LOG: logging.Logger = logging.getLogger(__name__)


# Record types carrying rate and acceleration samples, by IMU instance
RATE_IMU_TYPES: dict[str, int] = {"IMU": 0, "IMU2": 1}

# Record types carrying delta angles and velocities, by IMU instance
DELTA_IMU_TYPES: dict[str, int] = {"IMT": 0, "IMT2": 1}

# Centimetres to metres for navigation tuning records
_M_PER_CM: float = 0.01


def _vector3(record: LogRecord, x: str, y: str, z: str) -> np.ndarray:
    return np.array(
        [record.get_float(x), record.get_float(y), record.get_float(z)],
        dtype=np.float64,
    )


@dataclass
class LogReferenceData:
    """
    Values recorded by the vehicle, replayed for comparison

    Fields:
        attitude: Onboard attitude from ATT, degrees
        ahr2_attitude: Secondary onboard attitude from AHR2, degrees
        sim_attitude: Simulator truth attitude from SIM, degrees
        inav_pos: Onboard north/east position from NTUN, metres
        rel_alt: Onboard altitude above home, metres
    """

    attitude: np.ndarray = field(default_factory=lambda: np.zeros(3))
    ahr2_attitude: np.ndarray = field(default_factory=lambda: np.zeros(3))
    sim_attitude: np.ndarray = field(default_factory=lambda: np.zeros(3))
    inav_pos: np.ndarray = field(default_factory=lambda: np.zeros(2))
    rel_alt: float = 0.0


class LogReader:
    """
    Pull records from a log and inject their values into a vehicle

    Each call to update() consumes one record, advances the replay clock to
    its timestamp, and hands the values to the matching sensor or to the
    reference data. The log's own PARM records configure the vehicle's
    parameters as they are read.
    """

    def __init__(
        self,
        records: Iterable[LogRecord],
        vehicle: ReplayVehicle,
        use_imt: bool = True,
    ) -> None:
        self._records: Iterator[LogRecord] = iter(records)
        self._vehicle: ReplayVehicle = vehicle
        self._use_imt: bool = use_imt
        self._delta_instances: set[int] = set()

        self.reference: LogReferenceData = LogReferenceData()

        self._handlers: dict[str, Callable[[LogRecord], None]] = {
            PARM_TYPE: self._handle_parm,
            "GPS": self._handle_gps,
            "MAG": self._vehicle.compass.inject,
            "BARO": self._vehicle.barometer.inject,
            "ARSP": self._vehicle.airspeed.inject,
            "ATT": self._handle_att,
            "AHR2": self._handle_ahr2,
            "SIM": self._handle_sim,
            "NTUN": self._handle_ntun,
            "POS": self._handle_pos,
            "CTUN": self._handle_ctun,
        }
        for type_name in RATE_IMU_TYPES:
            self._handlers[type_name] = self._handle_rate_imu
        for type_name in DELTA_IMU_TYPES:
            self._handlers[type_name] = self._handle_delta_imu

    @property
    def use_imt(self) -> bool:
        return self._use_imt

    def update(self) -> Optional[LogRecord]:
        """
        Read and inject the next record, or return None at the end of the log
        """

        record: Optional[LogRecord] = next(self._records, None)
        if record is None:
            return None

        time_us: Optional[int] = record.timestamp_us()
        if time_us is not None:
            self._vehicle.clock.advance_us(time_us)

        handler: Optional[Callable[[LogRecord], None]] = self._handlers.get(
            record.type_name
        )
        if handler is not None:
            handler(record)

        return record

    def set_parameter(self, name: str, value: float) -> bool:
        """
        Apply a user override, returning False if the vehicle has no such name
        """

        return self._vehicle.parameters.set(name, value)

    def _handle_parm(self, record: LogRecord) -> None:
        self._vehicle.parameters.set_from_log(
            str(record.get("Name", "")), record.get_float("Value")
        )

    def _handle_gps(self, record: LogRecord) -> None:
        self._vehicle.gps.inject(record, self._vehicle.clock.millis())

    def _handle_rate_imu(self, record: LogRecord) -> None:
        instance: int = RATE_IMU_TYPES[record.type_name]

        # Delta samples supersede rate samples from the same IMU
        if instance in self._delta_instances:
            return

        self._vehicle.ins.inject_imu(instance, record)

    def _handle_delta_imu(self, record: LogRecord) -> None:
        if not self._use_imt:
            return

        instance: int = DELTA_IMU_TYPES[record.type_name]
        if instance not in self._delta_instances:
            _LOG.debug("Using %s delta samples for IMU %d", record.type_name, instance)
            self._delta_instances.add(instance)

        self._vehicle.ins.inject_delta(instance, record)

    def _handle_att(self, record: LogRecord) -> None:
        self.reference.attitude = _vector3(record, "Roll", "Pitch", "Yaw")

    def _handle_ahr2(self, record: LogRecord) -> None:
        self.reference.ahr2_attitude = _vector3(record, "Roll", "Pitch", "Yaw")

    def _handle_sim(self, record: LogRecord) -> None:
        self.reference.sim_attitude = _vector3(record, "Roll", "Pitch", "Yaw")

    def _handle_ntun(self, record: LogRecord) -> None:
        self.reference.inav_pos = np.array(
            [
                record.get_float("PosX") * _M_PER_CM,
                record.get_float("PosY") * _M_PER_CM,
            ],
            dtype=np.float64,
        )

    def _handle_pos(self, record: LogRecord) -> None:
        if record.has("RelHomeAlt"):
            self.reference.rel_alt = record.get_float("RelHomeAlt")
        elif record.has("RelAlt"):
            self.reference.rel_alt = record.get_float("RelAlt")

    def _handle_ctun(self, record: LogRecord) -> None:
        if record.has("BarAlt"):
            self.reference.rel_alt = record.get_float("BarAlt")
