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
Replay loop that synchronizes a log with the vehicle estimator

Each record read from the log passes through the same steps:

  1. User parameter overrides are applied once the log's configuration
     section has been read
  2. The inertial layout detector decides whether the record triggers an
     estimator update
  3. Sensors latch any values the record injected
  4. On a trigger, the estimator and the dead-reckoned position advance

Replay starts with an initialization phase that processes records without
estimator updates until the home location can be established.
"""

from __future__ import annotations

import logging
from typing import Optional

from oasis_replay.log.log_reader import LogReader
from oasis_replay.log.log_types import LogRecord
from oasis_replay.replay.arm_time_gate import ArmTimeGate
from oasis_replay.replay.home_initializer import HomeInitializer
from oasis_replay.replay.home_initializer import HomeState
from oasis_replay.replay.parameter_stager import ParameterStager
from oasis_replay.replay.replay_config import ReplayConfig
from oasis_replay.replay.replay_outputs import ReplayOutputs
from oasis_replay.replay.replay_outputs import make_sample
from oasis_replay.replay.sensor_format import SensorFormat
from oasis_replay.replay.sensor_format import SensorFormatArbiter
from oasis_replay.vehicle.replay_vehicle import ReplayVehicle


_LOG: logging.Logger = logging.getLogger(__name__)


# Record types with sensor side effects
GPS_TYPE: str = "GPS"
MAG_TYPE: str = "MAG"
ARSP_TYPE: str = "ARSP"
BARO_TYPE: str = "BARO"

# Record type that emits a row in the comparison tables
ATTITUDE_TYPE: str = "ATT"


class ReplayDispatcher:
    """
    Drives a replay session from the first record to the end of the log

    Args:
        config: Session configuration
        reader: Source of records, already bound to the vehicle
        vehicle: The vehicle receiving the records
        outputs: Comparison tables, or None to write nothing
    """

    def __init__(
        self,
        config: ReplayConfig,
        reader: LogReader,
        vehicle: ReplayVehicle,
        outputs: Optional[ReplayOutputs] = None,
    ) -> None:
        self._config: ReplayConfig = config
        self._reader: LogReader = reader
        self._vehicle: ReplayVehicle = vehicle
        self._outputs: Optional[ReplayOutputs] = outputs

        self._stager: ParameterStager = ParameterStager(
            config.user_parameters, reader.set_parameter
        )
        self._arbiter: SensorFormatArbiter = SensorFormatArbiter(
            use_alternate=config.use_imt
        )
        self._home: HomeInitializer = HomeInitializer()
        self._arm_gate: ArmTimeGate = ArmTimeGate(config.arm_time_ms)

        self._ahrs_healthy: bool = False
        self._trigger_count: int = 0
        self._record_count: int = 0
        self._finished: bool = False

    @property
    def home(self) -> HomeState:
        return self._home.state

    @property
    def sensor_format(self) -> SensorFormat:
        return self._arbiter.format

    @property
    def parameters_applied(self) -> bool:
        return self._stager.applied

    @property
    def trigger_count(self) -> int:
        return self._trigger_count

    @property
    def record_count(self) -> int:
        return self._record_count

    @property
    def finished(self) -> bool:
        return self._finished

    def run(self) -> None:
        """
        Replay the whole log

        Raises:
            ReplayError: On a fatal configuration or log error
        """

        try:
            if self.setup():
                self.loop()
        finally:
            if self._outputs is not None:
                self._outputs.close()

    def setup(self) -> bool:
        """
        Process records until the home location is established

        Returns:
            True if home was established, False if the log ended first
        """

        _LOG.info("Starting disarmed")
        _LOG.info("Waiting for GPS")

        while not self._home.established:
            record: Optional[LogRecord] = self._reader.update()
            if record is None:
                _LOG.warning("Log ended before a GPS lock was found")
                self._end_of_log()
                return False

            self.read_sensors(record, allow_trigger=False)

            if self._home.observe(
                record.type_name,
                self._vehicle.gps.has_3d_fix(),
                self._vehicle.barometer.calibrated,
                self._vehicle.gps.location,
                self._vehicle.clock.millis(),
            ):
                location = self._vehicle.gps.location
                self._vehicle.ahrs.set_home(location)
                self._vehicle.compass.set_initial_location(location.lat, location.lng)

        return True

    def loop(self) -> None:
        """
        Replay the remaining records with estimator updates
        """

        while True:
            if self._arm_gate.check(self._vehicle.clock.millis()):
                self._vehicle.armed = True

            record: Optional[LogRecord] = self._reader.update()
            if record is None:
                self._end_of_log()
                return

            self.read_sensors(record, allow_trigger=True)

            if record.type_name == ATTITUDE_TYPE:
                self._write_outputs()

    def read_sensors(self, record: LogRecord, allow_trigger: bool = True) -> bool:
        """
        Apply the sensor side effects of one record

        Args:
            record: The record just read from the log
            allow_trigger: False during initialization, when estimator
                updates are withheld

        Returns:
            True if the record triggered an estimator update
        """

        self._record_count += 1
        type_name: str = record.type_name

        self._stager.observe(type_name)

        triggered: bool = self._arbiter.observe(type_name)

        vehicle: ReplayVehicle = self._vehicle
        if type_name == GPS_TYPE:
            vehicle.gps.update()
            if vehicle.gps.has_3d_fix():
                vehicle.ahrs.estimate_wind()
        elif type_name == MAG_TYPE:
            vehicle.compass.read()
        elif type_name == ARSP_TYPE:
            vehicle.ahrs.set_airspeed(vehicle.airspeed)
        elif type_name == BARO_TYPE:
            vehicle.barometer.update()
            if not vehicle.barometer.calibrated:
                _LOG.info("Barometer initialised")
                vehicle.barometer.update_calibration()

        if not (triggered and allow_trigger):
            return False

        self._run_ahrs()

        return True

    def _run_ahrs(self) -> None:
        vehicle: ReplayVehicle = self._vehicle

        vehicle.ahrs.update()
        if self._home.established:
            vehicle.inertial_nav.update(vehicle.ins.delta_time)
        self._trigger_count += 1

        if _LOG.isEnabledFor(logging.DEBUG):
            roll, pitch, yaw = vehicle.ahrs.snapshot().euler
            _LOG.debug(
                "AHRS update %d: roll=%.3f pitch=%.3f yaw=%.3f",
                self._trigger_count,
                roll,
                pitch,
                yaw,
            )

        healthy: bool = vehicle.ahrs.healthy()
        if healthy != self._ahrs_healthy:
            self._ahrs_healthy = healthy
            _LOG.info("AHRS health: %u at %lu", int(healthy), vehicle.clock.millis())

    def _write_outputs(self) -> None:
        if self._outputs is None:
            return

        vehicle: ReplayVehicle = self._vehicle
        self._outputs.write(
            make_sample(
                time_ms=vehicle.clock.millis(),
                reference=self._reader.reference,
                baro_altitude=vehicle.barometer.altitude,
                estimator=vehicle.ahrs.snapshot(),
                inav_position_cm=vehicle.inertial_nav.get_position(),
            )
        )

    def _end_of_log(self) -> None:
        self._finished = True
        _LOG.info("End of log at %.1f seconds", self._vehicle.clock.millis() * 0.001)
