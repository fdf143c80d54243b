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
Entry point for replaying a flight log through the vehicle estimator
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import NoReturn
from typing import Optional
from typing import Sequence

from oasis_replay.log.dataflash_reader import DataflashReader
from oasis_replay.log.log_reader import LogReader
from oasis_replay.replay.rate_estimator import find_update_rate
from oasis_replay.replay.replay_config import DEFAULT_LOG_PATH
from oasis_replay.replay.replay_config import DEFAULT_RATE_REFERENCE_TYPE
from oasis_replay.replay.replay_config import ReplayConfig
from oasis_replay.replay.replay_config import UserParameter
from oasis_replay.replay.replay_config import load_parameter_file
from oasis_replay.replay.replay_config import parse_user_parameter
from oasis_replay.replay.replay_dispatcher import ReplayDispatcher
from oasis_replay.replay.replay_errors import ReplayConfigError
from oasis_replay.replay.replay_errors import ReplayError
from oasis_replay.replay.replay_outputs import ReplayOutputs
from oasis_replay.vehicle.replay_vehicle import ReplayVehicle


_LOG: logging.Logger = logging.getLogger(__name__)


################################################################################
# Command line
################################################################################


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> NoReturn:
        raise ReplayConfigError(message)


def _integer(text: str) -> int:
    # Accepts 0x and 0o prefixes, like strtol() with base 0
    try:
        return int(text, 0)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: '{text}'") from exc


def _user_parameter(text: str) -> UserParameter:
    try:
        return parse_user_parameter(text)
    except ReplayConfigError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc


def _parse_args(args: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = _ArgumentParser(
        prog="replay",
        description="Replay a DataFlash flight log through the vehicle estimator",
    )
    parser.add_argument(
        "log",
        nargs="?",
        default=DEFAULT_LOG_PATH,
        help="Log file to replay",
    )
    parser.add_argument(
        "-r",
        "--rate",
        type=_integer,
        default=None,
        help="Set IMU rate in Hz (50, 100, 200 or 400), detected if 0 or not given",
    )
    parser.add_argument(
        "-p",
        "--parm",
        "--param",
        dest="parameters",
        type=_user_parameter,
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Set parameter NAME to VALUE after the log's own parameters",
    )
    parser.add_argument(
        "--param-file",
        type=Path,
        default=None,
        help="YAML mapping of parameter overrides, applied before --parm",
    )
    parser.add_argument(
        "-a",
        "--accel-mask",
        type=_integer,
        default=3,
        help="Set accel mask (1=accel1 only, 2=accel2 only, 3=both)",
    )
    parser.add_argument(
        "-g",
        "--gyro-mask",
        type=_integer,
        default=3,
        help="Set gyro mask (1=gyro1 only, 2=gyro2 only, 3=both)",
    )
    parser.add_argument(
        "-A",
        "--arm-time",
        type=_integer,
        default=None,
        help="Arm at time (milliseconds)",
    )
    parser.add_argument(
        "-n",
        "--no-imt",
        action="store_true",
        help="Don't use IMT data",
    )
    parser.add_argument(
        "--rate-type",
        default=DEFAULT_RATE_REFERENCE_TYPE,
        help="Record type used to detect the IMU rate",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Directory receiving the comparison tables",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Log estimator updates and layout changes",
    )

    return parser.parse_args(args=args)


def _make_config(options: argparse.Namespace) -> ReplayConfig:
    user_parameters: list[UserParameter] = []
    if options.param_file is not None:
        user_parameters.extend(load_parameter_file(str(options.param_file)))
    user_parameters.extend(options.parameters)

    return ReplayConfig(
        log_path=options.log,
        update_rate=options.rate or None,
        user_parameters=tuple(user_parameters),
        accel_mask=options.accel_mask,
        gyro_mask=options.gyro_mask,
        arm_time_ms=options.arm_time,
        use_imt=not options.no_imt,
        rate_reference_type=options.rate_type,
        output_dir=options.output_dir,
    )


################################################################################
# Replay
################################################################################


def detect_update_rate(config: ReplayConfig) -> int:
    """
    Measure the update rate on a separate pass over the log
    """

    with DataflashReader(config.log_path) as records:
        return find_update_rate(records, config.rate_reference_type)


def replay(config: ReplayConfig) -> ReplayDispatcher:
    """
    Replay a log to the end

    Returns:
        The dispatcher, for inspection of the finished session
    """

    _LOG.info("Processing log %s", config.log_path)

    update_rate: int = config.update_rate or detect_update_rate(config)
    _LOG.info("Using an update rate of %u Hz", update_rate)

    vehicle: ReplayVehicle = ReplayVehicle.create(
        update_rate, accel_mask=config.accel_mask, gyro_mask=config.gyro_mask
    )

    with DataflashReader(config.log_path) as records:
        reader: LogReader = LogReader(records, vehicle, use_imt=config.use_imt)

        outputs: ReplayOutputs = ReplayOutputs(config.output_dir)
        outputs.open()

        dispatcher: ReplayDispatcher = ReplayDispatcher(
            config, reader, vehicle, outputs
        )
        dispatcher.run()

    if records.skipped_bytes:
        _LOG.debug("Skipped %d bytes while decoding", records.skipped_bytes)

    return dispatcher


def main(args: Optional[Sequence[str]] = None) -> int:
    try:
        options: argparse.Namespace = _parse_args(args=args)

        logging.basicConfig(
            level=logging.DEBUG if options.verbose else logging.INFO,
            format="%(message)s",
        )

        replay(_make_config(options))
    except ReplayError as err:
        _LOG.error("%s", err)
        return 1

    return 0
