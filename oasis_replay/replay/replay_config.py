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
Configuration of a replay session
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from typing import Optional

import yaml

from oasis_replay.replay.replay_errors import ReplayConfigError
from oasis_replay.vehicle.parameters import MAX_NAME_LENGTH


# Log replayed when no file is given
DEFAULT_LOG_PATH: str = "log.bin"

# Update rates the inertial sensors can be configured for, in Hz
CANONICAL_RATES: tuple[int, ...] = (50, 100, 200, 400)

# Record type whose timestamps reveal the log's sample rate
DEFAULT_RATE_REFERENCE_TYPE: str = "IMU2"

# Most overrides a single session accepts
MAX_USER_PARAMETERS: int = 100

# Mask selecting both IMU instances
ALL_IMUS_MASK: int = 3


@dataclass(frozen=True)
class UserParameter:
    """
    A parameter override supplied before replay starts

    Fields:
        name: Parameter name, at most MAX_NAME_LENGTH characters
        value: Value applied once the log's own configuration is loaded
    """

    name: str
    value: float


def parse_user_parameter(text: str) -> UserParameter:
    """
    Parse a NAME=VALUE override
    """

    name, separator, value_text = text.partition("=")
    if not separator:
        raise ReplayConfigError("Usage: -p NAME=VALUE")

    name = name.strip()
    if not name:
        raise ReplayConfigError(f"Missing parameter name in '{text}'")
    if len(name) > MAX_NAME_LENGTH:
        raise ReplayConfigError(
            f"Parameter name {name} is longer than {MAX_NAME_LENGTH} characters"
        )

    try:
        value: float = float(value_text)
    except ValueError as exc:
        raise ReplayConfigError(
            f"Invalid value for parameter {name}: '{value_text}'"
        ) from exc

    return UserParameter(name=name, value=value)


def load_parameter_file(path: str) -> tuple[UserParameter, ...]:
    """
    Load overrides from a YAML mapping of parameter names to values
    """

    try:
        with open(path, encoding="utf-8") as stream:
            data: Any = yaml.safe_load(stream)
    except OSError as exc:
        raise ReplayConfigError(f"{path}: {exc.strerror}") from exc
    except yaml.YAMLError as exc:
        raise ReplayConfigError(f"{path}: invalid YAML: {exc}") from exc

    if data is None:
        return ()
    if not isinstance(data, dict):
        raise ReplayConfigError(f"{path}: expected a mapping of NAME: VALUE")

    return tuple(
        parse_user_parameter(f"{name}={value}") for name, value in data.items()
    )


@dataclass(frozen=True)
class ReplayConfig:
    """
    Options of a replay session

    Fields:
        log_path: Log file to replay
        update_rate: Inertial update rate in Hz, or None to detect it
        user_parameters: Overrides applied after the log's configuration
        accel_mask: Bit mask of accelerometers used (1, 2 or 3)
        gyro_mask: Bit mask of gyros used (1, 2 or 3)
        arm_time_ms: Replay time at which to arm, or None to never arm
        use_imt: False restricts detection to the rate-sample IMU records
        rate_reference_type: Record type used for rate detection
        output_dir: Directory receiving the comparison tables
    """

    log_path: str = DEFAULT_LOG_PATH
    update_rate: Optional[int] = None
    user_parameters: tuple[UserParameter, ...] = ()
    accel_mask: int = ALL_IMUS_MASK
    gyro_mask: int = ALL_IMUS_MASK
    arm_time_ms: Optional[int] = None
    use_imt: bool = True
    rate_reference_type: str = DEFAULT_RATE_REFERENCE_TYPE
    output_dir: Path = Path(".")

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        """
        Raise ReplayConfigError if any option is out of range
        """

        if self.update_rate is not None and self.update_rate not in CANONICAL_RATES:
            raise ReplayConfigError(
                f"Invalid update rate ({self.update_rate}); use 50, 100, 200 or 400"
            )

        if len(self.user_parameters) >= MAX_USER_PARAMETERS:
            raise ReplayConfigError("Too many user parameters")

        for user_parameter in self.user_parameters:
            if not math.isfinite(user_parameter.value):
                raise ReplayConfigError(
                    f"Parameter {user_parameter.name} must be finite"
                )

        for mask_name, mask in (("accel", self.accel_mask), ("gyro", self.gyro_mask)):
            if not 1 <= mask <= ALL_IMUS_MASK:
                raise ReplayConfigError(
                    f"Invalid {mask_name} mask {mask}; use 1, 2 or 3"
                )

        if self.arm_time_ms is not None and self.arm_time_ms < 0:
            raise ReplayConfigError("Arm time must not be negative")

        if not self.rate_reference_type:
            raise ReplayConfigError("Rate reference type must not be empty")
