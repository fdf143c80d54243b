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
Tests for replay session configuration
"""

from __future__ import annotations

from pathlib import Path

import pytest

from oasis_replay.replay.replay_config import MAX_USER_PARAMETERS
from oasis_replay.replay.replay_config import ReplayConfig
from oasis_replay.replay.replay_config import UserParameter
from oasis_replay.replay.replay_config import load_parameter_file
from oasis_replay.replay.replay_config import parse_user_parameter
from oasis_replay.replay.replay_errors import ReplayConfigError


def test_defaults() -> None:
    config: ReplayConfig = ReplayConfig()

    assert config.log_path == "log.bin"
    assert config.update_rate is None
    assert config.user_parameters == ()
    assert config.accel_mask == 3
    assert config.gyro_mask == 3
    assert config.arm_time_ms is None
    assert config.use_imt
    assert config.rate_reference_type == "IMU2"


def test_parse_user_parameter() -> None:
    assert parse_user_parameter("EK2_ENABLE=1") == UserParameter("EK2_ENABLE", 1.0)
    assert parse_user_parameter("X=-0.25") == UserParameter("X", -0.25)


@pytest.mark.parametrize(
    "text, message",
    [
        ("EK2_ENABLE", "Usage: -p NAME=VALUE"),
        ("=1", "Missing parameter name"),
        ("A_VERY_LONG_PARAMETER_NAME=1", "longer than 16"),
        ("EK2_ENABLE=on", "Invalid value"),
    ],
)
def test_parse_user_parameter_rejects(text: str, message: str) -> None:
    with pytest.raises(ReplayConfigError, match=message):
        parse_user_parameter(text)


@pytest.mark.parametrize("rate", [50, 100, 200, 400])
def test_canonical_rates_accepted(rate: int) -> None:
    assert ReplayConfig(update_rate=rate).update_rate == rate


@pytest.mark.parametrize("rate", [0, 60, 250, 1000])
def test_invalid_rate(rate: int) -> None:
    with pytest.raises(ReplayConfigError, match="Invalid update rate"):
        ReplayConfig(update_rate=rate)


def test_too_many_parameters() -> None:
    overrides = tuple(
        UserParameter(f"P{index}", 1.0) for index in range(MAX_USER_PARAMETERS)
    )

    assert len(ReplayConfig(user_parameters=overrides[:-1]).user_parameters) == 99
    with pytest.raises(ReplayConfigError, match="Too many user parameters"):
        ReplayConfig(user_parameters=overrides)


@pytest.mark.parametrize("mask", [0, 4, -1])
def test_invalid_masks(mask: int) -> None:
    with pytest.raises(ReplayConfigError, match="accel mask"):
        ReplayConfig(accel_mask=mask)
    with pytest.raises(ReplayConfigError, match="gyro mask"):
        ReplayConfig(gyro_mask=mask)


def test_invalid_arm_time() -> None:
    with pytest.raises(ReplayConfigError):
        ReplayConfig(arm_time_ms=-1)


def test_non_finite_parameter() -> None:
    with pytest.raises(ReplayConfigError, match="finite"):
        ReplayConfig(user_parameters=(UserParameter("X", float("nan")),))


def test_load_parameter_file(tmp_path: Path) -> None:
    path: Path = tmp_path / "params.yaml"
    path.write_text("EK2_ENABLE: 1\nEK2_ALT_NOISE: 0.5\n", encoding="utf-8")

    assert load_parameter_file(str(path)) == (
        UserParameter("EK2_ENABLE", 1.0),
        UserParameter("EK2_ALT_NOISE", 0.5),
    )


def test_load_empty_parameter_file(tmp_path: Path) -> None:
    path: Path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")

    assert load_parameter_file(str(path)) == ()


def test_load_parameter_file_errors(tmp_path: Path) -> None:
    with pytest.raises(ReplayConfigError):
        load_parameter_file(str(tmp_path / "missing.yaml"))

    path: Path = tmp_path / "list.yaml"
    path.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ReplayConfigError, match="mapping"):
        load_parameter_file(str(path))
