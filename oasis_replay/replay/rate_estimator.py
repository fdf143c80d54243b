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
Detection of a log's nominal inertial update rate

The rate is inferred from the spacing of the first timestamps of a reference
record type, then snapped to one of the rates the inertial sensors support.
Detection is a dry run over its own pass of the log, independent of the
replay pass that follows.
"""

from __future__ import annotations

import logging
from typing import Iterable
from typing import Optional

from oasis_replay.log.log_types import LogRecord
from oasis_replay.replay.replay_errors import RateDetectionError


_LOG: logging.Logger = logging.getLogger(__name__)


# Intervals averaged to estimate the rate
RATE_SAMPLE_COUNT: int = 10

# Microseconds per second
_US_PER_S: int = 1_000_000

# (canonical rate in Hz, tolerance in Hz), checked in order. A rate matches
# when it is strictly within the tolerance of the canonical rate
RATE_WINDOWS: tuple[tuple[int, float], ...] = (
    (50, 5.0),
    (100, 10.0),
    (200, 10.0),
    (400, 20.0),
)


def bucket_rate(rate_hz: float) -> Optional[int]:
    """
    Snap a measured rate to a canonical rate, or return None if none matches
    """

    for canonical_hz, tolerance_hz in RATE_WINDOWS:
        if abs(rate_hz - canonical_hz) < tolerance_hz:
            return canonical_hz

    return None


def rate_from_intervals(sample_sum_us: int, sample_count: int) -> float:
    """
    Convert a sum of sample intervals into a frequency in Hz

    The mean interval is taken in whole microseconds, and the rate in whole
    hertz.
    """

    mean_interval_us: int = sample_sum_us // sample_count
    if mean_interval_us <= 0:
        raise RateDetectionError("Unable to determine log rate - zero sample interval")

    return float(_US_PER_S // mean_interval_us)


def find_update_rate(records: Iterable[LogRecord], reference_type: str) -> int:
    """
    Determine the canonical update rate of a log

    Args:
        records: A pass over the log, consumed only as far as needed
        reference_type: Record type whose timestamps are measured

    Raises:
        RateDetectionError: If the log has too few reference records or the
            measured rate matches no canonical rate
    """

    sample_count: int = 0
    sample_sum_us: int = 0
    previous_us: Optional[int] = None

    for record in records:
        if record.type_name != reference_type:
            continue

        timestamp_us: Optional[int] = record.timestamp_us()
        if timestamp_us is None:
            _LOG.warning("Unable to find timestamp in %s message", reference_type)
            continue

        if previous_us is not None and timestamp_us > previous_us:
            sample_sum_us += timestamp_us - previous_us
            sample_count += 1
        previous_us = timestamp_us

        if sample_count >= RATE_SAMPLE_COUNT:
            break

    if sample_count < RATE_SAMPLE_COUNT:
        raise RateDetectionError(
            f"Unable to determine log rate - insufficient {reference_type} messages"
        )

    rate_hz: float = rate_from_intervals(sample_sum_us, sample_count)
    canonical_hz: Optional[int] = bucket_rate(rate_hz)
    if canonical_hz is None:
        raise RateDetectionError(
            f"Unable to determine log rate - {rate_hz:f} matches no rate"
        )

    _LOG.debug(
        "Measured %f Hz from %s, using %d Hz", rate_hz, reference_type, canonical_hz
    )

    return canonical_hz
