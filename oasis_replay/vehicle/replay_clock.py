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
Replay time source driven by log timestamps
"""

from __future__ import annotations


# Microseconds per millisecond
_US_PER_MS: int = 1000


class ReplayClock:
    """
    Monotonic clock advanced by the timestamps of replayed records

    The clock never moves backwards: a timestamp behind the current time is
    ignored, so the clock stays non-decreasing even across log glitches.
    """

    def __init__(self) -> None:
        self._time_us: int = 0

    def advance_us(self, time_us: int) -> None:
        if time_us > self._time_us:
            self._time_us = time_us

    def millis(self) -> int:
        return self._time_us // _US_PER_MS
