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
One-shot selection of the home location
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from oasis_replay.vehicle.sensors import Location


_LOG: logging.Logger = logging.getLogger(__name__)


# Record type carrying position fixes
GPS_TYPE: str = "GPS"


@dataclass(frozen=True)
class HomeState:
    """
    Home location of the replay session

    Fields:
        established: True once home has been committed
        location: The committed home location
        time_ms: Replay time at which home was committed
    """

    established: bool = False
    location: Optional[Location] = None
    time_ms: int = 0


class HomeInitializer:
    """
    Waits for a 3D fix after barometer calibration, then commits home

    Home is committed exactly once, from the first GPS record that reports a
    3D fix after the first barometer record has been processed. Later fixes
    have no effect.
    """

    def __init__(self) -> None:
        self._state: HomeState = HomeState()

    @property
    def state(self) -> HomeState:
        return self._state

    @property
    def established(self) -> bool:
        return self._state.established

    def observe(
        self,
        type_name: str,
        has_3d_fix: bool,
        baro_calibrated: bool,
        location: Location,
        now_ms: int,
    ) -> bool:
        """
        Consider one processed record

        Returns:
            True only on the call that establishes home
        """

        if self._state.established:
            return False

        if type_name != GPS_TYPE or not has_3d_fix or not baro_calibrated:
            return False

        self._state = HomeState(established=True, location=location, time_ms=now_ms)

        _LOG.info(
            "GPS Lock at %.7f %.7f %.2fm time=%.1f seconds",
            location.lat_deg,
            location.lng_deg,
            location.alt_m,
            now_ms * 0.001,
        )

        return True
