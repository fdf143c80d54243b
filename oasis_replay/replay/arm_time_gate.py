################################################################################
#
#  Copyright (C) 2026 Garrett Brown
#  This file is part of OASIS - https://github.com/eigendude/OASIS
#
#  SPDX-License-Identifier: Apache-2.0
#  See DOCS/LICENSING.md for more information.
#
################################################################################

from __future__ import annotations

import logging
from typing import Optional


_LOG: logging.Logger = logging.getLogger(__name__)


class ArmTimeGate:
    """
    Arms the replayed vehicle once replay time passes a threshold

    Args:
        arm_time_ms: Replay time in milliseconds after which to arm, or None
            to never arm
    """

    def __init__(self, arm_time_ms: Optional[int]) -> None:
        self._arm_time_ms: Optional[int] = arm_time_ms
        self._armed: bool = False

    @property
    def armed(self) -> bool:
        return self._armed

    @property
    def enabled(self) -> bool:
        return self._arm_time_ms is not None

    def check(self, now_ms: int) -> bool:
        """
        Compare the replay clock against the threshold

        Returns:
            True only on the call that arms the vehicle
        """

        if self._arm_time_ms is None or self._armed:
            return False

        if now_ms <= self._arm_time_ms:
            return False

        self._armed = True
        _LOG.info("Arming at %u ms", now_ms)

        return True
