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
Deferred application of user parameter overrides
"""

from __future__ import annotations

import logging
from typing import Callable
from typing import Iterable

from oasis_replay.log.log_types import FMT_TYPE
from oasis_replay.log.log_types import PARM_TYPE
from oasis_replay.replay.replay_config import UserParameter
from oasis_replay.replay.replay_errors import UnknownParameterError


_LOG: logging.Logger = logging.getLogger(__name__)


# Record types of the log's leading configuration section
BOOTSTRAP_TYPES: frozenset[str] = frozenset({FMT_TYPE, PARM_TYPE})

# Applies one override, returning False for an unknown name
ParameterSetter = Callable[[str, float], bool]


class ParameterStager:
    """
    Holds user overrides back until the log's own configuration is loaded

    A log opens with its format and parameter records. Overrides are applied
    when the first record of any other type arrives, so that they replace the
    values the log configured rather than being replaced by them.

    Overrides are applied in the order given. Duplicate names are not
    rejected: each is applied in turn and the last one wins.
    """

    def __init__(
        self, overrides: Iterable[UserParameter], setter: ParameterSetter
    ) -> None:
        self._overrides: tuple[UserParameter, ...] = tuple(overrides)
        self._setter: ParameterSetter = setter
        self._applied: bool = False

    @property
    def applied(self) -> bool:
        return self._applied

    @property
    def overrides(self) -> tuple[UserParameter, ...]:
        return self._overrides

    def observe(self, type_name: str) -> bool:
        """
        Apply the overrides if this record ends the configuration section

        Returns:
            True if the overrides were applied by this call

        Raises:
            UnknownParameterError: If an override names an unknown parameter
        """

        if self._applied or type_name in BOOTSTRAP_TYPES:
            return False

        self._applied = True
        for override in self._overrides:
            if not self._setter(override.name, override.value):
                raise UnknownParameterError(override.name, override.value)
            _LOG.info("Set parameter %s to %f", override.name, override.value)

        return True
