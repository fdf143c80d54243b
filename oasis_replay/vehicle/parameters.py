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
Named configuration parameters of the replayed vehicle
"""

from __future__ import annotations

import logging
from typing import Mapping
from typing import Optional


_LOG: logging.Logger = logging.getLogger(__name__)


# Longest parameter name a vehicle can store
MAX_NAME_LENGTH: int = 16


class ParameterStore:
    """
    Table of named float parameters

    A name is known once it has been declared, either by a component default
    or by one of the log's own PARM records. Values set by the user win over
    anything the log says afterwards.
    """

    def __init__(self, defaults: Optional[Mapping[str, float]] = None) -> None:
        self._values: dict[str, float] = {}
        self._user_names: set[str] = set()

        if defaults is not None:
            self.declare_all(defaults)

    def declare(self, name: str, default: float) -> None:
        """
        Declare a parameter, keeping any value it already has
        """

        self._values.setdefault(name, float(default))

    def declare_all(self, defaults: Mapping[str, float]) -> None:
        for name, default in defaults.items():
            self.declare(name, default)

    def is_known(self, name: str) -> bool:
        return name in self._values

    def get(self, name: str) -> float:
        return self._values[name]

    def set(self, name: str, value: float) -> bool:
        """
        Apply a user override

        Returns False when the name is not a known parameter.
        """

        if name not in self._values:
            return False

        self._values[name] = float(value)
        self._user_names.add(name)

        return True

    def set_from_log(self, name: str, value: float) -> None:
        """
        Apply a value recorded by the log's own configuration records
        """

        if not name:
            return

        if name in self._user_names:
            _LOG.debug("Keeping user value for %s, log has %f", name, value)
            return

        self._values[name] = float(value)
