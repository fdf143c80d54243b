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
Detection of how a log packages its inertial data

A log carries its inertial samples in one of several mutually exclusive
layouts, and the layout is never declared: it is inferred from the record
types seen so far. Exactly one record type is authoritative at any time, and
each record of that type triggers a full estimator update.

Layouts, in priority order:

    FRAMED         FRAM records delimit estimator frames
    ALT_SECONDARY  IMT2 delta samples, once both IMT and IMT2 have been seen
    ALT_PRIMARY    IMT delta samples
    LEGACY_DUAL    IMU2 rate samples, once IMU2 has been seen
    LEGACY         IMU rate samples

Detection flags are sticky: once a record type has been seen, the layouts it
implies stay in force for the rest of the session.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from dataclasses import replace


_LOG: logging.Logger = logging.getLogger(__name__)


# Record types that take part in layout detection
FRAME_SYNC_TYPE: str = "FRAM"
ALT_PRIMARY_TYPE: str = "IMT"
ALT_SECONDARY_TYPE: str = "IMT2"
LEGACY_PRIMARY_TYPE: str = "IMU"
LEGACY_SECONDARY_TYPE: str = "IMU2"


class SensorFormat(enum.Enum):
    """
    Inertial data layout of a log

    Attributes:
        LEGACY: Rate samples from a single IMU
        LEGACY_DUAL: Rate samples, secondary IMU stream present
        ALT_PRIMARY: Delta samples from the primary IMU
        ALT_SECONDARY: Delta samples, secondary IMU stream present
        FRAMED: Frame-synchronized samples
    """

    LEGACY = "legacy"
    LEGACY_DUAL = "legacy_dual"
    ALT_PRIMARY = "alt_primary"
    ALT_SECONDARY = "alt_secondary"
    FRAMED = "framed"


# Record type that triggers an estimator update under each layout
TRIGGER_TYPES: dict[SensorFormat, str] = {
    SensorFormat.LEGACY: LEGACY_PRIMARY_TYPE,
    SensorFormat.LEGACY_DUAL: LEGACY_SECONDARY_TYPE,
    SensorFormat.ALT_PRIMARY: ALT_PRIMARY_TYPE,
    SensorFormat.ALT_SECONDARY: ALT_SECONDARY_TYPE,
    SensorFormat.FRAMED: FRAME_SYNC_TYPE,
}


@dataclass(frozen=True)
class SensorFormatState:
    """
    Sticky detection flags

    Fields:
        has_dual_inertial: An IMU2 record has been seen
        has_alt_inertial: An IMT record has been seen
        has_alt_inertial_secondary: An IMT2 record has been seen
        has_framed_inertial: A FRAM record has been seen
    """

    has_dual_inertial: bool = False
    has_alt_inertial: bool = False
    has_alt_inertial_secondary: bool = False
    has_framed_inertial: bool = False

    def observe(self, type_name: str, use_alternate: bool = True) -> SensorFormatState:
        """
        Return the state after seeing a record of the given type

        Flags only ever turn on. When use_alternate is False, framed and
        delta records are ignored and detection stays on the legacy layouts.
        """

        if type_name == LEGACY_SECONDARY_TYPE and not self.has_dual_inertial:
            return replace(self, has_dual_inertial=True)

        if not use_alternate:
            return self

        if type_name == FRAME_SYNC_TYPE and not self.has_framed_inertial:
            return replace(self, has_framed_inertial=True)
        if type_name == ALT_PRIMARY_TYPE and not self.has_alt_inertial:
            return replace(self, has_alt_inertial=True)
        if type_name == ALT_SECONDARY_TYPE and not self.has_alt_inertial_secondary:
            return replace(self, has_alt_inertial_secondary=True)

        return self

    @property
    def format(self) -> SensorFormat:
        if self.has_framed_inertial:
            return SensorFormat.FRAMED
        if self.has_alt_inertial:
            if self.has_alt_inertial_secondary:
                return SensorFormat.ALT_SECONDARY
            return SensorFormat.ALT_PRIMARY
        if self.has_dual_inertial:
            return SensorFormat.LEGACY_DUAL
        return SensorFormat.LEGACY

    def triggers(self, type_name: str) -> bool:
        """
        True if a record of this type triggers an estimator update
        """

        return TRIGGER_TYPES[self.format] == type_name


class SensorFormatArbiter:
    """
    Tracks the inertial layout of a log and picks the trigger records
    """

    def __init__(self, use_alternate: bool = True) -> None:
        self._use_alternate: bool = use_alternate
        self._state: SensorFormatState = SensorFormatState()

    @property
    def state(self) -> SensorFormatState:
        return self._state

    @property
    def format(self) -> SensorFormat:
        return self._state.format

    def observe(self, type_name: str) -> bool:
        """
        Update detection with a record type and decide whether it triggers

        Returns:
            True if this record must trigger a full estimator update
        """

        state: SensorFormatState = self._state.observe(type_name, self._use_alternate)
        if state != self._state:
            previous: SensorFormat = self._state.format
            self._state = state
            if state.has_framed_inertial and type_name == FRAME_SYNC_TYPE:
                _LOG.info("Have FRAM framing")
            if state.format != previous:
                _LOG.debug(
                    "Inertial layout %s -> %s after %s",
                    previous.value,
                    state.format.value,
                    type_name,
                )

        return self._state.triggers(type_name)
