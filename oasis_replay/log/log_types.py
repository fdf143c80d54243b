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
Types shared by the log decoder and the replay engine
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field
from typing import Mapping
from typing import Optional
from typing import Union


# Microseconds per millisecond, for logs that only carry TimeMS
_US_PER_MS: int = 1000

# Record type names with special meaning to the replay engine
FMT_TYPE: str = "FMT"
PARM_TYPE: str = "PARM"

FieldValue = Union[int, float, str]


@dataclass(frozen=True)
class LogFormat:
    """
    Message layout declared by an FMT record

    Fields:
        msg_id: Numeric message identifier that follows the sync bytes
        length: Total message length in bytes, including the 3-byte header
        name: Record type name, e.g. "IMU"
        format: One format character per field
        labels: Field names, in the same order as the format characters
    """

    msg_id: int
    length: int
    name: str
    format: str
    labels: tuple[str, ...]


@dataclass(frozen=True)
class LogRecord:
    """
    A single decoded record from a flight log

    Fields:
        type_name: Short record type tag, e.g. "IMU" or "GPS"
        fields: Decoded field values keyed by label
    """

    type_name: str
    fields: Mapping[str, FieldValue] = field(default_factory=dict)

    def get(self, name: str, default: FieldValue = 0) -> FieldValue:
        return self.fields.get(name, default)

    def get_float(self, name: str, default: float = 0.0) -> float:
        value: FieldValue = self.fields.get(name, default)
        if isinstance(value, str):
            return default
        return float(value)

    def has(self, name: str) -> bool:
        return name in self.fields

    def timestamp_us(self) -> Optional[int]:
        """
        Return the record timestamp in microseconds, or None if it has none
        """

        time_us: Optional[FieldValue] = self.fields.get("TimeUS")
        if time_us is not None and not isinstance(time_us, str):
            return int(time_us)

        time_ms: Optional[FieldValue] = self.fields.get("TimeMS")
        if time_ms is not None and not isinstance(time_ms, str):
            return int(time_ms) * _US_PER_MS

        return None
