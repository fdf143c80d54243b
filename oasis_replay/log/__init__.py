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
Decoding of DataFlash binary logs
"""

from __future__ import annotations

from oasis_replay.log.dataflash_reader import DataflashReader
from oasis_replay.log.log_types import LogFormat
from oasis_replay.log.log_types import LogRecord


__all__ = [
    "DataflashReader",
    "LogFormat",
    "LogRecord",
]
