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
Error types raised while replaying a flight log

All errors derive from ReplayError. Every one of them is terminal for the
replay session; the CLI maps them to exit code 1.
"""

from __future__ import annotations

from typing import Optional


class ReplayError(Exception):
    """Base class for fatal replay conditions."""


class ReplayConfigError(ReplayError):
    """Raised when a caller supplies a malformed or invalid option."""


class UnknownParameterError(ReplayConfigError):
    """Raised when an override names a parameter the vehicle does not know."""

    def __init__(self, name: str, value: float) -> None:
        super().__init__(f"Failed to set parameter {name} to {value:f}")
        self.name: str = name
        self.value: float = value


class LogOpenError(ReplayError):
    """Raised when the log file cannot be opened."""

    def __init__(self, path: str, strerror: Optional[str]) -> None:
        super().__init__(f"{path}: {strerror or 'unable to open log'}")
        self.path: str = path
        self.strerror: Optional[str] = strerror


class LogReadError(ReplayError):
    """Raised when an I/O failure interrupts reading an open log."""


class RateDetectionError(ReplayError):
    """Raised when the nominal sample rate of a log cannot be determined."""


class OutputError(ReplayError):
    """Raised when a comparison table cannot be created or written."""
