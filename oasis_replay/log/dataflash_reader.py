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
Forward-only decoder for DataFlash binary flight logs

A DataFlash log is a sequence of messages, each introduced by the two sync
bytes 0xA3 0x95 and a one-byte message ID. The payload layout of every message
ID is declared in-band by an FMT message, which itself has a fixed, well-known
layout. Records are produced lazily, one per call, so a log can be replayed
without holding it in memory.
"""

from __future__ import annotations

import logging
import struct
from dataclasses import dataclass
from types import TracebackType
from typing import BinaryIO
from typing import Optional

from oasis_replay.log.log_types import FMT_TYPE
from oasis_replay.log.log_types import FieldValue
from oasis_replay.log.log_types import LogFormat
from oasis_replay.log.log_types import LogRecord
from oasis_replay.replay.replay_errors import LogOpenError
from oasis_replay.replay.replay_errors import LogReadError


_LOG: logging.Logger = logging.getLogger(__name__)


# Sync bytes that start every message
HEAD_BYTE1: int = 0xA3
HEAD_BYTE2: int = 0x95

# Sync bytes plus message ID
HEADER_LEN: int = 3

# Message ID and layout of the self-describing FMT message
FMT_MSG_ID: int = 128
FMT_FORMAT: str = "BBnNZ"
FMT_LABELS: tuple[str, ...] = ("Type", "Length", "Name", "Format", "Columns")
FMT_LENGTH: int = 89

# Bytes requested from the file per read
_CHUNK_SIZE: int = 1 << 16

# Format character -> (struct code, multiplier applied after unpacking)
_FORMAT_CHARS: dict[str, tuple[str, Optional[float]]] = {
    "b": ("b", None),
    "B": ("B", None),
    "M": ("B", None),
    "h": ("h", None),
    "H": ("H", None),
    "i": ("i", None),
    "I": ("I", None),
    "L": ("i", None),
    "q": ("q", None),
    "Q": ("Q", None),
    "f": ("f", None),
    "d": ("d", None),
    "c": ("h", 0.01),
    "C": ("H", 0.01),
    "e": ("i", 0.01),
    "E": ("I", 0.01),
    "n": ("4s", None),
    "N": ("16s", None),
    "Z": ("64s", None),
}


@dataclass(frozen=True)
class _CompiledFormat:
    """
    An FMT declaration together with its struct decoder

    Fields:
        log_format: The declared layout
        decoder: Struct used to unpack the payload, or None when the layout
            uses unsupported format characters and must be skipped
        scales: Per-field multiplier, None for fields stored unscaled
    """

    log_format: LogFormat
    decoder: Optional[struct.Struct]
    scales: tuple[Optional[float], ...]

    def decode(self, payload: bytes) -> dict[str, FieldValue]:
        assert self.decoder is not None

        values: tuple = self.decoder.unpack(payload)
        fields: dict[str, FieldValue] = {}
        for label, value, scale in zip(self.log_format.labels, values, self.scales):
            if isinstance(value, bytes):
                fields[label] = value.split(b"\0", 1)[0].decode(
                    "ascii", errors="replace"
                )
            elif scale is not None:
                fields[label] = value * scale
            else:
                fields[label] = value

        return fields


def compile_format(log_format: LogFormat) -> _CompiledFormat:
    """
    Build a decoder for a declared layout

    Layouts with unknown format characters, or whose size disagrees with the
    declared length, compile to a format without a decoder so that their
    messages can still be skipped by length.
    """

    codes: list[str] = []
    scales: list[Optional[float]] = []
    for format_char in log_format.format:
        entry: Optional[tuple[str, Optional[float]]] = _FORMAT_CHARS.get(format_char)
        if entry is None:
            _LOG.warning(
                "Unsupported format character '%s' in %s", format_char, log_format.name
            )
            return _CompiledFormat(log_format=log_format, decoder=None, scales=())
        codes.append(entry[0])
        scales.append(entry[1])

    decoder: struct.Struct = struct.Struct("<" + "".join(codes))
    if decoder.size != log_format.length - HEADER_LEN:
        _LOG.warning(
            "Format %s declares %d bytes but its fields need %d",
            log_format.name,
            log_format.length - HEADER_LEN,
            decoder.size,
        )
        return _CompiledFormat(log_format=log_format, decoder=None, scales=())

    return _CompiledFormat(log_format=log_format, decoder=decoder, scales=tuple(scales))


class DataflashReader:
    """
    Iterator over the records of a DataFlash log file

    Usage:

        with DataflashReader("log.bin") as reader:
            for record in reader:
                ...
    """

    def __init__(self, path: str) -> None:
        self._path: str = path
        self._file: Optional[BinaryIO] = None
        self._buffer: bytearray = bytearray()
        self._formats: dict[int, _CompiledFormat] = {}
        self._skipped_bytes: int = 0

        self._register(
            LogFormat(
                msg_id=FMT_MSG_ID,
                length=FMT_LENGTH,
                name=FMT_TYPE,
                format=FMT_FORMAT,
                labels=FMT_LABELS,
            )
        )

    @property
    def skipped_bytes(self) -> int:
        """
        Number of bytes discarded while searching for a message header
        """

        return self._skipped_bytes

    def formats(self) -> dict[str, LogFormat]:
        """
        Return the layouts declared so far, keyed by record type name
        """

        return {
            compiled.log_format.name: compiled.log_format
            for compiled in self._formats.values()
        }

    def open(self) -> DataflashReader:
        if self._file is not None:
            return self

        try:
            self._file = open(self._path, "rb")
        except OSError as exc:
            raise LogOpenError(self._path, exc.strerror) from exc

        return self

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        self._buffer.clear()

    def __enter__(self) -> DataflashReader:
        return self.open()

    def __exit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        self.close()

    def __iter__(self) -> DataflashReader:
        return self

    def __next__(self) -> LogRecord:
        record: Optional[LogRecord] = self.read_record()
        if record is None:
            raise StopIteration
        return record

    def read_record(self) -> Optional[LogRecord]:
        """
        Decode the next record, or return None when the log is exhausted

        A truncated message at the end of the file also ends the log.
        """

        while True:
            if not self._fill(HEADER_LEN):
                return None

            if self._buffer[0] != HEAD_BYTE1 or self._buffer[1] != HEAD_BYTE2:
                self._discard_byte()
                continue

            compiled: Optional[_CompiledFormat] = self._formats.get(self._buffer[2])
            if compiled is None:
                self._discard_byte()
                continue

            length: int = compiled.log_format.length
            if not self._fill(length):
                _LOG.debug(
                    "Truncated %s message at end of log", compiled.log_format.name
                )
                return None

            payload: bytes = bytes(self._buffer[HEADER_LEN:length])
            del self._buffer[:length]

            if compiled.decoder is None:
                continue

            record: LogRecord = LogRecord(
                type_name=compiled.log_format.name,
                fields=compiled.decode(payload),
            )

            if compiled.log_format.msg_id == FMT_MSG_ID:
                self._register_fmt(record)

            return record

    def _register_fmt(self, record: LogRecord) -> None:
        columns: str = str(record.get("Columns", ""))
        log_format: LogFormat = LogFormat(
            msg_id=int(record.get("Type")),
            length=int(record.get("Length")),
            name=str(record.get("Name", "")),
            format=str(record.get("Format", "")),
            labels=tuple(label for label in columns.split(",") if label),
        )

        if log_format.length < HEADER_LEN:
            _LOG.warning(
                "Ignoring FMT for %s with length %d",
                log_format.name,
                log_format.length,
            )
            return

        if log_format.msg_id == FMT_MSG_ID:
            return

        self._register(log_format)

    def _register(self, log_format: LogFormat) -> None:
        self._formats[log_format.msg_id] = compile_format(log_format)

    def _discard_byte(self) -> None:
        del self._buffer[0]
        self._skipped_bytes += 1

    def _fill(self, size: int) -> bool:
        if self._file is None:
            raise LogReadError(f"{self._path}: log is not open")

        while len(self._buffer) < size:
            try:
                chunk: bytes = self._file.read(_CHUNK_SIZE)
            except OSError as exc:
                raise LogReadError(f"{self._path}: {exc.strerror}") from exc
            if not chunk:
                return False
            self._buffer.extend(chunk)

        return True
