"""Reading and writing of classic libpcap capture files."""

from __future__ import annotations

import os
import struct
from dataclasses import dataclass
from typing import BinaryIO, Iterator, Union

LINKTYPE_ETHERNET = 1
PCAP_VERSION = (2, 4)

_MAGIC_USEC = 0xA1B2C3D4
_MAGIC_NSEC = 0xA1B23C4D
_FILE_HEADER_LEN = 24
_RECORD_HEADER_LEN = 16

Source = Union[str, "os.PathLike[str]", BinaryIO]


class PcapFormatError(ValueError):
    """Raised when a capture file is malformed or truncated."""


@dataclass(frozen=True)
class PcapRecord:
    """One captured frame: timestamp, captured bytes and length on the wire."""

    ts_usec: int
    data: bytes
    wire_len: int


def _open(source: Source, mode: str) -> tuple[BinaryIO, bool]:
    if isinstance(source, (str, os.PathLike)):
        return open(source, mode), True
    return source, False


class PcapReader:
    """Iterates over the records of a capture file.

    Both byte orders and both microsecond and nanosecond timestamp
    resolutions are understood; timestamps are reported in microseconds.
    """

    def __init__(self, source: Source) -> None:
        self._file, self._owned = _open(source, "rb")
        try:
            self._read_header()
        except BaseException:
            self.close()
            raise

    def _read_header(self) -> None:
        header = self._file.read(_FILE_HEADER_LEN)
        if len(header) < _FILE_HEADER_LEN:
            raise PcapFormatError("truncated file header")
        for order in ("<", ">"):
            (magic,) = struct.unpack(order + "I", header[:4])
            if magic in (_MAGIC_USEC, _MAGIC_NSEC):
                break
        else:
            raise PcapFormatError(f"unrecognised magic number 0x{magic:08x}")
        self.byte_order = order
        self.nanosecond = magic == _MAGIC_NSEC
        (
            major,
            minor,
            self.thiszone,
            self.sigfigs,
            self.snaplen,
            self.linktype,
        ) = struct.unpack(order + "HHiIII", header[4:])
        self.version = (major, minor)
        self._record_header = struct.Struct(order + "IIII")

    def __iter__(self) -> Iterator[PcapRecord]:
        while True:
            head = self._file.read(_RECORD_HEADER_LEN)
            if not head:
                return
            if len(head) < _RECORD_HEADER_LEN:
                raise PcapFormatError("truncated record header")
            seconds, fraction, incl_len, orig_len = self._record_header.unpack(head)
            data = self._file.read(incl_len)
            if len(data) < incl_len:
                raise PcapFormatError("truncated record data")
            micros = fraction // 1000 if self.nanosecond else fraction
            yield PcapRecord(seconds * 1_000_000 + micros, data, orig_len)

    def close(self) -> None:
        """Close the underlying file if this reader opened it."""
        if self._owned and not self._file.closed:
            self._file.close()

    def __enter__(self) -> "PcapReader":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class PcapWriter:
    """Writes records to a little-endian, microsecond-resolution capture file."""

    def __init__(
        self, target: Source, snaplen: int = 65535, linktype: int = LINKTYPE_ETHERNET
    ) -> None:
        self._file, self._owned = _open(target, "wb")
        self.snaplen = snaplen
        self.linktype = linktype
        self._closed = False
        try:
            self._file.write(
                struct.pack(
                    "<IHHiIII", _MAGIC_USEC, *PCAP_VERSION, 0, 0, snaplen, linktype
                )
            )
        except BaseException:
            self.close()
            raise

    def write(self, record: PcapRecord) -> None:
        """Append one record."""
        seconds, micros = divmod(record.ts_usec, 1_000_000)
        self._file.write(
            struct.pack("<IIII", seconds, micros, len(record.data), record.wire_len)
        )
        self._file.write(record.data)

    def flush(self) -> None:
        """Push buffered records to the file."""
        self._file.flush()

    def close(self) -> None:
        """Flush and, if this writer opened the file, close it."""
        if self._closed:
            return
        self._closed = True
        if not self._file.closed:
            self._file.flush()
            if self._owned:
                self._file.close()

    def __enter__(self) -> "PcapWriter":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()