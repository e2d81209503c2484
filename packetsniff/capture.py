"""Capture sessions reading from a network interface or a capture file."""

from __future__ import annotations

import dataclasses
import re
import socket
import struct
import threading
from pathlib import Path
from typing import Callable, Iterator, Optional

from .analyzer import Analyzer
from .bpf import FilterError, PacketFilter, compile_filter
from .models import Config, StatsSnapshot, now_usec
from .parsing import parse_packet
from .pcapfile import LINKTYPE_ETHERNET, PcapFormatError, PcapReader, PcapRecord, PcapWriter

ETH_P_ALL = 0x0003
SOL_PACKET = 263
PACKET_ADD_MEMBERSHIP = 1
PACKET_MR_PROMISC = 1
IFF_LOOPBACK = 0x8
_RECV_BUFFER = 262144
_STATS_INTERVAL = 1.0


class CaptureError(RuntimeError):
    """Raised when a capture cannot be opened or configured."""


def list_devices() -> list[str]:
    """Return the names of the network interfaces, or an empty list."""
    try:
        return [name for _, name in socket.if_nameindex()]
    except OSError:
        return []


def _is_loopback(name: str) -> bool:
    try:
        flags = int(Path("/sys/class/net", name, "flags").read_text().strip(), 16)
    except (OSError, ValueError):
        return re.fullmatch(r"lo\d*", name) is not None
    return bool(flags & IFF_LOOPBACK)


def choose_default_device() -> str:
    """Pick the first non-loopback interface, else the first one."""
    devices = list_devices()
    if not devices:
        raise CaptureError("No capture devices found")
    return next((name for name in devices if not _is_loopback(name)), devices[0])


def _open_live_socket(device: str, promisc: bool, timeout_ms: int) -> socket.socket:
    family = getattr(socket, "AF_PACKET", None)
    if family is None:
        raise CaptureError("live capture is not supported on this platform")
    try:
        sock = socket.socket(family, socket.SOCK_RAW, socket.htons(ETH_P_ALL))
    except OSError as exc:
        raise CaptureError(f"cannot open interface {device}: {exc}") from exc
    try:
        sock.bind((device, 0))
        if promisc:
            mreq = struct.pack(
                "iHH8s", socket.if_nametoindex(device), PACKET_MR_PROMISC, 0, b""
            )
            sock.setsockopt(SOL_PACKET, PACKET_ADD_MEMBERSHIP, mreq)
        sock.settimeout(timeout_ms / 1000 if timeout_ms > 0 else None)
    except OSError as exc:
        sock.close()
        raise CaptureError(f"cannot open interface {device}: {exc}") from exc
    return sock


def _live_records(sock: socket.socket, snaplen: int) -> Iterator[Optional[PcapRecord]]:
    """Yield captured frames, or ``None`` whenever the read timeout expires."""
    while True:
        try:
            frame = sock.recv(_RECV_BUFFER)
        except socket.timeout:
            yield None
            continue
        except OSError:
            return
        yield PcapRecord(now_usec(), frame[:snaplen], len(frame))


class CaptureSession:
    """Captures packets, keeps statistics and feeds an :class:`Analyzer`."""

    def __init__(self, config: Config) -> None:
        self._config = config
        self._lock = threading.Lock()
        self._stats = StatsSnapshot()
        self._stop_requested = threading.Event()
        self._running = False
        self._analyzer: Optional[Analyzer] = None
        self._packets: Optional[Iterator[Optional[PcapRecord]]] = None
        self._closers: list[Callable[[], None]] = []
        self._filter: Optional[PacketFilter] = None
        self._writer: Optional[PcapWriter] = None
        self._capture_thread: Optional[threading.Thread] = None
        self._stats_thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        """Whether the capture loop is active."""
        return self._running

    def _open_handles(self) -> None:
        if self._packets is not None:
            return
        cfg = self._config
        if cfg.pcap_input is not None:
            try:
                reader = PcapReader(cfg.pcap_input)
            except (OSError, PcapFormatError) as exc:
                raise CaptureError(
                    f"cannot open capture file {cfg.pcap_input}: {exc}"
                ) from exc
            self._closers.append(reader.close)
            self._packets = iter(reader)
            linktype = reader.linktype
        else:
            device = cfg.interface or choose_default_device()
            if cfg.monitor:
                raise CaptureError(
                    "Interface does not support monitor mode or cannot enable it"
                )
            sock = _open_live_socket(device, cfg.promisc, cfg.timeout_ms)
            self._closers.append(sock.close)
            self._packets = _live_records(sock, cfg.snaplen)
            linktype = LINKTYPE_ETHERNET
        try:
            if cfg.bpf:
                try:
                    self._filter = compile_filter(cfg.bpf)
                except FilterError as exc:
                    raise CaptureError(f"filter compile failed: {exc}") from exc
            if cfg.pcap_output is not None:
                try:
                    self._writer = PcapWriter(
                        cfg.pcap_output, snaplen=cfg.snaplen, linktype=linktype
                    )
                except OSError as exc:
                    raise CaptureError(
                        f"cannot open output file {cfg.pcap_output}: {exc}"
                    ) from exc
        except CaptureError:
            self._close_handles()
            raise

    def _close_handles(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None
        for close in reversed(self._closers):
            close()
        self._closers.clear()
        self._packets = None
        self._filter = None

    def _reset(self, analyzer: Optional[Analyzer]) -> None:
        self._analyzer = analyzer
        self._stop_requested.clear()
        with self._lock:
            self._stats = StatsSnapshot(started_ts_usec=now_usec())

    def _capture_loop(self) -> None:
        self._running = True
        number = 0
        try:
            for record in self._packets or ():
                if self._stop_requested.is_set():
                    break
                if record is None:
                    continue
                info = parse_packet(number + 1, record.ts_usec, record.data, record.wire_len)
                if self._filter is not None and not self._filter.matches(info):
                    continue
                number += 1
                with self._lock:
                    self._stats.record(info, len(record.data), now_usec())
                if self._writer is not None:
                    self._writer.write(record)
                if self._analyzer is not None:
                    self._analyzer.on_packet(info, record.data)
        except (PcapFormatError, OSError):
            pass
        finally:
            self._running = False

    def _stats_loop(self) -> None:
        while not self._stop_requested.wait(_STATS_INTERVAL):
            if self._analyzer is not None:
                self._analyzer.on_stats(self.stats())

    def start(self, analyzer: Optional[Analyzer]) -> None:
        """Open the capture and process packets on background threads."""
        if self._running:
            return
        self._reset(analyzer)
        self._open_handles()
        self._running = True
        self._capture_thread = threading.Thread(target=self._capture_loop, daemon=True)
        self._stats_thread = threading.Thread(target=self._stats_loop, daemon=True)
        self._capture_thread.start()
        self._stats_thread.start()

    def run(self, analyzer: Optional[Analyzer]) -> None:
        """Capture on the calling thread until the source ends or fails."""
        if self._running:
            return
        self._reset(analyzer)
        self._open_handles()
        stats_thread = threading.Thread(target=self._stats_loop, daemon=True)
        stats_thread.start()
        try:
            self._capture_loop()
        finally:
            self._stop_requested.set()
            stats_thread.join()
            self._close_handles()

    def stop(self) -> None:
        """Stop background capture, wait for it and release the handles."""
        self._stop_requested.set()
        for thread in (self._capture_thread, self._stats_thread):
            if thread is not None:
                thread.join()
        self._capture_thread = None
        self._stats_thread = None
        self._close_handles()

    def stats(self) -> StatsSnapshot:
        """Return a copy of the current statistics."""
        with self._lock:
            return dataclasses.replace(self._stats)

    def __enter__(self) -> "CaptureSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()