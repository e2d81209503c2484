"""Data records shared by the capture engine and the analyzers."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Optional


def now_usec() -> int:
    """Return the current wall-clock time in microseconds since the epoch."""
    return time.time_ns() // 1000


@dataclass
class Config:
    """Settings for one capture session."""

    interface: str = ""
    bpf: Optional[str] = None
    snaplen: int = 65535
    promisc: bool = True
    timeout_ms: int = 1000
    monitor: bool = False
    pcap_input: Optional[str] = None
    pcap_output: Optional[str] = None


@dataclass
class PacketInfo:
    """Decoded summary of a single captured frame."""

    number: int = 0
    ts_usec: int = 0
    caplen: int = 0
    length: int = 0
    l2: Optional[str] = None
    l3: Optional[str] = None
    l4: Optional[str] = None
    src_ip: Optional[str] = None
    dst_ip: Optional[str] = None
    src_port: Optional[int] = None
    dst_port: Optional[int] = None
    src_geo: Optional[str] = None
    dst_geo: Optional[str] = None


_L4_COUNTERS = {"TCP": "pkts_tcp", "UDP": "pkts_udp", "ICMP": "pkts_icmp"}


@dataclass
class StatsSnapshot:
    """Running packet and byte counters of a capture session."""

    started_ts_usec: int = 0
    pkts_total: int = 0
    bytes_total: int = 0
    pkts_tcp: int = 0
    pkts_udp: int = 0
    pkts_icmp: int = 0

    def record(self, info: PacketInfo, caplen: int, now_usec: int) -> None:
        """Account for one captured packet of ``caplen`` bytes."""
        if self.pkts_total == 0:
            self.started_ts_usec = now_usec
        self.pkts_total += 1
        self.bytes_total += caplen
        counter = _L4_COUNTERS.get(info.l4) if info.l4 is not None else None
        if counter is not None:
            setattr(self, counter, getattr(self, counter) + 1)