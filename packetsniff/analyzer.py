"""Packet consumers: the analyzer interface and a console printer."""

from __future__ import annotations

import sys
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, TextIO

from .models import PacketInfo, StatsSnapshot, now_usec


def ts_to_string(usec: int) -> str:
    """Format a microsecond timestamp as local ``YYYY-MM-DD HH:MM:SS.uuuuuu``."""
    seconds, micros = divmod(usec, 1_000_000)
    stamp = datetime.fromtimestamp(seconds).strftime("%Y-%m-%d %H:%M:%S")
    return f"{stamp}.{micros:06d}"


class Analyzer(ABC):
    """Receives every captured packet and periodic statistics."""

    @abstractmethod
    def on_packet(self, info: PacketInfo, data: bytes) -> None:
        """Handle one decoded packet together with its captured bytes."""

    @abstractmethod
    def on_stats(self, stats: StatsSnapshot) -> None:
        """Handle a periodic statistics snapshot."""


class GeoIPResolver(ABC):
    """Maps an IP address to a location label, or an empty string."""

    @abstractmethod
    def lookup(self, ip: str) -> str:
        """Return a short location code for ``ip``, or ``""`` if unknown."""


class ConsoleAnalyzer(Analyzer):
    """Prints one line per packet and a line per statistics tick."""

    def __init__(
        self, resolver: Optional[GeoIPResolver] = None, stream: Optional[TextIO] = None
    ) -> None:
        self._resolver = resolver
        self._stream = stream
        self._lock = threading.Lock()

    def _endpoint(self, ip: Optional[str], port: Optional[int]) -> str:
        if ip is None:
            return ""
        text = ip
        if port is not None:
            text += f":{port}"
        if self._resolver is not None:
            geo = self._resolver.lookup(ip)
            if geo:
                text += f"[{geo}]"
        return text

    def format_packet(self, info: PacketInfo) -> str:
        """Render the console line for ``info``."""
        parts = [ts_to_string(info.ts_usec), " "]
        if info.l3 is not None:
            parts.append(f"{info.l3} ")
        if info.l4 is not None:
            parts.append(f"{info.l4} ")
        parts.append(self._endpoint(info.src_ip, info.src_port))
        parts.append(" -> ")
        parts.append(self._endpoint(info.dst_ip, info.dst_port))
        parts.append(f" len={info.caplen}")
        return "".join(parts)

    def format_stats(self, stats: StatsSnapshot, now: int) -> Optional[str]:
        """Render the statistics line at time ``now`` (microseconds).

        Returns ``None`` when the session has not started yet.
        """
        if stats.started_ts_usec == 0:
            return None
        secs = (now - stats.started_ts_usec) / 1e6
        if secs <= 0:
            secs = 1.0
        pps = stats.pkts_total / secs
        bps = stats.bytes_total * 8.0 / secs
        return (
            f"stats pkts={stats.pkts_total} tcp={stats.pkts_tcp} "
            f"udp={stats.pkts_udp} icmp={stats.pkts_icmp} "
            f"pps={pps:.2f} bps={bps:.2f}"
        )

    def _emit(self, line: str) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        with self._lock:
            print(line, file=stream, flush=True)

    def on_packet(self, info: PacketInfo, data: bytes) -> None:
        self._emit(self.format_packet(info))

    def on_stats(self, stats: StatsSnapshot) -> None:
        line = self.format_stats(stats, now_usec())
        if line is not None:
            self._emit(line)