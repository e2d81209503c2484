"""Per-host traffic accounting and the quick-start capture presets."""

from __future__ import annotations

import threading
from collections import defaultdict
from enum import Enum
from typing import Iterable, Optional

from .analyzer import Analyzer
from .models import PacketInfo, StatsSnapshot

DEFAULT_TOP_LIMIT = 20

_EXCLUDED_INTERFACE_PARTS = ("lo", "dbus", "nf", "bluetooth")


class Mode(Enum):
    """Quick-start capture modes, in the order they are offered."""

    ALL = "All"
    WEB = "Web traffic"
    DNS = "DNS"
    ICMP = "ICMP"
    LAN = "Local network"

    @property
    def label(self) -> str:
        """Human-readable name of the mode."""
        return self.value


_PRESETS = {
    Mode.ALL: "",
    Mode.WEB: "tcp port 80 or tcp port 443",
    Mode.DNS: "udp port 53 or tcp port 53",
    Mode.ICMP: "icmp or icmp6",
    Mode.LAN: "(net 10.0.0.0/8) or (net 172.16.0.0/12) or (net 192.168.0.0/16)",
}


def preset_bpf(mode: Mode) -> str:
    """Return the filter expression of ``mode``; empty for :attr:`Mode.ALL`."""
    return _PRESETS[Mode(mode)]


def choose_filter(mode: Mode, custom: str) -> Optional[str]:
    """Prefer a non-empty ``custom`` expression, else the preset, else ``None``."""
    if custom:
        return custom
    return preset_bpf(mode) or None


def auto_select_interface(devices: Iterable[str]) -> Optional[str]:
    """Pick the first likely physical interface, else the first one, else ``None``."""
    names = list(devices)
    for name in names:
        if not any(part in name for part in _EXCLUDED_INTERFACE_PARTS):
            return name
    return names[0] if names else None


class TopAnalyzer(Analyzer):
    """Counts packets and captured bytes per IP address, both directions."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._bytes: defaultdict[str, int] = defaultdict(int)
        self._packets: defaultdict[str, int] = defaultdict(int)

    def on_packet(self, info: PacketInfo, data: bytes) -> None:
        length = len(data)
        with self._lock:
            for ip in (info.src_ip, info.dst_ip):
                if ip is not None:
                    self._bytes[ip] += length
                    self._packets[ip] += 1

    def on_stats(self, stats: StatsSnapshot) -> None:
        """Statistics ticks carry nothing this analyzer needs."""

    def top(self, limit: int = DEFAULT_TOP_LIMIT) -> list[tuple[str, int, int]]:
        """Return up to ``limit`` ``(ip, packets, bytes)`` rows, most bytes first."""
        with self._lock:
            rows = [
                (ip, self._packets.get(ip, 0), count)
                for ip, count in sorted(self._bytes.items())
            ]
        rows.sort(key=lambda row: row[2], reverse=True)
        return rows[: max(limit, 0)]

    def clear(self) -> None:
        """Forget all counted traffic."""
        with self._lock:
            self._bytes.clear()
            self._packets.clear()