"""Desktop window showing live capture statistics and the busiest hosts."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

from .capture import CaptureError, CaptureSession, list_devices
from .hosts import Mode, TopAnalyzer, auto_select_interface, choose_filter
from .models import Config, StatsSnapshot, now_usec

_PERMISSION_MARKERS = ("permission", "operation not permitted", "не позволена")

_GUIDE = (
    "1. Choose an interface or press \u201cDetect\u201d.\n"
    "2. Choose a mode or enter your own filter.\n"
    "3. Press \u201cStart\u201d to begin monitoring.\n"
    "4. \u201cStop\u201d ends the capture. The table lists the busiest hosts."
)


def permission_hint(message: str) -> str:
    """Append advice on capture privileges when ``message`` is a permission error."""
    lowered = message.lower()
    if not any(marker in lowered for marker in _PERMISSION_MARKERS):
        return message
    executable = sys.executable or "python3"
    return (
        f"{message}\n\nSolution:\n"
        "1) grant capture rights to the interpreter (no sudo needed afterwards):\n"
        f"   sudo setcap cap_net_raw,cap_net_admin+eip {executable}\n"
        "   then restart the program\n"
        "2) or run it under sudo:\n"
        f"   sudo {executable} -m packetsniff.gui"
    )


def rates(stats: StatsSnapshot, now: int) -> tuple[float, float]:
    """Return ``(packets per second, bits per second)`` at time ``now`` (µs)."""
    secs = 1.0
    if stats.started_ts_usec:
        elapsed = (now - stats.started_ts_usec) / 1e6
        if elapsed > 0:
            secs = elapsed
    return stats.pkts_total / secs, stats.bytes_total * 8.0 / secs


class _MainWindow:
    def __init__(self, root) -> None:
        import tkinter as tk
        from tkinter import ttk

        self._root = root
        self._session: Optional[CaptureSession] = None
        self._hosts = TopAnalyzer()
        root.title("PacketSniffer")
        root.geometry("1100x800")

        frame = ttk.Frame(root, padding=10)
        frame.pack(fill=tk.BOTH, expand=True)

        controls = ttk.LabelFrame(frame, text="Quick start", padding=8)
        controls.pack(fill=tk.X, pady=4)
        self._iface = ttk.Combobox(controls, state="readonly")
        self._mode = ttk.Combobox(
            controls, state="readonly", values=[mode.label for mode in Mode]
        )
        self._mode.current(0)
        self._filter = ttk.Entry(controls)
        ttk.Label(controls, text="Interface").grid(row=0, column=0, sticky="w")
        self._iface.grid(row=0, column=1, sticky="ew")
        ttk.Button(controls, text="Detect", command=self._auto_select).grid(row=0, column=2)
        ttk.Label(controls, text="Mode").grid(row=1, column=0, sticky="w")
        self._mode.grid(row=1, column=1, sticky="ew")
        ttk.Label(controls, text="BPF filter").grid(row=2, column=0, sticky="w")
        self._filter.grid(row=2, column=1, columnspan=2, sticky="ew")
        ttk.Button(controls, text="Start", command=self._start).grid(row=3, column=1)
        ttk.Button(controls, text="Stop", command=self._stop).grid(row=3, column=2)
        controls.columnconfigure(1, weight=1)

        stats_box = ttk.LabelFrame(frame, text="Statistics", padding=8)
        stats_box.pack(fill=tk.X, pady=4)
        self._labels: dict[str, tk.StringVar] = {}
        layout = [
            ("Status", 0, 0, "stopped"),
            ("Packets", 1, 0, "0"),
            ("Bytes", 1, 2, "0"),
            ("TCP", 2, 0, "0"),
            ("UDP", 2, 2, "0"),
            ("ICMP", 3, 0, "0"),
            ("PPS", 3, 2, "0"),
            ("bps", 4, 0, "0"),
        ]
        for key, row, column, initial in layout:
            var = tk.StringVar(value=initial)
            ttk.Label(stats_box, text=key).grid(row=row, column=column, sticky="w", padx=4)
            ttk.Label(stats_box, textvariable=var).grid(
                row=row, column=column + 1, sticky="w", padx=4
            )
            self._labels[key] = var

        top_box = ttk.LabelFrame(frame, text="Top hosts", padding=8)
        top_box.pack(fill=tk.BOTH, expand=True, pady=4)
        self._table = ttk.Treeview(
            top_box, columns=("ip", "packets", "bytes"), show="headings"
        )
        for column, title in (("ip", "IP"), ("packets", "Packets"), ("bytes", "Bytes")):
            self._table.heading(column, text=title)
        self._table.pack(fill=tk.BOTH, expand=True)

        guide = ttk.LabelFrame(frame, text="Guide", padding=8)
        guide.pack(fill=tk.X, pady=4)
        ttk.Label(guide, text=_GUIDE, justify=tk.LEFT).pack(anchor="w")

        self._populate_interfaces()
        root.protocol("WM_DELETE_WINDOW", self._close)
        root.after(1000, self._tick)

    def _set(self, key: str, value: object) -> None:
        self._labels[key].set(str(value))

    def _populate_interfaces(self) -> None:
        self._iface["values"] = list_devices()
        self._auto_select()

    def _auto_select(self) -> None:
        devices = list_devices()
        known = list(self._iface["values"])
        choice = auto_select_interface(name for name in devices if name in known)
        if choice is not None:
            self._iface.set(choice)
        elif known:
            self._iface.set(known[0])

    def _start(self) -> None:
        from tkinter import messagebox

        self._stop()
        interface = self._iface.get()
        if not interface:
            return
        mode = list(Mode)[max(self._mode.current(), 0)]
        config = Config(
            interface=interface,
            bpf=choose_filter(mode, self._filter.get()),
            promisc=True,
            snaplen=65535,
            timeout_ms=1000,
        )
        try:
            session = CaptureSession(config)
            session.start(self._hosts)
        except (CaptureError, OSError) as exc:
            self._session = None
            messagebox.showerror("Error", permission_hint(str(exc)))
            self._set("Status", "error")
            return
        self._session = session
        self._set("Status", "running")

    def _stop(self) -> None:
        if self._session is not None:
            self._session.stop()
            self._session = None
        self._set("Status", "stopped")
        self._hosts.clear()

    def _tick(self) -> None:
        if self._session is not None:
            stats = self._session.stats()
            self._set("Packets", stats.pkts_total)
            self._set("Bytes", stats.bytes_total)
            self._set("TCP", stats.pkts_tcp)
            self._set("UDP", stats.pkts_udp)
            self._set("ICMP", stats.pkts_icmp)
            pps, bps = rates(stats, now_usec())
            self._set("PPS", f"{pps:.2f}")
            self._set("bps", f"{bps:.2f}")
            self._update_top()
        self._root.after(1000, self._tick)

    def _update_top(self) -> None:
        self._table.delete(*self._table.get_children())
        for ip, packets, size in self._hosts.top():
            self._table.insert("", "end", values=(ip, packets, size))

    def _close(self) -> None:
        self._stop()
        self._root.destroy()


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Open the monitoring window and run until it is closed."""
    parser = argparse.ArgumentParser(
        prog="packetsniff-gui", description="Live packet capture monitor."
    )
    parser.parse_args(argv)
    import tkinter as tk

    root = tk.Tk()
    _MainWindow(root)
    root.mainloop()
    return 0


if __name__ == "__main__":
    sys.exit(main())