import io
import re
from datetime import datetime

import pytest

from packetsniff.analyzer import Analyzer, ConsoleAnalyzer, GeoIPResolver, ts_to_string
from packetsniff.models import PacketInfo, StatsSnapshot

TS = 1_700_000_000_123_456


class TableResolver(GeoIPResolver):
    def __init__(self, table):
        self.table = table

    def lookup(self, ip):
        return self.table.get(ip, "")


def full_info():
    return PacketInfo(
        number=1, ts_usec=TS, caplen=60, length=60, l2="Ethernet", l3="IPv4", l4="TCP",
        src_ip="10.0.0.1", dst_ip="10.0.0.2", src_port=1234, dst_port=80,
    )


def test_ts_to_string_round_trip():
    text = ts_to_string(TS)
    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{6}", text)
    parsed = datetime.strptime(text, "%Y-%m-%d %H:%M:%S.%f")
    assert round(parsed.timestamp() * 1_000_000) == TS


def test_ts_to_string_pads_microseconds():
    assert ts_to_string(TS - 123_456 + 42).endswith(".000042")


def test_format_packet_full():
    line = ConsoleAnalyzer().format_packet(full_info())
    assert line == f"{ts_to_string(TS)} IPv4 TCP 10.0.0.1:1234 -> 10.0.0.2:80 len=60"


def test_format_packet_with_resolver():
    analyzer = ConsoleAnalyzer(TableResolver({"10.0.0.1": "DE"}))
    line = analyzer.format_packet(full_info())
    assert "10.0.0.1:1234[DE] -> 10.0.0.2:80 len=60" in line


def test_format_packet_without_addresses():
    info = PacketInfo(ts_usec=TS, caplen=10, l2="Ethernet")
    assert ConsoleAnalyzer().format_packet(info) == f"{ts_to_string(TS)}  ->  len=10"


def test_on_packet_writes_line():
    out = io.StringIO()
    analyzer = ConsoleAnalyzer(stream=out)
    analyzer.on_packet(full_info(), b"\x00" * 60)
    assert out.getvalue() == analyzer.format_packet(full_info()) + "\n"


def test_format_stats_not_started():
    assert ConsoleAnalyzer().format_stats(StatsSnapshot(pkts_total=5), 10) is None
    out = io.StringIO()
    ConsoleAnalyzer(stream=out).on_stats(StatsSnapshot())
    assert out.getvalue() == ""


def test_format_stats_rates_consistent():
    stats = StatsSnapshot(started_ts_usec=1_000_000, pkts_total=10, bytes_total=600,
                          pkts_tcp=4, pkts_udp=3, pkts_icmp=2)
    line = ConsoleAnalyzer().format_stats(stats, 5_000_000)
    match = re.fullmatch(
        r"stats pkts=10 tcp=4 udp=3 icmp=2 pps=([\d.]+) bps=([\d.]+)", line
    )
    assert match
    pps, bps = float(match.group(1)), float(match.group(2))
    assert pps * 4 == pytest.approx(stats.pkts_total)
    assert bps * 4 == pytest.approx(stats.bytes_total * 8)


def test_format_stats_non_positive_duration_uses_one_second():
    stats = StatsSnapshot(started_ts_usec=2_000_000, pkts_total=7, bytes_total=3)
    line = ConsoleAnalyzer().format_stats(stats, 2_000_000)
    assert line.endswith(f"pps={stats.pkts_total:.2f} bps={stats.bytes_total * 8:.2f}")


def test_abstract_classes_cannot_be_instantiated():
    with pytest.raises(TypeError):
        Analyzer()
    with pytest.raises(TypeError):
        GeoIPResolver()