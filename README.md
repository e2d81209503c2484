# packetsniff

A packet sniffer and traffic monitor. It captures Ethernet frames from a
network interface or reads them from a pcap file, decodes the IPv4/IPv6 and
TCP/UDP/ICMP headers, keeps running statistics and shows the busiest hosts.
It has no dependencies outside the standard library.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## The monitor window

```
packetsniff
```

opens the monitoring window (built with tkinter, so a Python with Tk support
is needed). Pick an interface or press "Detect" to choose one, choose a mode
or type your own filter expression, and press "Start". Once a second the
window updates the packet and byte counts, the TCP/UDP/ICMP counters, packets
and bits per second, and a table of the 20 busiest hosts by captured bytes.
"Stop" ends the capture and clears the host table.

The modes are the members of `packetsniff.hosts.Mode`:

| Mode            | Filter                                                               |
|-----------------|----------------------------------------------------------------------|
| `ALL`           | none                                                                 |
| `WEB`           | `tcp port 80 or tcp port 443`                                        |
| `DNS`           | `udp port 53 or tcp port 53`                                         |
| `ICMP`          | `icmp or icmp6`                                                      |
| `LAN`           | `(net 10.0.0.0/8) or (net 172.16.0.0/12) or (net 192.168.0.0/16)`    |

A non-empty custom filter takes precedence over the mode's preset
(`packetsniff.hosts.choose_filter`).

Capturing from a live interface needs the right to open raw sockets. When the
capture fails with a permission error, the message shown also explains how to
grant it (`packetsniff.gui.permission_hint`).

## Using the library

Read a capture file and print one line per packet, plus a statistics line
every second while the capture runs:

```python
from packetsniff.analyzer import ConsoleAnalyzer
from packetsniff.capture import CaptureSession
from packetsniff.models import Config

session = CaptureSession(Config(pcap_input="traffic.pcap", bpf="tcp or udp"))
session.run(ConsoleAnalyzer())
print(session.stats())
```

`CaptureSession.run` blocks until the input ends or fails. `start` runs the
capture on background threads and `stop` ends it; the session is also a
context manager that stops on exit. Setting `pcap_output` in `Config` writes
every accepted packet to a new pcap file. Packets that do not match the
filter are skipped entirely: they are neither counted, written nor passed to
the analyzer. Errors while opening the capture, compiling the filter or
creating the output file are raised as `packetsniff.capture.CaptureError`.

`ConsoleAnalyzer` writes to standard output, or to the `stream` it is given.
`format_packet` and `format_stats` return the lines without printing them.

Decode a single frame without a session:

```python
from packetsniff.parsing import parse_packet

info = parse_packet(1, ts_usec, frame_bytes, len(frame_bytes))
print(info.l3, info.l4, info.src_ip, info.src_port, info.dst_ip, info.dst_port)
```

Truncated frames are not an error; decoding stops at the last complete
header.

### Filter expressions

```python
from packetsniff.bpf import compile_filter

web = compile_filter("tcp port 80 or tcp port 443")
if web.matches(info):
    ...
```

Filters are evaluated against the decoded `PacketInfo`, not compiled to
kernel bytecode. Supported primitives are `ip`, `ip6`, `tcp`, `udp`, `icmp`,
`icmp6`, `[src|dst] host ADDR`, `[src|dst] net CIDR`, `[src|dst] port N`,
`tcp|udp [src|dst] port N` and a bare address, combined with `and`/`&&`,
`or`/`||`, `not`/`!` and parentheses. An empty expression matches everything;
an invalid one raises `packetsniff.bpf.FilterError`.

### Analyzers

Write your own analyzer by subclassing `packetsniff.analyzer.Analyzer` and
implementing `on_packet(info, data)` and `on_stats(stats)`.
`packetsniff.hosts.TopAnalyzer` is one such analyzer: it counts packets and
bytes per IP address and returns `(ip, packets, bytes)` rows, most bytes
first, from `top(limit)`.

### Pcap files

`packetsniff.pcapfile.PcapReader` iterates over the `PcapRecord`s of a
classic pcap file in either byte order, with microsecond or nanosecond
timestamps (reported in microseconds). `PcapWriter` writes little-endian,
microsecond files. Both accept a path or an open binary file and are context
managers; malformed input raises `PcapFormatError`.

## What it does not do

- Live capture uses Linux `AF_PACKET` raw sockets only; on other platforms
  only pcap files can be read. Monitor (rfmon) mode is not supported and
  raises `CaptureError`.
- There is no geolocation database lookup. `GeoIPResolver` is only an
  interface; `ConsoleAnalyzer` uses one if you supply your own.
- The only command is the monitor window; console capture is available
  through the library as shown above.