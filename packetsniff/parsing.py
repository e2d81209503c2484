"""Decoding of Ethernet frames into :class:`PacketInfo` summaries."""

from __future__ import annotations

import ipaddress
import struct

from .models import PacketInfo

ETHER_HEADER_LEN = 14
ETHERTYPE_IP = 0x0800
ETHERTYPE_IPV6 = 0x86DD

IPV4_MIN_HEADER_LEN = 20
IPV6_HEADER_LEN = 40
TCP_HEADER_LEN = 20
UDP_HEADER_LEN = 8

IPPROTO_ICMP = 1
IPPROTO_TCP = 6
IPPROTO_UDP = 17
IPPROTO_ICMPV6 = 58

_PORTS = struct.Struct("!HH")


def _parse_transport(
    info: PacketInfo, proto: int, segment: bytes, icmp_proto: int, unknown_label: str
) -> None:
    if proto == IPPROTO_TCP:
        info.l4 = "TCP"
        if len(segment) >= TCP_HEADER_LEN:
            info.src_port, info.dst_port = _PORTS.unpack_from(segment)
    elif proto == IPPROTO_UDP:
        info.l4 = "UDP"
        if len(segment) >= UDP_HEADER_LEN:
            info.src_port, info.dst_port = _PORTS.unpack_from(segment)
    elif proto == icmp_proto:
        info.l4 = "ICMP"
    else:
        info.l4 = f"{unknown_label}({proto})"


def _parse_ipv4(info: PacketInfo, packet: bytes) -> None:
    info.l3 = "IPv4"
    if len(packet) < IPV4_MIN_HEADER_LEN:
        return
    header_len = (packet[0] & 0x0F) * 4
    if len(packet) < header_len:
        return
    info.src_ip = str(ipaddress.IPv4Address(packet[12:16]))
    info.dst_ip = str(ipaddress.IPv4Address(packet[16:20]))
    _parse_transport(info, packet[9], packet[header_len:], IPPROTO_ICMP, "Proto")


def _parse_ipv6(info: PacketInfo, packet: bytes) -> None:
    info.l3 = "IPv6"
    if len(packet) < IPV6_HEADER_LEN:
        return
    info.src_ip = str(ipaddress.IPv6Address(packet[8:24]))
    info.dst_ip = str(ipaddress.IPv6Address(packet[24:40]))
    _parse_transport(info, packet[6], packet[IPV6_HEADER_LEN:], IPPROTO_ICMPV6, "NH")


def parse_packet(number: int, ts_usec: int, data: bytes, wire_len: int) -> PacketInfo:
    """Summarise the captured bytes ``data`` of an Ethernet frame.

    Truncated headers are not an error: decoding stops at the last layer that
    was fully captured.
    """
    data = bytes(data)
    info = PacketInfo(
        number=number,
        ts_usec=ts_usec,
        caplen=len(data),
        length=wire_len,
        l2="Ethernet",
    )
    if len(data) < ETHER_HEADER_LEN:
        return info
    (ethertype,) = struct.unpack_from("!H", data, 12)
    payload = data[ETHER_HEADER_LEN:]
    if ethertype == ETHERTYPE_IP:
        _parse_ipv4(info, payload)
    elif ethertype == ETHERTYPE_IPV6:
        _parse_ipv6(info, payload)
    else:
        info.l3 = f"Ethertype(0x{ethertype:04x})"
    return info