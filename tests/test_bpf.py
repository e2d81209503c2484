import pytest

from packetsniff.bpf import FilterError, PacketFilter, compile_filter
from packetsniff.models import PacketInfo


def v4(l4, src="10.0.0.1", dst="192.168.1.9", sport=None, dport=None):
    return PacketInfo(
        l2="Ethernet", l3="IPv4", l4=l4, src_ip=src, dst_ip=dst,
        src_port=sport, dst_port=dport,
    )


def v6(l4, src="fe80::1", dst="2001:db8::2", sport=None, dport=None):
    return PacketInfo(
        l2="Ethernet", l3="IPv6", l4=l4, src_ip=src, dst_ip=dst,
        src_port=sport, dst_port=dport,
    )


ARP = PacketInfo(l2="Ethernet", l3="Ethertype(0x0806)")


def test_empty_expression_matches_everything():
    flt = compile_filter("")
    assert flt.matches(ARP)
    assert flt.matches(v4("TCP"))


def test_protocol_alternatives():
    flt = compile_filter("tcp or udp or icmp")
    assert flt.matches(v4("TCP"))
    assert flt.matches(v6("UDP"))
    assert flt.matches(v4("ICMP"))
    assert not flt.matches(v6("ICMP"))
    assert not flt.matches(ARP)


def test_web_preset():
    flt = compile_filter("tcp port 80 or tcp port 443")
    assert flt.matches(v4("TCP", sport=51000, dport=443))
    assert flt.matches(v4("TCP", sport=80, dport=51000))
    assert not flt.matches(v4("UDP", sport=51000, dport=443))
    assert not flt.matches(v4("TCP", sport=51000, dport=22))


def test_dns_preset():
    flt = compile_filter("udp port 53 or tcp port 53")
    assert flt.matches(v4("UDP", sport=5353, dport=53))
    assert flt.matches(v6("TCP", sport=53, dport=40000))
    assert not flt.matches(v4("UDP", sport=5353, dport=5353))


def test_icmp_preset_distinguishes_versions():
    both = compile_filter("icmp or icmp6")
    only6 = compile_filter("icmp6")
    assert both.matches(v4("ICMP"))
    assert both.matches(v6("ICMP"))
    assert only6.matches(v6("ICMP"))
    assert not only6.matches(v4("ICMP"))


def test_local_network_preset():
    flt = compile_filter(
        "(net 10.0.0.0/8) or (net 172.16.0.0/12) or (net 192.168.0.0/16)"
    )
    assert flt.matches(v4("TCP", src="8.8.8.8", dst="172.20.1.1"))
    assert flt.matches(v4("TCP", src="10.1.2.3", dst="8.8.8.8"))
    assert not flt.matches(v4("TCP", src="8.8.8.8", dst="1.1.1.1"))
    assert not flt.matches(v6("TCP"))


def test_direction_qualifiers():
    src_host = compile_filter("src host 10.0.0.1")
    dst_port = compile_filter("dst port 53")
    assert src_host.matches(v4("UDP", src="10.0.0.1"))
    assert not src_host.matches(v4("UDP", src="10.0.0.2", dst="10.0.0.1"))
    assert dst_port.matches(v4("UDP", sport=1000, dport=53))
    assert not dst_port.matches(v4("UDP", sport=53, dport=1000))


def test_bare_address_and_src_shorthand():
    assert compile_filter("192.168.1.9").matches(v4("TCP"))
    assert compile_filter("dst 2001:db8::2").matches(v6("TCP"))
    assert not compile_filter("src 2001:db8::2").matches(v6("TCP"))


def test_negation_and_precedence():
    not_tcp = compile_filter("not tcp")
    assert not_tcp.matches(v4("UDP"))
    assert not not_tcp.matches(v4("TCP"))
    flt = compile_filter("tcp and port 80 || udp")
    assert flt.matches(v4("UDP"))
    assert flt.matches(v4("TCP", dport=80))
    assert not flt.matches(v4("TCP", dport=81))
    grouped = compile_filter("tcp && !(port 80 or port 443)")
    assert grouped.matches(v4("TCP", dport=22))
    assert not grouped.matches(v4("TCP", dport=443))


def test_ip_version_primitives():
    assert compile_filter("ip").matches(v4("TCP"))
    assert not compile_filter("ip").matches(v6("TCP"))
    assert compile_filter("ip6").matches(v6("UDP"))


def test_keywords_are_case_insensitive():
    assert PacketFilter("TCP AND PORT 80").matches(v4("TCP", dport=80))


@pytest.mark.parametrize(
    "expression",
    [
        "tcp and",
        "port 99999",
        "port http",
        "(tcp",
        "tcp)",
        "frobnicate",
        "host notanip",
        "net 10.0.0.1/8",
        "tcp port",
        "tcp & udp",
    ],
)
def test_invalid_expressions(expression):
    with pytest.raises(FilterError):
        compile_filter(expression)