"""Packet capture, decoding, filtering, pcap files and traffic statistics."""

__version__ = "1.0.0"