"""A packet filter language in the style of tcpdump expressions.

Filters are evaluated against decoded :class:`PacketInfo` summaries. The
supported primitives are ``ip``, ``ip6``, ``tcp``, ``udp``, ``icmp``,
``icmp6``, ``[src|dst] host ADDR``, ``[src|dst] net CIDR``,
``[src|dst] port N`` and ``tcp|udp [src|dst] port N``, combined with
``and``/``&&``, ``or``/``||``, ``not``/``!`` and parentheses.
"""

from __future__ import annotations

import ipaddress
import re
from collections import deque
from typing import Callable, Optional

from .models import PacketInfo

Predicate = Callable[[PacketInfo], bool]

_LEXEME_RE = re.compile(r"\(|\)|&&|\|\||!|[^\s()!&|]+|\S")
_OR = {"or", "||"}
_AND = {"and", "&&"}
_NOT = {"not", "!"}
_DIRECTIONS = {"src", "dst"}
_KINDS = {"host", "net", "port"}


class FilterError(ValueError):
    """Raised when a filter expression cannot be compiled."""


def _addresses(info: PacketInfo, direction: Optional[str]) -> list[str]:
    if direction == "src":
        values = [info.src_ip]
    elif direction == "dst":
        values = [info.dst_ip]
    else:
        values = [info.src_ip, info.dst_ip]
    return [value for value in values if value is not None]


def _ports(info: PacketInfo, direction: Optional[str]) -> list[int]:
    if direction == "src":
        values = [info.src_port]
    elif direction == "dst":
        values = [info.dst_port]
    else:
        values = [info.src_port, info.dst_port]
    return [value for value in values if value is not None]


def _host_predicate(direction: Optional[str], address) -> Predicate:
    return lambda info: any(
        ipaddress.ip_address(ip) == address for ip in _addresses(info, direction)
    )


def _net_predicate(direction: Optional[str], network) -> Predicate:
    return lambda info: any(
        ipaddress.ip_address(ip) in network for ip in _addresses(info, direction)
    )


def _port_predicate(direction: Optional[str], port: int) -> Predicate:
    return lambda info: port in _ports(info, direction)


class _Parser:
    def __init__(self, expression: str) -> None:
        self._pending = deque(_LEXEME_RE.findall(expression))

    def parse(self) -> Predicate:
        if not self._pending:
            return lambda info: True
        predicate = self._or()
        if self._pending:
            raise FilterError(f"unexpected token {self._pending[0]!r}")
        return predicate

    def _peek(self) -> Optional[str]:
        return self._pending[0].lower() if self._pending else None

    def _take(self, expected: str) -> str:
        if not self._pending:
            raise FilterError(f"expected {expected} at end of expression")
        return self._pending.popleft()

    def _or(self) -> Predicate:
        terms = [self._and()]
        while self._peek() in _OR:
            self._pending.popleft()
            terms.append(self._and())
        if len(terms) == 1:
            return terms[0]
        return lambda info: any(term(info) for term in terms)

    def _and(self) -> Predicate:
        terms = [self._unary()]
        while self._peek() in _AND:
            self._pending.popleft()
            terms.append(self._unary())
        if len(terms) == 1:
            return terms[0]
        return lambda info: all(term(info) for term in terms)

    def _unary(self) -> Predicate:
        upcoming = self._peek()
        if upcoming in _NOT:
            self._pending.popleft()
            inner = self._unary()
            return lambda info: not inner(info)
        if upcoming == "(":
            self._pending.popleft()
            inner = self._or()
            if self._take("')'") != ")":
                raise FilterError("expected ')'")
            return inner
        return self._primitive()

    def _port_number(self) -> int:
        text = self._take("a port number")
        if not text.isdigit() or int(text) > 0xFFFF:
            raise FilterError(f"invalid port {text!r}")
        return int(text)

    def _qualified(self, direction: Optional[str], kind: str) -> Predicate:
        if kind == "port":
            return _port_predicate(direction, self._port_number())
        text = self._take(f"an address after {kind!r}")
        if kind == "host":
            try:
                address = ipaddress.ip_address(text)
            except ValueError as exc:
                raise FilterError(f"invalid host {text!r}") from exc
            return _host_predicate(direction, address)
        try:
            network = ipaddress.ip_network(text)
        except ValueError as exc:
            raise FilterError(f"invalid network {text!r}: {exc}") from exc
        return _net_predicate(direction, network)

    def _transport(self, label: str) -> Predicate:
        if self._peek() not in _DIRECTIONS | {"port"}:
            return lambda info: info.l4 == label
        direction = None
        if self._peek() in _DIRECTIONS:
            direction = self._take("a direction").lower()
        if self._take("'port'").lower() != "port":
            raise FilterError(f"expected 'port' after {label.lower()!r}")
        port_matches = _port_predicate(direction, self._port_number())
        return lambda info: info.l4 == label and port_matches(info)

    def _primitive(self) -> Predicate:
        text = self._take("a primitive")
        word = text.lower()
        if word in ("tcp", "udp"):
            return self._transport(word.upper())
        if word == "icmp":
            return lambda info: info.l3 == "IPv4" and info.l4 == "ICMP"
        if word == "icmp6":
            return lambda info: info.l3 == "IPv6" and info.l4 == "ICMP"
        if word == "ip":
            return lambda info: info.l3 == "IPv4"
        if word == "ip6":
            return lambda info: info.l3 == "IPv6"
        if word in _DIRECTIONS:
            kind = "host"
            if self._peek() in _KINDS:
                kind = self._take("a qualifier").lower()
            return self._qualified(word, kind)
        if word in _KINDS:
            return self._qualified(None, word)
        try:
            address = ipaddress.ip_address(text)
        except ValueError:
            raise FilterError(f"unknown primitive {text!r}") from None
        return _host_predicate(None, address)


class PacketFilter:
    """A compiled filter expression; an empty expression accepts everything."""

    def __init__(self, expression: str) -> None:
        self.expression = expression
        self._predicate = _Parser(expression).parse()

    def matches(self, info: PacketInfo) -> bool:
        """Return whether ``info`` satisfies the expression."""
        return bool(self._predicate(info))

    def __repr__(self) -> str:
        return f"PacketFilter({self.expression!r})"


def compile_filter(expression: str) -> PacketFilter:
    """Compile ``expression``, raising :class:`FilterError` if it is invalid."""
    return PacketFilter(expression)