"""Minimal DHCP server that hands out a small pool of addresses."""

from __future__ import annotations

import ipaddress
import logging
import socket
import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Optional, Union

log = logging.getLogger(__name__)

BASE_IP = 16
MAX_IP = 8
MAC_LEN = 6

SERVER_PORT = 67
CLIENT_PORT = 68
BROADCAST_ADDRESS = "255.255.255.255"

LEASE_TIME_S = 24 * 60 * 60

HEADER_SIZE = 236
OPTIONS_SIZE = 312
MESSAGE_SIZE = HEADER_SIZE + OPTIONS_SIZE
MAGIC_COOKIE_SIZE = 4
OPTIONS_START = HEADER_SIZE + MAGIC_COOKIE_SIZE
MIN_MESSAGE_SIZE = OPTIONS_START + 3
OPTION_SEARCH_LIMIT = 308

BOOT_REPLY = 2

_YIADDR = 16
_CHADDR = 28
_NO_MAC = bytes(MAC_LEN)
_RECEIVE_SIZE = 2048

Address = Union[str, ipaddress.IPv4Address]


class MessageType(IntEnum):
    """DHCP message types (option 53)."""

    DISCOVER = 1
    OFFER = 2
    REQUEST = 3
    DECLINE = 4
    ACK = 5
    NAK = 6
    RELEASE = 7
    INFORM = 8


class Option(IntEnum):
    """DHCP option codes used by the server."""

    PAD = 0
    SUBNET_MASK = 1
    ROUTER = 3
    DNS = 6
    HOST_NAME = 12
    REQUESTED_IP = 50
    IP_LEASE_TIME = 51
    MESSAGE_TYPE = 53
    SERVER_ID = 54
    PARAM_REQUEST_LIST = 55
    MAX_MESSAGE_SIZE = 57
    VENDOR_CLASS_ID = 60
    CLIENT_ID = 61
    END = 255


@dataclass
class Lease:
    """One slot of the address pool: the owner's MAC and a coarse expiry tick."""

    mac: bytes = _NO_MAC
    expiry: int = 0


def _ticks_ms() -> int:
    return int(time.monotonic() * 1000)


def _signed32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def _option(code: int, data: bytes) -> bytes:
    return bytes([code, len(data)]) + data


def find_option(options: bytes, code: int) -> Optional[bytes]:
    """Return the data of the first option with this code, or None.

    The search stops at the END option or after the fixed option area.
    """
    limit = min(OPTION_SEARCH_LIMIT, len(options))
    i = 0
    while i < limit and options[i] != Option.END:
        if i + 1 >= len(options):
            return None
        length = options[i + 1]
        if options[i] == code:
            return bytes(options[i + 2:i + 2 + length])
        i += 2 + length
    return None


class DhcpServer:
    """Answers DISCOVER with OFFER and REQUEST with ACK from a fixed pool."""

    def __init__(
        self,
        ip: Address,
        netmask: Address,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.ip = ipaddress.IPv4Address(ip)
        self.netmask = ipaddress.IPv4Address(netmask)
        self.leases = [Lease() for _ in range(MAX_IP)]
        self._clock = clock or _ticks_ms
        self._socket: Optional[socket.socket] = None

    def __enter__(self) -> "DhcpServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _offer(self, mac: bytes, now: int) -> Optional[int]:
        chosen: Optional[int] = None
        for index, lease in enumerate(self.leases):
            if lease.mac == mac:
                return index
            if chosen is None:
                if lease.mac == _NO_MAC:
                    chosen = index
                expiry = (lease.expiry << 16) | 0xFFFF
                if _signed32(expiry - now) < 0:
                    lease.mac = _NO_MAC
                    chosen = index
        return chosen

    def _acknowledge(self, mac: bytes, options: bytes, now: int) -> Optional[int]:
        requested = find_option(options, Option.REQUESTED_IP)
        if requested is None or len(requested) < 4:
            return None
        if requested[:3] != self.ip.packed[:3]:
            return None
        index = (requested[3] - BASE_IP) & 0xFF
        if index >= MAX_IP:
            return None
        lease = self.leases[index]
        if lease.mac == mac:
            pass
        elif lease.mac == _NO_MAC:
            lease.mac = mac
        else:
            return None
        lease.expiry = ((now + LEASE_TIME_S * 1000) & 0xFFFFFFFF) >> 16
        return index

    def process(self, packet: bytes) -> Optional[bytes]:
        """Build the reply to one client message, or None if it is ignored."""
        if len(packet) < MIN_MESSAGE_SIZE:
            return None
        message = bytearray(bytes(packet[:MESSAGE_SIZE]).ljust(MESSAGE_SIZE, b"\0"))
        message[0] = BOOT_REPLY
        message[_YIADDR:_YIADDR + 4] = self.ip.packed

        options = bytes(message[OPTIONS_START:])
        message_type = find_option(options, Option.MESSAGE_TYPE)
        if not message_type:
            return None

        mac = bytes(message[_CHADDR:_CHADDR + MAC_LEN])
        now = self._clock() & 0xFFFFFFFF
        if message_type[0] == MessageType.DISCOVER:
            index = self._offer(mac, now)
            reply_type = MessageType.OFFER
        elif message_type[0] == MessageType.REQUEST:
            index = self._acknowledge(mac, options, now)
            reply_type = MessageType.ACK
        else:
            return None
        if index is None:
            return None

        message[_YIADDR + 3] = BASE_IP + index
        if reply_type == MessageType.ACK:
            log.info(
                "client connected: MAC=%s IP=%s",
                mac.hex(":"),
                ipaddress.IPv4Address(bytes(message[_YIADDR:_YIADDR + 4])),
            )

        reply_options = b"".join([
            _option(Option.MESSAGE_TYPE, bytes([reply_type])),
            _option(Option.SERVER_ID, self.ip.packed),
            _option(Option.SUBNET_MASK, self.netmask.packed),
            _option(Option.ROUTER, self.ip.packed),
            _option(Option.DNS, self.ip.packed),
            _option(Option.IP_LEASE_TIME, LEASE_TIME_S.to_bytes(4, "big")),
            bytes([Option.END]),
        ])
        return bytes(message[:OPTIONS_START]) + reply_options

    def start(self, host: str = "0.0.0.0", port: int = SERVER_PORT) -> tuple:
        """Bind the UDP socket and return the bound address."""
        if self._socket is not None:
            raise RuntimeError("server already started")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        self._socket = sock
        return sock.getsockname()

    def serve_once(self) -> Optional[bytes]:
        """Handle one datagram, broadcasting the reply; return the reply."""
        if self._socket is None:
            raise RuntimeError("server not started")
        packet, _ = self._socket.recvfrom(_RECEIVE_SIZE)
        reply = self.process(packet)
        if reply is not None:
            try:
                self._socket.sendto(reply, (BROADCAST_ADDRESS, CLIENT_PORT))
            except OSError as exc:
                log.warning("failed to send reply: %s", exc)
        return reply

    def close(self) -> None:
        """Release the socket."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None