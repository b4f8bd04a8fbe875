"""DNS server that answers every standard query with its own address."""

from __future__ import annotations

import ipaddress
import logging
import socket
import struct
from typing import Optional, Union

log = logging.getLogger(__name__)

PORT = 53
MAX_MESSAGE_SIZE = 300
MAX_LABEL_LENGTH = 63
MAX_NAME_LENGTH = 255
TTL_S = 60

TYPE_A = 1
CLASS_IN = 1
NAME_POINTER = 0xC0

RESPONSE_FLAGS = 1 << 15 | 1 << 10 | 1 << 7

HEADER = struct.Struct(">6H")
_ANSWER = struct.Struct(">BBHHIH")
_RECEIVE_SIZE = 2048

Address = Union[str, ipaddress.IPv4Address]


def build_reply(message: bytes, ip: Address) -> Optional[bytes]:
    """Answer the first question of a query with an A record for ip.

    Returns None for messages that are not standard queries.
    """
    address = ipaddress.IPv4Address(ip)
    data = bytes(message[:MAX_MESSAGE_SIZE])
    if len(data) < HEADER.size:
        return None
    ident, flags, question_count, *_ = HEADER.unpack_from(data)
    if (flags >> 15) & 0x1:
        return None
    if (flags >> 11) & 0xF:
        return None
    if question_count < 1:
        return None

    position = HEADER.size
    while position < len(data):
        length = data[position]
        position += 1
        if length == 0:
            break
        if length > MAX_LABEL_LENGTH:
            return None
        position += length
    if position - HEADER.size > MAX_NAME_LENGTH:
        return None

    question_end = position + 4
    question = data[HEADER.size:question_end].ljust(question_end - HEADER.size, b"\0")
    answer = _ANSWER.pack(NAME_POINTER, HEADER.size, TYPE_A, CLASS_IN, TTL_S, 4)
    header = HEADER.pack(ident, RESPONSE_FLAGS, 1, 1, 0, 0)
    return header + question + answer + address.packed


class DnsServer:
    """UDP server that points every name at one address."""

    def __init__(self, ip: Address) -> None:
        self.ip = ipaddress.IPv4Address(ip)
        self._socket: Optional[socket.socket] = None

    def __enter__(self) -> "DnsServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def process(self, packet: bytes) -> Optional[bytes]:
        """Build the reply to one query, or None if it is ignored."""
        return build_reply(packet, self.ip)

    def start(self, host: str = "0.0.0.0", port: int = PORT) -> tuple:
        """Bind the UDP socket and return the bound address."""
        if self._socket is not None:
            raise RuntimeError("server already started")
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
        except OSError:
            sock.close()
            raise
        self._socket = sock
        return sock.getsockname()

    def serve_once(self) -> Optional[bytes]:
        """Handle one datagram, replying to its sender; return the reply."""
        if self._socket is None:
            raise RuntimeError("server not started")
        packet, source = self._socket.recvfrom(_RECEIVE_SIZE)
        reply = self.process(packet)
        if reply is not None:
            try:
                self._socket.sendto(reply, source)
            except OSError as exc:
                log.error("failed to send reply: %s", exc)
        return reply

    def close(self) -> None:
        """Release the socket."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None