import ipaddress
import socket

import pytest

from picoap import dhcp
from picoap.dhcp import DhcpServer, MessageType, Option, find_option

SERVER_IP = "192.168.4.1"
NETMASK = "255.255.255.0"
MAC_A = bytes.fromhex("020000000001")
MAC_B = bytes.fromhex("020000000002")
XID = b"\x0a\x0b\x0c\x0d"


class Clock:
    def __init__(self, now=1000):
        self.now = now

    def __call__(self):
        return self.now


def make_packet(msg_type, mac, requested=None, with_type=True):
    header = bytearray(dhcp.HEADER_SIZE)
    header[0] = 1
    header[1] = 1
    header[2] = 6
    header[4:8] = XID
    header[28:28 + len(mac)] = mac
    options = bytearray(b"\x63\x82\x53\x63")
    if with_type:
        options += bytes([Option.MESSAGE_TYPE, 1, msg_type])
    if requested is not None:
        options += bytes([Option.REQUESTED_IP, 4]) + ipaddress.IPv4Address(requested).packed
    options += bytes([Option.END])
    return bytes(header + options)


def reply_options(reply):
    return reply[dhcp.OPTIONS_START:]


def pool_address(index):
    return str(ipaddress.IPv4Address(SERVER_IP) + (dhcp.BASE_IP + index - 1))


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def server(clock):
    return DhcpServer(SERVER_IP, NETMASK, clock)


def test_short_packet_is_ignored(server):
    packet = make_packet(MessageType.DISCOVER, MAC_A)
    assert server.process(packet[:dhcp.MIN_MESSAGE_SIZE - 1]) is None


def test_packet_without_message_type_is_ignored(server):
    packet = make_packet(MessageType.DISCOVER, MAC_A, requested=SERVER_IP, with_type=False)
    assert server.process(packet) is None


def test_unsupported_message_type_is_ignored(server):
    assert server.process(make_packet(MessageType.RELEASE, MAC_A)) is None


def test_discover_gets_offer(server):
    reply = server.process(make_packet(MessageType.DISCOVER, MAC_A))
    assert reply[0] == dhcp.BOOT_REPLY
    assert reply[4:8] == XID
    assert reply[16:20] == ipaddress.IPv4Address(pool_address(0)).packed
    options = reply_options(reply)
    assert find_option(options, Option.MESSAGE_TYPE) == bytes([MessageType.OFFER])
    assert find_option(options, Option.SERVER_ID) == ipaddress.IPv4Address(SERVER_IP).packed
    assert find_option(options, Option.SUBNET_MASK) == ipaddress.IPv4Address(NETMASK).packed
    assert find_option(options, Option.ROUTER) == ipaddress.IPv4Address(SERVER_IP).packed
    assert find_option(options, Option.DNS) == ipaddress.IPv4Address(SERVER_IP).packed
    assert find_option(options, Option.IP_LEASE_TIME) == dhcp.LEASE_TIME_S.to_bytes(4, "big")
    assert reply[-1] == Option.END


def test_discover_does_not_reserve_address(server):
    server.process(make_packet(MessageType.DISCOVER, MAC_A))
    assert all(lease.mac == bytes(dhcp.MAC_LEN) for lease in server.leases)


def test_request_free_address_acknowledged(server):
    reply = server.process(make_packet(MessageType.REQUEST, MAC_A, pool_address(2)))
    assert find_option(reply_options(reply), Option.MESSAGE_TYPE) == bytes([MessageType.ACK])
    assert reply[16:20] == ipaddress.IPv4Address(pool_address(2)).packed
    assert server.leases[2].mac == MAC_A
    assert server.leases[2].expiry > 0


def test_request_by_owner_is_renewed(server):
    server.process(make_packet(MessageType.REQUEST, MAC_A, pool_address(1)))
    reply = server.process(make_packet(MessageType.REQUEST, MAC_A, pool_address(1)))
    assert find_option(reply_options(reply), Option.MESSAGE_TYPE) == bytes([MessageType.ACK])


def test_request_for_taken_address_is_ignored(server):
    server.process(make_packet(MessageType.REQUEST, MAC_A, pool_address(0)))
    assert server.process(make_packet(MessageType.REQUEST, MAC_B, pool_address(0))) is None
    assert server.leases[0].mac == MAC_A


def test_discover_after_request_offers_same_address(server):
    server.process(make_packet(MessageType.REQUEST, MAC_A, pool_address(5)))
    reply = server.process(make_packet(MessageType.DISCOVER, MAC_A))
    assert reply[16:20] == ipaddress.IPv4Address(pool_address(5)).packed


def test_discover_skips_taken_address(server):
    server.process(make_packet(MessageType.REQUEST, MAC_A, pool_address(0)))
    reply = server.process(make_packet(MessageType.DISCOVER, MAC_B))
    assert reply[16:20] == ipaddress.IPv4Address(pool_address(1)).packed


@pytest.mark.parametrize(
    "requested",
    ["10.0.0.16", pool_address(dhcp.MAX_IP), str(ipaddress.IPv4Address(SERVER_IP))],
)
def test_request_outside_pool_is_ignored(server, requested):
    assert server.process(make_packet(MessageType.REQUEST, MAC_A, requested)) is None


def test_request_without_requested_ip_is_ignored(server):
    assert server.process(make_packet(MessageType.REQUEST, MAC_A)) is None


def test_full_pool_ignores_new_client(server):
    for index in range(dhcp.MAX_IP):
        mac = bytes([2, 0, 0, 0, 1, index])
        assert server.process(make_packet(MessageType.REQUEST, mac, pool_address(index)))
    assert server.process(make_packet(MessageType.DISCOVER, MAC_B)) is None


def test_expired_lease_is_reused(server, clock):
    macs = [bytes([2, 0, 0, 0, 1, index]) for index in range(dhcp.MAX_IP)]
    for index, mac in enumerate(macs):
        server.process(make_packet(MessageType.REQUEST, mac, pool_address(index)))
    clock.now += (dhcp.LEASE_TIME_S + 3600) * 1000
    reply = server.process(make_packet(MessageType.DISCOVER, MAC_B))
    assert reply[16:20] == ipaddress.IPv4Address(pool_address(0)).packed
    assert server.leases[0].mac == bytes(dhcp.MAC_LEN)
    assert server.leases[1].mac == macs[1]


def test_find_option_skips_and_stops_at_end():
    options = bytes([Option.HOST_NAME, 2, 0x61, 0x62, Option.MESSAGE_TYPE, 1, 3, Option.END,
                     Option.ROUTER, 1, 9])
    assert find_option(options, Option.MESSAGE_TYPE) == bytes([3])
    assert find_option(options, Option.HOST_NAME) == b"ab"
    assert find_option(options, Option.ROUTER) is None


def test_find_option_handles_truncated_options():
    assert find_option(bytes([Option.HOST_NAME]), Option.MESSAGE_TYPE) is None


def test_serve_once_requires_start(server):
    with pytest.raises(RuntimeError):
        server.serve_once()


def test_serve_once_over_udp(clock):
    with DhcpServer(SERVER_IP, NETMASK, clock) as server:
        address = server.start("127.0.0.1", 0)
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as client:
            client.sendto(make_packet(MessageType.DISCOVER, MAC_A), address)
            reply = server.serve_once()
    assert find_option(reply_options(reply), Option.MESSAGE_TYPE) == bytes([MessageType.OFFER])
    with pytest.raises(RuntimeError):
        server.serve_once()