"""Access-point services: DHCP, DNS and the HTTP control page."""

from __future__ import annotations

import argparse
import functools
import ipaddress
import logging
import socket
import sys
import threading
from contextlib import ExitStack
from typing import Optional, Sequence

from picoap.dhcp import SERVER_PORT as DHCP_PORT
from picoap.dhcp import DhcpServer
from picoap.display import OledDisplay
from picoap.dns import PORT as DNS_PORT
from picoap.dns import DnsServer
from picoap.http import PORT as HTTP_PORT
from picoap.http import HttpServer
from picoap.temperature import ADC_RESOLUTION, read_temperature

log = logging.getLogger(__name__)

DEFAULT_IP = "192.168.4.1"
DEFAULT_NETMASK = "255.255.255.0"
DEFAULT_ADC_VALUE = 876
_JOIN_TIMEOUT_S = 2.0
_IDLE_WAIT_S = 1.0


class _NullBus:
    """I2C bus with no panel attached."""

    def write(self, address: int, data: bytes) -> None:
        pass


def _parse_args(argv: Optional[Sequence[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="picoap",
        description="Run the DHCP, DNS and HTTP services of the access point.",
    )
    parser.add_argument("--host", default="0.0.0.0", help="address to bind to")
    parser.add_argument("--ip", type=ipaddress.IPv4Address,
                        default=ipaddress.IPv4Address(DEFAULT_IP),
                        help="address handed out as gateway and DNS server")
    parser.add_argument("--netmask", type=ipaddress.IPv4Address,
                        default=ipaddress.IPv4Address(DEFAULT_NETMASK))
    parser.add_argument("--dhcp-port", type=int, default=DHCP_PORT)
    parser.add_argument("--dns-port", type=int, default=DNS_PORT)
    parser.add_argument("--http-port", type=int, default=HTTP_PORT)
    parser.add_argument("--adc-value", type=int, default=DEFAULT_ADC_VALUE,
                        help="raw 12-bit temperature sensor reading")
    parser.add_argument("--run-seconds", type=float, default=None,
                        help="stop after this many seconds")
    args = parser.parse_args(argv)
    if not 0 <= args.adc_value < ADC_RESOLUTION:
        parser.error(f"--adc-value must be between 0 and {ADC_RESOLUTION - 1}")
    return args


def _serve(server, stop: threading.Event) -> None:
    while not stop.is_set():
        try:
            server.serve_once()
        except OSError as exc:
            if stop.is_set():
                break
            log.warning("%s: %s", type(server).__name__, exc)


def _reachable(host: str) -> str:
    return "127.0.0.1" if host in ("", "0.0.0.0") else host


def _wake_udp(host: str, port: int) -> None:
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.sendto(b"", (_reachable(host), port))
    except OSError:
        pass


def _wake_tcp(host: str, port: int) -> None:
    try:
        socket.create_connection((_reachable(host), port), timeout=1).close()
    except OSError:
        pass


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the services and run until interrupted or the time runs out."""
    args = _parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(message)s")

    display = OledDisplay(_NullBus())
    display.initialize()
    display.message("Iniciando Wi-Fi...", "")

    dhcp = DhcpServer(args.ip, args.netmask)
    dns = DnsServer(args.ip)
    http = HttpServer(
        functools.partial(read_temperature, lambda: args.adc_value), display
    )

    with ExitStack() as stack:
        for server in (dhcp, dns, http):
            stack.enter_context(server)
        try:
            _, dhcp_port = dhcp.start(args.host, args.dhcp_port)
            _, dns_port = dns.start(args.host, args.dns_port)
            _, http_port = http.start(args.host, args.http_port)
        except OSError as exc:
            print(f"picoap: cannot bind: {exc}", file=sys.stderr)
            return 1

        display.message("Acesse:", str(args.ip))
        print(f"[INFO] Acesse: http://{args.ip}", flush=True)

        stop = threading.Event()
        threads = [
            threading.Thread(target=_serve, args=(server, stop), daemon=True)
            for server in (dhcp, dns, http)
        ]
        for thread in threads:
            thread.start()
        try:
            if args.run_seconds is None:
                while not stop.wait(_IDLE_WAIT_S):
                    pass
            else:
                stop.wait(args.run_seconds)
        except KeyboardInterrupt:
            pass
        finally:
            stop.set()
            _wake_udp(args.host, dhcp_port)
            _wake_udp(args.host, dns_port)
            _wake_tcp(args.host, http_port)
            for thread in threads:
                thread.join(_JOIN_TIMEOUT_S)
    return 0