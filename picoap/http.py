"""HTTP server that shows the temperature and switches an LED."""

from __future__ import annotations

import logging
import socket
from typing import Callable, Optional, Protocol, Union

log = logging.getLogger(__name__)

PORT = 80
REQUEST_LIMIT = 511
_CLIENT_TIMEOUT_S = 5.0


class StatusDisplay(Protocol):
    """Anything that can show the LED state and temperature."""

    def update(self, led: bool, temperature: float) -> object: ...


def render_page(led_on: bool, temperature: float) -> str:
    """Build the control page for the given LED state and temperature."""
    status = "Ligado" if led_on else "Desligado"
    return (
        "<!DOCTYPE html>"
        "<html lang='pt-BR'>"
        "<head><meta charset='UTF-8'><title>Controle Pico W</title>"
        "<style>"
        "body { font-family:Arial; text-align:center; margin-top:50px; "
        "background-color:black; color:white; }"
        ".botao { padding:10px 20px; font-size:16px; border:none; "
        "border-radius:5px; color:#fff; margin:10px; }"
        ".ligar { background-color:#28a745; }"
        ".desligar { background-color:#dc3545; }"
        ".card { padding:15px; border-radius:10px; "
        "box-shadow:0 2px 5px rgba(0,0,0,0.3); display:inline-block; "
        "background-color:#333; }"
        "</style>"
        "<script>"
        "function atualizarTemperatura() { fetch('/temp').then(resp => resp.text())"
        ".then(temp => { document.getElementById('temp').innerText = temp; }); }"
        "setInterval(atualizarTemperatura, 2000);"
        "window.onload = atualizarTemperatura;"
        "</script></head>"
        "<body>"
        "<div class='card'>"
        f"<h3>Status do LED: {status}</h3>"
        f"<h3>Temperatura: <span id='temp'>{temperature:.2f}</span> &deg;C</h3>"
        "<a href='/?led=on'><button class='botao ligar'>Ligar LED</button></a>"
        "<a href='/?led=off'><button class='botao desligar'>Desligar LED</button></a>"
        "</div>"
        "</body></html>"
    )


def _response(content_type: str, body: bytes) -> bytes:
    header = (
        "HTTP/1.1 200 OK\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {len(body)}\r\n\r\n"
    )
    return header.encode("ascii") + body


class HttpServer:
    """Serves the control page, the temperature value and LED switching."""

    def __init__(
        self,
        read_temperature: Callable[[], float],
        display: Optional[StatusDisplay] = None,
        led_on: bool = False,
    ) -> None:
        self.read_temperature = read_temperature
        self.display = display
        self.led_on = led_on
        self._socket: Optional[socket.socket] = None

    def __enter__(self) -> "HttpServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _measure(self) -> float:
        temperature = self.read_temperature()
        log.info("Temperatura atualizada: %.2f °C", temperature)
        if self.display is not None:
            self.display.update(self.led_on, temperature)
        return temperature

    def handle_request(self, request: Union[bytes, str]) -> bytes:
        """Build the full HTTP response to one request."""
        if isinstance(request, bytes):
            text = request[:REQUEST_LIMIT].decode("latin-1")
        else:
            text = request[:REQUEST_LIMIT]

        if "GET /temp" in text:
            body = f"{self._measure():.2f}".encode("ascii")
            return _response("text/plain", body)

        if "GET /?led=on" in text:
            self.led_on = True
            log.info("LED ligado")
        elif "GET /?led=off" in text:
            self.led_on = False
            log.info("LED desligado")

        temperature = self._measure()
        body = render_page(self.led_on, temperature).encode("utf-8")
        return _response("text/html", body)

    def start(self, host: str = "0.0.0.0", port: int = PORT) -> tuple:
        """Bind and listen; return the bound address."""
        if self._socket is not None:
            raise RuntimeError("server already started")
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((host, port))
            sock.listen(1)
        except OSError:
            sock.close()
            raise
        self._socket = sock
        return sock.getsockname()

    def serve_once(self) -> Optional[bytes]:
        """Accept one connection and answer its request; return the response."""
        if self._socket is None:
            raise RuntimeError("server not started")
        connection, _ = self._socket.accept()
        with connection:
            connection.settimeout(_CLIENT_TIMEOUT_S)
            try:
                request = connection.recv(REQUEST_LIMIT)
            except socket.timeout:
                return None
            if not request:
                return None
            response = self.handle_request(request)
            try:
                connection.sendall(response)
            except OSError as exc:
                log.warning("failed to send response: %s", exc)
            return response

    def close(self) -> None:
        """Stop listening."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None