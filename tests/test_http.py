import socket

import pytest

from picoap.http import HttpServer, render_page


class RecordingDisplay:
    def __init__(self):
        self.updates = []

    def update(self, led, temperature):
        self.updates.append((led, temperature))


def split(response):
    header, _, body = response.partition(b"\r\n\r\n")
    lines = header.decode("ascii").split("\r\n")
    fields = dict(line.split(": ", 1) for line in lines[1:])
    return lines[0], fields, body


@pytest.fixture
def display():
    return RecordingDisplay()


@pytest.fixture
def server(display):
    return HttpServer(lambda: 23.5, display)


def test_render_page_shows_state_and_temperature():
    page = render_page(True, 23.5)
    assert "<h3>Status do LED: Ligado</h3>" in page
    assert "<span id='temp'>23.50</span>" in page
    assert page.startswith("<!DOCTYPE html>")
    assert page.endswith("</body></html>")


def test_render_page_led_off():
    page = render_page(False, 10.0)
    assert "Status do LED: Desligado" in page
    assert "Status do LED: Ligado" not in page


def test_temp_request_returns_plain_value(server, display):
    status, fields, body = split(server.handle_request(b"GET /temp HTTP/1.1\r\n\r\n"))
    assert status == "HTTP/1.1 200 OK"
    assert fields["Content-Type"] == "text/plain"
    assert body == b"23.50"
    assert int(fields["Content-Length"]) == len(body)
    assert display.updates == [(False, 23.5)]


def test_led_on_request(server, display):
    status, fields, body = split(server.handle_request(b"GET /?led=on HTTP/1.1\r\n\r\n"))
    assert server.led_on is True
    assert fields["Content-Type"] == "text/html"
    assert body == render_page(True, 23.5).encode("utf-8")
    assert int(fields["Content-Length"]) == len(body)
    assert display.updates == [(True, 23.5)]


def test_led_off_request():
    server = HttpServer(lambda: 20.0, None, led_on=True)
    _, _, body = split(server.handle_request("GET /?led=off HTTP/1.1\r\n\r\n"))
    assert server.led_on is False
    assert b"Status do LED: Desligado" in body


def test_plain_request_keeps_led_state():
    server = HttpServer(lambda: 20.0, None, led_on=True)
    _, _, body = split(server.handle_request(b"GET / HTTP/1.1\r\n\r\n"))
    assert server.led_on is True
    assert body == render_page(True, 20.0).encode("utf-8")


def test_command_beyond_request_limit_is_ignored():
    server = HttpServer(lambda: 20.0)
    request = b"X" * 600 + b"GET /?led=on"
    server.handle_request(request)
    assert server.led_on is False


def test_serve_once_over_socket(server):
    with server:
        host, port = server.start("127.0.0.1", 0)
        with socket.create_connection((host, port), timeout=5) as client:
            client.sendall(b"GET /temp HTTP/1.1\r\n\r\n")
            response = server.serve_once()
            received = b""
            while len(received) < len(response):
                chunk = client.recv(4096)
                if not chunk:
                    break
                received += chunk
    assert received == response
    assert split(response)[2] == b"23.50"


def test_serve_once_requires_start(server):
    with pytest.raises(RuntimeError):
        server.serve_once()


def test_start_twice_fails(server):
    with server:
        server.start("127.0.0.1", 0)
        with pytest.raises(RuntimeError):
            server.start("127.0.0.1", 0)