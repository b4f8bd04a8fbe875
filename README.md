# picoap

picoap runs the services of a tiny self-contained access point:

- a **DHCP responder** that hands out a pool of eight addresses on the server's subnet;
- a **DNS responder** that answers every standard query with the server's own address, as a captive portal does;
- an **HTTP server** with one control page showing an LED's state and the current temperature, with buttons to switch the LED;
- helpers for an **SSD1306 OLED panel** and for converting and averaging temperature-sensor readings.

It is plain Python with no third-party dependencies.

## Installing

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Running

```
picoap
```

This starts the DHCP, DNS and HTTP services, each in its own thread, and serves until interrupted. It prints `[INFO] Acesse: http://192.168.4.1` once the sockets are bound, and logs to standard error at INFO level.

Options:

| Option            | Default         | Meaning                                                        |
|-------------------|-----------------|----------------------------------------------------------------|
| `--host`          | `0.0.0.0`       | address to bind the three services to                          |
| `--ip`            | `192.168.4.1`   | address handed out as gateway and DNS server, and given in DNS answers |
| `--netmask`       | `255.255.255.0` | subnet mask handed out by DHCP                                 |
| `--dhcp-port`     | `67`            | DHCP port                                                      |
| `--dns-port`      | `53`            | DNS port                                                       |
| `--http-port`     | `80`            | HTTP port                                                      |
| `--adc-value`     | `876`           | raw 12-bit sensor reading (0–4095) used for every temperature  |
| `--run-seconds`   | none            | stop after this many seconds instead of running until interrupted |

The standard ports usually need elevated privileges. Pass port `0` to have the system pick a free one. If a socket cannot be bound, the command prints `picoap: cannot bind: ...` and exits with status 1.

## What the command does not do

- It does not bring up a wireless network. It only serves DHCP, DNS and HTTP on the host's existing interfaces.
- It reads no real sensor. The temperature it serves is always the one derived from `--adc-value`.
- It drives no real LED. The LED state is a flag kept by the HTTP server.
- It has no OLED panel attached. The display is updated as usual, but its bus discards every write.

## The web page

`HttpServer.handle_request` looks at the first 511 characters of a request:

| Request          | Effect                                                          |
|------------------|-----------------------------------------------------------------|
| `GET /temp`      | the temperature as plain text with two decimals, e.g. `24.50`   |
| `GET /?led=on`   | sets the LED flag on, then returns the page                     |
| `GET /?led=off`  | sets the LED flag off, then returns the page                    |
| anything else    | the HTML page with the LED state and the temperature            |

Every answer is `200 OK`. The page asks for `/temp` every two seconds. Each request reads the temperature once and, when a display was given, shows the LED state and the temperature on it.

## Using the pieces as a library

### HTTP

```python
from picoap.http import render_page, HttpServer

html = render_page(True, 24.5)          # page showing "Ligado" and 24.50
server = HttpServer(lambda: 24.5)       # read_temperature, display=None, led_on=False
response = server.handle_request(b"GET /temp HTTP/1.1\r\n\r\n")
```

`HttpServer` provides these methods:

- `handle_request(request)` takes bytes or str and returns the full response bytes.
- `start(host, port)` binds and listens, and returns the bound address.
- `serve_once()` accepts one connection, answers it and returns the response. It returns `None` if the client sent nothing.
- `close()` releases the socket.

The server is also a context manager that closes on exit.

### DHCP

```python
from picoap.dhcp import DhcpServer, find_option

server = DhcpServer("192.168.4.1", "255.255.255.0")
reply = server.process(packet)          # bytes, or None if ignored
```

The server keeps eight `Lease` entries (`mac`, `expiry`) in `server.leases`. The addresses are `.16` to `.23`, using the first three octets of the server's address.

- **DISCOVER** gets an OFFER. The responder reuses the client's existing lease if it has one; otherwise it takes a free or expired one.
- **REQUEST** gets an ACK when the requested address is in the pool and its lease is free or already belongs to that client. The lease is then held for 24 hours.
- Anything else is ignored, as are messages shorter than 243 bytes and messages with no message-type option.

Replies carry the server identifier, subnet mask, router, DNS server and lease-time options. The `clock` argument supplies milliseconds and defaults to a monotonic clock.

`find_option(options, code)` returns the data of an option in a DHCP options field, or `None`.

`start(host, port)`, `serve_once()` and `close()` run the server on a UDP socket. Replies are broadcast to `255.255.255.255`, port 68.

### DNS

```python
from picoap.dns import build_reply, DnsServer
```

`build_reply(message, ip)` answers the first question of a standard query. The reply is an authoritative response holding one A record for `ip`, with a TTL of 60 seconds. It returns `None` in the following cases:

- the message is a response;
- it is a non-standard query;
- it has no questions;
- it has a label longer than 63 bytes;
- it has a name longer than 255 bytes.

`DnsServer(ip)` offers `process`, `start`, `serve_once` and `close`. It replies to the sender of each query.

### Temperature

```python
from picoap.temperature import adc_to_celsius, read_temperature
```

`adc_to_celsius(raw)` converts a 12-bit reading to degrees Celsius. It uses a 3.3 V reference, 0.706 V at 27 °C, and a slope of 1.721 mV/°C.

`read_temperature(read_adc, samples=100, sleep=time.sleep)` averages `samples` readings and pauses 1 ms after each one. It raises `ValueError` if `samples` is not positive.

### SSD1306 display

`picoap.ssd1306` works on a page-organised 128×64 framebuffer, one byte per column of each 8-row page.

**Drawing**

- `set_pixel` raises `ValueError` outside the panel.
- `draw_line` draws with Bresenham's algorithm.
- `draw_char` and `draw_string` draw with the built-in 8×8 font. The font covers `A`–`Z` and `0`–`9`. Lower case is drawn as upper case and anything else blank. Text that starts past column 120 or row 56 is not drawn.
- `font_index` gives a character's glyph number in `FONT`.

**Commands**

- Command streams: `init_commands`, `scroll_commands(enabled)` and `config_commands`, with opcodes in `Command`.
- Bus helpers: `send_command`, `send_command_list`, `send_buffer`, `render_on_display(bus, buffer, area)`, `init_display` and `scroll`.
- `RenderArea` describes a rectangle of columns and pages. Its `buffer_length()` gives the number of bytes it covers.

**The `Ssd1306` class**

`Ssd1306(bus, width, height, external_vcc, address)` holds a framebuffer and provides `command`, `config`, `send_data` and `draw_bitmap`.

A bus is any object with a `write(address, data)` method.

`picoap.display.OledDisplay(bus)` builds on this:

- `initialize()` configures the panel and sends the power-up stream.
- `message(line1, line2)` clears the panel and shows two lines of text.
- `update(led, temperature)` shows `LED: Ligado`/`LED: Desligado` and `Temp: 24.50 C`, and returns the two lines.