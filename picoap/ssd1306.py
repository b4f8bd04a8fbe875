"""SSD1306 OLED controller: framebuffer drawing and I2C command streams."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Protocol, Union

WIDTH = 128
HEIGHT = 64
PAGE_HEIGHT = 8
PAGES = HEIGHT // PAGE_HEIGHT
BUFFER_LENGTH = PAGES * WIDTH
I2C_ADDRESS = 0x3C
I2C_CLOCK_KHZ = 400

COMMAND_CONTROL = 0x80
DATA_CONTROL = 0x40


class Command(IntEnum):
    """Controller command opcodes."""

    SET_MEMORY_MODE = 0x20
    SET_COLUMN_ADDRESS = 0x21
    SET_PAGE_ADDRESS = 0x22
    SET_HORIZONTAL_SCROLL = 0x26
    SET_SCROLL = 0x2E
    SET_DISPLAY_START_LINE = 0x40
    SET_CONTRAST = 0x81
    SET_CHARGE_PUMP = 0x8D
    SET_SEGMENT_REMAP = 0xA0
    SET_ENTIRE_ON = 0xA4
    SET_ALL_ON = 0xA5
    SET_NORMAL_DISPLAY = 0xA6
    SET_INVERSE_DISPLAY = 0xA7
    SET_MUX_RATIO = 0xA8
    SET_DISPLAY = 0xAE
    SET_COMMON_OUTPUT_DIRECTION = 0xC0
    SET_DISPLAY_OFFSET = 0xD3
    SET_DISPLAY_CLOCK_DIVIDE_RATIO = 0xD5
    SET_PRECHARGE = 0xD9
    SET_COMMON_PIN_CONFIGURATION = 0xDA
    SET_VCOMH_DESELECT_LEVEL = 0xDB
    WRITE_MODE = 0xFE
    READ_MODE = 0xFF


FONT = bytes([
    0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00, 0x00,  # blank
    0x78, 0x14, 0x12, 0x11, 0x12, 0x14, 0x78, 0x00,  # A
    0x7f, 0x49, 0x49, 0x49, 0x49, 0x49, 0x7f, 0x00,  # B
    0x7e, 0x41, 0x41, 0x41, 0x41, 0x41, 0x41, 0x00,  # C
    0x7f, 0x41, 0x41, 0x41, 0x41, 0x41, 0x7e, 0x00,  # D
    0x7f, 0x49, 0x49, 0x49, 0x49, 0x49, 0x49, 0x00,  # E
    0x7f, 0x09, 0x09, 0x09, 0x09, 0x01, 0x01, 0x00,  # F
    0x7f, 0x41, 0x41, 0x41, 0x51, 0x51, 0x73, 0x00,  # G
    0x7f, 0x08, 0x08, 0x08, 0x08, 0x08, 0x7f, 0x00,  # H
    0x00, 0x00, 0x00, 0x7f, 0x00, 0x00, 0x00, 0x00,  # I
    0x21, 0x41, 0x41, 0x3f, 0x01, 0x01, 0x01, 0x00,  # J
    0x00, 0x7f, 0x08, 0x08, 0x14, 0x22, 0x41, 0x00,  # K
    0x7f, 0x40, 0x40, 0x40, 0x40, 0x40, 0x40, 0x00,  # L
    0x7f, 0x02, 0x04, 0x08, 0x04, 0x02, 0x7f, 0x00,  # M
    0x7f, 0x02, 0x04, 0x08, 0x10, 0x20, 0x7f, 0x00,  # N
    0x3e, 0x41, 0x41, 0x41, 0x41, 0x41, 0x3e, 0x00,  # O
    0x7f, 0x11, 0x11, 0x11, 0x11, 0x11, 0x0e, 0x00,  # P
    0x3e, 0x41, 0x41, 0x49, 0x51, 0x61, 0x7e, 0x00,  # Q
    0x7f, 0x11, 0x11, 0x11, 0x31, 0x51, 0x0e, 0x00,  # R
    0x46, 0x49, 0x49, 0x49, 0x49, 0x30, 0x00, 0x00,  # S
    0x01, 0x01, 0x01, 0x7f, 0x01, 0x01, 0x01, 0x00,  # T
    0x3f, 0x40, 0x40, 0x40, 0x40, 0x40, 0x3f, 0x00,  # U
    0x0f, 0x10, 0x20, 0x40, 0x20, 0x10, 0x0f, 0x00,  # V
    0x7f, 0x20, 0x10, 0x08, 0x10, 0x20, 0x7f, 0x00,  # W
    0x00, 0x41, 0x22, 0x14, 0x14, 0x22, 0x41, 0x00,  # X
    0x01, 0x02, 0x04, 0x78, 0x04, 0x02, 0x01, 0x00,  # Y
    0x41, 0x61, 0x59, 0x45, 0x43, 0x41, 0x00, 0x00,  # Z
    0x3e, 0x41, 0x41, 0x49, 0x41, 0x41, 0x3e, 0x00,  # 0
    0x00, 0x00, 0x42, 0x7f, 0x40, 0x00, 0x00, 0x00,  # 1
    0x30, 0x49, 0x49, 0x49, 0x49, 0x46, 0x00, 0x00,  # 2
    0x49, 0x49, 0x49, 0x49, 0x49, 0x49, 0x36, 0x00,  # 3
    0x3f, 0x20, 0x20, 0x78, 0x20, 0x20, 0x00, 0x00,  # 4
    0x4f, 0x49, 0x49, 0x49, 0x49, 0x30, 0x00, 0x00,  # 5
    0x3f, 0x48, 0x48, 0x48, 0x48, 0x48, 0x30, 0x00,  # 6
    0x01, 0x01, 0x01, 0x61, 0x31, 0x0d, 0x03, 0x00,  # 7
    0x36, 0x49, 0x49, 0x49, 0x49, 0x49, 0x36, 0x00,  # 8
    0x06, 0x09, 0x09, 0x09, 0x09, 0x09, 0x7f, 0x00,  # 9
])

GLYPH_SIZE = 8

Character = Union[str, int]


class I2CBus(Protocol):
    """Anything that can write a block of bytes to an I2C device."""

    def write(self, address: int, data: bytes) -> None: ...


@dataclass(frozen=True)
class RenderArea:
    """A rectangle of columns and pages to refresh on the panel."""

    start_column: int
    end_column: int
    start_page: int
    end_page: int

    def buffer_length(self) -> int:
        """Number of framebuffer bytes the area covers."""
        return (self.end_column - self.start_column + 1) * (
            self.end_page - self.start_page + 1
        )


def _code(character: Character) -> int:
    if isinstance(character, str):
        if len(character) != 1:
            raise ValueError("expected a single character")
        return ord(character)
    return character


def font_index(character: Character) -> int:
    """Glyph number in FONT for a character; unknown characters map to 0."""
    code = _code(character)
    if ord("A") <= code <= ord("Z"):
        return code - ord("A") + 1
    if ord("0") <= code <= ord("9"):
        return code - ord("0") + 27
    return 0


def set_pixel(buffer: bytearray, x: int, y: int, on: bool) -> None:
    """Turn one pixel of the framebuffer on or off."""
    if not (0 <= x < WIDTH and 0 <= y < HEIGHT):
        raise ValueError(f"pixel ({x}, {y}) outside {WIDTH}x{HEIGHT}")
    index = (y // PAGE_HEIGHT) * WIDTH + x
    mask = 1 << (y % PAGE_HEIGHT)
    if on:
        buffer[index] |= mask
    else:
        buffer[index] &= ~mask & 0xFF


def draw_line(buffer: bytearray, x0: int, y0: int, x1: int, y1: int, on: bool) -> None:
    """Draw a straight line with Bresenham's algorithm."""
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    error = dx + dy
    while True:
        set_pixel(buffer, x0, y0, on)
        if x0 == x1 and y0 == y1:
            break
        error2 = 2 * error
        if error2 >= dy:
            error += dy
            x0 += sx
        if error2 <= dx:
            error += dx
            y0 += sy


def draw_char(buffer: bytearray, x: int, y: int, character: Character) -> None:
    """Copy one 8x8 glyph into the page containing row y, starting at column x."""
    if x > WIDTH - GLYPH_SIZE or y > HEIGHT - GLYPH_SIZE:
        return
    if x < 0 or y < 0:
        raise ValueError(f"negative position ({x}, {y})")
    code = _code(character)
    if ord("a") <= code <= ord("z"):
        code -= ord("a") - ord("A")
    glyph = font_index(code) * GLYPH_SIZE
    start = (y // PAGE_HEIGHT) * WIDTH + x
    buffer[start:start + GLYPH_SIZE] = FONT[glyph:glyph + GLYPH_SIZE]


def draw_string(buffer: bytearray, x: int, y: int, text: str) -> None:
    """Draw text left to right, eight columns per byte of its UTF-8 form."""
    if x > WIDTH - GLYPH_SIZE or y > HEIGHT - GLYPH_SIZE:
        return
    for code in text.encode("utf-8"):
        draw_char(buffer, x, y, code)
        x += GLYPH_SIZE


def _common_pin_configuration() -> int:
    if WIDTH == 128 and HEIGHT == 64:
        return 0x12
    return 0x02


def init_commands() -> list[int]:
    """Command stream that powers up the panel in horizontal addressing mode."""
    return [
        Command.SET_DISPLAY, Command.SET_MEMORY_MODE, 0x00,
        Command.SET_DISPLAY_START_LINE, Command.SET_SEGMENT_REMAP | 0x01,
        Command.SET_MUX_RATIO, HEIGHT - 1,
        Command.SET_COMMON_OUTPUT_DIRECTION | 0x08, Command.SET_DISPLAY_OFFSET,
        0x00, Command.SET_COMMON_PIN_CONFIGURATION, _common_pin_configuration(),
        Command.SET_DISPLAY_CLOCK_DIVIDE_RATIO, 0x80, Command.SET_PRECHARGE,
        0xF1, Command.SET_VCOMH_DESELECT_LEVEL, 0x30, Command.SET_CONTRAST,
        0xFF, Command.SET_ENTIRE_ON, Command.SET_NORMAL_DISPLAY,
        Command.SET_CHARGE_PUMP, 0x14, Command.SET_SCROLL | 0x00,
        Command.SET_DISPLAY | 0x01,
    ]


def scroll_commands(enabled: bool) -> list[int]:
    """Command stream that sets up horizontal scrolling and turns it on or off."""
    return [
        Command.SET_HORIZONTAL_SCROLL | 0x00, 0x00, 0x00, 0x00, 0x03,
        0x00, 0xFF, Command.SET_SCROLL | (0x01 if enabled else 0x00),
    ]


def config_commands() -> list[int]:
    """Command stream used to configure the panel for bitmap output."""
    return [
        Command.SET_DISPLAY | 0x00,
        Command.SET_MEMORY_MODE, 0x01,
        Command.SET_DISPLAY_START_LINE | 0x00,
        Command.SET_SEGMENT_REMAP | 0x01,
        Command.SET_MUX_RATIO, HEIGHT - 1,
        Command.SET_COMMON_OUTPUT_DIRECTION | 0x08,
        Command.SET_DISPLAY_OFFSET, 0x00,
        Command.SET_COMMON_PIN_CONFIGURATION, 0x12,
        Command.SET_DISPLAY_CLOCK_DIVIDE_RATIO, 0x80,
        Command.SET_PRECHARGE, 0xF1,
        Command.SET_VCOMH_DESELECT_LEVEL, 0x30,
        Command.SET_CONTRAST, 0xFF,
        Command.SET_ENTIRE_ON,
        Command.SET_NORMAL_DISPLAY,
        Command.SET_CHARGE_PUMP, 0x14,
        Command.SET_DISPLAY | 0x01,
    ]


def send_command(bus: I2CBus, command: int) -> None:
    """Send a single command byte to the panel at the default address."""
    bus.write(I2C_ADDRESS, bytes([COMMAND_CONTROL, command & 0xFF]))


def send_command_list(bus: I2CBus, commands: Iterable[int]) -> None:
    """Send each command as its own transfer."""
    for command in commands:
        send_command(bus, command)


def send_buffer(bus: I2CBus, data: bytes) -> None:
    """Send display data, prefixed by the data control byte."""
    bus.write(I2C_ADDRESS, bytes([DATA_CONTROL]) + bytes(data))


def render_on_display(bus: I2CBus, buffer: bytes, area: RenderArea) -> None:
    """Refresh the given area of the panel from the framebuffer."""
    send_command_list(bus, [
        Command.SET_COLUMN_ADDRESS, area.start_column, area.end_column,
        Command.SET_PAGE_ADDRESS, area.start_page, area.end_page,
    ])
    send_buffer(bus, bytes(buffer[:area.buffer_length()]))


def init_display(bus: I2CBus) -> None:
    """Send the power-up command stream."""
    send_command_list(bus, init_commands())


def scroll(bus: I2CBus, enabled: bool) -> None:
    """Enable or disable horizontal scrolling."""
    send_command_list(bus, scroll_commands(enabled))


class Ssd1306:
    """A panel with its own framebuffer, address and bus."""

    def __init__(
        self,
        bus: I2CBus,
        width: int = WIDTH,
        height: int = HEIGHT,
        external_vcc: bool = False,
        address: int = I2C_ADDRESS,
    ) -> None:
        self.bus = bus
        self.width = width
        self.height = height
        self.pages = height // PAGE_HEIGHT
        self.external_vcc = external_vcc
        self.address = address
        self.framebuffer = bytearray(self.pages * self.width)

    def command(self, value: int) -> None:
        """Send one command byte."""
        self.bus.write(self.address, bytes([COMMAND_CONTROL, value & 0xFF]))

    def config(self) -> None:
        """Configure the panel for bitmap output."""
        for value in config_commands():
            self.command(value)

    def send_data(self) -> None:
        """Push the whole framebuffer to the panel."""
        for value in (
            Command.SET_COLUMN_ADDRESS, 0, self.width - 1,
            Command.SET_PAGE_ADDRESS, 0, self.pages - 1,
        ):
            self.command(value)
        self.bus.write(self.address, bytes([DATA_CONTROL]) + bytes(self.framebuffer))

    def draw_bitmap(self, bitmap: bytes) -> None:
        """Copy a bitmap into the framebuffer, refreshing the panel after each byte."""
        if len(bitmap) < len(self.framebuffer):
            raise ValueError(
                f"bitmap has {len(bitmap)} bytes, need {len(self.framebuffer)}"
            )
        for index in range(len(self.framebuffer)):
            self.framebuffer[index] = bitmap[index]
            self.send_data()