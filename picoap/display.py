"""Two-line status display on an SSD1306 OLED panel."""

from __future__ import annotations

from picoap.ssd1306 import (
    HEIGHT,
    I2C_ADDRESS,
    PAGE_HEIGHT,
    WIDTH,
    Command,
    I2CBus,
    Ssd1306,
    draw_string,
    init_display,
)

LINE_LENGTH = 21
SECOND_LINE_Y = 16


class OledDisplay:
    """Shows short text messages and the LED/temperature status."""

    def __init__(self, bus: I2CBus, width: int = WIDTH, height: int = HEIGHT) -> None:
        self.panel = Ssd1306(bus, width, height, False, I2C_ADDRESS)

    @property
    def framebuffer(self) -> bytearray:
        """The panel's framebuffer, one byte per column of each page."""
        return self.panel.framebuffer

    def initialize(self) -> None:
        """Configure the panel and send the power-up command stream."""
        self.panel.config()
        init_display(self.panel.bus)

    def message(self, line1: str, line2: str) -> None:
        """Clear the panel and show two lines of text."""
        framebuffer = self.panel.framebuffer
        framebuffer[:] = bytes(len(framebuffer))
        draw_string(framebuffer, 0, 0, line1)
        draw_string(framebuffer, 0, SECOND_LINE_Y, line2)
        for value in (
            Command.SET_COLUMN_ADDRESS, 0, self.panel.width - 1,
            Command.SET_PAGE_ADDRESS, 0, self.panel.height // PAGE_HEIGHT - 1,
        ):
            self.panel.command(value)
        self.panel.send_data()

    def update(self, led: bool, temperature: float) -> tuple[str, str]:
        """Show the LED state and temperature; return the two lines shown."""
        line1 = f"LED: {'Ligado' if led else 'Desligado'}"[:LINE_LENGTH]
        line2 = f"Temp: {temperature:.2f} C"[:LINE_LENGTH]
        self.message(line1, line2)
        return line1, line2