"""Access-point services: DHCP and DNS responders, an LED control web page, and SSD1306 OLED and temperature helpers."""

__version__ = "0.1.0"

__all__ = ["__version__"]