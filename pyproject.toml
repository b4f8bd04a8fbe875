[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "picoap"
version = "0.1.0"
description = "A small access-point service stack: DHCP and DNS responders, an LED control web page, and SSD1306 OLED and temperature helpers."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "dhcp",
    "dns",
    "captive-portal",
    "access-point",
    "http",
    "ssd1306",
    "oled",
    "temperature",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Internet :: Name Service (DNS)",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
picoap = "picoap.app:main"

[tool.hatch.build.targets.wheel]
packages = ["picoap"]

[tool.hatch.build.targets.sdist]
include = ["picoap", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
