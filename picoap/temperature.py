"""On-chip temperature sensor conversion and averaging."""

from __future__ import annotations

import time
from typing import Callable

TEMPERATURE_CHANNEL = 4
REFERENCE_VOLTAGE = 3.3
ADC_RESOLUTION = 1 << 12
DEFAULT_SAMPLES = 100
SAMPLE_INTERVAL_S = 0.001


def adc_to_celsius(raw: int) -> float:
    """Convert a 12-bit sensor reading to degrees Celsius."""
    voltage = raw * REFERENCE_VOLTAGE / ADC_RESOLUTION
    return 27.0 - (voltage - 0.706) / 0.001721


def read_temperature(
    read_adc: Callable[[], int],
    samples: int = DEFAULT_SAMPLES,
    sleep: Callable[[float], None] = time.sleep,
) -> float:
    """Average several sensor readings, pausing briefly between them."""
    if samples <= 0:
        raise ValueError("samples must be positive")
    total = 0.0
    for _ in range(samples):
        total += adc_to_celsius(read_adc())
        sleep(SAMPLE_INTERVAL_S)
    return total / samples