"""URL utilities for the WebIOPi REST service."""

from typing import Iterator, NamedTuple, Tuple

from constants import DEFAULT_AVAILABLE_PIN, DEFAULT_AWAY_PIN, DEFAULT_BUSY_PIN
from models import LIGHT_ORDER, LightFlag


def gpio_value_url(host: str, port: int, pin: int) -> str:
    """Get the value URL for a GPIO pin."""
    return f"http://{host}:{port}/GPIO/{pin}/value"


class LightEndpoints(NamedTuple):
    """Value URLs for the three LEDs."""
    available: str
    away: str
    busy: str

    def url_for(self, light: LightFlag) -> str:
        if light == LightFlag.AVAILABLE:
            return self.available
        if light == LightFlag.AWAY:
            return self.away
        if light == LightFlag.BUSY:
            return self.busy
        raise ValueError(f"Not a single light: {light!r}")

    def in_order(self) -> Iterator[Tuple[LightFlag, str]]:
        """Yield (light, url) in send order."""
        for light in LIGHT_ORDER:
            yield light, self.url_for(light)


def light_endpoints(
    host: str,
    port: int,
    available_pin: int = DEFAULT_AVAILABLE_PIN,
    away_pin: int = DEFAULT_AWAY_PIN,
    busy_pin: int = DEFAULT_BUSY_PIN,
) -> LightEndpoints:
    """Get the value URLs for the Available, Away and Busy LEDs."""
    return LightEndpoints(
        available=gpio_value_url(host, port, available_pin),
        away=gpio_value_url(host, port, away_pin),
        busy=gpio_value_url(host, port, busy_pin),
    )
