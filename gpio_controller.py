"""Drives the Available/Away/Busy LEDs through WebIOPi."""

import ipaddress
import logging
from typing import Optional

from blink import BlinkScheduler
from constants import DEFAULT_AVAILABLE_PIN, DEFAULT_AWAY_PIN, DEFAULT_BUSY_PIN
from endpoints import LightEndpoints, light_endpoints
from gpio_client import GpioClient
from models import ALL_LIGHTS, LightCommand, LightFlag, with_flag

logger = logging.getLogger(__name__)


class GpioController:
    """
    Sends light commands to the WebIOPi service on a Raspberry Pi.

    WebIOPi must be running on the device with the LED pins configured as
    OUT and a user id and password set (``sudo webiopi-passwd``).

    ``commanded_state`` is what this controller last set successfully, not
    what the device reports; use the ``is_*_on`` methods to read the device.
    """

    def __init__(
        self,
        host: str,
        port: int,
        user_id: str,
        password: str,
        available_pin: int = DEFAULT_AVAILABLE_PIN,
        away_pin: int = DEFAULT_AWAY_PIN,
        busy_pin: int = DEFAULT_BUSY_PIN,
        http_timeout: Optional[float] = None,
    ):
        address = ipaddress.IPv4Address(host.strip())
        self.endpoints: LightEndpoints = light_endpoints(
            str(address), port, available_pin, away_pin, busy_pin
        )
        self.client = GpioClient(user_id, password, timeout=http_timeout)
        self.blinker = BlinkScheduler(self.set_lights, self.all_off)
        self._commanded = LightFlag.NONE

    @property
    def commanded_state(self) -> LightFlag:
        return self._commanded

    @property
    def is_blinking(self) -> bool:
        return self.blinker.is_blinking

    async def set_lights(self, lights_on: LightFlag) -> bool:
        """
        Turn on exactly ``lights_on`` and turn every other LED off.

        Commands go out in Available, Away, Busy order. The first failure
        stops the remaining commands; lights already changed stay changed.
        """
        commands = [
            LightCommand.from_light(url, light, lights_on)
            for light, url in self.endpoints.in_order()
        ]
        async with self.client.session() as session:
            for command in commands:
                if not await self.client.post(session, command):
                    return False
                self._commanded = with_flag(self._commanded, command.light, command.turn_on)
        return True

    async def all_off(self) -> bool:
        return await self.set_lights(LightFlag.NONE)

    async def all_on(self) -> bool:
        return await self.set_lights(ALL_LIGHTS)

    async def set_available(self) -> bool:
        return await self.set_lights(LightFlag.AVAILABLE)

    async def set_away(self) -> bool:
        return await self.set_lights(LightFlag.AWAY)

    async def set_busy(self) -> bool:
        return await self.set_lights(LightFlag.BUSY)

    async def is_on(self, light: LightFlag) -> bool:
        """Read one LED from the device. A failed read counts as off."""
        return await self.client.get(self.endpoints.url_for(light), light)

    async def is_available_on(self) -> bool:
        return await self.is_on(LightFlag.AVAILABLE)

    async def is_away_on(self) -> bool:
        return await self.is_on(LightFlag.AWAY)

    async def is_busy_on(self) -> bool:
        return await self.is_on(LightFlag.BUSY)

    def blink_all(self, interval: float) -> bool:
        """Blink every LED. No-op if a blink is already running."""
        return self.blinker.start(ALL_LIGHTS, interval)

    async def stop_blinking(self) -> bool:
        """
        Stop the blink timer.

        Waits twice the blink interval before returning so the last cycle
        can finish turning the LEDs off.
        """
        return await self.blinker.stop()

    async def close(self):
        await self.blinker.close()
