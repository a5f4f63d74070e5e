"""WebIOPi REST client."""

import asyncio
import logging
from typing import Optional

import aiohttp

from constants import GPIO_VALUE_ON
from models import LightCommand, LightFlag, light_name

logger = logging.getLogger(__name__)


class GpioClient:
    """
    Reads and writes GPIO values over HTTP with basic auth.

    A session is opened per logical operation: ``get`` opens its own, a
    light set opens one with ``session()`` and passes it to every ``post``.
    """

    def __init__(self, user_id: str, password: str, timeout: Optional[float] = None):
        self.headers = {"Authorization": aiohttp.BasicAuth(user_id, password).encode()}
        self.timeout = aiohttp.ClientTimeout(total=timeout) if timeout else None

    def session(self) -> aiohttp.ClientSession:
        """Open a credentialed session. Use as ``async with client.session() as s``."""
        if self.timeout is None:
            return aiohttp.ClientSession(headers=self.headers)
        return aiohttp.ClientSession(headers=self.headers, timeout=self.timeout)

    async def get(self, url: str, light: LightFlag) -> bool:
        """
        Return True if ``light``'s pin at ``url`` reads "1".

        A failed read is logged and reported as False, the same as a pin that is off.
        """
        try:
            async with self.session() as session:
                async with session.get(url) as resp:
                    body = await resp.text()
                    if resp.status >= 300:
                        logger.error(f"Reading {light_name(light)} using {url} failed: HTTP {resp.status}")
                    return body == GPIO_VALUE_ON
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(f"Reading {light_name(light)} using {url} failed: {str(e) or type(e).__name__}")
            return False

    async def post(self, session: aiohttp.ClientSession, command: LightCommand) -> bool:
        """Send one light command. Never raises; failures are logged and reported as False."""
        try:
            async with session.post(command.url, data=command.value) as resp:
                resp.raise_for_status()
            logger.debug(f"Posted {command.value} to {command.url}")
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            logger.error(
                f"Attempted to set {light_name(command.light)} to {command.direction} "
                f"using {command.url} failed: {str(e) or type(e).__name__}"
            )
            return False
