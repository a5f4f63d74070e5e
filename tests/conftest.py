"""Shared fixtures: an in-process WebIOPi device."""

import socket

import aiohttp
import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from gpio_controller import GpioController

USER = "webiopi"
PASSWORD = "raspberry"


class FakeDevice:
    """Minimal WebIOPi GPIO REST service with basic auth."""

    def __init__(self, user: str = USER, password: str = PASSWORD):
        self.user = user
        self.password = password
        self.values = {18: "0", 17: "0", 27: "0"}
        self.posts = []  # (pin, value) of every POST that was applied
        self.attempts = []  # (pin, value) of every authorized POST, applied or not
        self.fail_pins = set()
        self.server = None

        self.app = web.Application()
        self.app.router.add_get("/GPIO/{pin}/value", self.get_value)
        self.app.router.add_post("/GPIO/{pin}/value/{value}", self.set_value)

    def _authorized(self, request: web.Request) -> bool:
        header = request.headers.get("Authorization")
        if not header:
            return False
        try:
            auth = aiohttp.BasicAuth.decode(header)
        except ValueError:
            return False
        return auth.login == self.user and auth.password == self.password

    async def get_value(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401, text="Unauthorized")
        pin = int(request.match_info["pin"])
        return web.Response(text=self.values.get(pin, "0"))

    async def set_value(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.Response(status=401, text="Unauthorized")
        pin = int(request.match_info["pin"])
        value = request.match_info["value"]
        self.attempts.append((pin, value))
        if pin in self.fail_pins:
            return web.Response(status=500, text="GPIO error")
        self.values[pin] = value
        self.posts.append((pin, value))
        return web.Response(text=value)

    def url(self, pin: int) -> str:
        return f"http://{self.server.host}:{self.server.port}/GPIO/{pin}/value"


def unused_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


@pytest_asyncio.fixture
async def device():
    fake = FakeDevice()
    server = TestServer(fake.app, host="127.0.0.1")
    await server.start_server()
    fake.server = server
    try:
        yield fake
    finally:
        await server.close()


@pytest.fixture
def controller(device):
    return GpioController(device.server.host, device.server.port, USER, PASSWORD)
