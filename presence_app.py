"""Main PresencePi application."""

import asyncio
import logging
import os
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

import yaml

from constants import (
    DEFAULT_AVAILABLE_PIN,
    DEFAULT_AWAY_PIN,
    DEFAULT_BUSY_PIN,
    DEFAULT_CONFIG_FILE,
    ERROR_BLINK_INTERVAL,
    MQTT_AVAILABILITY_TOPIC,
    MQTT_DEFAULT_HOST,
    MQTT_DEFAULT_PORT,
    MQTT_POWER_TOPIC,
    PRESENCE_STARTUP_WAIT,
    TEST_BLINK_SETTLE,
)
from gpio_controller import GpioController
from mqtt_presence import MqttPresenceSource
from presence_monitor import PresenceMonitor
from status_log import log_status

logger = logging.getLogger(__name__)

Prompt = Callable[[str], Awaitable[str]]


class SelfTestError(RuntimeError):
    """A light command failed during the wiring self-test."""


@dataclass
class AppConfig:
    """Settings not given on the command line."""
    available_pin: int = DEFAULT_AVAILABLE_PIN
    away_pin: int = DEFAULT_AWAY_PIN
    busy_pin: int = DEFAULT_BUSY_PIN
    blink_interval: float = ERROR_BLINK_INTERVAL
    http_timeout: Optional[float] = None
    mqtt_host: str = MQTT_DEFAULT_HOST
    mqtt_port: int = MQTT_DEFAULT_PORT
    mqtt_username: Optional[str] = None
    mqtt_password: Optional[str] = None
    availability_topic: str = MQTT_AVAILABILITY_TOPIC
    power_topic: str = MQTT_POWER_TOPIC
    startup_wait: float = PRESENCE_STARTUP_WAIT


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"'{name}' section must be a mapping")
    return value


def _number(section: Dict[str, Any], key: str, default, kind=float, positive=True):
    value = section.get(key, default)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number, got {value!r}")
    if kind is int and not isinstance(value, int):
        raise ValueError(f"'{key}' must be an integer, got {value!r}")
    if positive and value <= 0:
        raise ValueError(f"'{key}' must be positive, got {value!r}")
    return kind(value)


def load_config(path: str = DEFAULT_CONFIG_FILE, required: bool = False) -> AppConfig:
    """
    Load and validate the configuration file.

    A missing file gives the defaults unless ``required`` is set.
    """
    if not os.path.exists(path):
        if required:
            raise FileNotFoundError(
                f"Configuration file '{path}' not found. "
                f"Copy '{DEFAULT_CONFIG_FILE}.example' to '{path}' and update with your settings."
            )
        logger.info(f"No configuration file at '{path}', using defaults")
        return AppConfig()

    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in '{path}': {e}")

    if raw is None:
        return AppConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"'{path}' must contain a mapping")

    gpio = _section(raw, "gpio")
    pins = _section(gpio, "pins")
    mqtt = _section(raw, "mqtt")
    presence = _section(raw, "presence")
    defaults = AppConfig()

    return AppConfig(
        available_pin=_number(pins, "available", defaults.available_pin, int, positive=False),
        away_pin=_number(pins, "away", defaults.away_pin, int, positive=False),
        busy_pin=_number(pins, "busy", defaults.busy_pin, int, positive=False),
        blink_interval=_number(gpio, "blink_interval", defaults.blink_interval),
        http_timeout=_number(gpio, "http_timeout", defaults.http_timeout),
        mqtt_host=str(mqtt.get("host", defaults.mqtt_host)),
        mqtt_port=_number(mqtt, "port", defaults.mqtt_port, int),
        mqtt_username=mqtt.get("username"),
        mqtt_password=mqtt.get("password"),
        availability_topic=str(presence.get("availability_topic", defaults.availability_topic)),
        power_topic=str(presence.get("power_topic", defaults.power_topic)),
        startup_wait=_number(presence, "startup_wait", defaults.startup_wait, positive=False),
    )


async def console_prompt(message: str) -> str:
    """Print ``message`` and wait for a line from stdin without tying up the default executor."""
    loop = asyncio.get_running_loop()
    future: asyncio.Future = loop.create_future()

    def _set(value: str):
        if not future.done():
            future.set_result(value)

    def _reader():
        try:
            line = input(message)
        except EOFError:
            line = ""
        loop.call_soon_threadsafe(_set, line)

    threading.Thread(target=_reader, name="console_prompt", daemon=True).start()
    return await future


class PresencePi:
    """Wires the presence source, the monitor and the LEDs together."""

    def __init__(
        self,
        host: str,
        port: int,
        user_id: str,
        password: str,
        config: Optional[AppConfig] = None,
        run_test: bool = False,
        prompt: Optional[Prompt] = None,
    ):
        self.loop = asyncio.get_running_loop()
        self.config = config or AppConfig()
        self.run_test = run_test
        self.prompt = prompt or console_prompt

        self.controller = GpioController(
            host,
            port,
            user_id,
            password,
            available_pin=self.config.available_pin,
            away_pin=self.config.away_pin,
            busy_pin=self.config.busy_pin,
            http_timeout=self.config.http_timeout,
        )
        self.source = MqttPresenceSource(
            host=self.config.mqtt_host,
            port=self.config.mqtt_port,
            availability_topic=self.config.availability_topic,
            power_topic=self.config.power_topic,
            username=self.config.mqtt_username,
            password=self.config.mqtt_password,
        )
        self.monitor = PresenceMonitor(self.controller, self.source, self.config.blink_interval)

        self._tasks: List[asyncio.Task] = []
        self.ready = asyncio.Event()
        self.running = True

    async def start(self):
        """Run the self-test if asked, then monitor presence until stopped."""
        await self.controller.all_off()

        if self.run_test:
            await self.run_test_sequence()
            logger.info("Attempting to attach to the presence source - any error received after this point is presence related")

        self.source.attach(self.monitor.post_event)
        self.source.connect()
        received = await self.loop.run_in_executor(
            None, self.source.wait_for_presence, self.config.startup_wait
        )
        if not received:
            logger.warning(f"No presence received within {self.config.startup_wait}s")

        await self.monitor.start()
        logger.info("Monitoring presence")
        self.ready.set()

        self._tasks = [asyncio.create_task(self.monitor.run(), name="presence_monitor")]
        await asyncio.gather(*self._tasks)

    async def run_test_sequence(self):
        """Walk the operator through each LED so the wiring can be checked."""
        log_status(logger, "To assist in checking your wiring, we'll run through a few tests of your rig . . .")
        results = []

        self.controller.blink_all(self.config.blink_interval)
        await asyncio.sleep(TEST_BLINK_SETTLE)
        await self.prompt("All LEDs should be blinking - Press Enter to continue . . .")
        await self.controller.stop_blinking()

        steps = (
            ("Available", self.controller.set_available),
            ("Busy", self.controller.set_busy),
            ("Away", self.controller.set_away),
        )
        for name, action in steps:
            ok = await action()
            results.append(ok)
            log_status(logger, f"Setting {name}", ok)
            await self.prompt(f"{name} LED should be lit, all others should be off - Press Enter to continue . . .")

        if not all(results):
            raise SelfTestError("One or more LEDs could not be set during the self-test")

    async def stop(self):
        """Stop the app and turn the LEDs off."""
        if not self.running:
            return
        self.running = False

        for t in self._tasks:
            t.cancel()
        for t in self._tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Task ended with error during shutdown: {e}")

        try:
            self.source.close()
        except Exception as e:
            logger.debug(f"Error closing presence source: {e}")

        await self.monitor.close()
        logger.info("Exiting . . .")
