"""Maps the user's presence to the LEDs."""

import asyncio
import logging
from typing import Dict, Optional, Protocol, Union

from constants import ERROR_BLINK_INTERVAL
from gpio_controller import GpioController
from models import (
    LightTarget,
    PowerMode,
    PowerModeChanged,
    Presence,
    PresenceChanged,
)
from status_log import log_status

logger = logging.getLogger(__name__)

MonitorEvent = Union[PresenceChanged, PowerModeChanged]


class NotSignedInError(Exception):
    """The presence source cannot read the user's presence right now."""


class PresenceUnavailableError(RuntimeError):
    """The presence source has no signed-in user to monitor."""


class PresenceSource(Protocol):
    """What the monitor needs from the collaboration client."""

    @property
    def is_signed_in(self) -> bool:
        ...

    def get_presence(self) -> Presence:
        """Return the current presence or raise NotSignedInError."""
        ...


PRESENCE_TARGETS: Dict[Presence, LightTarget] = {
    Presence.BUSY: LightTarget.BUSY,
    Presence.BUSY_IDLE: LightTarget.BUSY,
    Presence.DO_NOT_DISTURB: LightTarget.BUSY,
    Presence.FREE_IDLE: LightTarget.AWAY,
    Presence.AWAY: LightTarget.AWAY,
    Presence.TEMPORARILY_AWAY: LightTarget.AWAY,
    Presence.FREE: LightTarget.AVAILABLE,
    Presence.OFFLINE: LightTarget.OFFLINE,
}


def map_presence(presence: Optional[Presence]) -> LightTarget:
    """Get the LED target for a presence value; anything unknown is an error."""
    return PRESENCE_TARGETS.get(presence, LightTarget.ERROR)


class PresenceMonitor:
    """
    Keeps the LEDs in step with presence and power notifications.

    Adapters running on other threads hand events to ``post_event``; the
    ``run`` task applies them one at a time on the event loop.
    """

    def __init__(
        self,
        controller: GpioController,
        source: PresenceSource,
        error_interval: float = ERROR_BLINK_INTERVAL,
    ):
        self.loop = asyncio.get_running_loop()
        self.queue: asyncio.Queue[MonitorEvent] = asyncio.Queue()
        self.controller = controller
        self.source = source
        self.error_interval = error_interval

        self.has_just_woken_up = False
        self.is_going_to_sleep = False
        self.is_error_state = False
        self.running = True

    async def start(self):
        """
        Turn the LEDs off and show the current presence.

        Raises PresenceUnavailableError if nobody is signed in.
        """
        await self.controller.all_off()

        if not self.source.is_signed_in:
            log_status(logger, "Client is not logged in - Setting Offline", await self.controller.all_off())
            raise PresenceUnavailableError("Client must be logged in before starting the monitor")

        # The source does not notify on subscription, so show the current value now
        await self.set_led_state()

    def post_event(self, event: MonitorEvent):
        """Queue an event from any thread."""
        self.loop.call_soon_threadsafe(self._enqueue, event)

    def _enqueue(self, event: MonitorEvent):
        # Presence events already waiting behind a suspend must not relight the LEDs
        if isinstance(event, PowerModeChanged) and event.mode is PowerMode.SUSPEND:
            self.is_going_to_sleep = True
        self.queue.put_nowait(event)

    async def run(self):
        """Consume queued events until stopped."""
        while self.running:
            event = await self.queue.get()
            try:
                await self.handle_event(event)
            except Exception as e:
                logger.error(f"Failed to handle {event}: {e}", exc_info=True)

    async def handle_event(self, event: MonitorEvent):
        if isinstance(event, PowerModeChanged):
            await self.on_power_mode_changed(event.mode)
        elif isinstance(event, PresenceChanged):
            await self.on_presence_changed()
        else:
            logger.warning(f"Ignoring unknown event {event!r}")

    async def on_presence_changed(self):
        # If the suspend was seen before the client noticed, its presence churn is ignored
        if self.is_going_to_sleep:
            logger.debug("Going to sleep, ignoring presence change")
            return
        await self.set_led_state()

    async def on_power_mode_changed(self, mode: PowerMode):
        """Turn the LEDs off when the host sleeps and resume tracking when it wakes."""
        if mode is PowerMode.SUSPEND:
            self.has_just_woken_up = False
            self.is_going_to_sleep = True
            if self.is_error_state:
                await self.controller.stop_blinking()
                self.is_error_state = False
            log_status(
                logger,
                "Device is going to sleep - can't track state any longer. Setting all off",
                await self.controller.all_off(),
            )
        elif mode is PowerMode.RESUME:
            log_status(logger, "Device is waking up - presence will be set as soon as the client logs back in")
            self.is_going_to_sleep = False
            self.has_just_woken_up = True

    async def set_led_state(self):
        """Read the current presence and drive the LEDs to match."""
        if not self.source.is_signed_in:
            log_status(logger, "Setting Offline", await self.controller.all_off())
            return

        try:
            presence = self.source.get_presence()
        except NotSignedInError:
            # After a wake-up the client announces a change before presence is
            # readable again; let that first failure pass
            if self.has_just_woken_up:
                logger.debug("Presence not readable yet after wake-up, ignoring")
                self.has_just_woken_up = False
                return
            log_status(logger, "Client is currently logged out so presence will not be processed")
            await self._show_error()
            return

        log_status(logger, f"Availability changed to {presence.value}")

        # Any new reading means the previous error has cleared
        if self.is_error_state:
            await self.controller.stop_blinking()
            self.is_error_state = False

        target = map_presence(presence)
        if target is LightTarget.BUSY:
            if not await self.controller.is_busy_on():
                log_status(logger, "Setting Busy", await self.controller.set_busy())
        elif target is LightTarget.AWAY:
            if not await self.controller.is_away_on():
                log_status(logger, "Setting Away", await self.controller.set_away())
        elif target is LightTarget.AVAILABLE:
            if not await self.controller.is_available_on():
                log_status(logger, "Setting Available", await self.controller.set_available())
        elif target is LightTarget.OFFLINE:
            log_status(logger, "Turning off all LEDs", await self.controller.all_off())
        else:
            await self._show_error()

        self.has_just_woken_up = False

    async def _show_error(self):
        log_status(logger, "Turning off all LEDs before blinking", await self.controller.all_off())
        self.controller.blink_all(self.error_interval)
        self.is_error_state = True

    async def close(self):
        """Stop handling events, stop blinking and turn the LEDs off."""
        self.running = False
        await self.controller.close()
        log_status(logger, "Turning off all LEDs", await self.controller.all_off())
