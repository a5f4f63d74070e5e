"""Single-flight blink timer for the LEDs."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, Set

from models import BlinkSession, LightFlag, describe_lights

logger = logging.getLogger(__name__)


class BlinkScheduler:
    """
    Pulses a set of lights on and off until stopped.

    The timer first fires after ``interval`` and then every ``2 * interval``.
    Each firing turns the lights on, holds for ``interval`` and turns
    everything off, so a late tick can never leave the lights lit.

    Every firing runs as its own task. ``stop()`` disarms the timer but a
    firing that has already begun runs to completion; ``stop()`` waits
    ``2 * interval`` to let it finish, which only helps the caller that
    awaited it. A light command issued from another task inside that window
    can still be overwritten by the tail of the firing.

    A tick is skipped while the previous firing is still running, so a hung
    device holds at most one firing and one HTTP session open.
    """

    def __init__(
        self,
        turn_on: Callable[[LightFlag], Awaitable[bool]],
        turn_off: Callable[[], Awaitable[bool]],
    ):
        self._turn_on = turn_on
        self._turn_off = turn_off
        self._blinking = False
        self._session: Optional[BlinkSession] = None
        self._timer: Optional[asyncio.Task] = None
        self._firings: Set[asyncio.Task] = set()

    @property
    def is_blinking(self) -> bool:
        return self._blinking

    @property
    def session(self) -> Optional[BlinkSession]:
        return self._session

    def start(self, flags: LightFlag, interval: float) -> bool:
        """Start blinking. Returns False (and does nothing) if already blinking."""
        if interval <= 0:
            raise ValueError(f"Blink interval must be positive, got {interval}")

        # Test-and-set; nothing awaits between the check and the assignment
        if self._blinking:
            logger.debug("Blink already active, ignoring start")
            return False
        self._blinking = True

        self._session = BlinkSession(flags=LightFlag(flags), interval=interval)
        self._timer = asyncio.create_task(self._run_timer(self._session), name="blink_timer")
        logger.info(f"Blinking {describe_lights(flags)} every {interval}s")
        return True

    async def stop(self) -> bool:
        """Stop blinking. Returns False if it was not blinking."""
        if not self._blinking:
            return False
        self._blinking = False

        session, self._session = self._session, None
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()

        logger.info("Blinking stopped")
        if session is not None:
            # Give a firing that is already under way time to finish its cycle
            await asyncio.sleep(session.interval * 2)
        return True

    async def close(self):
        """Disarm the timer and wait for any firing still running."""
        self._blinking = False
        self._session = None
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        if self._firings:
            await asyncio.gather(*list(self._firings), return_exceptions=True)

    async def _run_timer(self, session: BlinkSession):
        await asyncio.sleep(session.interval)
        while True:
            if self._firings:
                logger.debug("Previous blink cycle still running, skipping this one")
            else:
                task = asyncio.create_task(self._fire(session), name="blink_fire")
                self._firings.add(task)
                task.add_done_callback(self._firings.discard)
            await asyncio.sleep(session.interval * 2)

    async def _fire(self, session: BlinkSession):
        try:
            await self._turn_on(session.flags)
            await asyncio.sleep(session.interval)
            await self._turn_off()
        except Exception as e:
            logger.error(f"Blink cycle failed: {e}", exc_info=True)
