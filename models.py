"""Data models and dataclasses."""

from dataclasses import dataclass
from enum import Enum, IntFlag

from constants import GPIO_VALUE_OFF, GPIO_VALUE_ON


class LightFlag(IntFlag):
    """LEDs on the device. A set bit means the LED should be lit."""
    NONE = 0
    AVAILABLE = 1  # green
    AWAY = 2  # yellow
    BUSY = 4  # red


ALL_LIGHTS = LightFlag(LightFlag.AVAILABLE | LightFlag.AWAY | LightFlag.BUSY)

# Order in which a light set is sent to the device
LIGHT_ORDER = (LightFlag.AVAILABLE, LightFlag.AWAY, LightFlag.BUSY)

_LIGHT_NAMES = {
    LightFlag.AVAILABLE: "Available",
    LightFlag.AWAY: "Away",
    LightFlag.BUSY: "Busy",
}


def has_flag(flags: int, flag: LightFlag) -> bool:
    """Return True if every bit of ``flag`` is set in ``flags``."""
    return (int(flags) & int(flag)) == int(flag)


def with_flag(flags: int, flag: LightFlag, on: bool) -> LightFlag:
    """Return ``flags`` with ``flag`` set or cleared."""
    if on:
        return LightFlag(int(flags) | int(flag))
    return LightFlag(int(flags) & ~int(flag) & int(ALL_LIGHTS))


def light_name(flag: LightFlag) -> str:
    return _LIGHT_NAMES.get(flag, str(int(flag)))


def describe_lights(flags: int) -> str:
    """Human readable list of the lit LEDs, e.g. 'Available, Busy'."""
    names = [light_name(f) for f in LIGHT_ORDER if has_flag(flags, f)]
    return ", ".join(names) if names else "None"


@dataclass(frozen=True)
class LightCommand:
    """A single POST that turns one LED on or off."""
    base_url: str  # .../GPIO/<pin>/value, no trailing slash
    light: LightFlag  # exactly one flag
    turn_on: bool

    @classmethod
    def from_light(cls, base_url: str, light: LightFlag, lights_on: int) -> "LightCommand":
        """Build the command for ``light`` given the full set of lights that should be on."""
        return cls(base_url=base_url, light=light, turn_on=has_flag(lights_on, light))

    @property
    def value(self) -> str:
        return GPIO_VALUE_ON if self.turn_on else GPIO_VALUE_OFF

    @property
    def url(self) -> str:
        return f"{self.base_url}/{self.value}"

    @property
    def direction(self) -> str:
        return "ON" if self.turn_on else "OFF"


@dataclass(frozen=True)
class BlinkSession:
    """Lights being blinked and the on/off hold time in seconds."""
    flags: LightFlag
    interval: float


class Presence(Enum):
    """Availability values reported by the collaboration client."""
    NONE = "None"
    FREE = "Free"
    FREE_IDLE = "FreeIdle"
    BUSY = "Busy"
    BUSY_IDLE = "BusyIdle"
    DO_NOT_DISTURB = "DoNotDisturb"
    TEMPORARILY_AWAY = "TemporarilyAway"
    AWAY = "Away"
    OFFLINE = "Offline"

    @classmethod
    def parse(cls, raw: str) -> "Presence":
        """Parse a payload, case-insensitively. Unknown values become NONE."""
        text = (raw or "").strip().replace("_", "").replace(" ", "").lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return cls.NONE


class LightTarget(Enum):
    """What the LEDs should show for a presence value."""
    BUSY = "busy"
    AWAY = "away"
    AVAILABLE = "available"
    OFFLINE = "offline"
    ERROR = "error"


class PowerMode(Enum):
    SUSPEND = "suspend"
    RESUME = "resume"


@dataclass
class PresenceChanged:
    """The presence source signalled an availability change."""


@dataclass
class PowerModeChanged:
    """The host is going to sleep or waking up."""
    mode: PowerMode
