"""Presence source fed by MQTT."""

import logging
import threading
from typing import Callable, Optional

import paho.mqtt.client as mqtt

from constants import (
    MQTT_AVAILABILITY_TOPIC,
    MQTT_DEFAULT_HOST,
    MQTT_DEFAULT_PORT,
    MQTT_KEEPALIVE,
    MQTT_POWER_TOPIC,
    MQTT_QOS,
    PAYLOAD_RESUME,
    PAYLOAD_SIGNED_OUT,
    PAYLOAD_SUSPEND,
    PAYLOAD_UNREADABLE,
)
from models import PowerMode, PowerModeChanged, Presence, PresenceChanged
from presence_monitor import MonitorEvent, NotSignedInError

logger = logging.getLogger(__name__)


class MqttPresenceSource:
    """
    Reads the user's presence from MQTT.

    The collaboration client (or a bridge next to it) publishes the
    availability name, e.g. ``Busy`` or ``DoNotDisturb``, retained on the
    availability topic, ``SignedOut`` when nobody is signed in to the
    client, ``Unreadable`` (or an empty payload) when the client is signed
    in but its presence cannot be read yet, and ``suspend`` / ``resume`` on
    the power topic. paho runs its network loop on its own thread;
    notifications are handed to the attached callback.
    """

    def __init__(
        self,
        host: str = MQTT_DEFAULT_HOST,
        port: int = MQTT_DEFAULT_PORT,
        availability_topic: str = MQTT_AVAILABILITY_TOPIC,
        power_topic: str = MQTT_POWER_TOPIC,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.availability_topic = availability_topic
        self.power_topic = power_topic

        self._lock = threading.Lock()
        self._payload: Optional[str] = None
        self._received = threading.Event()
        self._notify: Optional[Callable[[MonitorEvent], None]] = None

        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        if username:
            self.client.username_pw_set(username, password)
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

    @property
    def is_signed_in(self) -> bool:
        """True once an availability value has been received and it is not ``SignedOut``."""
        with self._lock:
            payload = self._payload
        return payload is not None and payload.strip().lower() != PAYLOAD_SIGNED_OUT.lower()

    def get_presence(self) -> Presence:
        with self._lock:
            payload = self._payload
        text = (payload or "").strip().lower()
        if not text or text in (PAYLOAD_SIGNED_OUT.lower(), PAYLOAD_UNREADABLE.lower()):
            raise NotSignedInError("Presence is not readable right now")
        return Presence.parse(payload)

    def attach(self, notify: Callable[[MonitorEvent], None]):
        """Send future notifications to ``notify`` (called on the MQTT thread)."""
        self._notify = notify

    def connect(self):
        """Connect to the MQTT broker."""
        try:
            self.client.connect(self.host, self.port, keepalive=MQTT_KEEPALIVE)
            self.client.loop_start()
            logger.info(f"Connected to MQTT broker at {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    def wait_for_presence(self, timeout: float) -> bool:
        """Block until the first availability value arrives. Call from a worker thread."""
        return self._received.wait(timeout)

    def close(self):
        """Close MQTT connection."""
        self._notify = None
        try:
            self.client.loop_stop()
        finally:
            self.client.disconnect()

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle MQTT connection."""
        if reason_code == 0:
            logger.info("Connected to MQTT broker successfully")
        else:
            logger.warning(f"Connected to MQTT broker with code {reason_code}")
        client.subscribe(self.availability_topic, qos=MQTT_QOS)
        client.subscribe(self.power_topic, qos=MQTT_QOS)
        logger.info(f"Subscribed to: {self.availability_topic}, {self.power_topic}")

    def _on_message(self, client, userdata, msg):
        """Handle incoming MQTT message."""
        try:
            payload = (msg.payload or b"").decode("utf-8", errors="replace").strip()
            if msg.topic == self.availability_topic:
                self._handle_availability(payload)
            elif msg.topic == self.power_topic:
                self._handle_power(payload)
            else:
                logger.debug(f"Ignoring message on {msg.topic}")
        except Exception as e:
            logger.error(f"Error handling MQTT message: {e}", exc_info=True)

    def _handle_availability(self, payload: str):
        with self._lock:
            changed = payload != self._payload
            self._payload = payload
        self._received.set()
        logger.debug(f"Availability payload: {payload!r}")
        if changed:
            self._emit(PresenceChanged())

    def _handle_power(self, payload: str):
        mode = payload.lower()
        if mode == PAYLOAD_SUSPEND:
            self._emit(PowerModeChanged(PowerMode.SUSPEND))
        elif mode == PAYLOAD_RESUME:
            self._emit(PowerModeChanged(PowerMode.RESUME))
        else:
            logger.warning(f"Unknown power payload '{payload}' on {self.power_topic}")

    def _emit(self, event: MonitorEvent):
        notify = self._notify
        if notify is not None:
            notify(event)
