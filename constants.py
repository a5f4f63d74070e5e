"""Constants for the PresencePi light bridge."""

# Default GPIO pins the LEDs are wired to
DEFAULT_AVAILABLE_PIN = 18
DEFAULT_AWAY_PIN = 17
DEFAULT_BUSY_PIN = 27

# WebIOPi REST payloads
GPIO_VALUE_ON = "1"
GPIO_VALUE_OFF = "0"

# Default configuration paths
DEFAULT_CONFIG_FILE = "presencepi.yaml"
DEFAULT_CONFIG_EXAMPLE_FILE = "presencepi.yaml.example"

# Blink timings (seconds)
ERROR_BLINK_INTERVAL = 0.75
TEST_BLINK_SETTLE = 1.0

# Seconds to wait for the first presence value after connecting
PRESENCE_STARTUP_WAIT = 5.0

# MQTT presence source
MQTT_DEFAULT_HOST = "localhost"
MQTT_DEFAULT_PORT = 1883
MQTT_AVAILABILITY_TOPIC = "presence/self/availability"
MQTT_POWER_TOPIC = "presence/self/power"
MQTT_QOS = 1
MQTT_KEEPALIVE = 60

# Presence payloads
PAYLOAD_SIGNED_OUT = "SignedOut"
PAYLOAD_UNREADABLE = "Unreadable"
PAYLOAD_SUSPEND = "suspend"
PAYLOAD_RESUME = "resume"

# Console
EXIT_KEY = "q"
