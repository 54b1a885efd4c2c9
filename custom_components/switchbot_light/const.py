"""Constants for the SwitchBot light integration."""

DOMAIN = "switchbot_light"

# Platform-level configuration keys (mirrors the plugin config layout)
CONF_TOKEN = "token"
CONF_SECRET = "secret"
CONF_OPTIONS = "options"
CONF_DEVICES = "devices"
CONF_REFRESH_RATE = "refreshRate"
CONF_PUSH_RATE = "pushRate"
CONF_MAX_RETRY = "maxRetry"
CONF_WEBHOOK = "webhook"
CONF_WEBHOOK_PORT = "webhookPort"
CONF_WEBHOOK_PATH = "webhookPath"
CONF_WEBHOOK_URL = "webhookURL"
CONF_BLE = "BLE"

# Device-level configuration keys
CONF_DEVICE_ID = "deviceId"
CONF_DEVICE_NAME = "configDeviceName"
CONF_DEVICE_TYPE = "deviceType"
CONF_CONNECTION_TYPE = "connectionType"
CONF_ENABLE_CLOUD_SERVICE = "enableCloudService"
CONF_OFFLINE = "offline"
CONF_MIN_STEP = "set_minStep"
CONF_ADAPTIVE_LIGHTING_SHIFT = "adaptiveLightingShift"

DEFAULT_REFRESH_RATE = 360
DEFAULT_PUSH_RATE = 0.1
DEFAULT_MAX_RETRY = 3
DEFAULT_WEBHOOK_PORT = 8090
DEFAULT_WEBHOOK_PATH = "/"

# Seconds after a dispatch before the reconciling refresh
POST_PUSH_REFRESH_DELAY = 15.0

# Pause between local attempts (same as bleak_retry_connector's short backoff)
BLE_BACKOFF_TIME = 0.25
BLE_SCAN_TIMEOUT = 10.0

# Home Assistant / HomeKit lighting characteristic ranges
COLOR_TEMP_MIRED_MIN = 140
COLOR_TEMP_MIRED_MAX = 500
BRIGHTNESS_MIN = 0
BRIGHTNESS_MAX = 100
HUE_MAX = 360
SATURATION_MAX = 100

# Fallback Kelvin range when a model does not declare one
COLOR_TEMP_KELVIN_MIN = 2000
COLOR_TEMP_KELVIN_MAX = 9000

# Characteristic names published to the host
CHAR_ON = "On"
CHAR_BRIGHTNESS = "Brightness"
CHAR_COLOR_TEMPERATURE = "ColorTemperature"
CHAR_HUE = "Hue"
CHAR_SATURATION = "Saturation"
CHAR_FIRMWARE_REVISION = "FirmwareRevision"

# OpenAPI
OPENAPI_BASE_URL = "https://api.switch-bot.com"
OPENAPI_VERSION = "v1.1"
OPENAPI_SUCCESS_CODES = {100, 200}

OPENAPI_STATUS_MESSAGES = {
    100: "Command successfully sent",
    151: "Command not supported by this device type",
    152: "Device not found",
    160: "Command is not supported",
    161: "Device is offline",
    171: "Hub device is offline",
    190: "Device internal error due to device states not synchronized with server, or command format is invalid",
    200: "Request successful",
    400: "Bad request",
    401: "Unauthorized, check token and secret",
    403: "Forbidden",
    404: "Not found",
    406: "Not acceptable",
    415: "Unsupported media type",
    422: "Unprocessable entity",
    429: "Too many requests, daily request limit reached",
    500: "Internal server error",
}

# BLE
SWITCHBOT_MANUFACTURER_ID = 2409
SWITCHBOT_SERVICE_DATA_UUIDS = (
    "0000fd3d-0000-1000-8000-00805f9b34fb",
    "00000d00-0000-1000-8000-00805f9b34fb",
)
SWITCHBOT_WRITE_UUID = "cba20002-224d-11e6-9fb8-0002a5d5c51b"
SWITCHBOT_NOTIFY_UUID = "cba20003-224d-11e6-9fb8-0002a5d5c51b"
