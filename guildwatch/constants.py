"""Constants used across guildwatch.

Internal settings that are not user-configurable live here; everything an
operator may tune is in `guildwatch.config`.
"""

# Relay endpoint path on the Notifier's HTTP listener
RELAY_PATH = "/send-notification"

# Defaults mirrored by config DEFAULT_CONFIG
DEFAULT_RELAY_TIMEOUT_S = 5.0
DEFAULT_SETTLE_DELAY_S = 5.0
DEFAULT_NOTIFIER_HEAD_START_S = 3.0
DEFAULT_LOGIN_TIMEOUT_S = 30.0
DEFAULT_QUEUE_MAX_SIZE = 1000
DEFAULT_DRAIN_INTERVAL_S = 1.0

# HTTP server internals
API_TIMEOUT_KEEP_ALIVE_S = 5
API_STOP_TIMEOUT_S = 5.0
API_START_POLL_INTERVAL_S = 0.1
API_START_MAX_POLLS = 50  # 5 seconds total

# Discord direct messages are capped at 2000 characters
DISCORD_MESSAGE_MAX_LENGTH = 2000

# Locale-independent names for long-form dates
MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)
