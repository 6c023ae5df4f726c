import os

# Redis Connection

REDIS_HOST              = os.environ.get("FHE_RELAY_REDIS_HOST", "localhost")
REDIS_PORT              = int(os.environ.get("FHE_RELAY_REDIS_PORT", "6379"))
REDIS_HANDLE_DB         = 2
REDIS_SOCKET_TIMEOUT    = 5          # seconds

# Key Namespace

HANDLE_KEY_PREFIX       = "relay:v1:handle"     # relay:v1:handle:{handle}
HANDLE_TTL_SECONDS      = 2_592_000             # 30 days

# Request Limits

MAX_PAIRS_PER_REQUEST   = 32
MAX_DURATION_DAYS       = 365
CLOCK_SKEW_SECONDS      = 300                   # tolerated future startTimestamp
