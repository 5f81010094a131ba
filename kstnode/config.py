"""
KST Node Configuration

Network constants shared by every node. Changing the address or hashing
constants breaks compatibility with addresses that already exist on the network.
"""

# =============================================================================
# WORK (MINING DIFFICULTY)
# =============================================================================

# Bounds for the work value. The store persists whatever it is given;
# callers that recalculate work are expected to clamp to these.
MIN_WORK = 1
MAX_WORK = 100000

# Fraction used by the difficulty adjustment policy
WORK_FACTOR = 0.025

# Target block time
SECONDS_PER_BLOCK = 300

# One sample per minute, 24 hours of history plus the current sample
WORK_SAMPLE_INTERVAL = 60
WORK_HISTORY_LENGTH = 1441

# =============================================================================
# ADDRESSES AND NAMES
# =============================================================================

ADDRESS_PREFIX = "k"
ADDRESS_SLOTS = 9

# Upper bound on collision re-rolls during derivation. Never reached with SHA-256.
MAX_SELECTION_REHASHES = 10000

NAME_SUFFIX = ".kst"
NAME_MAX_LENGTH = 64
A_RECORD_MAX_LENGTH = 255

# =============================================================================
# STORE KEYS
# =============================================================================

KEY_WORK = "work"
KEY_WORK_OVER_TIME = "work-over-time"
KEY_MINING_ENABLED = "mining-enabled"
KEY_MOTD = "motd"
KEY_MOTD_DATE = "motd:date"

# =============================================================================
# NODE
# =============================================================================

WALLET_VERSION = 16
DEFAULT_MOTD = "Welcome to Krist!"

DEFAULT_STORE_URL = "memory://"

# Environment variables read at startup
ENV_STORE_URL = "KSTNODE_STORE_URL"
ENV_REDIS_URL = "REDIS_URL"
ENV_LOG_FILE = "KSTNODE_LOG_FILE"
ENV_MINING_ENABLED = "MINING_ENABLED"
ENV_ENVIRONMENT = "KSTNODE_ENV"
