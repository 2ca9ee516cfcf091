"""
Project-wide immutable parameters for the stealth tip client.

These values mirror constants compiled into the deployed contract.
Changing them without redeploying the contract breaks address derivation
or misreports game state.
"""

# Deployed contract (Astar mainnet)
CONTRACT_ADDRESS = "XT4aydpP7aPLBxpMvM1bHrTAk9Dp8Qphaqk9FR7ugvHybFR"

# Astar uses SS58 prefix 5
SS58_FORMAT = 5

TOKEN_SYMBOL = "ASTR"

# Native token uses 18 decimals
TOKEN_DECIMALS = 18

# Contract Balance is a u128
MAX_BALANCE = 2**128 - 1

# Digits shown after the decimal point (truncated, never rounded up)
DISPLAY_PRECISION = 4

# Salt and account id widths (bytes)
SALT_LENGTH = 32
ACCOUNT_ID_LENGTH = 32

# Marker users type in front of a handle, e.g. "@bob"
HANDLE_MARKER = "@"

# Username registration (plain and premium) costs 10 tokens in raw units
REGISTRATION_COST = 10 * (10**TOKEN_DECIMALS)

# Consecutive plays inside this window (ms) grow the streak
STREAK_WINDOW_MS = 600_000
MAX_STREAK_MULTIPLIER = 5

# Seconds between jackpot pool refreshes
JACKPOT_POLL_INTERVAL_S = 15.0

# Seconds between extrinsic status polls
STATUS_POLL_INTERVAL_S = 2.0

# Seconds without a status change before a request is reported as stalled
STALL_NOTICE_S = 60.0

DEFAULT_SCHEMA_SOURCE = "stealth_tip.json"
DEFAULT_LINK_BASE_URL = "https://stealth-tip.app"
