"""Project-wide constants (segment sizes, channel kind, ledger limits)."""

ENVELOPE_VERSION: int = 1
CHANNEL_KIND: str = "hive-messenger-img"

MAX_SEGMENT: int = 7000  # slice budget under the ~8192 per-operation ceiling
SINGLE_VS_CHUNK_THRESHOLD: int = 7500  # estimated serialized envelope size

MEMO_PREFIX: str = "#"

# custom_json is operation type 18 -> bit 18 of the low filter word
CUSTOM_JSON_OPERATION_FILTER_LOW: int = 1 << 18
DEFAULT_HISTORY_PAGE_SIZE: int = 200
MAX_HISTORY_PAGE_SIZE: int = 1000
DEFAULT_MAX_HISTORY_PAGES: int = 5

DEFAULT_RPC_NODES: tuple[str, ...] = (
    "https://api.hive.blog",
    "https://api.hivekings.com",
    "https://anyx.io",
    "https://api.openhive.network",
)
RPC_TIMEOUT_SECONDS: float = 15.0
SIGNER_TIMEOUT_SECONDS: float = 120.0  # user confirms in the wallet

# hived HIVE_MAX_TRANSACTION_SIZE; a chunked message travels in one transaction
MAX_TRANSACTION_BYTES: int = 64 * 1024
OPERATION_OVERHEAD_BYTES: int = 96  # op tag, id, posting auth per custom_json
TRANSACTION_OVERHEAD_BYTES: int = 256  # ref block, expiration, signature

MAX_IMAGE_FILE_BYTES: int = 5 * 1024 * 1024
# ciphertext is never shorter than its plaintext
MAX_IMAGE_TEXT_LENGTH: int = MAX_TRANSACTION_BYTES

WEBP_MAX_WIDTH: int = 300
WEBP_QUALITY: int = 60
