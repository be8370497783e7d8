"""Constants for transbatch."""

# Scanner
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp")
DEFAULT_OUTPUT_DIR = "translated"
ERROR_DIR = "error"
OUTPUT_DIR_SUFFIX = "_output"
IGNORE_FILE = ".transbatchignore"

# Local state (inside the input root)
HISTORY_FILE = ".transbatch_history"

# Configuration
APP_NAME = "transbatch"
PROFILE_FILE = "profile.yaml"
CACHE_DB_FILE = "hash_cache.db"

# Hashing
HASH_MAX_IN_FLIGHT = 3

# Transformation stage
LARGE_FILE_BYTES = 15 * 1024 * 1024
TARGET_SIZE_MB = 14.8
JPEG_QUALITY = 85
DOWNSCALE_FACTOR = 0.9
MIN_DIMENSION = 100
RATE_LIMIT_DELAY = 3.0
HISTORY_FLUSH_EVERY = 10
CACHE_QUEUE_SIZE = 256

# Transform service
DEFAULT_TRANSLATE_URL = "https://api.toriitranslate.com/api/upload"
TRANSFORM_MAX_ATTEMPTS = 3
TRANSFORM_RETRY_DELAY = 2.0
TRANSFORM_TIMEOUT = 300.0

# Remote cache
SYNC_TIMEOUT = 15.0
REMOTE_NAMESPACE = "tapi"
REMOTE_DATABASE = "main"
REMOTE_TABLE = "file_hashes"

# Version
TRANSBATCH_VERSION = "0.1.0"
