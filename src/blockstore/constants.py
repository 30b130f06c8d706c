"""Constants for blockstore."""

# Configuration file looked up in the working directory
CONFIG_FILE = "blockstore.yaml"

# Environment variables
CONFIG_ENV_VAR = "BLOCKSTORE_CONFIG"
URI_ENV_VAR = "BLOCKSTORE_URI"

# Default primary store
DEFAULT_STORE_URI = "mem:-"

# Version
BLOCKSTORE_VERSION = "0.1.0"
