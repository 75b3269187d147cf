"""
Allocation engine configuration for netalloc.

This module defines the configuration dataclass for the engine, providing a
centralized place for all configurable parameters.

Configuration can be modified at runtime by importing the global config
instance and updating its attributes before opening a store.

Usage:
    from netalloc.config import config

    config.DB_FILE = "/tmp/netalloc.db"
    config.LOG_LEVEL = LogLevel.DEBUG
"""

import os
from dataclasses import dataclass

from netalloc.models.enums import LogLevel, StoreBackend


# =============================================================================
# Configuration Dataclass
# =============================================================================


@dataclass
class AllocatorConfig:
    """
    Allocation engine configuration.

    Attributes:
        STORE_BACKEND: Store driver used by the CLI.
        DB_FILE: Path to the SQLite database file.
        ADMIN_UUID: Administrative owner, exempt from ownership checks.
        MAX_POOL_NETWORKS: Maximum number of networks in a network pool.
        IP_PROVISION_RETRIES: Claim conflicts tolerated by one address search.
        MAC_PROVISION_RETRIES: MAC collisions tolerated when generating a MAC.
        IP_USE_STRINGS: Address encoding for the IP buckets of new networks.
        EVENT_SINK_PREFIX: Bucket prefix of overlay notification entries.
        LOG_LEVEL: Logging verbosity level.
    """

    # -------------------------------------------------------------------------
    # Store Configuration
    # -------------------------------------------------------------------------

    STORE_BACKEND: StoreBackend = StoreBackend.SQLITE
    DB_FILE: str = os.path.expanduser("~/.netalloc/netalloc.db")

    # Store calls slower than this fail with a retryable StoreError
    STORE_TIMEOUT_SECONDS: float = 30.0

    # -------------------------------------------------------------------------
    # Ownership Configuration
    # -------------------------------------------------------------------------

    ADMIN_UUID: str = "00000000-0000-0000-0000-000000000000"

    # -------------------------------------------------------------------------
    # Limits
    # -------------------------------------------------------------------------

    MAX_POOL_NETWORKS: int = 64
    DEFAULT_LIMIT: int = 1000
    MAX_LIMIT: int = 1000

    # -------------------------------------------------------------------------
    # Allocation Configuration
    # -------------------------------------------------------------------------

    # Version conflicts tolerated while claiming addresses in one search
    IP_PROVISION_RETRIES: int = 20

    # Stored IP rows fetched per round trip while scanning a range
    IP_SCAN_CHUNK: int = 256

    # Generated MACs start with this OUI (first three octets, hex)
    MAC_OUI: str = "90b8d0"
    MAC_PROVISION_RETRIES: int = 50

    # New networks store addresses as strings ("ipaddr") instead of integers
    IP_USE_STRINGS: bool = True

    # -------------------------------------------------------------------------
    # Overlay (Event Sink) Configuration
    # -------------------------------------------------------------------------

    EVENT_SINK_PREFIX: str = "portolan"

    # UDP port recorded in underlay mappings
    VNET_PORT: int = 4789

    # -------------------------------------------------------------------------
    # Logging Configuration
    # -------------------------------------------------------------------------

    LOG_LEVEL: LogLevel = LogLevel.INFO
    LOG_FILE: str = ""


# Global config instance
config = AllocatorConfig()
