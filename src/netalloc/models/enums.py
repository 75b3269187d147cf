"""
Enumeration types for netalloc.

This module defines the enumeration types used throughout netalloc for
ownership categories, NIC lifecycle, store operations and configuration.
"""

from enum import Enum


# =============================================================================
# Ownership Enums
# =============================================================================


class BelongsToType(str, Enum):
    """
    Kind of workload holding an IP or NIC.

    - OTHER: Administrative placeholder (gateway, resolver) or anything else
    - SERVER: A physical compute node
    - ZONE: A workload instance (container/VM)
    """

    OTHER = "other"
    SERVER = "server"
    ZONE = "zone"


# =============================================================================
# NIC Enums
# =============================================================================


class NicState(str, Enum):
    """
    NIC lifecycle state.

    State transitions:
        PROVISIONING -> RUNNING <-> STOPPED
    """

    PROVISIONING = "provisioning"  # Created, workload not yet booted
    STOPPED = "stopped"  # Workload stopped, NIC kept
    RUNNING = "running"  # Workload running


class AddressFamily(str, Enum):
    """IP address family of a network."""

    IPV4 = "ipv4"
    IPV6 = "ipv6"


# =============================================================================
# Store Enums
# =============================================================================


class BatchOperation(str, Enum):
    """Mutation kind inside a store batch."""

    PUT = "put"
    DELETE = "delete"


class StoreBackend(str, Enum):
    """Available store drivers."""

    MEMORY = "memory"
    SQLITE = "sqlite"


# =============================================================================
# Configuration Enums
# =============================================================================


class LogLevel(str, Enum):
    """
    Logging verbosity levels for netalloc.

    Levels (from most to least verbose):
        - FULL: Complete trace with detailed stack information
        - DEBUG: Debug messages and above
        - INFO: Informational messages and above
        - WARNING: Only warnings and errors
    """

    FULL = "full"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
