"""
netalloc: IP/MAC address and network topology allocation engine.

Assigns addresses and virtual NICs to workloads across networks, network
pools and fabric (overlay) networks, using optimistic concurrency against a
versioned key/value store.
"""

__version__ = "0.1.0"
