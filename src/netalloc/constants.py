"""
Shared constants: bucket names and user-facing error messages.

Messages containing "{}" placeholders are format strings.
"""

# =============================================================================
# Buckets
# =============================================================================

NIC_TAG_BUCKET = "netalloc_nic_tags"
NETWORK_BUCKET = "netalloc_networks"
NETWORK_POOL_BUCKET = "netalloc_network_pools"
NIC_BUCKET = "netalloc_nics"
IP_BUCKET_PREFIX = "netalloc_ips_"

# Row schema version written into string-encoded IP rows
IP_BUCKET_VERSION = 2


# =============================================================================
# Messages
# =============================================================================

MSG_MISSING = "Missing parameter"
MSG_INVALID = "Invalid parameter"
MSG_UNKNOWN_PARAM = "unknown parameter"

OWNER_MATCH_MSG = "owner cannot provision on network"
POOL_TAGS_MATCH_MSG = "nic tags of all networks in a network pool must match"
POOL_OWNER_MATCH_MSG = "network owner_uuid does not match pool owner_uuid"
POOL_IP_MSG = "cannot specify an IP address when provisioning on a network pool"
POOL_MAX_NETS_FMT = "maximum {} networks per network pool"
POOL_NO_INTERSECT_MSG = "no networks in the pool(s) match the requested parameters"
FREE_UNASSIGN_MSG = "cannot specify both free and unassign"
SERVER_UNDERLAY_MSG = "underlay NICs must belong to a server"
NIC_TAG_SLASH_MSG = "nic tag must not contain more than one '/'"
IP_NO_VLAN_TAG_MSG = "required if ip is specified without network_uuid"
NETWORK_MISSING_MSG = "network does not exist"
NIC_TAG_MISSING_MSG = "nic tag does not exist"
IP_ENCODING_MSG = "address encoding does not match the network"
NET_IN_USE_MSG = "network is in use"
IPS_OUTSIDE_MSG = "ips are not in the subnet of the network"
IPS_HELD_MSG = "ips are already reserved or assigned"

IP_OUTSIDE_FMT = "ip {} is not in the subnet of network {}"
IP_IN_USE_FMT = "ip in use by {} {}"
IP_NONET_FMT = "no networks found with nic_tag={}, vlan_id={} containing ip {}"
IP_MULTI_FMT = "multiple networks ({}) contain ip {}"
NIC_TAGS_DIFFER_FMT = "nic_tag {!r} does not match network nic_tag {!r}"
VLAN_IDS_DIFFER_FMT = "vlan_id {} does not match network vlan_id {}"
NET_BAD_AF_FMT = "network must have {} addresses"
VNET_IDS_DIFFER_FMT = "vnet_id {} does not match network vnet_id {}"
POOL_AF_MATCH_MSG = "address families of all networks in a network pool must match"
POOL_EMPTY_MSG = "a network pool must contain at least one network"
POOL_FULL_FMT = "all networks in network pool {} are full"
ALREADY_EXISTS_MSG = "already exists"
MAC_IN_USE_MSG = "MAC address is already in use"
MAC_EXHAUSTED_MSG = "no free MAC address could be generated"
NIC_TAG_IN_USE_MSG = "nic tag is in use"
NIC_TAG_MTU_FMT = "nic tag MTU must be at least the MTU of its networks ({})"
NET_MTU_FMT = "network MTU must not exceed the nic tag MTU ({})"
NET_OUTSIDE_FMT = "{} must be within subnet {}"
NET_RANGE_MSG = "provision_start_ip must not be greater than provision_end_ip"
NET_FABRIC_VNET_MSG = "only valid on fabric networks"
