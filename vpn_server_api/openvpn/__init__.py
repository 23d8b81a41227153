from vpn_server_api.openvpn.daemon import DaemonClient, parse_status
from vpn_server_api.openvpn.errors import (
    ConnectError,
    DisconnectedError,
    ManagementError,
    ManagementTimeoutError,
    ProtocolError,
)
from vpn_server_api.openvpn.management import ManagementSocket
from vpn_server_api.openvpn.profiles import ManagementEndpoint, Profile, ProfileRegistry, UnknownProfileError
from vpn_server_api.openvpn.server_manager import FleetStatus, ServerManager

__all__ = [
    "DaemonClient", "parse_status", "ConnectError", "DisconnectedError", "ManagementError",
    "ManagementTimeoutError", "ProtocolError", "ManagementSocket", "ManagementEndpoint", "Profile",
    "ProfileRegistry", "UnknownProfileError", "FleetStatus", "ServerManager",
]
