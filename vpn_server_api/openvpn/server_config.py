"""
OpenVPN server configuration for the processes of a profile. Every process
gets its own slice of the profile ranges, its own tun device and its own
management endpoint, so the files written here match what ServerManager
connects to.
"""
import ipaddress
import logging
import os

from vpn_server_api.config import ProfileConfig
from vpn_server_api.openvpn.profiles import RESERVED_ADDRESSES_PER_PROCESS, ManagementEndpoint, Profile, split_network

logger = logging.getLogger(__name__)

STATIC_OPTIONS = [
    "# OpenVPN Server Configuration",
    "verb 3",
    "dev-type tun",
    "user openvpn",
    "group openvpn",
    "topology subnet",
    "persist-key",
    "persist-tun",
    "keepalive 10 60",
    "comp-lzo no",
    "remote-cert-tls client",
    "tls-version-min 1.2",
    "tls-cipher TLS-DHE-RSA-WITH-AES-128-GCM-SHA256:TLS-DHE-RSA-WITH-AES-256-GCM-SHA384:TLS-DHE-RSA-WITH-AES-256-CBC-SHA",
    "auth SHA256",
    "cipher AES-256-CBC",
    "reneg-sec 3600",
    'push "comp-lzo no"',
    'push "explicit-exit-notify 3"',
]

# file name in the TLS directory -> key in the server certificate data
TLS_FILES = {
    "ca.crt": "ca",
    "server.crt": "certificate",
    "server.key": "private_key",
    "ta.key": "ta",
}


def parse_proto_port(value: str) -> tuple[str, int]:
    """Split "udp/1194" into ("udp", 1194)."""
    proto, _, port = value.partition("/")
    if proto not in ("udp", "tcp") or not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f'invalid protocol/port "{value}"')
    return proto, int(port)


def _management(endpoint: ManagementEndpoint) -> str:
    if endpoint.is_unix:
        return f"management {endpoint.path} unix"
    return f"management {endpoint.host} {endpoint.port}"


def _routes(config: ProfileConfig) -> list[str]:
    if config.default_gateway:
        return [
            'push "redirect-gateway def1 bypass-dhcp"',
            'push "redirect-gateway ipv6"',
            # ::/0 breaks clients on native IPv6 networks
            'push "route-ipv6 2000::/3"',
        ]
    lines = []
    for route in config.routes:
        network = ipaddress.ip_network(route, strict=False)
        if network.version == 6:
            lines.append(f'push "route-ipv6 {network}"')
        else:
            lines.append(f'push "route {network.network_address} {network.netmask}"')
    return lines


def _dns(config: ProfileConfig) -> list[str]:
    if not config.default_gateway:
        return []
    lines = [f'push "dhcp-option DNS {address}"' for address in config.dns]
    lines.append('push "block-outside-dns"')
    return lines


def _client_to_client(profile: Profile) -> list[str]:
    lines = ["client-to-client", f'push "route {profile.range.network_address} {profile.range.netmask}"']
    if profile.range6:
        lines.append(f'push "route-ipv6 {profile.range6}"')
    return lines


def process_config(profile_id: str, config: ProfileConfig, process_number: int, tls_dir: str) -> list[str]:
    """Sorted configuration lines of one OpenVPN process of the profile."""
    profile = Profile.from_config(profile_id, config)
    if not 0 <= process_number < profile.process_count:
        raise ValueError(f'profile "{profile_id}" has no process {process_number}')
    proto, port = parse_proto_port(profile.vpn_proto_ports[process_number])
    range4 = split_network(profile.range, profile.process_count)[process_number]

    lines = STATIC_OPTIONS + [
        f"ca {tls_dir}/ca.crt",
        f"cert {tls_dir}/server.crt",
        f"key {tls_dir}/server.key",
        f"dh {tls_dir}/dh.pem",
        f"tls-auth {tls_dir}/ta.key 0",
        f"server {range4.network_address} {range4.netmask}",
        f"max-clients {range4.num_addresses - RESERVED_ADDRESSES_PER_PROCESS}",
        f"dev tun-{profile.profile_number}-{process_number}",
        f"port {port}",
        f"proto {'tcp-server' if proto == 'tcp' else 'udp'}",
        f"local {config.listen}",
        _management(profile.endpoints[process_number]),
    ]
    if profile.range6:
        range6 = split_network(profile.range6, profile.process_count)[process_number]
        lines.append(f"server-ipv6 {range6}")
    if not config.enable_log:
        lines.append("log /dev/null")
    if proto == "tcp":
        lines.append("tcp-nodelay")
    lines += _routes(config)
    lines += _dns(config)
    if config.client_to_client:
        lines += _client_to_client(profile)
    return sorted(lines)


def config_file_name(profile_id: str, process_number: int) -> str:
    return f"server-{profile_id}-{process_number}.conf"


def _write_private(path: str, content: str) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "w") as f:
        f.write(content)
    # O_CREAT does not change the mode of an existing file
    os.chmod(path, 0o600)


def write_profile_config(profile_id: str, config: ProfileConfig, config_dir: str, tls_dir: str) -> list[str]:
    """Write one file per process; returns the paths written."""
    os.makedirs(config_dir, mode=0o700, exist_ok=True)
    profile_tls_dir = os.path.join(tls_dir, profile_id)
    paths = []
    for process_number in range(len(config.vpn_proto_ports)):
        lines = process_config(profile_id, config, process_number, profile_tls_dir)
        path = os.path.join(config_dir, config_file_name(profile_id, process_number))
        _write_private(path, "\n".join(lines) + "\n")
        logger.info("Wrote %s", path)
        paths.append(path)
    return paths


def write_tls_files(server_data: dict[str, str], tls_dir: str, dh_file: str | None = None) -> None:
    """
    Store a server certificate, its key, the CA certificate and the tls-auth
    key for the processes of one profile. dh_file, if given, is copied to
    dh.pem.
    """
    os.makedirs(tls_dir, mode=0o700, exist_ok=True)
    for file_name, key in TLS_FILES.items():
        _write_private(os.path.join(tls_dir, file_name), server_data[key].strip() + "\n")
    if dh_file:
        with open(dh_file) as f:
            _write_private(os.path.join(tls_dir, "dh.pem"), f.read())
    logger.info("Wrote server certificate and keys to %s", tls_dir)
