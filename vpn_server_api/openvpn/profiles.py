"""
Profile registry: static per-profile pool configuration and the management
endpoints of the OpenVPN processes serving each profile.
"""
import ipaddress
from dataclasses import dataclass
from typing import Iterator
from urllib.parse import urlparse

from vpn_server_api.config import ProfileConfig

# first management port; process i of profile n listens on
# MANAGEMENT_BASE_PORT + ((n - 1) << 4 | i)
MANAGEMENT_BASE_PORT = 11940
MAX_PROCESSES_PER_PROFILE = 16

# network, broadcast and server address of every process-owned subnet
RESERVED_ADDRESSES_PER_PROCESS = 3


class UnknownProfileError(KeyError):
    def __init__(self, profile_id: str):
        super().__init__(profile_id)
        self.profile_id = profile_id

    def __str__(self) -> str:
        return f'profile "{self.profile_id}" does not exist'


@dataclass(frozen=True)
class ManagementEndpoint:
    profile_id: str
    process_number: int
    url: str  # tcp://host:port or unix:///path

    @property
    def is_unix(self) -> bool:
        return self.url.startswith("unix://")

    @property
    def host(self) -> str | None:
        return urlparse(self.url).hostname

    @property
    def port(self) -> int | None:
        return urlparse(self.url).port

    @property
    def path(self) -> str:
        return urlparse(self.url).path

    def __str__(self) -> str:
        return f"{self.profile_id}/{self.process_number} ({self.url})"


def parse_endpoint_url(url: str) -> str:
    """Validate a management endpoint URL and return it unchanged."""
    parsed = urlparse(url)
    if parsed.scheme == "tcp":
        if not parsed.hostname or parsed.port is None:
            raise ValueError(f'invalid tcp management endpoint "{url}"')
    elif parsed.scheme == "unix":
        if not parsed.path:
            raise ValueError(f'invalid unix management endpoint "{url}"')
    else:
        raise ValueError(f'unsupported management endpoint scheme in "{url}"')
    return url


def split_network(network, count: int) -> list:
    """Split an IPv4/IPv6 network in `count` equal parts (count must be a power of 2)."""
    if count < 1 or count & (count - 1):
        raise ValueError("process count must be a power of 2 to split the range")
    extra_bits = count.bit_length() - 1
    if network.prefixlen + extra_bits > network.max_prefixlen:
        raise ValueError(f"range {network} too small for {count} processes")
    return list(network.subnets(prefixlen_diff=extra_bits))


@dataclass(frozen=True)
class Profile:
    profile_id: str
    profile_number: int
    display_name: str
    range: ipaddress.IPv4Network
    range6: ipaddress.IPv6Network | None
    vpn_proto_ports: tuple[str, ...]
    endpoints: tuple[ManagementEndpoint, ...]

    @property
    def process_count(self) -> int:
        return len(self.vpn_proto_ports)

    @property
    def max_connection_count(self) -> int:
        """
        Concurrent connection ceiling: 2^(32-P) - 3*N for IPv4 prefix P and N
        processes. No IPv6 equivalent.
        """
        return 2 ** (32 - self.range.prefixlen) - RESERVED_ADDRESSES_PER_PROCESS * self.process_count

    def process_ranges(self) -> list[dict]:
        ranges = split_network(self.range, self.process_count)
        ranges6 = split_network(self.range6, self.process_count) if self.range6 else [None] * self.process_count
        return [
            {
                "process_number": i,
                "proto_port": self.vpn_proto_ports[i],
                "range": str(ranges[i]),
                "range6": str(ranges6[i]) if ranges6[i] else None,
            }
            for i in range(self.process_count)
        ]

    @classmethod
    def from_config(cls, profile_id: str, config: ProfileConfig) -> "Profile":
        range4 = ipaddress.ip_network(config.range, strict=False)
        if range4.version != 4:
            raise ValueError(f'profile "{profile_id}": range must be an IPv4 network')
        range6 = None
        if config.range6:
            range6 = ipaddress.ip_network(config.range6, strict=False)
            if range6.version != 6:
                raise ValueError(f'profile "{profile_id}": range6 must be an IPv6 network')

        process_count = len(config.vpn_proto_ports)
        # every process owns an equal slice of the ranges
        split_network(range4, process_count)
        if range6:
            split_network(range6, process_count)

        if config.management_endpoints:
            if len(config.management_endpoints) != process_count:
                raise ValueError(
                    f'profile "{profile_id}": {len(config.management_endpoints)} management endpoints '
                    f"for {process_count} processes"
                )
            urls = [parse_endpoint_url(u) for u in config.management_endpoints]
        else:
            if process_count > MAX_PROCESSES_PER_PROFILE:
                raise ValueError(f'profile "{profile_id}": at most {MAX_PROCESSES_PER_PROFILE} processes')
            urls = [
                f"tcp://{config.management_ip}:{management_port(config.profile_number, i)}"
                for i in range(process_count)
            ]

        profile = cls(
            profile_id=profile_id,
            profile_number=config.profile_number,
            display_name=config.display_name or profile_id,
            range=range4,
            range6=range6,
            vpn_proto_ports=tuple(config.vpn_proto_ports),
            endpoints=tuple(ManagementEndpoint(profile_id, i, url) for i, url in enumerate(urls)),
        )
        if profile.max_connection_count <= 0:
            raise ValueError(f'profile "{profile_id}": range {range4} too small for {process_count} processes')
        return profile


def management_port(profile_number: int, process_number: int) -> int:
    return MANAGEMENT_BASE_PORT + ((profile_number - 1) << 4 | process_number)


class ProfileRegistry:
    """Read-only, insertion-ordered collection of profiles."""

    def __init__(self, profiles: list[Profile]):
        self._profiles: dict[str, Profile] = {}
        for profile in profiles:
            if profile.profile_id in self._profiles:
                raise ValueError(f'duplicate profile "{profile.profile_id}"')
            self._profiles[profile.profile_id] = profile

    @classmethod
    def from_settings(cls, vpn_profiles: dict[str, ProfileConfig]) -> "ProfileRegistry":
        return cls([Profile.from_config(pid, cfg) for pid, cfg in vpn_profiles.items()])

    def get(self, profile_id: str) -> Profile:
        try:
            return self._profiles[profile_id]
        except KeyError:
            raise UnknownProfileError(profile_id) from None

    def ids(self) -> list[str]:
        return list(self._profiles)

    def __iter__(self) -> Iterator[Profile]:
        return iter(self._profiles.values())

    def __len__(self) -> int:
        return len(self._profiles)

    def __contains__(self, profile_id: object) -> bool:
        return profile_id in self._profiles
