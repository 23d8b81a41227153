"""Tests for the profile registry and the connection ceiling."""

import pytest

from vpn_server_api.config import ProfileConfig
from vpn_server_api.openvpn.profiles import (
    ManagementEndpoint,
    Profile,
    ProfileRegistry,
    UnknownProfileError,
    management_port,
)


def make_profile(profile_id="default", range="10.42.42.0/24", ports=("udp/1194",), profile_number=1, **kwargs):
    config = ProfileConfig(profile_number=profile_number, range=range, vpn_proto_ports=list(ports), **kwargs)
    return Profile.from_config(profile_id, config)


class TestMaxConnectionCount:
    def test_one_process(self):
        assert make_profile(ports=["udp/1194"]).max_connection_count == 253

    def test_two_processes(self):
        assert make_profile(ports=["udp/1194", "tcp/1194"]).max_connection_count == 250

    def test_smaller_range(self):
        assert make_profile(range="10.0.0.0/25", ports=["udp/1194"] * 4).max_connection_count == 128 - 12

    def test_ipv6_range_does_not_change_ceiling(self):
        profile = make_profile(range6="fd00:4242:4242::/48")
        assert profile.max_connection_count == 253

    def test_range_too_small(self):
        with pytest.raises(ValueError):
            make_profile(range="10.0.0.0/31", ports=["udp/1194", "tcp/1194"])


class TestEndpoints:
    def test_default_ports(self):
        profile = make_profile(profile_number=2, ports=["udp/1194", "tcp/1194"])
        assert [e.url for e in profile.endpoints] == [
            "tcp://127.0.0.1:11956",
            "tcp://127.0.0.1:11957",
        ]
        assert profile.endpoints[1] == ManagementEndpoint("default", 1, "tcp://127.0.0.1:11957")

    def test_management_port(self):
        assert management_port(1, 0) == 11940
        assert management_port(1, 3) == 11943
        assert management_port(3, 1) == 11940 + 32 + 1

    def test_explicit_endpoints(self):
        profile = make_profile(
            ports=["udp/1194", "tcp/1194"],
            management_endpoints=["unix:///run/openvpn/a.sock", "tcp://127.0.0.2:7505"],
        )
        first, second = profile.endpoints
        assert first.is_unix and first.path == "/run/openvpn/a.sock"
        assert second.host == "127.0.0.2" and second.port == 7505

    def test_endpoint_count_must_match_processes(self):
        with pytest.raises(ValueError):
            make_profile(ports=["udp/1194", "tcp/1194"], management_endpoints=["tcp://127.0.0.1:7505"])

    @pytest.mark.parametrize("url", ["http://127.0.0.1:80", "tcp://127.0.0.1", "unix://"])
    def test_invalid_endpoint_url(self, url):
        with pytest.raises(ValueError):
            make_profile(management_endpoints=[url])


class TestRanges:
    def test_range_must_be_ipv4(self):
        with pytest.raises(ValueError):
            make_profile(range="fd00::/64")

    def test_process_count_must_be_power_of_two(self):
        with pytest.raises(ValueError):
            make_profile(ports=["udp/1194", "udp/1195", "tcp/1194"])

    def test_process_ranges(self):
        profile = make_profile(range6="fd00:4242:4242::/48", ports=["udp/1194", "tcp/1194"])
        ranges = profile.process_ranges()
        assert [r["range"] for r in ranges] == ["10.42.42.0/25", "10.42.42.128/25"]
        assert [r["range6"] for r in ranges] == ["fd00:4242:4242::/49", "fd00:4242:4242:8000::/49"]
        assert ranges[1]["proto_port"] == "tcp/1194"


class TestProfileRegistry:
    def test_from_settings_keeps_order(self):
        registry = ProfileRegistry.from_settings(
            {
                "internet": ProfileConfig(profile_number=1, range="10.0.0.0/24"),
                "office": ProfileConfig(profile_number=2, range="10.0.1.0/24"),
            }
        )
        assert registry.ids() == ["internet", "office"]
        assert registry.get("office").profile_number == 2
        assert "internet" in registry
        assert len(registry) == 2

    def test_unknown_profile(self):
        registry = ProfileRegistry([make_profile()])
        with pytest.raises(UnknownProfileError) as exc_info:
            registry.get("nope")
        assert str(exc_info.value) == 'profile "nope" does not exist'

    def test_duplicate_profile(self):
        with pytest.raises(ValueError):
            ProfileRegistry([make_profile(), make_profile()])

    def test_profile_number_must_be_positive(self):
        with pytest.raises(ValueError):
            ProfileConfig(profile_number=0, range="10.0.0.0/24")
