import pytest
from fastapi.testclient import TestClient

from tests.fakes import FakeFleet
from vpn_server_api.config import ProfileConfig, Settings
from vpn_server_api.context import build_context
from vpn_server_api.database import init_schema
from vpn_server_api.main import create_app
from vpn_server_api.openvpn.profiles import ProfileRegistry
from vpn_server_api.openvpn.server_manager import ServerManager

TOKENS = {
    "vpn-user-portal": "user-portal-token",
    "vpn-admin-portal": "admin-portal-token",
    "vpn-server-node": "server-node-token",
}


def auth(consumer: str) -> dict:
    return {"Authorization": f"Bearer {TOKENS[consumer]}"}


@pytest.fixture
def settings(tmp_path):
    (tmp_path / "ta.key").write_text("-----BEGIN OpenVPN Static key V1-----\nabc\n-----END OpenVPN Static key V1-----\n")
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'db.sqlite'}",
        ca_backend="memory",
        data_dir=str(tmp_path),
        api_consumers=TOKENS,
        vpn_profiles={
            "internet": ProfileConfig(profile_number=1, range="10.42.42.0/24", vpn_proto_ports=["udp/1194", "tcp/1194"]),
            "office": ProfileConfig(profile_number=2, range="10.43.43.0/25", vpn_proto_ports=["udp/1195"]),
        },
    )


@pytest.fixture
def fleet():
    return FakeFleet()


@pytest.fixture
def context(settings, fleet):
    manager = ServerManager(ProfileRegistry.from_settings(settings.vpn_profiles), client_factory=fleet.client_factory)
    ctx = build_context(settings, server_manager=manager)
    init_schema(ctx.session_factory)
    return ctx


@pytest.fixture
def client(context):
    with TestClient(create_app(context)) as c:
        yield c
