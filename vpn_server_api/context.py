"""
Everything a request or a CLI command needs, built once at start-up and
passed along explicitly.
"""
from dataclasses import dataclass

from sqlalchemy.orm import sessionmaker

from vpn_server_api.ca.base import CertificateAuthority
from vpn_server_api.ca.easy_rsa import EasyRsaCa
from vpn_server_api.ca.memory import MemoryCa
from vpn_server_api.ca.tls_auth import TlsAuth
from vpn_server_api.config import Settings
from vpn_server_api.database import create_session_factory
from vpn_server_api.openvpn.profiles import ProfileRegistry
from vpn_server_api.openvpn.server_manager import ServerManager


@dataclass
class AppContext:
    settings: Settings
    profiles: ProfileRegistry
    server_manager: ServerManager
    session_factory: sessionmaker
    ca: CertificateAuthority
    tls_auth: TlsAuth

    async def aclose(self) -> None:
        await self.server_manager.aclose()
        self.session_factory.kw["bind"].dispose()


def build_ca(settings: Settings) -> CertificateAuthority:
    if settings.ca_backend == "memory":
        return MemoryCa(server_cert_days=settings.server_cert_expire or settings.cert_expire)
    return EasyRsaCa(
        settings.easy_rsa_dir,
        settings.easy_rsa_data_dir,
        key_size=settings.ca_key_size,
        ca_expire=settings.ca_expire,
        ca_cn=settings.ca_cn,
        cert_expire=settings.cert_expire,
        server_cert_expire=settings.server_cert_expire,
    )


def build_context(
    settings: Settings,
    server_manager: ServerManager | None = None,
    ca: CertificateAuthority | None = None,
) -> AppContext:
    if server_manager is not None:
        profiles = server_manager.profiles
    else:
        profiles = ProfileRegistry.from_settings(settings.vpn_profiles)
        server_manager = ServerManager(
            profiles,
            password=settings.management_password,
            connect_timeout=settings.management_connect_timeout,
            command_timeout=settings.management_command_timeout,
        )
    return AppContext(
        settings=settings,
        profiles=profiles,
        server_manager=server_manager,
        session_factory=create_session_factory(settings.database_url),
        ca=ca if ca is not None else build_ca(settings),
        tls_auth=TlsAuth(settings.data_dir),
    )
