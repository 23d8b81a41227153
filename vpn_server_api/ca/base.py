from datetime import datetime
from typing import Protocol

from vpn_server_api.schemas.certificate import IssuedCertificate


class CaError(Exception):
    """The CA could not produce or read a certificate."""


class CertificateExistsError(CaError):
    def __init__(self, common_name: str):
        super().__init__(f'certificate with common name "{common_name}" already exists')
        self.common_name = common_name


class CertificateAuthority(Protocol):
    def init(self) -> None:
        ...

    def ca_cert(self) -> str:
        """The CA certificate in PEM format."""
        ...

    def server_cert(self, common_name: str) -> IssuedCertificate:
        ...

    def client_cert(self, common_name: str, expires_at: datetime) -> IssuedCertificate:
        ...
