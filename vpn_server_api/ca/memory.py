"""CA that issues placeholder certificates, for tests and development setups."""
from datetime import datetime, timedelta, timezone

from vpn_server_api.ca.base import CertificateExistsError
from vpn_server_api.schemas.certificate import IssuedCertificate

VALID_FROM = datetime(2009, 2, 13, 23, 31, 30, tzinfo=timezone.utc)


class MemoryCa:
    def __init__(self, server_cert_days: int = 365):
        self.server_cert_days = server_cert_days
        self.issued: set[str] = set()

    def init(self) -> None:
        pass

    def ca_cert(self) -> str:
        return "Ca"

    def _issue(self, common_name: str) -> None:
        if common_name in self.issued:
            raise CertificateExistsError(common_name)
        self.issued.add(common_name)

    def server_cert(self, common_name: str) -> IssuedCertificate:
        self._issue(common_name)
        return IssuedCertificate(
            certificate=f"ServerCert for {common_name}",
            private_key=f"ServerKey for {common_name}",
            valid_from=VALID_FROM,
            valid_to=VALID_FROM + timedelta(days=self.server_cert_days),
        )

    def client_cert(self, common_name: str, expires_at: datetime) -> IssuedCertificate:
        self._issue(common_name)
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return IssuedCertificate(
            certificate=f"ClientCert for {common_name}",
            private_key=f"ClientKey for {common_name}",
            valid_from=VALID_FROM,
            valid_to=expires_at,
        )
