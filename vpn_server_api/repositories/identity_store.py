"""
Identity store: common name -> certificate record. Read-only lookups used by
the reconciliation; a missing record is a normal answer (None).
"""
from typing import Iterable, Protocol

from sqlalchemy.orm import Session

from vpn_server_api.repositories.certificate_repository import from_db_datetime, get_certificate
from vpn_server_api.schemas.certificate import CertificateRecord


class IdentityStore(Protocol):
    def lookup(self, common_name: str) -> CertificateRecord | None:
        ...


class SqlIdentityStore:
    def __init__(self, db: Session):
        self._db = db

    def lookup(self, common_name: str) -> CertificateRecord | None:
        cert = get_certificate(self._db, common_name)
        if cert is None:
            return None
        return CertificateRecord(
            common_name=cert.common_name,
            user_id=cert.user_id,
            display_name=cert.display_name,
            valid_from=from_db_datetime(cert.valid_from),
            valid_to=from_db_datetime(cert.valid_to),
            is_revoked=cert.is_revoked,
        )


class MemoryIdentityStore:
    def __init__(self, records: Iterable[CertificateRecord] = ()):
        self._records: dict[str, CertificateRecord] = {}
        for record in records:
            self.add(record)

    def add(self, record: CertificateRecord) -> None:
        if record.common_name in self._records:
            raise ValueError(f'common name "{record.common_name}" already in use')
        self._records[record.common_name] = record

    def lookup(self, common_name: str) -> CertificateRecord | None:
        return self._records.get(common_name)
