from datetime import datetime, timezone
from pydantic import BaseModel, Field, field_validator


class CertificateRecord(BaseModel):
    """What the reconciliation needs to know about a certificate. Datetimes are UTC aware."""
    common_name: str
    user_id: str
    display_name: str
    valid_from: datetime
    valid_to: datetime
    is_revoked: bool = False

    @field_validator("valid_from", "valid_to")
    @classmethod
    def _as_utc(cls, v: datetime) -> datetime:
        # naive values are UTC, which is how the database stores them
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    class Config:
        frozen = True
        from_attributes = True


class CertificateResponse(BaseModel):
    common_name: str
    user_id: str
    display_name: str
    valid_from: datetime
    valid_to: datetime
    client_id: str | None
    is_revoked: bool

    class Config:
        from_attributes = True


class AddClientCertificateRequest(BaseModel):
    user_id: str = Field(min_length=1, max_length=255)
    display_name: str = Field(min_length=1, max_length=255)
    expires_at: datetime
    client_id: str | None = Field(default=None, max_length=255)


class IssuedCertificate(BaseModel):
    """Output of the CA: PEM certificate + key and the validity window."""
    certificate: str
    private_key: str
    valid_from: datetime
    valid_to: datetime


class ClientCertificateResponse(IssuedCertificate):
    common_name: str


class AddServerCertificateRequest(BaseModel):
    common_name: str = Field(min_length=1, max_length=64, pattern=r"^[a-zA-Z0-9-.]+$")


class ServerCertificateResponse(IssuedCertificate):
    ca: str
    ta: str


class DeleteClientCertificateRequest(BaseModel):
    common_name: str


class DeleteClientCertificatesOfClientIdRequest(BaseModel):
    user_id: str
    client_id: str


class ServerInfoResponse(BaseModel):
    ca: str
    ta: str


class UserMessageResponse(BaseModel):
    id: int
    type: str
    message: str
    created_at: datetime

    class Config:
        from_attributes = True
