import enum
from datetime import datetime
from pydantic import BaseModel


class Connection(BaseModel):
    """A live session as reported by one OpenVPN process."""
    profile_id: str
    common_name: str
    real_address: str
    virtual_address: str | None = None
    virtual_ipv6_address: str | None = None
    bytes_received: int = 0
    bytes_sent: int = 0
    connected_since: datetime | None = None

    class Config:
        frozen = True


class ConnectionInfo(Connection):
    """Connection enriched with the certificate owner, for the API."""
    user_id: str | None = None
    display_name: str | None = None


class KillReason(str, enum.Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"


class KillDecision(BaseModel):
    profile_id: str
    common_name: str
    reason: KillReason

    class Config:
        frozen = True


class KillResult(KillDecision):
    killed: bool


class KillRequest(BaseModel):
    common_name: str


class KillResponse(BaseModel):
    common_name: str
    killed: bool


class CapacityReport(BaseModel):
    profile_id: str
    active_connection_count: int
    max_connection_count: int
    percentage_in_use: int


class EndpointFailure(BaseModel):
    profile_id: str
    endpoint: str
    error: str


class ConnectionListResponse(BaseModel):
    profiles: dict[str, list[ConnectionInfo]]
    failed_endpoints: list[EndpointFailure]


class DisconnectResponse(BaseModel):
    disconnected: list[KillResult]
    failed_endpoints: list[EndpointFailure]


class SignalRequest(BaseModel):
    signal: str = "SIGHUP"
    profile_id: str | None = None
