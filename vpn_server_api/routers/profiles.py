from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel
from vpn_server_api.auth import ADMIN_PORTAL, SERVER_NODE, USER_PORTAL, require_consumer
from vpn_server_api.openvpn.profiles import Profile

router = APIRouter(prefix="/api/profiles", tags=["profiles"])


class ProcessInfo(BaseModel):
    process_number: int
    proto_port: str
    range: str
    range6: str | None
    management_endpoint: str


class ProfileInfo(BaseModel):
    profile_id: str
    profile_number: int
    display_name: str
    range: str
    range6: str | None
    process_count: int
    max_connection_count: int
    processes: list[ProcessInfo]


def _profile_info(profile: Profile) -> ProfileInfo:
    processes = [
        ProcessInfo(**p, management_endpoint=profile.endpoints[p["process_number"]].url)
        for p in profile.process_ranges()
    ]
    return ProfileInfo(
        profile_id=profile.profile_id,
        profile_number=profile.profile_number,
        display_name=profile.display_name,
        range=str(profile.range),
        range6=str(profile.range6) if profile.range6 else None,
        process_count=profile.process_count,
        max_connection_count=profile.max_connection_count,
        processes=processes,
    )


@router.get("", response_model=list[ProfileInfo])
def list_profiles(
    request: Request,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL, USER_PORTAL, SERVER_NODE)),
):
    """Configured VPN profiles and how their address ranges are split over the processes."""
    return [_profile_info(p) for p in request.app.state.context.profiles]
