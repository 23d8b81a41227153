from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session
from vpn_server_api.auth import ADMIN_PORTAL, USER_PORTAL, require_consumer
from vpn_server_api.context import AppContext
from vpn_server_api.database import get_db
from vpn_server_api.openvpn.profiles import UnknownProfileError
from vpn_server_api.openvpn.reconcile import DEFAULT_ALERT_PERCENTAGE, capacity_reports
from vpn_server_api.repositories.identity_store import SqlIdentityStore
from vpn_server_api.schemas.connection import (
    CapacityReport,
    ConnectionListResponse,
    DisconnectResponse,
    EndpointFailure,
    KillRequest,
    KillResponse,
    SignalRequest,
)
from vpn_server_api.services.connection_service import disconnect_invalid_certificates, with_owner

router = APIRouter(prefix="/api/connections", tags=["connections"])


def get_context(request: Request) -> AppContext:
    return request.app.state.context


def _unknown_profile(e: UnknownProfileError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))


@router.get("", response_model=ConnectionListResponse)
async def list_connections(
    profile_id: str | None = None,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL, USER_PORTAL)),
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """
    Live connections per profile (all profiles unless ?profile_id=).
    Unreachable OpenVPN processes are listed in failed_endpoints.
    """
    try:
        fleet = await ctx.server_manager.collect(profile_id)
    except UnknownProfileError as e:
        raise _unknown_profile(e)
    return ConnectionListResponse(
        profiles=with_owner(fleet, SqlIdentityStore(db)),
        failed_endpoints=fleet.failures,
    )


@router.post("/kill", response_model=KillResponse)
async def kill_client(
    body: KillRequest,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL, USER_PORTAL)),
    ctx: AppContext = Depends(get_context),
):
    """Disconnect a client by certificate common name. killed=false if it was not connected."""
    try:
        killed = await ctx.server_manager.kill(body.common_name)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return KillResponse(common_name=body.common_name, killed=killed)


@router.post("/disconnect_expired", response_model=DisconnectResponse)
async def disconnect_expired(
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    """Disconnect clients with a deleted, revoked or expired certificate."""
    results, fleet = await disconnect_invalid_certificates(ctx.server_manager, SqlIdentityStore(db))
    return DisconnectResponse(disconnected=results, failed_endpoints=fleet.failures)


@router.get("/capacity", response_model=list[CapacityReport])
async def capacity(
    profile_id: str | None = None,
    alert_only: bool = False,
    alert_percentage: int = Query(DEFAULT_ALERT_PERCENTAGE, ge=0, le=100),
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    ctx: AppContext = Depends(get_context),
):
    """Active vs. maximum connections per profile; alert_only keeps the ones at/above alert_percentage."""
    try:
        connections = await ctx.server_manager.connections(profile_id)
    except UnknownProfileError as e:
        raise _unknown_profile(e)
    return capacity_reports(connections, ctx.profiles, alert_percentage, alert_only)


@router.post("/signal", response_model=list[EndpointFailure])
async def signal_servers(
    body: SignalRequest,
    _consumer: str = Depends(require_consumer(ADMIN_PORTAL)),
    ctx: AppContext = Depends(get_context),
):
    """Send a signal (SIGHUP reloads, SIGTERM stops) to the OpenVPN processes; returns failures."""
    try:
        return await ctx.server_manager.signal(body.signal, body.profile_id)
    except UnknownProfileError as e:
        raise _unknown_profile(e)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
