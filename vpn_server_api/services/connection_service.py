"""
Fleet operations that combine the server manager with the identity store:
connection listing with certificate owners, and disconnecting clients whose
certificate is gone or expired.
"""
import logging
from datetime import datetime, timezone

from vpn_server_api.openvpn.reconcile import kill_decisions
from vpn_server_api.openvpn.server_manager import FleetStatus, ServerManager
from vpn_server_api.repositories.identity_store import IdentityStore
from vpn_server_api.schemas.connection import ConnectionInfo, KillResult

logger = logging.getLogger(__name__)


def with_owner(status: FleetStatus, identity_store: IdentityStore) -> dict[str, list[ConnectionInfo]]:
    out = {}
    for profile_id, connections in status.connections.items():
        infos = []
        for c in connections:
            record = identity_store.lookup(c.common_name)
            infos.append(
                ConnectionInfo(
                    **c.model_dump(),
                    user_id=record.user_id if record else None,
                    display_name=record.display_name if record else None,
                )
            )
        out[profile_id] = infos
    return out


async def disconnect_invalid_certificates(
    server_manager: ServerManager,
    identity_store: IdentityStore,
    now: datetime | None = None,
) -> tuple[list[KillResult], FleetStatus]:
    """
    Kill every session whose certificate no longer exists, is revoked or has
    expired. Unreachable processes are skipped; see FleetStatus.failures.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    status = await server_manager.collect()
    connections = [c for conns in status.connections.values() for c in conns]

    results = []
    for decision in kill_decisions(connections, identity_store, now):
        killed = await server_manager.kill(decision.common_name)
        logger.info(
            "Disconnect %s (%s) from %s: %s",
            decision.common_name,
            decision.reason.value,
            decision.profile_id,
            "killed" if killed else "not connected anymore",
        )
        results.append(KillResult(**decision.model_dump(), killed=killed))
    return results, status
