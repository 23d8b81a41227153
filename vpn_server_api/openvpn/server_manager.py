"""
Fleet view over all OpenVPN processes of all profiles.

Status queries fan out to every process concurrently. A process that cannot
be reached only makes its profile's result partial; it never fails the whole
query.
"""
import asyncio
import logging
from typing import Callable

from vpn_server_api.openvpn.daemon import SIGNALS, DaemonClient, check_common_name
from vpn_server_api.openvpn.errors import ManagementError
from vpn_server_api.openvpn.profiles import Profile, ProfileRegistry
from vpn_server_api.schemas.connection import CapacityReport, Connection, EndpointFailure

logger = logging.getLogger(__name__)


def percent_in_use(active: int, ceiling: int) -> int:
    """floor(active / ceiling * 100); above 100 when over capacity."""
    if ceiling <= 0:
        raise ValueError("connection ceiling must be positive")
    return active * 100 // ceiling


def capacity_report(profile: Profile, active: int) -> CapacityReport:
    ceiling = profile.max_connection_count
    return CapacityReport(
        profile_id=profile.profile_id,
        active_connection_count=active,
        max_connection_count=ceiling,
        percentage_in_use=percent_in_use(active, ceiling),
    )


class FleetStatus:
    """Result of one fan-out: connections per profile plus failed endpoints."""

    def __init__(self, connections: dict[str, list[Connection]], failures: list[EndpointFailure]):
        self.connections = connections
        self.failures = failures

    @property
    def is_partial(self) -> bool:
        return bool(self.failures)


class ServerManager:
    def __init__(
        self,
        profiles: ProfileRegistry,
        password: str = "",
        connect_timeout: float = 5.0,
        command_timeout: float = 10.0,
        client_factory: Callable[..., DaemonClient] = DaemonClient,
    ):
        self.profiles = profiles
        self._clients: dict[str, list[DaemonClient]] = {
            profile.profile_id: [
                client_factory(
                    endpoint,
                    password=password,
                    connect_timeout=connect_timeout,
                    command_timeout=command_timeout,
                )
                for endpoint in profile.endpoints
            ]
            for profile in profiles
        }

    async def __aenter__(self) -> "ServerManager":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def clients(self, profile_id: str | None = None) -> list[DaemonClient]:
        if profile_id is None:
            return [c for clients in self._clients.values() for c in clients]
        self.profiles.get(profile_id)  # raises UnknownProfileError
        return list(self._clients[profile_id])

    async def _status(self, client: DaemonClient) -> list[Connection] | EndpointFailure:
        try:
            return await client.status()
        except ManagementError as e:
            logger.warning("Unable to get status from %s: %s", client.endpoint, e)
            return EndpointFailure(
                profile_id=client.profile_id,
                endpoint=client.endpoint.url,
                error=str(e) or e.__class__.__name__,
            )

    async def collect(self, profile_id: str | None = None) -> FleetStatus:
        profile_ids = [profile_id] if profile_id is not None else self.profiles.ids()
        clients = [c for pid in profile_ids for c in self.clients(pid)]
        results = await asyncio.gather(*(self._status(c) for c in clients))

        connections: dict[str, list[Connection]] = {pid: [] for pid in profile_ids}
        failures: list[EndpointFailure] = []
        seen: set[tuple[str, str]] = set()
        for client, result in zip(clients, results):
            if isinstance(result, EndpointFailure):
                failures.append(result)
                continue
            for connection in result:
                # a stale session can briefly show up on two processes
                key = (connection.profile_id, connection.common_name)
                if key in seen:
                    continue
                seen.add(key)
                connections[client.profile_id].append(connection)
        return FleetStatus(connections, failures)

    async def connections(self, profile_id: str | None = None) -> dict[str, list[Connection]]:
        return (await self.collect(profile_id)).connections

    async def kill(self, common_name: str) -> bool:
        """
        Disconnect the client with this common name from whichever process
        has it. False when no process knows it.
        """
        check_common_name(common_name)
        for client in self.clients():
            try:
                if await client.kill(common_name):
                    return True
            except ManagementError as e:
                logger.warning("Unable to kill %s on %s: %s", common_name, client.endpoint, e)
        return False

    async def signal(self, name: str, profile_id: str | None = None) -> list[EndpointFailure]:
        """Send a signal to all processes (of one profile); returns the endpoints that failed."""
        if name not in SIGNALS:
            raise ValueError(f"unsupported signal {name}")
        failures = []
        for client in self.clients(profile_id):
            try:
                await client.signal(name)
            except ManagementError as e:
                logger.warning("Unable to send %s to %s: %s", name, client.endpoint, e)
                failures.append(
                    EndpointFailure(profile_id=client.profile_id, endpoint=client.endpoint.url, error=str(e))
                )
        return failures

    async def aclose(self) -> None:
        await asyncio.gather(*(c.aclose() for c in self.clients()))
