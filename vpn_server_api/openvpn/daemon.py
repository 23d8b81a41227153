"""
One OpenVPN process: status parsing, kill by common name, signals.

"status 2" (comma separated) and "status 3" (tab separated) look like:

    TITLE,OpenVPN 2.4.7 x86_64-redhat-linux-gnu ...
    TIME,Wed Jan 15 10:21:07 2020,1579080067
    HEADER,CLIENT_LIST,Common Name,Real Address,Virtual Address,Virtual IPv6 Address,Bytes Received,...
    CLIENT_LIST,alice-1,192.0.2.10:51234,10.42.42.2,fd00:4242:4242::1000,4711,1234,...
    HEADER,ROUTING_TABLE,Virtual Address,Common Name,Real Address,Last Ref,Last Ref (time_t)
    ROUTING_TABLE,10.42.42.2,alice-1,192.0.2.10:51234,...
    GLOBAL_STATS,Max bcast/mcast queue length,0
    END

Columns are looked up by the names in the HEADER line, so columns added by
newer OpenVPN versions do not matter.
"""
import asyncio
import logging
from datetime import datetime, timezone

from vpn_server_api.openvpn.errors import DisconnectedError, ProtocolError
from vpn_server_api.openvpn.management import ManagementSocket
from vpn_server_api.openvpn.profiles import ManagementEndpoint
from vpn_server_api.schemas.connection import Connection

logger = logging.getLogger(__name__)

STATUS_COMMAND = "status 2"
SIGNALS = ("SIGHUP", "SIGTERM", "SIGUSR1", "SIGUSR2")

# column layout of OpenVPN 2.4 when no HEADER,CLIENT_LIST line precedes the rows
DEFAULT_CLIENT_LIST_HEADER = [
    "Common Name",
    "Real Address",
    "Virtual Address",
    "Virtual IPv6 Address",
    "Bytes Received",
    "Bytes Sent",
    "Connected Since",
    "Connected Since (time_t)",
    "Username",
    "Client ID",
    "Peer ID",
]


def check_common_name(common_name: str) -> None:
    """Common names end up in a management command line; no whitespace allowed."""
    if not common_name or any(c.isspace() for c in common_name):
        raise ValueError(f"invalid common name {common_name!r}")


def _split(line: str) -> list[str]:
    return line.split("\t") if "\t" in line else line.split(",")


def _connected_since(row: dict) -> datetime | None:
    epoch = row.get("Connected Since (time_t)")
    if epoch:
        return datetime.fromtimestamp(int(epoch), tz=timezone.utc)
    return None


def parse_status(profile_id: str, lines: list[str]) -> list[Connection]:
    """
    Parse CLIENT_LIST rows into connections. Malformed rows and unknown
    sections are skipped.
    """
    header = DEFAULT_CLIENT_LIST_HEADER
    connections = []
    for line in lines:
        fields = _split(line)
        if fields[0] == "HEADER":
            if len(fields) > 2 and fields[1] == "CLIENT_LIST":
                header = fields[2:]
            continue
        if fields[0] != "CLIENT_LIST":
            continue

        row = dict(zip(header, fields[1:]))
        common_name = row.get("Common Name", "")
        # UNDEF: TLS handshake not finished yet
        if not common_name or common_name == "UNDEF" or not row.get("Real Address"):
            continue
        try:
            connections.append(
                Connection(
                    profile_id=profile_id,
                    common_name=common_name,
                    real_address=row["Real Address"],
                    virtual_address=row.get("Virtual Address") or None,
                    virtual_ipv6_address=row.get("Virtual IPv6 Address") or None,
                    bytes_received=int(row.get("Bytes Received") or 0),
                    bytes_sent=int(row.get("Bytes Sent") or 0),
                    connected_since=_connected_since(row),
                )
            )
        except (ValueError, OverflowError, OSError) as e:
            logger.debug("Skipping malformed CLIENT_LIST line (%s): %r", e, line)
    return connections


class DaemonClient:
    """
    Owns the management session of one OpenVPN process. The session is opened
    on first use and kept open; if the daemon drops it, it is re-opened once.
    Concurrent callers share the session and are served one at a time.
    """

    def __init__(
        self,
        endpoint: ManagementEndpoint,
        password: str = "",
        connect_timeout: float = 5.0,
        command_timeout: float = 10.0,
    ):
        self.endpoint = endpoint
        self._socket = ManagementSocket(endpoint, password, connect_timeout, command_timeout)
        self._lock = asyncio.Lock()

    @property
    def profile_id(self) -> str:
        return self.endpoint.profile_id

    async def _command(self, command: str) -> list[str]:
        async with self._lock:
            if not self._socket.is_open:
                await self._socket.open()
            try:
                return await self._socket.command(command)
            except DisconnectedError:
                logger.info("%s: management session lost, reconnecting", self.endpoint)
                await self._socket.open()
                return await self._socket.command(command)

    async def status(self) -> list[Connection]:
        reply = await self._command(STATUS_COMMAND)
        if len(reply) == 1 and reply[0].startswith("ERROR:"):
            raise ProtocolError(f'{self.endpoint}: "{STATUS_COMMAND}" failed: {reply[0]}')
        return parse_status(self.profile_id, reply)

    async def kill(self, common_name: str) -> bool:
        """True if the daemon killed a session, False if it did not know the CN."""
        check_common_name(common_name)
        reply = await self._command(f"kill {common_name}")
        if reply and reply[0].startswith("SUCCESS:"):
            logger.info("%s: killed %s", self.endpoint, common_name)
            return True
        if reply and reply[0].startswith("ERROR:"):
            return False
        raise ProtocolError(f"{self.endpoint}: unexpected reply to kill: {reply!r}")

    async def signal(self, name: str) -> None:
        if name not in SIGNALS:
            raise ValueError(f"unsupported signal {name}")
        reply = await self._command(f"signal {name}")
        if not reply or not reply[0].startswith("SUCCESS:"):
            raise ProtocolError(f"{self.endpoint}: signal {name} refused: {reply!r}")
        logger.info("%s: sent %s", self.endpoint, name)

    async def aclose(self) -> None:
        await self._socket.close()
