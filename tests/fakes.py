"""Test doubles: an OpenVPN management interface on a real socket, and an in-memory daemon client."""
import asyncio

from vpn_server_api.openvpn.errors import ManagementError
from vpn_server_api.openvpn.profiles import ManagementEndpoint
from vpn_server_api.schemas.connection import Connection

BANNER = b">INFO:OpenVPN Management Interface Version 3 -- type 'help' for more info\r\n"

CLIENT_LIST_HEADER = (
    "HEADER,CLIENT_LIST,Common Name,Real Address,Virtual Address,Virtual IPv6 Address,"
    "Bytes Received,Bytes Sent,Connected Since,Connected Since (time_t),Username,Client ID,"
    "Peer ID,Data Channel Cipher"
)


def client_list_line(common_name: str, index: int = 2) -> str:
    return (
        f"CLIENT_LIST,{common_name},192.0.2.{index}:51234,10.42.42.{index},fd00:4242:4242::{index},"
        f"4711,1234,Wed Jan 15 10:11:07 2020,1579079467,UNDEF,{index},0,AES-256-GCM"
    )


def status_text(common_names: list[str]) -> str:
    lines = [
        "TITLE,OpenVPN 2.4.9 x86_64-redhat-linux-gnu [SSL (OpenSSL)] [LZO] [LZ4] [EPOLL] [MH/PKTINFO] [AEAD]",
        "TIME,Wed Jan 15 10:21:07 2020,1579080067",
        CLIENT_LIST_HEADER,
    ]
    lines += [client_list_line(cn, i + 2) for i, cn in enumerate(common_names)]
    lines += ["HEADER,ROUTING_TABLE,Virtual Address,Common Name,Real Address,Last Ref,Last Ref (time_t)"]
    lines += [
        f"ROUTING_TABLE,10.42.42.{i + 2},{cn},192.0.2.{i + 2}:51234,Wed Jan 15 10:21:00 2020,1579080060"
        for i, cn in enumerate(common_names)
    ]
    lines += ["GLOBAL_STATS,Max bcast/mcast queue length,0", "END"]
    return "\r\n".join(lines) + "\r\n"


class FakeDaemon:
    """
    Minimal OpenVPN management interface. Knows status 2, kill, signal and
    quit; anything else gets an ERROR line.
    """

    def __init__(
        self,
        common_names: list[str] | None = None,
        password: str = "",
        hang_on_status: bool = False,
        drop_on_status: bool = False,
        fail_status: bool = False,
        notify: bool = False,
        banner: bytes = BANNER,
        unix_path: str | None = None,
    ):
        self.common_names = list(common_names or [])
        self.password = password
        self.hang_on_status = hang_on_status
        self.drop_on_status = drop_on_status
        self.fail_status = fail_status
        self.notify = notify
        self.banner = banner
        self.unix_path = unix_path
        self.commands: list[str] = []
        self.connection_count = 0
        self._server: asyncio.AbstractServer | None = None
        self._writers: set[asyncio.StreamWriter] = set()
        self._stopping = asyncio.Event()

    async def start(self, profile_id: str = "default", process_number: int = 0) -> ManagementEndpoint:
        if self.unix_path:
            self._server = await asyncio.start_unix_server(self._handle, path=self.unix_path)
            url = f"unix://{self.unix_path}"
        else:
            self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
            port = self._server.sockets[0].getsockname()[1]
            url = f"tcp://127.0.0.1:{port}"
        return ManagementEndpoint(profile_id, process_number, url)

    async def stop(self) -> None:
        self._stopping.set()
        self._server.close()
        for writer in list(self._writers):
            writer.close()
        await self._server.wait_closed()

    async def __aenter__(self) -> "FakeDaemon":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connection_count += 1
        self._writers.add(writer)
        try:
            if self.password:
                writer.write(b"ENTER PASSWORD:")
                await writer.drain()
                given = (await reader.readline()).decode().strip()
                if given != self.password:
                    writer.write(b"ERROR: bad password\r\n")
                    await writer.drain()
                    return
                writer.write(b"SUCCESS: password is correct\r\n")
            writer.write(self.banner)
            await writer.drain()

            while True:
                line = await reader.readline()
                if not line:
                    return
                command = line.decode().strip()
                self.commands.append(command)
                if command == "quit":
                    return
                if self.notify:
                    writer.write(b">BYTECOUNT_CLI:0,4711,1234\r\n")
                if command == "status 2":
                    if self.hang_on_status:
                        await self._stopping.wait()
                        return
                    if self.drop_on_status:
                        self.drop_on_status = False
                        writer.write(b"TITLE,OpenVPN 2.4.9\r\n")
                        await writer.drain()
                        return
                    if self.fail_status:
                        writer.write(b"ERROR: status command failed\r\n")
                    else:
                        writer.write(status_text(self.common_names).encode())
                elif command.startswith("kill "):
                    cn = command[len("kill "):]
                    if cn in self.common_names:
                        self.common_names.remove(cn)
                        writer.write(f"SUCCESS: common name '{cn}' found, 1 client(s) killed\r\n".encode())
                    else:
                        writer.write(f"ERROR: common name '{cn}' not found\r\n".encode())
                elif command.startswith("signal "):
                    writer.write(f"SUCCESS: signal {command[len('signal '):]} thrown\r\n".encode())
                else:
                    writer.write(b"ERROR: unknown command, enter 'help' for more options\r\n")
                await writer.drain()
        except (ConnectionError, asyncio.IncompleteReadError):
            pass
        finally:
            self._writers.discard(writer)
            writer.close()


class FakeFleet:
    """In-memory sessions per management endpoint URL, served through FakeDaemonClient."""

    def __init__(self):
        self.sessions: dict[str, list[str]] = {}
        self.failing: dict[str, ManagementError] = {}
        self.kill_calls: list[tuple[str, str]] = []
        self.signals: list[tuple[str, str]] = []

    def client_factory(self, endpoint: ManagementEndpoint, **kwargs) -> "FakeDaemonClient":
        return FakeDaemonClient(self, endpoint)


class FakeDaemonClient:
    def __init__(self, fleet: FakeFleet, endpoint: ManagementEndpoint):
        self.fleet = fleet
        self.endpoint = endpoint
        self.closed = False

    @property
    def profile_id(self) -> str:
        return self.endpoint.profile_id

    def _check(self) -> None:
        error = self.fleet.failing.get(self.endpoint.url)
        if error is not None:
            raise error

    async def status(self) -> list[Connection]:
        self._check()
        return [
            Connection(profile_id=self.profile_id, common_name=cn, real_address=f"192.0.2.{i + 2}:51234")
            for i, cn in enumerate(self.fleet.sessions.get(self.endpoint.url, []))
        ]

    async def kill(self, common_name: str) -> bool:
        self._check()
        self.fleet.kill_calls.append((self.endpoint.url, common_name))
        sessions = self.fleet.sessions.get(self.endpoint.url, [])
        if common_name in sessions:
            sessions.remove(common_name)
            return True
        return False

    async def signal(self, name: str) -> None:
        self._check()
        self.fleet.signals.append((self.endpoint.url, name))

    async def aclose(self) -> None:
        self.closed = True
