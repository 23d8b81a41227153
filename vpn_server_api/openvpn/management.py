"""
Client for the OpenVPN management interface (--management), reached over
TCP or a Unix socket.

Replies are either a single "SUCCESS: ..." / "ERROR: ..." line or a block of
lines terminated by "END". Lines starting with ">" are real-time
notifications and can show up at any time; they are not part of a reply.
The protocol has no request ids, so one socket runs one command at a time.
"""
import asyncio
import logging

from vpn_server_api.openvpn.errors import (
    ConnectError,
    DisconnectedError,
    ManagementTimeoutError,
    ProtocolError,
)
from vpn_server_api.openvpn.profiles import ManagementEndpoint

logger = logging.getLogger(__name__)

PASSWORD_PROMPT = b"ENTER PASSWORD:"
BANNER_PREFIX = ">INFO:"
END_MARKER = "END"
# longest line accepted from the daemon (StreamReader limit)
LINE_LIMIT = 64 * 1024


class ManagementSocket:
    """
    One management session. Use as an async context manager:

        async with ManagementSocket(endpoint) as sock:
            lines = await sock.command("status 2")
    """

    def __init__(
        self,
        endpoint: ManagementEndpoint,
        password: str = "",
        connect_timeout: float = 5.0,
        command_timeout: float = 10.0,
    ):
        self.endpoint = endpoint
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self._password = password
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_open(self) -> bool:
        """True once the banner was received, until the session is closed."""
        return self._connected and self._writer is not None and not self._writer.is_closing()

    async def __aenter__(self) -> "ManagementSocket":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        """Connect, authenticate if asked to and wait for the >INFO: banner."""
        await self.close()
        try:
            await asyncio.wait_for(self._handshake(), self.connect_timeout)
        except asyncio.TimeoutError:
            await self.close()
            raise ConnectError(f"{self.endpoint}: no banner within {self.connect_timeout}s") from None
        except (OSError, asyncio.IncompleteReadError, ValueError, DisconnectedError) as e:
            await self.close()
            raise ConnectError(f"{self.endpoint}: {e!s}") from e
        except ConnectError:
            await self.close()
            raise

    async def _handshake(self) -> None:
        if self.endpoint.is_unix:
            self._reader, self._writer = await asyncio.open_unix_connection(
                self.endpoint.path, limit=LINE_LIMIT
            )
        else:
            self._reader, self._writer = await asyncio.open_connection(
                self.endpoint.host, self.endpoint.port, limit=LINE_LIMIT
            )

        # the password prompt is not newline terminated
        head = await self._reader.readexactly(len(PASSWORD_PROMPT))
        if head == PASSWORD_PROMPT:
            if not self._password:
                raise ConnectError(f"{self.endpoint}: management interface asks for a password")
            await self._write_line(self._password)
            reply = await self._read_line()
            if not reply.startswith("SUCCESS:"):
                raise ConnectError(f"{self.endpoint}: authentication failed: {reply}")
            banner = await self._read_line()
        else:
            banner = _decode(head + await self._reader.readline())

        if not banner.startswith(BANNER_PREFIX):
            raise ConnectError(f"{self.endpoint}: unexpected banner {banner!r}")
        self._connected = True
        logger.debug("Connected to %s: %s", self.endpoint, banner)

    async def command(self, command: str) -> list[str]:
        """
        Send one command and return its reply lines (without the END marker).
        A single-line SUCCESS:/ERROR: reply is returned as a one element list.
        """
        if "\n" in command or "\r" in command:
            raise ValueError("management command must be a single line")
        async with self._lock:
            if not self.is_open:
                raise DisconnectedError(f"{self.endpoint}: not connected")
            try:
                return await asyncio.wait_for(self._exchange(command), self.command_timeout)
            except asyncio.TimeoutError:
                # a late reply would end up as the answer to the next command
                await self.close()
                raise ManagementTimeoutError(
                    f'{self.endpoint}: no reply to "{command}" within {self.command_timeout}s'
                ) from None
            except (ConnectionError, asyncio.IncompleteReadError) as e:
                await self.close()
                raise DisconnectedError(f"{self.endpoint}: {e!s}") from e
            except DisconnectedError:
                await self.close()
                raise
            except ValueError as e:
                # StreamReader.readline: line longer than LINE_LIMIT
                await self.close()
                raise ProtocolError(f"{self.endpoint}: {e!s}") from e

    async def _exchange(self, command: str) -> list[str]:
        await self._write_line(command)
        lines: list[str] = []
        while True:
            line = await self._read_line()
            if line.startswith(">"):
                logger.debug("%s: notification %s", self.endpoint, line)
                continue
            if not lines and line.startswith(("SUCCESS:", "ERROR:")):
                return [line]
            if line == END_MARKER:
                return lines
            lines.append(line)

    async def _write_line(self, line: str) -> None:
        self._writer.write(f"{line}\n".encode())
        await self._writer.drain()

    async def _read_line(self) -> str:
        data = await self._reader.readline()
        if not data:
            raise DisconnectedError(f"{self.endpoint}: connection closed by daemon")
        return _decode(data)

    async def close(self) -> None:
        writer = self._writer
        self._connected = False
        self._reader = self._writer = None
        if writer is None:
            return
        if not writer.is_closing():
            writer.write(b"quit\n")
        writer.close()
        try:
            await writer.wait_closed()
        except OSError as e:
            logger.debug("%s: error while closing: %s", self.endpoint, e)


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors="replace").rstrip("\r\n")
