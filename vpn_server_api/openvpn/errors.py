"""Errors raised while talking to an OpenVPN management interface."""


class ManagementError(Exception):
    """Base class; the server manager treats any of these as a failed endpoint."""


class ConnectError(ManagementError):
    """Endpoint unreachable, or no banner / authentication within the timeout."""


class ProtocolError(ManagementError):
    """Reply could not be framed or is not the reply the command expects."""


class ManagementTimeoutError(ManagementError, TimeoutError):
    """No reply terminator within the command timeout."""


class DisconnectedError(ManagementError):
    """Peer closed the stream in the middle of a reply."""
