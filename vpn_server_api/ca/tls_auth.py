import logging
import os
import subprocess

from vpn_server_api.ca.base import CaError

logger = logging.getLogger(__name__)


class TlsAuth:
    """The OpenVPN static key (ta.key) shared by all servers and handed to clients."""

    def __init__(self, data_dir: str, openvpn_binary: str = "openvpn"):
        self.key_file = os.path.join(data_dir, "ta.key")
        self.openvpn_binary = openvpn_binary

    def init(self) -> None:
        if os.path.exists(self.key_file):
            return
        os.makedirs(os.path.dirname(self.key_file) or ".", exist_ok=True)
        try:
            subprocess.run(
                [self.openvpn_binary, "--genkey", "secret", self.key_file],
                check=True,
                capture_output=True,
                text=True,
            )
        except (OSError, subprocess.CalledProcessError) as e:
            raise CaError(f"unable to generate tls-auth key: {e!s}") from e
        os.chmod(self.key_file, 0o600)
        logger.info("Generated tls-auth key %s", self.key_file)

    def get(self) -> str:
        try:
            with open(self.key_file) as f:
                return f.read().strip()
        except OSError as e:
            raise CaError(f"unable to read tls-auth key: {e!s}") from e
