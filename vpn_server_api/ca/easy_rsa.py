"""
CA backed by the easy-rsa shell tool. easy-rsa does the cryptography; this
class only runs it and reads the files it writes.
"""
import logging
import math
import os
import re
import subprocess
from datetime import datetime, timezone

from cryptography import x509

from vpn_server_api.ca.base import CaError, CertificateExistsError
from vpn_server_api.schemas.certificate import IssuedCertificate

logger = logging.getLogger(__name__)

CERTIFICATE_PATTERN = re.compile(r"(-----BEGIN CERTIFICATE-----.*?-----END CERTIFICATE-----)", re.DOTALL)
SECONDS_PER_DAY = 86400


class EasyRsaCa:
    def __init__(
        self,
        easy_rsa_dir: str,
        easy_rsa_data_dir: str,
        key_size: int = 3072,
        ca_expire: int = 1826,
        ca_cn: str = "VPN CA",
        cert_expire: int = 365,
        server_cert_expire: int = 0,
    ):
        self.easy_rsa_dir = easy_rsa_dir
        self.easy_rsa_data_dir = easy_rsa_data_dir
        self.key_size = key_size
        self.ca_expire = ca_expire
        self.ca_cn = ca_cn
        self.cert_expire = cert_expire
        self.server_cert_expire = server_cert_expire or cert_expire

    @property
    def _vars_file(self) -> str:
        return os.path.join(self.easy_rsa_data_dir, "vars")

    def _pki(self, *parts: str) -> str:
        return os.path.join(self.easy_rsa_data_dir, "pki", *parts)

    def init(self) -> None:
        """Create the PKI and the CA. Does nothing when it already exists."""
        os.makedirs(self.easy_rsa_data_dir, mode=0o700, exist_ok=True)
        if os.path.exists(self._vars_file):
            return

        vars_data = [
            f'set_var EASYRSA "{self.easy_rsa_dir}"',
            f'set_var EASYRSA_PKI "{self._pki()}"',
            f"set_var EASYRSA_KEY_SIZE {self.key_size}",
            f"set_var EASYRSA_CA_EXPIRE {self.ca_expire}",
            f'set_var EASYRSA_REQ_CN "{self.ca_cn}"',
            'set_var EASYRSA_BATCH "1"',
        ]
        fd = os.open(self._vars_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w") as f:
            f.write("\n".join(vars_data) + "\n")

        self._easy_rsa("init-pki")
        self._easy_rsa("build-ca", "nopass")
        logger.info("Initialized CA in %s", self.easy_rsa_data_dir)

    def ca_cert(self) -> str:
        return self._read_certificate(self._pki("ca.crt"))

    def server_cert(self, common_name: str) -> IssuedCertificate:
        self._ensure_new(common_name)
        self._easy_rsa(f"--days={self.server_cert_expire}", "build-server-full", common_name, "nopass")
        return self._cert_info(common_name)

    def client_cert(self, common_name: str, expires_at: datetime) -> IssuedCertificate:
        self._ensure_new(common_name)
        days = self._days_until(expires_at)
        self._easy_rsa(f"--days={days}", "build-client-full", common_name, "nopass")
        return self._cert_info(common_name)

    @staticmethod
    def _days_until(expires_at: datetime) -> int:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        seconds = (expires_at - datetime.now(timezone.utc)).total_seconds()
        if seconds <= 0:
            raise CaError("expires_at must be in the future")
        return math.ceil(seconds / SECONDS_PER_DAY)

    def _ensure_new(self, common_name: str) -> None:
        if os.path.exists(self._pki("issued", f"{common_name}.crt")):
            raise CertificateExistsError(common_name)

    def _cert_info(self, common_name: str) -> IssuedCertificate:
        cert_pem = self._read_certificate(self._pki("issued", f"{common_name}.crt"))
        key_path = self._pki("private", f"{common_name}.key")
        try:
            with open(key_path) as f:
                key_pem = f.read().strip()
        except OSError as e:
            raise CaError(f"unable to read private key {key_path}: {e!s}") from e

        cert = x509.load_pem_x509_certificate(cert_pem.encode())
        return IssuedCertificate(
            certificate=cert_pem,
            private_key=key_pem,
            valid_from=cert.not_valid_before_utc,
            valid_to=cert.not_valid_after_utc,
        )

    @staticmethod
    def _read_certificate(path: str) -> str:
        try:
            with open(path) as f:
                data = f.read()
        except OSError as e:
            raise CaError(f"unable to read certificate {path}: {e!s}") from e
        # easy-rsa puts a text dump in front of the PEM block
        match = CERTIFICATE_PATTERN.search(data)
        if match is None:
            raise CaError(f"no certificate found in {path}")
        return match.group(1)

    def _easy_rsa(self, *args: str) -> None:
        easyrsa = os.path.join(self.easy_rsa_dir, "easyrsa")
        if not os.path.isfile(easyrsa):
            raise CaError(f"easyrsa not found: {easyrsa}")
        cmd = [easyrsa, f"--vars={self._vars_file}", *args]
        try:
            subprocess.run(
                cmd,
                cwd=self.easy_rsa_data_dir,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            logger.error("easyrsa %s failed: %s", " ".join(args), e.stderr)
            raise CaError(f"command \"{' '.join(cmd)}\" did not complete successfully ({e.returncode})") from e
