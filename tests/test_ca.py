import os
from datetime import datetime, timedelta, timezone

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

from vpn_server_api.ca.base import CaError, CertificateExistsError
from vpn_server_api.ca.easy_rsa import EasyRsaCa
from vpn_server_api.ca.memory import VALID_FROM, MemoryCa
from vpn_server_api.ca.tls_auth import TlsAuth

NOT_BEFORE = datetime(2024, 1, 1, tzinfo=timezone.utc)
NOT_AFTER = datetime(2025, 1, 1, tzinfo=timezone.utc)


def self_signed(common_name: str) -> tuple[str, str]:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(NOT_BEFORE)
        .not_valid_after(NOT_AFTER)
        .sign(key, hashes.SHA256())
    )
    key_pem = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode(), key_pem.decode()


class TestMemoryCa:
    def test_client_cert(self):
        expires_at = datetime(2030, 1, 1, tzinfo=timezone.utc)
        issued = MemoryCa().client_cert("abc", expires_at)
        assert issued.certificate == "ClientCert for abc"
        assert issued.valid_from == VALID_FROM
        assert issued.valid_to == expires_at

    def test_server_cert(self):
        issued = MemoryCa(server_cert_days=10).server_cert("vpn.example.org")
        assert issued.valid_to - issued.valid_from == timedelta(days=10)

    def test_duplicate_common_name(self):
        ca = MemoryCa()
        ca.server_cert("vpn.example.org")
        with pytest.raises(CertificateExistsError):
            ca.client_cert("vpn.example.org", datetime(2030, 1, 1, tzinfo=timezone.utc))


class TestEasyRsaCa:
    def make_ca(self, tmp_path, easy_rsa_dir=None):
        return EasyRsaCa(str(easy_rsa_dir or tmp_path / "easy-rsa"), str(tmp_path / "data"))

    def test_reads_issued_certificate(self, tmp_path):
        ca = self.make_ca(tmp_path)
        cert_pem, key_pem = self_signed("vpn.example.org")
        os.makedirs(tmp_path / "data" / "pki" / "issued")
        os.makedirs(tmp_path / "data" / "pki" / "private")
        # easy-rsa writes a text dump in front of the PEM block
        (tmp_path / "data" / "pki" / "issued" / "vpn.example.org.crt").write_text(
            "Certificate:\n    Data:\n        Version: 3 (0x2)\n" + cert_pem
        )
        (tmp_path / "data" / "pki" / "private" / "vpn.example.org.key").write_text(key_pem)

        issued = ca._cert_info("vpn.example.org")

        assert issued.certificate == cert_pem.strip()
        assert issued.private_key == key_pem.strip()
        assert issued.valid_from == NOT_BEFORE
        assert issued.valid_to == NOT_AFTER

        with pytest.raises(CertificateExistsError):
            ca.server_cert("vpn.example.org")

    def test_missing_certificate(self, tmp_path):
        with pytest.raises(CaError):
            self.make_ca(tmp_path).ca_cert()

    def test_missing_easyrsa(self, tmp_path):
        with pytest.raises(CaError, match="easyrsa not found"):
            self.make_ca(tmp_path).server_cert("vpn.example.org")

    def test_failing_easyrsa(self, tmp_path):
        easy_rsa_dir = tmp_path / "easy-rsa"
        easy_rsa_dir.mkdir()
        script = easy_rsa_dir / "easyrsa"
        script.write_text("#!/bin/sh\necho 'easyrsa: failure' >&2\nexit 1\n")
        script.chmod(0o755)
        ca = self.make_ca(tmp_path, easy_rsa_dir)

        with pytest.raises(CaError, match="did not complete successfully"):
            ca.init()
        assert oct(os.stat(tmp_path / "data" / "vars").st_mode & 0o777) == oct(0o600)

    def test_days_until(self):
        now = datetime.now(timezone.utc)
        assert EasyRsaCa._days_until(now + timedelta(days=3, hours=1)) == 4
        assert EasyRsaCa._days_until(now + timedelta(hours=1)) == 1

    def test_days_until_past(self):
        with pytest.raises(CaError):
            EasyRsaCa._days_until(datetime.now(timezone.utc) - timedelta(seconds=1))


class TestTlsAuth:
    def test_get(self, tmp_path):
        (tmp_path / "ta.key").write_text("static key\n")
        assert TlsAuth(str(tmp_path)).get() == "static key"

    def test_get_missing(self, tmp_path):
        with pytest.raises(CaError):
            TlsAuth(str(tmp_path)).get()

    def test_init_keeps_existing_key(self, tmp_path):
        (tmp_path / "ta.key").write_text("static key\n")
        TlsAuth(str(tmp_path), openvpn_binary=str(tmp_path / "missing")).init()
        assert (tmp_path / "ta.key").read_text() == "static key\n"

    def test_init_without_openvpn(self, tmp_path):
        with pytest.raises(CaError):
            TlsAuth(str(tmp_path), openvpn_binary=str(tmp_path / "missing")).init()
