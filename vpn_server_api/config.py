from pydantic import BaseModel, field_validator
from pydantic_settings import BaseSettings


class ProfileConfig(BaseModel):
    """Static configuration of one VPN profile as found in the settings."""
    profile_number: int
    display_name: str = ""
    range: str  # IPv4 CIDR, e.g. 10.42.42.0/24
    range6: str = ""  # IPv6 CIDR, e.g. fd00:4242:4242::/48
    # one entry per OpenVPN process, e.g. ["udp/1194", "tcp/1194"]
    vpn_proto_ports: list[str] = ["udp/1194", "tcp/1194"]
    management_ip: str = "127.0.0.1"
    # explicit endpoints (tcp://host:port or unix:///path); empty = derive from ports
    management_endpoints: list[str] = []

    # server configuration (vpn-server-api-server-config)
    listen: str = "::"
    default_gateway: bool = False
    routes: list[str] = []  # CIDRs pushed when not the default gateway
    dns: list[str] = []  # pushed only with default_gateway
    client_to_client: bool = False
    enable_log: bool = False

    @field_validator("profile_number")
    @classmethod
    def _positive_profile_number(cls, v: int) -> int:
        if v < 1:
            raise ValueError("profile_number must be >= 1")
        return v

    @field_validator("vpn_proto_ports")
    @classmethod
    def _at_least_one_process(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("vpn_proto_ports must contain at least one entry")
        return v


class Settings(BaseSettings):
    # Database (certificates, user messages)
    database_url: str = "sqlite:///./data/db.sqlite"

    # VPN profiles, JSON object in env: VPN_PROFILES='{"internet": {...}}'
    vpn_profiles: dict[str, ProfileConfig] = {}

    # OpenVPN management interface
    management_password: str = ""  # empty = daemons run without --management pw-file
    management_connect_timeout: float = 5.0
    management_command_timeout: float = 10.0

    # Capacity alerting (vpn-server-api-status --alert)
    alert_percentage: int = 90

    # CA backend: "easy-rsa" or "memory" (placeholder certificates, development only)
    ca_backend: str = "easy-rsa"

    # easy-rsa: tool directory and data directory (vars + pki)
    easy_rsa_dir: str = "/usr/share/easy-rsa"
    easy_rsa_data_dir: str = "./data/easy-rsa"
    ca_key_size: int = 3072
    ca_expire: int = 1826  # days
    ca_cn: str = "VPN CA"
    cert_expire: int = 365  # days
    server_cert_expire: int = 0  # days, 0 = use cert_expire

    # tls-auth key lives here as ta.key
    data_dir: str = "./data"

    # generated OpenVPN server configuration, TLS files in <openvpn_tls_dir>/<profile_id>
    openvpn_config_dir: str = "./openvpn-config"
    openvpn_tls_dir: str = "./openvpn-config/tls"

    # API consumers: name -> bearer token
    api_consumers: dict[str, str] = {}

    class Config:
        env_file = ".env"

    @field_validator("alert_percentage")
    @classmethod
    def _percentage_range(cls, v: int) -> int:
        if not 0 <= v <= 100:
            raise ValueError("alert_percentage must be between 0 and 100")
        return v

    @field_validator("ca_backend")
    @classmethod
    def _known_ca_backend(cls, v: str) -> str:
        if v not in ("easy-rsa", "memory"):
            raise ValueError('ca_backend must be "easy-rsa" or "memory"')
        return v


def load_settings(**overrides) -> Settings:
    """Build settings from env/.env; keyword overrides win (used by tests and CLI)."""
    return Settings(**overrides)
