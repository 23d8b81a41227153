"""
vpn-server-api-server-config: write the OpenVPN server configuration of a
profile, one file per process.

    vpn-server-api-server-config --profile ID [--generate --cn CN [--dh FILE]]

--generate also issues a server certificate for CN and stores it, with the
CA certificate and the tls-auth key, in the TLS directory of the profile.
"""
import argparse
import logging
import os
import sys

from vpn_server_api.cli import cli_context, setup_logging
from vpn_server_api.context import AppContext
from vpn_server_api.openvpn.profiles import UnknownProfileError
from vpn_server_api.openvpn.server_config import write_profile_config, write_tls_files

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vpn-server-api-server-config",
        description="Generate VPN server configuration for a profile",
    )
    parser.add_argument("--profile", required=True, help="the profile")
    parser.add_argument("--generate", action="store_true", help="generate a new certificate for the server")
    parser.add_argument("--cn", default=None, help="the CN of the certificate to generate")
    parser.add_argument("--dh", default=None, metavar="FILE", help="DH parameter file to copy to dh.pem")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def run(ctx: AppContext, args: argparse.Namespace, out=sys.stdout) -> int:
    settings = ctx.settings
    config = settings.vpn_profiles.get(args.profile)
    if config is None:
        raise UnknownProfileError(args.profile)
    if args.generate and not args.cn:
        raise ValueError("--generate requires --cn")

    for path in write_profile_config(args.profile, config, settings.openvpn_config_dir, settings.openvpn_tls_dir):
        out.write(f"{path}\n")

    if args.generate:
        issued = ctx.ca.server_cert(args.cn)
        server_data = {
            "ca": ctx.ca.ca_cert(),
            "ta": ctx.tls_auth.get(),
            "certificate": issued.certificate,
            "private_key": issued.private_key,
        }
        write_tls_files(server_data, os.path.join(settings.openvpn_tls_dir, args.profile), args.dh)
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        ctx = cli_context()
        try:
            return run(ctx, args)
        finally:
            ctx.session_factory.kw["bind"].dispose()
    except Exception as e:
        logger.debug("server-config failed", exc_info=True)
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
