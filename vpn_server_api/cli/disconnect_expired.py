"""
vpn-server-api-disconnect-expired: disconnect VPN clients whose certificate
was deleted, revoked or has expired. Meant to run from cron.
"""
import argparse
import asyncio
import logging
import sys

from vpn_server_api.cli import cli_context, setup_logging
from vpn_server_api.context import AppContext
from vpn_server_api.repositories.identity_store import SqlIdentityStore
from vpn_server_api.services.connection_service import disconnect_invalid_certificates

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vpn-server-api-disconnect-expired",
        description="Disconnect clients with expired or deleted certificates",
    )
    parser.add_argument("--strict", action="store_true", help="fail when an OpenVPN process is unreachable")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


async def run(ctx: AppContext, args: argparse.Namespace, out=sys.stdout) -> int:
    db = ctx.session_factory()
    try:
        results, fleet = await disconnect_invalid_certificates(ctx.server_manager, SqlIdentityStore(db))
    finally:
        db.close()
        await ctx.aclose()

    for result in results:
        out.write(f"{result.profile_id},{result.common_name},{result.reason.value},{int(result.killed)}\n")
    for failure in fleet.failures:
        logger.warning("%s: %s unreachable: %s", failure.profile_id, failure.endpoint, failure.error)
    if args.strict and fleet.is_partial:
        return 1
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)
    try:
        return asyncio.run(run(cli_context(), args))
    except Exception as e:
        logger.debug("disconnect failed", exc_info=True)
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
