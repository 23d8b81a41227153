"""vpn-server-api-init: create the database schema, the CA and the tls-auth key."""
import argparse
import logging
import sys

from vpn_server_api.cli import cli_context, setup_logging
from vpn_server_api.database import init_schema

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="vpn-server-api-init", description="Initialize storage, CA and tls-auth key")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)
    setup_logging(args.verbose)
    try:
        ctx = cli_context()
        init_schema(ctx.session_factory)
        ctx.ca.init()
        ctx.tls_auth.init()
    except Exception as e:
        logger.debug("init failed", exc_info=True)
        print(f"ERROR: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
