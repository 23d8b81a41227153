"""
vpn-server-api-status: connection count vs. capacity per profile.

    vpn-server-api-status [--alert [PCT]] [--json] [--strict] [--profile ID]

--alert only reports profiles at or above PCT percent (default 90).
--strict exits non-zero when an OpenVPN process could not be queried.
"""
import argparse
import asyncio
import csv
import json
import logging
import sys

from vpn_server_api.cli import cli_context, setup_logging
from vpn_server_api.context import AppContext
from vpn_server_api.openvpn.reconcile import capacity_reports

logger = logging.getLogger(__name__)


def _percentage(value: str) -> int:
    try:
        pct = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: {value}")
    if not 0 <= pct <= 100:
        raise argparse.ArgumentTypeError("percentage must be between 0 and 100")
    return pct


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vpn-server-api-status", description="Show VPN profile utilization")
    parser.add_argument("--alert", nargs="?", type=_percentage, const=-1, default=None, metavar="PCT",
                        help="only show profiles at or above PCT%% in use (default from settings)")
    parser.add_argument("--json", action="store_true", help="JSON output instead of CSV")
    parser.add_argument("--strict", action="store_true", help="fail when an OpenVPN process is unreachable")
    parser.add_argument("--profile", default=None, help="only this profile")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def write_output(rows: list[dict], as_json: bool, out=sys.stdout) -> None:
    if as_json:
        out.write(json.dumps(rows, indent=4) + "\n")
        return
    if not rows:
        return
    writer = csv.DictWriter(out, fieldnames=list(rows[0]), lineterminator="\n")
    writer.writeheader()
    writer.writerows(rows)


async def run(ctx: AppContext, args: argparse.Namespace, out=sys.stdout) -> int:
    alert_only = args.alert is not None
    alert_percentage = ctx.settings.alert_percentage if args.alert in (None, -1) else args.alert

    try:
        fleet = await ctx.server_manager.collect(args.profile)
    finally:
        await ctx.aclose()
    reports = capacity_reports(fleet.connections, ctx.profiles, alert_percentage, alert_only)
    write_output([r.model_dump() for r in reports], args.json, out)

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
        logger.debug("status failed", exc_info=True)
        print(f"ERROR: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
