import logging
import sys

from vpn_server_api.config import Settings, load_settings
from vpn_server_api.context import AppContext, build_context


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def cli_context(settings: Settings | None = None) -> AppContext:
    return build_context(settings if settings is not None else load_settings())
