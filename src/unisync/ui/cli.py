from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from unisync.app import sync_connection
from unisync.config import ConfigurationError, configure_logging, get_googledrive_config
from unisync.domain.model import Connection, FieldMapping, Provider, Vertical

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise provider data into unisync")
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Log at DEBUG level",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    drive = subparsers.add_parser(
        "googledrive-folders",
        help="Sync Google Drive folders and their permissions",
    )
    drive.add_argument(
        "--connection-id",
        type=str,
        required=True,
        help="Identifier of the linked Drive account",
    )
    drive.add_argument(
        "--access-token",
        type=str,
        help="OAuth access token (defaults to GOOGLEDRIVE_ACCESS_TOKEN)",
    )
    drive.add_argument(
        "--field",
        dest="fields",
        action="append",
        default=[],
        metavar="SLUG=REMOTE_ATTRIBUTE",
        help="Copy a remote attribute into a custom field; may be repeated",
    )

    return parser.parse_args(list(argv))


def _parse_field_mapping(value: str) -> FieldMapping:
    slug, separator, remote_attribute = value.partition("=")
    if not separator or not slug.strip() or not remote_attribute.strip():
        raise ValueError(f"Invalid field mapping (expected SLUG=REMOTE_ATTRIBUTE): {value}")
    return FieldMapping(slug=slug.strip(), remote_attribute=remote_attribute.strip())


def _build_connection(args: argparse.Namespace) -> Connection:
    connection_id = args.connection_id.strip()
    if not connection_id:
        raise ValueError("Connection id must not be blank")
    access_token = args.access_token or get_googledrive_config().access_token
    return Connection(
        connection_id=connection_id,
        provider=Provider.GOOGLEDRIVE,
        vertical=Vertical.FILESTORAGE,
        access_token=access_token,
    )


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args: argparse.Namespace
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        mappings = [_parse_field_mapping(value) for value in parsed_args.fields]
        connection = _build_connection(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "googledrive-folders":
            result = sync_connection(connection, custom_field_mappings=mappings)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)

    for warning in result.warnings:
        log.warning("%s: %s (%s)", warning.kind, warning.remote_id, warning.detail)
    if not result.ok:
        log.error("Sync failed: %s", result.error)
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
