from __future__ import annotations

import argparse
import json
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from multisource.app import fetch_field
from multisource.common.logging import configure_logging
from multisource.config import ConfigurationError, load_targets_config

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from multisource.config import TargetsConfig

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Query fields backed by several upstream APIs")
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level name (default: %(default)s)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    targets = subparsers.add_parser("targets", help="List configured targets and fields")
    targets.add_argument("--config", type=str, required=True, help="Path to the targets TOML file")

    fetch = subparsers.add_parser("fetch", help="Resolve one field and print the merged JSON")
    fetch.add_argument("field", type=str, help="Name of a field configured in the targets file")
    fetch.add_argument("--config", type=str, required=True, help="Path to the targets TOML file")
    fetch.add_argument(
        "--select",
        action="append",
        dest="select",
        metavar="NAME",
        help="Target to query; repeat to fan out (defaults to the first target)",
    )
    fetch.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Deadline in seconds for the whole fan-out (defaults to config)",
    )
    fetch.add_argument(
        "--var",
        action="append",
        dest="variables",
        default=[],
        metavar="KEY=VALUE",
        help="Request variable forwarded to every target; may be repeated",
    )
    return parser.parse_args(list(argv))


def _parse_variables(values: Sequence[str]) -> dict[str, object]:
    variables: dict[str, object] = {}
    for value in values:
        key, sep, raw = value.partition("=")
        if not sep or not key.strip():
            raise ValueError(f"Invalid variable {value!r}; expected KEY=VALUE")
        variables[key.strip()] = raw
    return variables


def _print_targets(config: TargetsConfig) -> None:
    for target in config.registry.targets:
        print(f"{target.name}\t{target.address}")  # noqa: T201
    for name, field_config in config.fields.items():
        names = ", ".join(field_config.registry.names)
        print(f"{name}\t{field_config.shape.value}\t{field_config.path}\t[{names}]")  # noqa: T201


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=parsed_args.log_level)
        config = load_targets_config(parsed_args.config)
        variables = (
            _parse_variables(parsed_args.variables) if parsed_args.command == "fetch" else {}
        )
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "targets":
            _print_targets(config)
        elif parsed_args.command == "fetch":
            selector = parsed_args.select
            result = fetch_field(
                config,
                parsed_args.field,
                selector=selector[0] if selector and len(selector) == 1 else selector,
                timeout_seconds=parsed_args.timeout,
                variables=variables,
            )
            print(json.dumps(result, indent=2, sort_keys=False))  # noqa: T201
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Invalid configuration")
        sys.exit(2)
    except Exception:
        log.exception("Field resolution failed")
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
