"""CLI for managing stage environment variables outside a host deployment tool."""

from __future__ import annotations

import argparse
import json
import logging
import subprocess
from pathlib import Path

from pydantic import ValidationError

from .config import load_host_config
from .errors import StageEnvError
from .lifecycle import Action, EnvLifecycle, EnvOptions
from .logging_utils import configure_logging
from .resolver import EnvResolver

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    base = argparse.ArgumentParser(add_help=False)
    base.add_argument("--config", type=Path, default=Path("serverless.yml"), help="Path to the service YAML")
    base.add_argument("--stage", "-s", default=None, help="Stage to operate on (defaults to provider.stage)")
    base.add_argument("--region", "-r", default=None)
    base.add_argument("--profile", default=None, help="Named AWS credentials profile")
    base.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
    )
    base.add_argument("--log-path", default=None, help="Also write log records to this file")

    parser = argparse.ArgumentParser(prog="stage-env", description="Per-stage environment variables")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", parents=[base], help="List variables of the stage")
    list_parser.add_argument("--attribute", "-a", default=None, help="Only show this attribute")
    list_parser.add_argument("--decrypt", "-d", action="store_true", help="Decrypt encrypted values")

    set_parser = subparsers.add_parser("set", parents=[base], help="Set a variable in the first env file")
    set_parser.add_argument("--attribute", "-a", required=True)
    set_parser.add_argument("--value", "-v", required=True)
    set_parser.add_argument("--encrypt", "-e", action="store_true", help="Store the value KMS-encrypted")

    materialize_parser = subparsers.add_parser(
        "materialize", parents=[base], help="Write the .env file, optionally around a command"
    )
    materialize_parser.add_argument("--keep", action="store_true", help="Keep the .env file after the command")
    materialize_parser.add_argument("run", nargs=argparse.REMAINDER, help="Command to run while .env exists")

    subparsers.add_parser("integrate", parents=[base], help="Print the provider environment merged with YAML values")

    return parser.parse_args(argv)


def _run(args: argparse.Namespace) -> int:
    host = load_host_config(args.config)
    config = host.resolver_config(stage=args.stage, region=args.region, profile=args.profile)
    lifecycle = EnvLifecycle(
        config,
        resolver=EnvResolver(),
        provider_env=host.provider_environment(),
        console=print,
    )

    if args.command == "list":
        lifecycle.dispatch(Action.LIST, EnvOptions(attribute=args.attribute, decrypt=args.decrypt))
        return 0
    if args.command == "set":
        lifecycle.dispatch(
            Action.SET,
            EnvOptions(attribute=args.attribute, value=args.value, encrypt=args.encrypt),
        )
        return 0
    if args.command == "integrate":
        merged = lifecycle.dispatch(Action.INTEGRATE)
        print(json.dumps(merged, indent=2, ensure_ascii=False))
        return 0

    command = list(args.run)
    if command and command[0] == "--":
        command = command[1:]
    # Without a command the file is the deliverable and stays on disk.
    keep = args.keep or not command
    lifecycle.dispatch(Action.MATERIALIZE, EnvOptions(keep=keep))
    try:
        if not command:
            return 0
        logger.info("Running %s", " ".join(command))
        return subprocess.run(command, check=False).returncode
    finally:
        lifecycle.dispatch(Action.CLEANUP)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(level=getattr(logging, args.log_level), log_path=args.log_path)
    try:
        return _run(args)
    except (StageEnvError, OSError, ValidationError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
