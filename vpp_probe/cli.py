"""Argument parsing, configuration loading and command dispatch."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from . import version
from .client import Client
from .config import AppConfig, DockerConfig, KubeConfig, LocalConfig, default_config, load_config
from .exceptions import ConfigError, NoInstancesError, ProbeError
from .logging_config import configure_logging
from .providers import DOCKER, ENVS, KUBE, LOCAL

logger = logging.getLogger(__name__)

_ENV_SECTIONS = {
    DOCKER: DockerConfig,
    KUBE: KubeConfig,
    LOCAL: LocalConfig,
}


def parse_query(value: str) -> dict[str, str]:
    """Parse ``key=value;key=value`` into one filter mapping."""
    query: dict[str, str] = {}
    for pair in value.split(";"):
        pair = pair.strip()
        if not pair:
            continue
        key, sep, val = pair.partition("=")
        if not sep or not key.strip():
            raise argparse.ArgumentTypeError(f"invalid query {pair!r}, expected key=value")
        query[key.strip()] = val.strip()
    return query


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vpp-probe",
        description="Discover and inspect VPP instances in Docker, Kubernetes and on the local host",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "-e", "--env",
        action="append",
        choices=ENVS,
        help="Environment to search (repeatable; default: all enabled in config)",
    )
    parser.add_argument(
        "--log-level",
        help="Override logging.level (DEBUG, INFO, WARNING, ...)",
    )
    parser.add_argument(
        "--log-format",
        choices=("json", "text"),
        help="Override logging.format",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    discover = sub.add_parser("discover", help="Discover running VPP instances")
    discover.add_argument(
        "query",
        nargs="*",
        type=parse_query,
        help="Filter as key=value pairs separated by ';' (each argument is one filter)",
    )

    exec_ = sub.add_parser("exec", help="Run a VPP CLI command on every discovered instance")
    exec_.add_argument("cli_command", help="VPP CLI command, e.g. 'show interface'")
    exec_.add_argument("query", nargs="*", type=parse_query, help="Filters, as for discover")

    ver = sub.add_parser("version", help="Print version info")
    ver.add_argument("-s", "--short", action="store_true", help="Prints version info in short format")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "version":
        print(version.short() if args.short else version.verbose())
        return 0

    try:
        config = load_config(args.config) if args.config else default_config()
        config = _apply_overrides(config, args)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    configure_logging(config.logging)

    client = Client.from_config(config, envs=args.env)
    try:
        client.discover_instances(*args.query)
        if args.command == "discover":
            return _print_instances(client)
        return _exec_all(client, args.cli_command)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1
    except NoInstancesError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        for failure in client.failures:
            print(f"  {failure}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0
    finally:
        client.close()


def _apply_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    changes = {}
    for env in args.env or ():
        section = getattr(config, env)
        if section is None or not section.enabled:
            changes[env] = _ENV_SECTIONS[env](enabled=True)
    if args.log_level or args.log_format:
        changes["logging"] = dataclasses.replace(
            config.logging,
            level=args.log_level or config.logging.level,
            format=args.log_format or config.logging.format,
        )
    return dataclasses.replace(config, **changes) if changes else config


def _print_instances(client: Client) -> int:
    instances = client.instances
    print(f"Discovered {len(instances)} instance(s)")
    for inst in instances:
        meta = " ".join(f"{k}={v}" for k, v in inst.metadata.items() if v)
        print(f" - {inst.id}  {meta}")
        print(f"   {inst.version}")
    if client.failures:
        print(f"Skipped {len(client.failures)}:")
        for failure in client.failures:
            print(f" ! {failure}")
    return 0


def _exec_all(client: Client, cli_command: str) -> int:
    rc = 0
    for inst in client.instances:
        print(f"== {inst.id}")
        try:
            out = inst.run_cli(cli_command)
        except ProbeError as exc:
            print(f"   error: {exc}")
            rc = 1
            continue
        for line in out.rstrip().splitlines():
            print(f"   {line}")
    return rc
