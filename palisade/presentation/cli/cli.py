"""
CLI Module

Architectural Intent:
- Command-line interface for Palisade
- Delegates to application use cases via composition root
- Prints JSON reports to stdout; logs go to stderr
- Supports --verbose/--debug flags for log level control
"""

import argparse
import asyncio
import json
import logging
import sys
import traceback
from dataclasses import replace
from typing import Any, Optional

from palisade.application.dtos.security_policy_dtos import (
    ApplySecurityPoliciesRequest,
    CalcSecurityPoliciesRequest,
)
from palisade.composition_root import PalisadeContainer, create_container
from palisade.domain.exceptions import PalisadeError, ValidationError
from palisade.infrastructure.config import load_config
from palisade.infrastructure.logging import configure_logging


def _split(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [v.strip() for v in value.split(",") if v.strip()]


def _read_json(path: str) -> dict[str, Any]:
    if path == "-":
        return json.load(sys.stdin)
    with open(path) as f:
        return json.load(f)


def _print_report(report: dict[str, Any]) -> None:
    print(json.dumps(report, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Palisade: security group policy engine for cloud resources"
    )
    parser.add_argument("--config", "-c", help="Path to palisade.json")
    parser.add_argument(
        "--inventory", help="Inventory JSON seeding the simulated provider"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Write logs to stderr as JSON lines"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    calc_parser = subparsers.add_parser(
        "calc", help="Compute security policies for a traffic rule"
    )
    calc_parser.add_argument(
        "--request", "-r", help="Request JSON file ('-' for stdin); overrides flags"
    )
    calc_parser.add_argument("--protocol", default="TCP", help="TCP, UDP, ICMP, ...")
    calc_parser.add_argument("--source-ips", help="Comma-separated source IPs")
    calc_parser.add_argument("--dest-ips", help="Comma-separated destination IPs")
    calc_parser.add_argument("--dest-port", default="ALL", help="Port spec")
    calc_parser.add_argument(
        "--action", default="accept", choices=["accept", "drop"], help="Policy action"
    )
    calc_parser.add_argument(
        "--directions",
        default="ingress",
        help="Comma-separated directions (ingress, egress)",
    )
    calc_parser.add_argument("--description", default="", help="Policy description")

    apply_parser = subparsers.add_parser(
        "apply", help="Apply calculated policies to security groups"
    )
    apply_parser.add_argument(
        "--request",
        "-r",
        required=True,
        help="JSON with ingress_policies/egress_policies ('-' for stdin)",
    )

    subparsers.add_parser("types", help="List registered resource kinds")
    subparsers.add_parser("mcp", help="Serve the MCP action server over stdio")

    return parser


def _calc_request(args: argparse.Namespace) -> CalcSecurityPoliciesRequest:
    if args.request:
        return CalcSecurityPoliciesRequest.from_dict(_read_json(args.request))
    return CalcSecurityPoliciesRequest(
        protocol=args.protocol,
        source_ips=_split(args.source_ips),
        dest_ips=_split(args.dest_ips),
        dest_port=args.dest_port,
        policy_action=args.action,
        policy_directions=_split(args.directions),
        description=args.description,
    )


async def _run_command(container: PalisadeContainer, args: argparse.Namespace) -> int:
    if args.command == "types":
        _print_report(
            {
                "resource_types": [
                    {
                        "kind": rt.kind,
                        "is_load_balancer": rt.is_load_balancer,
                        "supports_egress_policy": rt.supports_egress_policy,
                        "supports_security_group_api": rt.supports_security_group_api,
                    }
                    for rt in container.registry.all()
                ]
            }
        )
        return 0

    if args.command == "calc":
        response = await container.calculate.execute(_calc_request(args))
        _print_report(response.to_dict())
        return 1 if response.error else 0

    if args.command == "apply":
        request = ApplySecurityPoliciesRequest.from_dict(_read_json(args.request))
        response = await container.apply.execute(request)
        _print_report(response.to_dict())
        return 1 if response.error else 0

    if args.command == "mcp":
        from palisade.infrastructure.mcp_servers import create_palisade_server, run_stdio

        server = create_palisade_server(
            container.calculate, container.apply, container.registry
        )
        await run_stdio(server)
        return 0

    return 2


async def async_main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.debug:
        configure_logging(level=logging.DEBUG, json_format=args.json_logs)
    elif args.verbose:
        configure_logging(level=logging.INFO, json_format=args.json_logs)
    else:
        configure_logging(level=logging.WARNING, json_format=args.json_logs)

    verbose = args.verbose or args.debug

    if args.command is None:
        parser.print_help()
        return 2

    try:
        config = load_config(args.config)
        if args.inventory:
            config = replace(
                config, cloud=replace(config.cloud, inventory_path=args.inventory)
            )
        container = create_container(config)
    except (OSError, ValueError) as e:
        print(f"[-] Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if not verbose:
        configure_logging(level=config.log_level, json_format=args.json_logs)

    await container.telemetry.initialize()
    try:
        return await _run_command(container, args)
    except ValidationError as e:
        print(f"[-] Invalid request: {e}", file=sys.stderr)
        return 1
    except (OSError, json.JSONDecodeError) as e:
        print(f"[-] Cannot read request: {e}", file=sys.stderr)
        return 1
    except PalisadeError as e:
        print(f"[-] {args.command} failed: {e}", file=sys.stderr)
        if verbose:
            traceback.print_exc()
        return 1
    finally:
        await container.telemetry.export()


def main():
    sys.exit(asyncio.run(async_main()))


if __name__ == "__main__":
    main()
