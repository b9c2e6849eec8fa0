"""rsk-attest CLI: run attestation tools from the command line.

Usage:
    rsk-attest tools
    rsk-attest create-schema --schema "string name,uint256 age"
    rsk-attest issue-attestation --recipient 0x... --schema 0x... --data 0x...
    rsk-attest verify-attestation --uid 0x...
    rsk-attest list-attestations --recipient 0x... --limit 5
    rsk-attest revoke-attestation --uid 0x... --network mainnet

Every tool command prints its result as JSON and exits 0 on success.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any, Optional

from rsk_attest import config as env_config
from rsk_attest.errors import AttestationError
from rsk_attest.logging_config import configure_logging
from rsk_attest.models.network import NetworkName
from rsk_attest.tools import ToolDispatcher, ToolResult, tool_definitions


def _issue_arguments(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "recipient": args.recipient,
        "schema": args.schema,
        "data": args.data,
        "expirationTime": args.expiration_time,
        "revocable": args.revocable,
        "refUID": args.ref_uid,
        "value": args.value,
    }


def _verify_arguments(args: argparse.Namespace) -> dict[str, Any]:
    return {"uid": args.uid}


def _list_arguments(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "recipient": args.recipient,
        "attester": args.attester,
        "schema": args.schema,
        "limit": args.limit,
    }


def _create_schema_arguments(args: argparse.Namespace) -> dict[str, Any]:
    return {
        "schema": args.schema,
        "resolverAddress": args.resolver,
        "revocable": args.revocable,
    }


def _revoke_arguments(args: argparse.Namespace) -> dict[str, Any]:
    return {"uid": args.uid}


TOOL_COMMANDS = {
    "issue-attestation": _issue_arguments,
    "verify-attestation": _verify_arguments,
    "list-attestations": _list_arguments,
    "create-schema": _create_schema_arguments,
    "revoke-attestation": _revoke_arguments,
}


def cmd_tools(args: argparse.Namespace) -> int:
    print(json.dumps(tool_definitions(), indent=2))
    return 0


def cmd_tool(args: argparse.Namespace, dispatcher: ToolDispatcher) -> int:
    """Run one tool; unset options are left out so defaults apply."""
    arguments = {
        key: value
        for key, value in TOOL_COMMANDS[args.command](args).items()
        if value is not None
    }
    arguments["network"] = args.network
    result: ToolResult = asyncio.run(dispatcher.call(args.command, arguments))
    print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.success else 1


def _add_network(parser: argparse.ArgumentParser, default: str) -> None:
    parser.add_argument(
        "--network",
        default=default,
        choices=[n.value for n in NetworkName],
        help=f"Network to use (default: {default})",
    )


def build_parser(default_network: str = NetworkName.TESTNET.value) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rsk-attest",
        description="Rootstock Attestation Service tools",
    )
    parser.add_argument(
        "--log-level",
        help="Log level (default: RSK_ATTEST_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--env-file",
        help="Path to a .env file (default: ./.env)",
    )
    sub = parser.add_subparsers(dest="command")

    # tools
    sub.add_parser("tools", help="List tool definitions as JSON")

    # issue-attestation
    p_issue = sub.add_parser("issue-attestation", help="Issue a new attestation")
    _add_network(p_issue, default_network)
    p_issue.add_argument("--recipient", required=True, help="Recipient address (0x...)")
    p_issue.add_argument("--schema", required=True, help="Schema UID")
    p_issue.add_argument("--data", required=True, help="Encoded attestation data (0x...)")
    p_issue.add_argument(
        "--expiration-time", type=int, default=0,
        help="Unix expiration time (default: 0, never expires)",
    )
    p_issue.add_argument(
        "--non-revocable", dest="revocable", action="store_false",
        help="Issue an attestation that cannot be revoked",
    )
    p_issue.add_argument("--ref-uid", help="UID of a referenced attestation")
    p_issue.add_argument("--value", default="0", help="Value to send in wei (default: 0)")

    # verify-attestation
    p_verify = sub.add_parser("verify-attestation", help="Verify an attestation by UID")
    _add_network(p_verify, default_network)
    p_verify.add_argument("--uid", required=True, help="Attestation UID")

    # list-attestations
    p_list = sub.add_parser("list-attestations", help="List attestations with filters")
    _add_network(p_list, default_network)
    p_list.add_argument("--recipient", help="Filter by recipient address")
    p_list.add_argument("--attester", help="Filter by attester address")
    p_list.add_argument("--schema", help="Filter by schema UID")
    p_list.add_argument("--limit", type=int, default=10, help="Maximum results (default: 10)")

    # create-schema
    p_schema = sub.add_parser("create-schema", help="Register a new schema")
    _add_network(p_schema, default_network)
    p_schema.add_argument(
        "--schema", required=True, help='Schema definition, e.g. "string name,uint256 age"',
    )
    p_schema.add_argument("--resolver", help="Resolver contract address")
    p_schema.add_argument(
        "--non-revocable", dest="revocable", action="store_false",
        help="Attestations under this schema cannot be revoked",
    )

    # revoke-attestation
    p_revoke = sub.add_parser("revoke-attestation", help="Revoke an attestation")
    _add_network(p_revoke, default_network)
    p_revoke.add_argument("--uid", required=True, help="Attestation UID")

    return parser


def main(argv: list[str] | None = None, dispatcher: Optional[ToolDispatcher] = None) -> int:
    # .env must be loaded before the default network is read from it
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--env-file")
    known, _ = pre.parse_known_args(argv)
    env_config.load_environment(known.env_file)

    try:
        default_network = env_config.get_default_network().value
    except AttestationError as exc:
        print(f"Failed: {exc.message}", file=sys.stderr)
        return 1

    parser = build_parser(default_network)
    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command is None:
        parser.print_help()
        return 0
    if args.command == "tools":
        return cmd_tools(args)
    if args.command not in TOOL_COMMANDS:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return cmd_tool(args, dispatcher or ToolDispatcher())


if __name__ == "__main__":
    raise SystemExit(main())
