"""Command-line interface for Burrow."""

from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .client import Client, validate_name
from .config import Config, load_config
from .errors import BurrowError
from .models import User
from .utils.logging import configure_logging

SPINNER = "dots"
JOINED_FORMAT = "%d %b %Y"


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: Config
    console: Console


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="burrow",
        description="Manage your Burrow account identity and keys over SSH.",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=None,
        help="Path to a .env file with BURROW_* settings.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("id", help="Print your account ID")

    jwt_parser = subparsers.add_parser("jwt", help="Issue a JSON web token")
    jwt_parser.add_argument("audience", nargs="*", help="Token audience(s)")

    keys_parser = subparsers.add_parser("keys", help="List keys linked to your account")
    keys_parser.add_argument(
        "--json", action="store_true", dest="as_json",
        help="Print keys with metadata as JSON",
    )

    link_parser = subparsers.add_parser("link", help="Link a public key to your account")
    link_parser.add_argument("keyfile", help="Path to an authorized_keys style public key")

    unlink_parser = subparsers.add_parser("unlink", help="Unlink a key from your account")
    unlink_parser.add_argument("key", help="Key text, e.g. 'ssh-ed25519 AAAA...'")

    subparsers.add_parser("bio", help="Print your profile as JSON")

    name_parser = subparsers.add_parser("set-name", help="Set your username")
    name_parser.add_argument("name", help="1-50 letters or digits")

    subparsers.add_parser("info", help="Show your account info")
    return parser


def render_user(user: User) -> Table:
    """Username / Joined key-value view of an account."""
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="right", style="bold")
    table.add_column()
    if user.name:
        username = Text(user.name)
    else:
        username = Text("(none set)", style="color(241)")
    joined = user.created_at.strftime(JOINED_FORMAT) if user.created_at else "-"
    table.add_row("Username", username)
    table.add_row("Joined", joined)
    return table


def _read_public_key(keyfile: str) -> str:
    text = Path(keyfile).expanduser().read_text(encoding="utf-8").strip()
    # Drop a trailing comment; the server stores "<type> <base64>" only.
    return " ".join(text.split()[:2])


def dispatch_command(args: argparse.Namespace, context: CLIContext) -> int:
    console = context.console
    if args.command == "set-name":
        if not validate_name(args.name):
            console.print("error: names must be 1-50 letters or digits")
            return 1

    with Client(context.config) as client:
        if args.command == "id":
            console.print(client.id(), markup=False)
        elif args.command == "jwt":
            console.print(client.jwt(*args.audience), markup=False)
        elif args.command == "keys":
            if args.as_json:
                keys = client.authorized_keys_with_metadata()
                payload = {
                    "active_key": keys.active_key,
                    "keys": [record.to_payload() for record in keys],
                }
                console.print_json(json.dumps(payload))
            else:
                console.print(client.authorized_keys(), markup=False, end="")
        elif args.command == "link":
            client.link_key(_read_public_key(args.keyfile))
            console.print("Key linked.")
        elif args.command == "unlink":
            client.unlink_key(args.key)
            console.print("Key unlinked.")
        elif args.command == "bio":
            console.print_json(json.dumps(client.bio().to_payload()))
        elif args.command == "set-name":
            user = client.set_name(args.name)
            console.print(f"Username set to {user.name}.", markup=False)
        elif args.command == "info":
            with console.status("Authenticating...", spinner=SPINNER):
                user = client.bio()
            console.print(render_user(user))
        else:
            raise ValueError(f"Unsupported command: {args.command}")
    return 0


def run_cli(argv: Optional[list[str]] = None, console: Optional[Console] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    console = console or Console()
    try:
        config = load_config(args.env_file)
        configure_logging(config)
        return dispatch_command(args, CLIContext(config=config, console=console))
    except (BurrowError, OSError) as exc:
        console.print(f"error: {exc}", markup=False)
        return 1
