#!/usr/bin/env python3
"""Secretly - a secrets manager for linux users.

    secretly create my-secret
    secretly list
    secretly describe my-secret
    secretly grab my-secret
    secretly reveal my-secret
"""

import argparse
import asyncio
import sys
from datetime import datetime, timezone

from loguru import logger

from . import __version__
from .config import APP_NAME, get_log_level
from .errors import SecretlyError
from .prompt import prompt_secret
from .render import FORMATS, render_secret, render_secrets
from .vault import Vault


def configure_logging(level=None):
    """Send log records to stderr at SECRETLY_LOG level (default WARNING)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level or get_log_level(),
        format="<level>{level: <8}</level> | <cyan>{name}</cyan> | {message}",
    )
    logger.enable(APP_NAME)


def parse_datetime(value):
    """Parse an ISO-8601 timestamp for --expires-at, assuming UTC if naive."""
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid ISO-8601 datetime: {value!r}")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


async def cmd_create(vault, args):
    """Create a new secret."""
    value = prompt_secret("Enter secret > ")
    await vault.create_secret(
        args.name,
        value,
        description=args.description,
        frozen=args.frozen,
        expires_at=args.expires_at,
    )


async def cmd_list(vault, args):
    """List all secrets."""
    secrets = await vault.list_secrets()
    print(render_secrets(secrets, args.format))


async def cmd_describe(vault, args):
    """Describe a single secret."""
    secret = await vault.describe_secret(args.name)
    print(render_secret(secret, args.format))


async def cmd_grab(vault, args):
    """Copy a secret's value to the clipboard."""
    await vault.decrypt_and_copy_secret(args.name)
    print(f"Secret '{args.name}' copied to clipboard!")


async def cmd_reveal(vault, args):
    """Print a secret's value to stdout."""
    value = await vault.decrypt_secret(args.name)
    print(value.expose_secret())


COMMANDS = {
    'create': cmd_create,
    'list': cmd_list,
    'describe': cmd_describe,
    'grab': cmd_grab,
    'reveal': cmd_reveal,
}


async def run(args):
    """Open the vault, run one command and close the vault."""
    async with await Vault.init(args.vault) as vault:
        await COMMANDS[args.command](vault, args)


def build_parser():
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="Secretly - a secrets manager for linux users"
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f"%(prog)s {__version__}"
    )
    parser.add_argument('--vault', help='Path to vault file (default: ~/.secretly.db)')
    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # create
    create_parser = subparsers.add_parser('create', help='Create a new secret')
    create_parser.add_argument('name', help='The (unique) name of the secret')
    create_parser.add_argument('-d', '--description', help='A brief description of the secret')
    create_parser.add_argument('-f', '--frozen', action='store_true', help='Mark the secret as immutable')
    create_parser.add_argument('-e', '--expires-at', type=parse_datetime,
                               help='The expiry of the secret (ISO-8601, UTC if no offset)')

    # list
    list_parser = subparsers.add_parser('list', help='List all secrets')
    list_parser.add_argument('--format', choices=FORMATS, default='json', help='Output format (default: json)')

    # describe
    describe_parser = subparsers.add_parser(
        'describe',
        help='Describe a single secret (the value is redacted)'
    )
    describe_parser.add_argument('name', help='Name of the secret to describe')
    describe_parser.add_argument('--format', choices=FORMATS, default='json', help='Output format (default: json)')

    # grab
    grab_parser = subparsers.add_parser('grab', help="Copy a secret's value to the system clipboard")
    grab_parser.add_argument('name', help='Name of the secret to copy')

    # reveal
    reveal_parser = subparsers.add_parser('reveal', help="Print a secret's value as plaintext to stdout")
    reveal_parser.add_argument('name', help='Name of the secret to reveal')

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging()

    try:
        asyncio.run(run(args))
    except SecretlyError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except (KeyboardInterrupt, EOFError):
        print("\nAborted.", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
