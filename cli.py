"""CLI entry point for code-grant-server.

Commands:
  serve     Run the authorization server (default)
  clients   List the registered clients
  secret    Print a freshly generated SECRET_KEY value
  version   Show version
"""
import argparse
import secrets
import sys
from pathlib import Path

import uvicorn

from config import load_settings
from logging_config import setup_logging
from main import VERSION, create_app
from oauth.clients import ClientRegistry


def cmd_serve(args) -> int:
    """Run the server in the foreground."""
    settings = load_settings(Path(args.env_file) if args.env_file else None)
    if args.host:
        settings.data["HOST"] = args.host
    if args.port:
        settings.data["PORT"] = str(args.port)

    setup_logging(level=settings.log_level, log_format=settings.log_format)

    try:
        app = create_app(settings)
    except (OSError, ValueError) as e:
        print(f"\n[ERROR] Could not start server: {e}", file=sys.stderr)
        return 1

    print("\n" + "=" * 60)
    print("  Code Grant Server")
    print("=" * 60)
    print(f"  Issuer:    {settings.issuer}")
    print(f"  Authorize: {settings.issuer}/authorize")
    print(f"  Token:     {settings.issuer}/token")
    print("=" * 60 + "\n")

    uvicorn.run(app, host=settings.host, port=settings.port)
    return 0


def cmd_clients(args) -> int:
    """Print the clients the server would register at startup."""
    settings = load_settings(Path(args.env_file) if args.env_file else None)
    try:
        registry = ClientRegistry.from_settings(settings)
    except (OSError, ValueError) as e:
        print(f"[ERROR] Could not load clients: {e}", file=sys.stderr)
        return 1

    if not len(registry):
        print("No clients registered (set CLIENTS_FILE).")
        return 0

    for client in registry:
        print(f"{client.client_id:<24} {client.redirect_uri}  {client.name}")
    return 0


def cmd_secret(args) -> int:
    print(secrets.token_urlsafe(64))
    return 0


def cmd_version(args) -> int:
    print(f"code-grant-server {VERSION}")
    return 0


COMMANDS = {
    "serve": cmd_serve,
    "clients": cmd_clients,
    "secret": cmd_secret,
    "version": cmd_version,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="code-grant-server",
        description="OAuth2 Authorization Code Grant server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  code-grant-server serve --port 8000
  code-grant-server clients
  echo "SECRET_KEY=$(code-grant-server secret)" >> .env
"""
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=sorted(COMMANDS),
        help="Command to run (default: serve)"
    )
    parser.add_argument("--env-file", help="Path to a .env file (default: ./.env)")
    parser.add_argument("--host", help="Bind address (overrides HOST)")
    parser.add_argument("--port", type=int, help="Bind port (overrides PORT)")
    return parser


def main(argv=None) -> int:
    """Main entry point for CLI."""
    args = build_parser().parse_args(argv)
    return COMMANDS[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
