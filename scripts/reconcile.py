"""Command-line helper for importing, creating and deleting Bitwarden groups and members.

This module serves as a CLI wrapper around bwsync.core.reconciler.
"""
from __future__ import annotations
import argparse
import dataclasses
import json
import logging
import os
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from bwsync.config.settings import DEFAULT_API_URL, DEFAULT_AUTH_URL, load_settings
from bwsync.core.bitwarden import (
    BitwardenError,
    Group,
    Member,
    MemberType,
    NotFoundError,
    create_client,
)
from bwsync.core.reconciler import group_engine, member_engine


def _emit(resource) -> None:
    """Print a tracked resource as JSON on stdout."""
    output = {
        "type": resource.resource_type,
        "state": resource.state.value,
        "last_updated": resource.last_updated,
        "record": dataclasses.asdict(resource.record) if resource.record is not None else None,
    }
    print(json.dumps(output, indent=2, sort_keys=True))


def _member_type(value: str) -> MemberType:
    """Accept a member type by name (user, admin, ...) or number (0-4)."""
    if value.isdigit():
        try:
            return MemberType(int(value))
        except ValueError:
            pass
    else:
        try:
            return MemberType[value.upper()]
        except KeyError:
            pass
    choices = ", ".join(f"{t.name.lower()}={t.value}" for t in MemberType)
    raise argparse.ArgumentTypeError(f"invalid member type {value!r} (choose from {choices})")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Bitwarden organization reconcile helper")
    # Unset flags fall back to load_settings() (environment and /run/secrets)
    parser.add_argument("--api-url", help=f"API base URL (default: BITWARDEN_API_URL or {DEFAULT_API_URL})")
    parser.add_argument("--auth-url", help=f"Token endpoint (default: BITWARDEN_AUTHENTICATION_URL or {DEFAULT_AUTH_URL})")
    parser.add_argument("--client-id", help="Organization client id (default: BITWARDEN_CLIENT_ID)")
    parser.add_argument(
        "--client-secret",
        help="Organization client secret (default: /run/secrets/bitwarden_client_secret or BITWARDEN_CLIENT_SECRET)",
    )
    parser.add_argument("--timeout", type=float, help="Request timeout in seconds (default: BITWARDEN_REQUEST_TIMEOUT or 10)")
    parser.add_argument("--log-level", help="Logging level (default: BWSYNC_LOG_LEVEL or INFO)")

    sub = parser.add_subparsers(dest="cmd")

    ig = sub.add_parser("import-group", help="Attach an existing group and print it")
    ig.add_argument("id")

    im = sub.add_parser("import-member", help="Attach an existing member and print it")
    im.add_argument("id")

    cg = sub.add_parser("create-group")
    cg.add_argument("--name", required=True)
    cg.add_argument("--external-id", default="")
    cg.add_argument("--access-all", action="store_true")

    cm = sub.add_parser("create-member")
    cm.add_argument("--email", required=True)
    cm.add_argument("--type", type=_member_type, required=True, help="owner, admin, user, manager, custom or 0-4")
    cm.add_argument("--external-id", default="")
    cm.add_argument("--access-all", action="store_true")
    cm.add_argument("--reset-password-enrolled", action="store_true")

    dg = sub.add_parser("delete-group")
    dg.add_argument("id")

    dm = sub.add_parser("delete-member")
    dm.add_argument("id")

    return parser


def main() -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.cmd:
        parser.print_help()
        return

    log_level = args.log_level or os.environ.get("BWSYNC_LOG_LEVEL") or "INFO"
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = load_settings(
            client_id=args.client_id,
            client_secret=args.client_secret,
            api_url=args.api_url,
            auth_url=args.auth_url,
            request_timeout=args.timeout,
            log_level=args.log_level,
        )
    except RuntimeError as e:
        parser.error(str(e))
    client = create_client(config)

    try:
        if args.cmd == "import-group":
            engine = group_engine(client)
            resource = engine.track()
            engine.import_resource(resource, args.id)
        elif args.cmd == "import-member":
            engine = member_engine(client)
            resource = engine.track()
            engine.import_resource(resource, args.id)
        elif args.cmd == "create-group":
            engine = group_engine(client)
            resource = engine.track()
            engine.create(resource, Group(name=args.name, external_id=args.external_id, access_all=args.access_all))
        elif args.cmd == "create-member":
            engine = member_engine(client)
            resource = engine.track()
            engine.create(
                resource,
                Member(
                    email=args.email,
                    type=args.type,
                    external_id=args.external_id,
                    access_all=args.access_all,
                    reset_password_enrolled=args.reset_password_enrolled,
                ),
            )
        elif args.cmd in ("delete-group", "delete-member"):
            engine = group_engine(client) if args.cmd == "delete-group" else member_engine(client)
            resource = engine.track()
            # Import first so the delete runs from SYNCED; an id that is already
            # gone is reported the same way a successful delete is.
            try:
                engine.import_resource(resource, args.id)
            except NotFoundError:
                print(f"[{args.cmd}] {args.id} already absent", file=sys.stderr)
                return
            engine.delete(resource)
        else:
            parser.error(f"Unknown command {args.cmd}")
            return
    except (BitwardenError, ValueError) as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        sys.exit(1)

    _emit(resource)


if __name__ == "__main__":
    main()
