"""
DocArchive CLI — Server and archive management commands.

Commands:
- docarchive run         — Start the Reflex dev server
- docarchive check       — Validate docarchive.yaml
- docarchive categories  — List categories and their offices
- docarchive metrics     — Show dashboard metrics
- docarchive export      — Export filtered documents to a CSV file
- docarchive users       — List / add / update / delete users (admin)

Commands that talk to the backend sign in first: --username selects the
account, the password is prompted (or read from DOCARCHIVE_PASSWORD).
"""

from __future__ import annotations

import argparse
import asyncio
import getpass
import logging
import os
import sys
from pathlib import Path
from typing import Awaitable, Callable, Optional

from docarchive.engine.errors import DocArchiveError

logger = logging.getLogger("docarchive.cli")

PASSWORD_ENV = "DOCARCHIVE_PASSWORD"


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="docarchive",
        description="DocArchive — Document management front end",
    )
    parser.add_argument(
        "--config", default=None, help="Path to docarchive.yaml (default: auto-discover)"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # docarchive run
    run_parser = subparsers.add_parser("run", help="Start the Reflex dev server")
    run_parser.add_argument("--host", default="0.0.0.0", help="Backend host to bind (default: 0.0.0.0)")
    run_parser.add_argument("--port", type=int, default=3000, help="Frontend port (default: 3000)")
    run_parser.add_argument("--backend-port", type=int, default=8000, help="Backend port (default: 8000)")
    run_parser.add_argument("--env", choices=["dev", "prod"], default="dev", help="Environment (default: dev)")

    # docarchive check
    subparsers.add_parser("check", help="Validate docarchive.yaml")

    # docarchive categories
    cat_parser = subparsers.add_parser("categories", help="List categories and offices")
    _add_login_args(cat_parser)

    # docarchive metrics
    metrics_parser = subparsers.add_parser("metrics", help="Show dashboard metrics")
    _add_login_args(metrics_parser)

    # docarchive export
    export_parser = subparsers.add_parser("export", help="Export documents to CSV")
    _add_login_args(export_parser)
    export_parser.add_argument("--category", help="Category id")
    export_parser.add_argument("--office", help="Office id (requires --category)")
    export_parser.add_argument(
        "--direction", choices=["inward", "outward", "importantDocuments"], help="Direction"
    )
    export_parser.add_argument("--from", dest="start_date", help="Start date YYYY-MM-DD")
    export_parser.add_argument("--to", dest="end_date", help="End date YYYY-MM-DD")
    export_parser.add_argument("--search", help="Title / reference number substring")
    export_parser.add_argument("--output", "-o", help="Output file (default: documents_export_<ts>.csv)")

    # docarchive users
    users_parser = subparsers.add_parser("users", help="Manage users (admin)")
    _add_login_args(users_parser)
    users_parser.add_argument(
        "action", nargs="?", default="list", choices=["list", "add", "update", "delete"]
    )
    users_parser.add_argument("target", nargs="?", help="Username to add / update / delete")
    users_parser.add_argument("--role", choices=["supervisor", "admin"], help="Account role")

    args = parser.parse_args(argv)

    if args.command == "run":
        return cmd_run(args)
    elif args.command == "check":
        return cmd_check(args)
    elif args.command == "categories":
        return cmd_categories(args)
    elif args.command == "metrics":
        return cmd_metrics(args)
    elif args.command == "export":
        return cmd_export(args)
    elif args.command == "users":
        return cmd_users(args)
    else:
        parser.print_help()
        return 0


def _add_login_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--username", "-u", required=True, help="Account to sign in with")


# ---------------------------------------------------------------------------
# Session helpers
# ---------------------------------------------------------------------------

def _read_password(username: str) -> str:
    password = os.environ.get(PASSWORD_ENV)
    if password:
        return password
    return getpass.getpass(f"Password for {username}: ")


def _run_with_session(
    args: argparse.Namespace,
    command: Callable[..., Awaitable[int]],
    password: Optional[str] = None,
) -> int:
    """Load config, sign in, run command(session, args), always sign out."""
    from docarchive.engine.config import load_config
    from docarchive.engine.context import login

    try:
        config = load_config(args.config)
    except DocArchiveError as e:
        print(f"[ERROR] {e.message}")
        return 1

    if password is None:
        password = _read_password(args.username)

    async def _run() -> int:
        session = await login(config, args.username, password)
        try:
            return await command(session, args)
        finally:
            await session.aclose()

    try:
        return asyncio.run(_run())
    except DocArchiveError as e:
        print(f"[ERROR] {e.message}")
        return 1
    except KeyboardInterrupt:
        print("\nAborted.")
        return 1


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_run(args: argparse.Namespace) -> int:
    """Start the Reflex dev server."""
    import subprocess

    print("Starting DocArchive (Reflex) server...")
    try:
        cmd = [
            "reflex", "run",
            "--backend-host", args.host,
            "--frontend-port", str(args.port),
            "--backend-port", str(args.backend_port),
            "--env", args.env,
        ]
        result = subprocess.run(cmd, check=True)
        return result.returncode
    except FileNotFoundError:
        print("[ERROR] 'reflex' command not found. Install: pip install reflex")
        return 1
    except subprocess.CalledProcessError as e:
        print(f"[ERROR] Server exited with code {e.returncode}")
        return 1
    except KeyboardInterrupt:
        print("\nServer stopped.")
        return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Validate docarchive.yaml and print the effective settings."""
    from docarchive.engine.config import load_config

    try:
        config = load_config(args.config)
    except DocArchiveError as e:
        print(f"[ERROR] {e.message}")
        for error in e.context.get("errors", []):
            location = ".".join(str(part) for part in error.get("loc", ()))
            print(f"  - {location}: {error.get('msg')}")
        return 1

    print("[OK] Configuration valid")
    print(f"  app:       {config.app.name} ({config.app.environment})")
    print(f"  backend:   {config.backend.url}")
    print(f"  role check: {config.auth.role_check_timeout_seconds}s timeout, "
          f"{config.auth.role_check_retries} retries")
    print(f"  documents: page size {config.documents.page_size}, "
          f"max upload {config.documents.max_upload_size_mb} MB")
    print(f"  cache:     {config.cache.stale_time_seconds}s stale time")
    print(f"  logging:   {config.logging.level} → {config.logging.directory}")
    return 0


def cmd_categories(args: argparse.Namespace) -> int:
    """List categories with their offices."""

    async def _categories(session, args) -> int:
        await session.require_role()
        categories = await session.documents.categories()
        if not categories:
            print("No categories configured.")
            return 0
        for category in categories:
            print(f"{category.id}  {category.name}")
            for office in category.offices:
                print(f"    {office.id}  {office.name}")
        return 0

    return _run_with_session(args, _categories)


def cmd_metrics(args: argparse.Namespace) -> int:
    """Show the dashboard metrics."""

    async def _metrics(session, args) -> int:
        await session.require_role()
        metrics = await session.documents.dashboard_metrics()
        print(f"Total documents:     {metrics.total_documents}")
        print(f"Inward:              {metrics.inward_documents}")
        print(f"Outward:             {metrics.outward_documents}")
        print(f"Important:           {metrics.important_documents}")
        print(f"Distinct uploaders:  {metrics.unique_user_count}")
        return 0

    return _run_with_session(args, _metrics)


def cmd_export(args: argparse.Namespace) -> int:
    """Fetch with server-side filters, refine by search, write CSV."""
    from docarchive.documents.export import export_documents_csv, export_filename
    from docarchive.documents.models import Direction
    from docarchive.documents.query import DocumentFilters, refine
    from docarchive.utilities.dates import parse_date

    try:
        start_date = parse_date(args.start_date)
        end_date = parse_date(args.end_date)
    except ValueError:
        print("[ERROR] Dates must be in YYYY-MM-DD format")
        return 1

    async def _export(session, args) -> int:
        await session.require_role()
        taxonomy = await session.documents.taxonomy()
        if args.category and taxonomy.category(args.category) is None:
            print(f"[ERROR] Unknown category: {args.category}")
            return 1
        office = taxonomy.clear_if_invalid(args.category, args.office)
        if args.office and office is None:
            print(f"[WARN] Office '{args.office}' is not in category '{args.category}'; ignored")

        filters = DocumentFilters(
            category_id=args.category,
            office_id=office,
            direction=Direction(args.direction) if args.direction else None,
            start_date=start_date,
            end_date=end_date,
        )
        documents = refine(await session.documents.list_documents(filters), args.search)
        output = Path(args.output or export_filename())
        output.write_text(export_documents_csv(documents, taxonomy), encoding="utf-8")
        print(f"[OK] Exported {len(documents)} document(s) to {output}")
        return 0

    return _run_with_session(args, _export)


def cmd_users(args: argparse.Namespace) -> int:
    """List, add, update or delete user accounts (admin only)."""
    from docarchive.documents.models import AccountRole
    from docarchive.security.permissions import ADMIN_ONLY

    if args.action != "list" and not args.target:
        print(f"[ERROR] 'users {args.action}' needs a username")
        return 1

    # Prompt for both passwords before the event loop starts
    password = _read_password(args.username)
    new_password = None
    if args.action == "add" or (args.action == "update" and args.role is None):
        new_password = getpass.getpass(f"New password for {args.target}: ")

    async def _users(session, args) -> int:
        await session.require_role(ADMIN_ONLY)
        if args.action == "list":
            for user in await session.users.list_users():
                print(f"{user.username:<24} {user.role.value}")
        elif args.action == "add":
            await session.users.create_user(
                args.target, new_password, AccountRole(args.role or "supervisor")
            )
            print(f"[OK] Created user {args.target}")
        elif args.action == "update":
            await session.users.update_user(
                args.target,
                password=new_password,
                role=AccountRole(args.role) if args.role else None,
            )
            print(f"[OK] Updated user {args.target}")
        elif args.action == "delete":
            await session.users.delete_user(args.target)
            print(f"[OK] Deleted user {args.target}")
        return 0

    return _run_with_session(args, _users, password=password)


if __name__ == "__main__":
    sys.exit(main())
