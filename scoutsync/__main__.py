"""CLI entry point for ScoutSync."""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

from .config import Config, load_config
from .errors import ScoutSyncError
from .remote import RemoteClient, ScoutingApi
from .store import LocalStore
from .sync import SyncOrchestrator, SyncStatus

LOG_LEVELS = {
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
}

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JSONFormatter(logging.Formatter):
    """One JSON object per line, timestamps in UTC."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _build_handler(json_output: bool) -> logging.Handler:
    handler = logging.StreamHandler()
    if json_output:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(verbose: bool = False, log_level: str | None = None, json_output: bool = False) -> None:
    """Configure root logging for the CLI.

    ``log_level`` wins over ``verbose``; an unknown name falls back to info.
    """
    if log_level:
        level = LOG_LEVELS.get(log_level, logging.INFO)
    else:
        level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(level=level, handlers=[_build_handler(json_output)], force=True)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_orchestrator(config: Config) -> tuple[LocalStore, RemoteClient, SyncOrchestrator]:
    """Wire the store, remote client and orchestrator from configuration."""
    store = LocalStore(config.store.db_path)
    store.connect()

    client = RemoteClient(
        config.remote.base_url,
        api_token=config.remote.api_token,
        read_timeout=config.remote.read_timeout_seconds,
    )
    api = ScoutingApi(client, mutation_timeout=config.remote.mutation_timeout_seconds)

    return store, client, SyncOrchestrator(store, api, config=config.sync)


def _print_counts(title: str, counts: dict[str, dict[str, int]]) -> None:
    print(title)
    for name, values in counts.items():
        summary = ", ".join(f"{key}={value}" for key, value in values.items() if value)
        print(f"  {name}: {summary or 'unchanged'}")


async def cmd_sync(args: argparse.Namespace) -> int:
    """Run a full sync."""
    config = load_config(args.config)
    store, client, orchestrator = build_orchestrator(config)

    try:
        result = await orchestrator.run_full_sync()
    except ScoutSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()
        store.close()

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(f"Sync {result.status.value}: event={result.context.event_code}, "
              f"organization={result.context.organization_id}")
        _print_counts(
            "Pulled:", {name: counts.to_dict() for name, counts in result.pull.passes.items()}
        )
        print(f"Pushed: sent={result.push.sent}, still_pending={result.push.still_pending}, "
              f"discarded={result.push.discarded}")
        for error in result.errors:
            print(f"  ! {error}")

    return 0 if result.status == SyncStatus.SUCCESS else 1


async def cmd_pull(args: argparse.Namespace) -> int:
    """Reconcile the active scope without pushing."""
    config = load_config(args.config)
    store, client, orchestrator = build_orchestrator(config)

    try:
        scope = orchestrator.registry.require_scope()
        report = await orchestrator.reconcile_scope(scope, full=args.full)
    except ScoutSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()
        store.close()

    _print_counts("Pulled:", {name: counts.to_dict() for name, counts in report.passes.items()})
    if report.error:
        print(f"Pull stopped at {report.failed_pass}: {report.error}", file=sys.stderr)
        return 1

    return 0


async def cmd_push(args: argparse.Namespace) -> int:
    """Dispatch pending records for the active event."""
    config = load_config(args.config)
    store, client, orchestrator = build_orchestrator(config)

    try:
        scope = orchestrator.registry.require_scope()
        report = await orchestrator.dispatch_pending(scope)
    except ScoutSyncError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        await client.close()
        store.close()

    for name, result in report.channels.items():
        print(f"{name}: sent={result.sent}, still_pending={result.still_pending}, "
              f"discarded={result.discarded}")
    for name, error in report.errors.items():
        print(f"{name}: failed: {error}", file=sys.stderr)

    return 0 if report.ok else 1


async def cmd_status(args: argparse.Namespace) -> int:
    """Show the active context and pending outbox counts."""
    config = load_config(args.config)
    store, client, orchestrator = build_orchestrator(config)

    try:
        status_data = {
            "timestamp": datetime.now().isoformat(),
            "remote_url": config.remote.base_url,
            "db_path": config.store.db_path,
            **orchestrator.get_sync_status(),
            "row_counts": store.get_stats()["row_counts"],
        }
    finally:
        await client.close()
        store.close()

    if args.json:
        print(json.dumps(status_data, indent=2))
        return 0

    print(f"Remote: {status_data['remote_url']}")
    print(f"Database: {status_data['db_path']}")
    print(f"Organization: {status_data['organization_id'] or '(none)'}")
    print(f"Event: {status_data['event_code'] or '(none)'}")
    print("Pending:")
    for channel, count in status_data["pending"].items():
        print(f"  {channel}: {count}")

    return 0


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        prog="scoutsync",
        description="Offline-first sync engine for competition scouting data",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to config file",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        choices=list(LOG_LEVELS),
        default=None,
        help="Set log level explicitly (overrides -v/--verbose)",
    )
    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Output logs as JSON for machine parsing",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Sync command
    sync_parser = subparsers.add_parser("sync", help="Refresh assignment, pull and push")
    sync_parser.add_argument(
        "--json",
        action="store_true",
        help="Output the result as JSON",
    )
    sync_parser.set_defaults(func=cmd_sync)

    # Pull command
    pull_parser = subparsers.add_parser("pull", help="Reconcile the active scope")
    pull_parser.add_argument(
        "--full",
        action="store_true",
        help="Also refresh the team and event lists",
    )
    pull_parser.set_defaults(func=cmd_pull)

    # Push command
    push_parser = subparsers.add_parser("push", help="Submit pending records")
    push_parser.set_defaults(func=cmd_push)

    # Status command
    status_parser = subparsers.add_parser("status", help="Show active context and pending counts")
    status_parser.add_argument(
        "--json",
        action="store_true",
        help="Output status as JSON",
    )
    status_parser.set_defaults(func=cmd_status)

    args = parser.parse_args()

    setup_logging(args.verbose, args.log_level, args.json_logs)

    if not args.command:
        parser.print_help()
        return 1

    return asyncio.run(args.func(args))


if __name__ == "__main__":
    sys.exit(main())
