# src/main.py — v1
"""CLI entry point — scan, status, resync, clear commands.

Usage:
    fieldsync scan <manifest_id>
    fieldsync status <manifest_id>
    fieldsync resync
    fieldsync clear <manifest_id> --yes

``scan`` reads one code per line from stdin. Lines starting with ``:`` are
commands: ``:incomplete <comment>``, ``:submit``, ``:clear``, ``:quit``.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from fieldsync.version import __version__

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        from fieldsync.config.settings import load_settings

        settings = load_settings()
        _setup_logging(settings, args.verbose)
        return asyncio.run(args.func(args, settings))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as exc:
        logger.error("Fatal error: %s", exc, exc_info=args.verbose)
        return 1


def _build_parser() -> argparse.ArgumentParser:
    """Build CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="fieldsync",
        description=f"fieldsync v{__version__}: manifest scanning with offline sync",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(dest="command")

    # --- scan ---
    p_scan = subparsers.add_parser(
        "scan", help="Open a manifest and scan codes read from stdin",
    )
    p_scan.add_argument("manifest_id", type=int, help="Manifest number")
    p_scan.set_defaults(func=_cmd_scan)

    # --- status ---
    p_status = subparsers.add_parser(
        "status", help="Show local scan and submission state of a manifest",
    )
    p_status.add_argument("manifest_id", type=int, help="Manifest number")
    p_status.set_defaults(func=_cmd_status)

    # --- resync ---
    p_resync = subparsers.add_parser(
        "resync", help="Send submissions saved while offline",
    )
    p_resync.set_defaults(func=_cmd_resync)

    # --- clear ---
    p_clear = subparsers.add_parser(
        "clear", help="Delete the locally saved scans of a manifest",
    )
    p_clear.add_argument("manifest_id", type=int, help="Manifest number")
    p_clear.add_argument(
        "--yes", action="store_true",
        help="Confirm the deletion",
    )
    p_clear.set_defaults(func=_cmd_clear)

    return parser


async def _cmd_scan(args: argparse.Namespace, settings) -> int:
    """Interactive scanning loop over stdin."""
    from fieldsync.session.manifest_session import ManifestSession

    session = ManifestSession.from_settings(settings, on_notice=_print_notice)
    result = await session.open(args.manifest_id)
    _print_notice(result.notice)
    if not result.opened:
        return 1

    try:
        while True:
            line = await asyncio.to_thread(sys.stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            if not line.startswith(":"):
                scan = session.submit_code(line)
                _print_notice(scan.notice)
                continue

            command, _, rest = line[1:].partition(" ")
            if command == "quit":
                break
            if command == "clear":
                await session.clear_ledger(confirmed=True)
                print("Scans cleared.")
            elif command == "incomplete":
                session.request_incomplete()
                outcome = await session.submit(rest)
                _print_notice(outcome.notice)
                if outcome.state.is_terminal:
                    return 0
            elif command == "submit":
                if not session.is_complete():
                    print(session.missing_summary())
                    print("Use ':incomplete <comment>' to submit anyway.")
                    continue
                outcome = await session.submit()
                _print_notice(outcome.notice)
                if outcome.state.is_terminal:
                    return 0
            else:
                print(f"Unknown command: {command}")
    finally:
        if not await session.close():
            logger.error("Pending scans of manifest %d could not be saved", args.manifest_id)
    return 0


async def _cmd_status(args: argparse.Namespace, settings) -> int:
    """Print what this device knows about a manifest, without network."""
    from fieldsync.storage.kv_factory import create_kv_store
    from fieldsync.storage.persistence_store import PersistenceStore
    from fieldsync.storage.submitted_registry import SubmittedRegistry

    kv = create_kv_store(settings)
    ledger = await PersistenceStore(kv).load(args.manifest_id)
    record = await SubmittedRegistry(kv, retention=settings.submitted_retention).get(
        args.manifest_id
    )

    invoices = sum(1 for e in ledger.entries.values() if e.invoice_confirmed)
    notes = sum(1 for e in ledger.entries.values() if e.note_confirmed)
    print(f"\nManifest {args.manifest_id}:")
    print(f"  Lines scanned:  {len(ledger.entries)}")
    print(f"  Invoices:       {invoices}")
    print(f"  Notes:          {notes}")
    if record is None:
        print("  Submission:     not submitted")
    else:
        print(f"  Submission:     {record.status} ({record.attempts} attempt(s))")
        if record.last_error:
            print(f"  Last error:     {record.last_error}")
    return 0


async def _cmd_resync(args: argparse.Namespace, settings) -> int:
    """Retry every submission that is still pending."""
    from fieldsync.client.http_client import HttpManifestClient
    from fieldsync.storage.kv_factory import create_kv_store
    from fieldsync.storage.persistence_store import PersistenceStore
    from fieldsync.storage.submitted_registry import SubmittedRegistry
    from fieldsync.sync.coordinator import SubmissionCoordinator
    from fieldsync.sync.retry import RetryConfig

    kv = create_kv_store(settings)
    client = HttpManifestClient.from_settings(settings)
    coordinator = SubmissionCoordinator(
        client,
        PersistenceStore(kv),
        SubmittedRegistry(kv, retention=settings.submitted_retention),
        retry=RetryConfig.from_settings(settings),
        stripped_fields=settings.stripped_fields_list,
        clear_on_sync=settings.clear_on_sync,
    )
    try:
        outcomes = await coordinator.resync_pending()
    finally:
        client.close()

    if not outcomes:
        print("Nothing to resync.")
        return 0
    for outcome in outcomes:
        _print_notice(outcome.notice)
    return 0 if all(o.synced for o in outcomes) else 1


async def _cmd_clear(args: argparse.Namespace, settings) -> int:
    """Delete saved scans; requires --yes."""
    from fieldsync.storage.kv_factory import create_kv_store
    from fieldsync.storage.persistence_store import PersistenceStore

    if not args.yes:
        print(f"Refusing to delete scans of manifest {args.manifest_id} without --yes.")
        return 1
    await PersistenceStore(create_kv_store(settings)).clear(args.manifest_id)
    print(f"Scans of manifest {args.manifest_id} deleted.")
    return 0


def _print_notice(notice) -> None:
    """Print a user-facing notice; fatal ones go to stderr as well."""
    line = f"[{notice.level.upper()}] {notice.message}"
    print(line)
    if notice.level == "fatal":
        print(line, file=sys.stderr)


def _setup_logging(settings, verbose: bool) -> None:
    """Configure logging for CLI usage."""
    from fieldsync.logging.logger import setup_logging

    setup_logging(
        level="DEBUG" if verbose else settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
        rotation=settings.log_rotation,
        retention=settings.log_retention,
    )


if __name__ == "__main__":
    sys.exit(main())
