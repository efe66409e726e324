"""
Command-line entry point for the PassVault password store.

Usage:
    passvault list                  # List entries (passwords hidden)
    passvault search TERM           # Search URL and username
    passvault add --url URL ...     # Add an entry
    passvault delete ID [ID ...]    # Delete entries
    passvault import FILE           # Import a Chrome/Edge CSV export
    passvault export FILE           # Export to a Chrome/Edge CSV file
    passvault dedupe [--yes]        # Show duplicates; delete older copies with --yes
"""

import sys
import json
import getpass
import logging
import argparse
from typing import List, Optional

from . import config
from .browser_import import BrowserImporter
from .crypto import KeyringKeyProvider, SecretCipher, default_key_provider
from .duplicates import deletion_candidates
from .exceptions import StorageUnavailable, VaultError
from .storage import PasswordEntry, StorageManager
from .utils import log_action

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_STORAGE = 2

HIDDEN_PASSWORD = "••••••••"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="passvault",
        description=config.APP_DESCRIPTION,
    )
    parser.add_argument("--version", action="version", version=f"{config.APP_NAME} {config.APP_VERSION}")
    parser.add_argument("--db", default=None, help="Database file (default: ~/.passvault/passwords.db)")
    parser.add_argument("--keyring", action="store_true", help="Read the encryption key from the OS keyring")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")

    list_parser = subparsers.add_parser("list", help="List all entries")
    list_parser.add_argument("--show-passwords", action="store_true", help="Print passwords in clear")
    list_parser.add_argument("--json", action="store_true", help="Print entries as JSON")

    search_parser = subparsers.add_parser("search", help="Search entries by URL or username")
    search_parser.add_argument("term", help="Case-insensitive substring")
    search_parser.add_argument("--show-passwords", action="store_true", help="Print passwords in clear")
    search_parser.add_argument("--json", action="store_true", help="Print entries as JSON")

    add_parser = subparsers.add_parser("add", help="Add an entry")
    add_parser.add_argument("--url", required=True, help="Site URL")
    add_parser.add_argument("--name", default="", help="Display name (default: the URL)")
    add_parser.add_argument("--username", default="", help="Login name")
    add_parser.add_argument("--password", default=None, help="Password (prompted if omitted)")
    add_parser.add_argument("--notes", default="", help="Free text notes")

    delete_parser = subparsers.add_parser("delete", help="Delete entries by id")
    delete_parser.add_argument("ids", nargs="+", type=int, help="Entry ids")

    import_parser = subparsers.add_parser("import", help="Import a Chrome/Edge password CSV file")
    import_parser.add_argument("file", help="CSV file to read")

    export_parser = subparsers.add_parser("export", help="Export entries to a Chrome/Edge password CSV file")
    export_parser.add_argument("file", help="CSV file to write")

    dedupe_parser = subparsers.add_parser("dedupe", help="Find duplicate entries")
    dedupe_parser.add_argument("--yes", "-y", action="store_true",
                               help="Delete every older copy, keeping the newest of each group")

    return parser


def _open_storage(args) -> StorageManager:
    provider = KeyringKeyProvider() if args.keyring else default_key_provider()
    return StorageManager(args.db or config.get_default_db_path(), cipher=SecretCipher(provider))


def _audit(action: str, details: str) -> None:
    # The command already succeeded; a missing audit line must not fail it
    try:
        log_action(action, details)
    except OSError as e:
        logger.warning(f"Could not write audit log entry {action}: {e}")


def _print_entries(entries: List[PasswordEntry], show_passwords: bool, as_json: bool) -> None:
    if as_json:
        data = [e.to_dict() for e in entries]
        if not show_passwords:
            for item in data:
                item['password'] = HIDDEN_PASSWORD
        print(json.dumps(data, indent=2, ensure_ascii=False))
        return

    for entry in entries:
        password = entry.password if show_passwords else HIDDEN_PASSWORD
        print(f"{entry.id}\t{entry.name}\t{entry.url}\t{entry.username}\t{password}")
    print(f"{len(entries)} entries")


def _cmd_add(storage: StorageManager, args) -> int:
    password = args.password
    if password is None:
        password = getpass.getpass("Password: ")
    entry = PasswordEntry(name=args.name, url=args.url, username=args.username,
                          password=password, notes=args.notes)
    entry_id = storage.add_entry(entry)
    print(f"Added entry {entry_id}: {entry}")
    return EXIT_OK


def _cmd_delete(storage: StorageManager, args) -> int:
    deleted = storage.delete_entries(args.ids)
    print(f"Deleted {deleted} of {len(args.ids)} entries")
    _audit("DELETE", f"Deleted {deleted} entries")
    return EXIT_OK


def _cmd_import(storage: StorageManager, args) -> int:
    result = BrowserImporter(storage).import_from_file(args.file)
    for reason in result.diagnostics:
        print(f"skipped {reason}", file=sys.stderr)
    print(f"Imported {result.accepted} entries, skipped {result.skipped}")
    _audit("CSV_IMPORT", f"Imported {result.accepted} entries from {args.file}, skipped {result.skipped}")
    return EXIT_OK if result.accepted or not result.skipped else EXIT_ERROR


def _cmd_export(storage: StorageManager, args) -> int:
    print("WARNING: the exported file contains every password in PLAIN TEXT.", file=sys.stderr)
    count = BrowserImporter(storage).export_to_file(args.file)
    print(f"Exported {count} entries to {args.file}")
    _audit("CSV_EXPORT", f"Exported {count} entries to {args.file}")
    return EXIT_OK


def _cmd_dedupe(storage: StorageManager, args) -> int:
    groups = storage.find_duplicate_entries()
    if not groups:
        print("No duplicate entries.")
        return EXIT_OK

    for index, group in enumerate(groups.values(), start=1):
        print(f"Group {index}: {group.keeper}")
        for member in group.members:
            action = "delete" if member.is_candidate else "keep"
            entry = member.entry
            print(f"  [{action}] {entry.id}\t{entry.name}\tcreated {entry.created_at.isoformat()}")

    ids = deletion_candidates(groups)
    if not args.yes:
        print(f"{len(ids)} entries would be deleted. Re-run with --yes to delete them.")
        return EXIT_OK

    deleted = storage.delete_entries(ids)
    print(f"Deleted {deleted} duplicate entries")
    _audit("DEDUPE", f"Deleted {deleted} duplicate entries")
    return EXIT_OK


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format=config.LOG_FORMAT)

    if not args.command:
        parser.print_help()
        return EXIT_OK

    try:
        storage = _open_storage(args)
        if args.command == "list":
            _print_entries(storage.get_entries(), args.show_passwords, args.json)
            return EXIT_OK
        if args.command == "search":
            _print_entries(storage.search_entries(args.term), args.show_passwords, args.json)
            return EXIT_OK
        handlers = {
            "add": _cmd_add,
            "delete": _cmd_delete,
            "import": _cmd_import,
            "export": _cmd_export,
            "dedupe": _cmd_dedupe,
        }
        return handlers[args.command](storage, args)
    except StorageUnavailable as e:
        print(f"Storage error: {e}", file=sys.stderr)
        return EXIT_STORAGE
    except (VaultError, RuntimeError, ValueError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
