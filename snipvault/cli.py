"""
SnipVault - Command Line Interface

Usage:
    snip set iban CH132154646                   # Store (encrypted)
    snip set bank 123 --shortcut /opt/bank/app  # Store with a shortcut to launch
    snip get iban                               # Copy to clipboard
    snip need iban --show                       # Copy and print
    snip list --values --shortcuts              # List everything
    snip remove iban                            # Delete (asks first)
    snip import old.txt --overwrite             # Bulk import key=value lines
    snip export backup.sh                       # Script of 'snip set' commands
    snip export backup.txt --format plain       # Plain key=value file
    snip set-path ~/Dropbox/snips.db            # Move the database
    snip get-path                               # Show the database path

Exit codes: 0 on success, 1 on any error.
"""

import sys
import logging
import argparse
from typing import List, Optional

from .config import load_config, save_db_path
from .errors import SnipError
from .store import EXPORT_FORMATS, SnipStore

logger = logging.getLogger(__name__)


# =============================================================================
# Commands
# =============================================================================

def cmd_get(store: SnipStore, args) -> int:
    result = store.get(args.key, no_copy=args.no_copy, show=args.show)
    for warning in result.warnings:
        print(f"WARNING: {warning}", file=sys.stderr)
    if args.show:
        print(result.value)
    else:
        print(f"✓ {result.message}")
    return 0


def cmd_set(store: SnipStore, args) -> int:
    added = store.set(args.key, args.value, args.shortcut)
    print(f"✓ {'Added' if added else 'Updated'} '{args.key}'")
    return 0


def cmd_remove(store: SnipStore, args) -> int:
    if not args.yes:
        answer = input(f"Remove '{args.key}'? [y/N]: ").strip().lower()
        if answer not in ("y", "yes"):
            print("Cancelled.")
            return 0
    store.remove(args.key)
    print(f"✓ Removed '{args.key}'")
    return 0


def cmd_list(store: SnipStore, args) -> int:
    if args.shortcuts and not args.values:
        raise ValueError("--shortcuts requires --values")

    entries = store.list(include_values=args.values, include_shortcuts=args.shortcuts)
    if not entries:
        print("The store is empty.")
        return 0

    for e in entries:
        if not args.values:
            print(e.key)
        elif e.shortcut:
            print(f"{e.key} = {e.value}  [{e.shortcut}]")
        else:
            print(f"{e.key} = {e.value}")
    return 0


def cmd_import(store: SnipStore, args) -> int:
    result = store.import_file(args.path, overwrite=args.overwrite)
    print(f"✓ Imported from {args.path}")
    print(f"  Added:    {result.added}")
    print(f"  Replaced: {result.replaced}")
    print(f"  Skipped:  {result.skipped}")
    if result.malformed:
        print(f"  Ignored {result.malformed} malformed line(s)")
    return 0


def cmd_export(store: SnipStore, args) -> int:
    count = store.export(args.path, fmt=args.format)
    print(f"✓ Exported {count} entries to {args.path}")
    if args.format == "plain":
        print("WARNING: this file is NOT encrypted. Delete it when you are done.", file=sys.stderr)
    return 0


COMMANDS = {
    "get": cmd_get,
    "need": cmd_get,
    "set": cmd_set,
    "remove": cmd_remove,
    "list": cmd_list,
    "import": cmd_import,
    "export": cmd_export,
}


# =============================================================================
# Parser
# =============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="snip",
        description="Encrypted snippet store: copy short values to the clipboard by key."
    )
    parser.add_argument("--config", help="Config file (default: ~/.snipvault/config.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True

    for name in ("get", "need"):
        p = sub.add_parser(name, help="Copy a value to the clipboard")
        p.add_argument("key")
        p.add_argument("--no-copy", action="store_true",
                       help="Do not copy to clipboard (and do not launch the shortcut)")
        p.add_argument("--show", action="store_true", help="Print the value")

    p = sub.add_parser("set", help="Store a value (replaces an existing key)")
    p.add_argument("key")
    p.add_argument("value")
    p.add_argument("--shortcut", help="Path to launch after a successful get")

    p = sub.add_parser("remove", help="Delete a key")
    p.add_argument("key")
    p.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")

    p = sub.add_parser("list", help="List keys")
    p.add_argument("--values", action="store_true", help="Include decrypted values")
    p.add_argument("--shortcuts", action="store_true", help="Include shortcuts (needs --values)")

    p = sub.add_parser("import", help="Import a plaintext key=value file")
    p.add_argument("path")
    p.add_argument("--overwrite", action="store_true", help="Replace existing keys")

    p = sub.add_parser("export", help="Export all values (decrypted)")
    p.add_argument("path")
    p.add_argument("--format", choices=EXPORT_FORMATS, default="commands",
                   help="commands: script of 'snip set' calls (default); plain: key=value file")

    p = sub.add_parser("set-path", help="Use another database file from now on")
    p.add_argument("path")

    sub.add_parser("get-path", help="Show the database file in use")

    return parser


# =============================================================================
# Entry point
# =============================================================================

def main(argv: Optional[List[str]] = None, store_factory=SnipStore) -> int:
    """
    Run one command.

    Args:
        argv: Arguments (default: sys.argv[1:])
        store_factory: Called with a StoreConfig to open the store

    Returns:
        Exit code
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(asctime)s - %(levelname)s - %(name)s - %(message)s'
    )

    try:
        config = load_config(args.config)

        if args.command == "get-path":
            print(config.db_path)
            return 0
        if args.command == "set-path":
            config = save_db_path(config, args.path)
            print(f"✓ Database path set to {config.db_path}")
            return 0

        store = store_factory(config)
        return COMMANDS[args.command](store, args)
    except (SnipError, ValueError) as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except OSError as e:
        logger.debug("I/O failure", exc_info=True)
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
