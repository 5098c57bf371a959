"""
SnipVault - Store Module

This file handles:
- The line-oriented database file (one record per line)
- Get/Set/Remove/List of snippets
- Import from and export to plaintext files
- Migration of legacy plaintext values to encrypted form

Every operation follows the same cycle:
    Load (read whole file) -> Operate (in memory) -> Persist (rewrite whole file)

Nothing is cached between calls except the configured path. There is no
locking: two processes writing at once means the last writer wins.
"""

import os
import stat
import shlex
import logging
import platform
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from . import desktop
from .codec import (
    Entry, Record, RecordCodec, StoredLine,
    format_entry, format_line, parse_entry, parse_line,
)
from .config import EXPORT_COMMAND, StoreConfig
from .crypto import SecretProtector, Unencrypted
from .errors import (
    ClipboardUnavailable, ImportFileMissing, KeyNotFound, MalformedLine, StoreFileMissing,
)

logger = logging.getLogger(__name__)

EXPORT_FORMATS = ("commands", "plain")


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class GetResult:
    """
    Outcome of SnipStore.get().

    value is only filled in when the caller asked to show it.
    """
    key: str
    message: str
    value: Optional[str] = None
    copied: bool = False
    launched: bool = False
    warnings: List[str] = field(default_factory=list)


@dataclass
class ListedEntry:
    key: str
    value: Optional[str] = None
    shortcut: Optional[str] = None


@dataclass
class ImportResult:
    """
    Counts from SnipStore.import_file().

    malformed lines (no '=' or empty key) are ignored and are not part of
    added/replaced/skipped.
    """
    added: int = 0
    replaced: int = 0
    skipped: int = 0
    malformed: int = 0


# =============================================================================
# STORE CLASS
# =============================================================================

class SnipStore:
    """
    Encrypted flat-file snippet store.

    Usage:
        store = SnipStore(load_config())      # migrates legacy values on open

        store.set("iban", "CH132154646")
        store.get("iban")                     # copies to clipboard
        store.get("iban", show=True).value    # "CH132154646"

        store.set("bank", "123", shortcut="/usr/bin/bankapp")
        store.get("bank")                     # copies, then launches bankapp

        store.remove("bank")
    """

    def __init__(
        self,
        config: StoreConfig,
        protector: Optional[SecretProtector] = None,
        clipboard: Optional[Callable[[str], None]] = None,
        launcher: Optional[Callable[[str], None]] = None,
        migrate: bool = True
    ):
        """
        Open a store (the file itself is only touched by operations).

        Args:
            config: Where the database lives
            protector: Value encryption (default: OS credential store)
            clipboard: set_clipboard_text(text) callable
            launcher: launch(path) callable, raising OSError on failure
            migrate: Encrypt legacy plaintext values right away
        """
        self.config = config
        self.protector = protector or SecretProtector()
        self.codec = RecordCodec(self.protector)
        self.clipboard = clipboard or desktop.set_clipboard_text
        self.launcher = launcher or desktop.launch

        if migrate:
            self.migrate()

    @property
    def path(self) -> str:
        return self.config.db_path

    def exists(self) -> bool:
        return os.path.isfile(self.path)

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def get(self, key: str, no_copy: bool = False, show: bool = False) -> GetResult:
        """
        Look up a snippet, copy it to the clipboard and launch its shortcut.

        Args:
            key: Exact (case-sensitive) key
            no_copy: Skip the clipboard and the shortcut launch
            show: Return the plaintext in GetResult.value

        Raises:
            KeyNotFound: If no such key (StoreFileMissing if no database yet)
        """
        if not self.exists():
            raise StoreFileMissing(self.path, key)

        entries = self._load()
        index = self._find(entries, key)
        if index is None:
            raise KeyNotFound(key)

        record = self.codec.open(entries[index])
        result = GetResult(key=key, message=f"Value for '{key}' found")

        if not no_copy:
            try:
                self.clipboard(record.value)
                result.copied = True
                result.message = f"Value for '{key}' copied to clipboard"
            except ClipboardUnavailable as e:
                logger.warning("Could not copy '%s': %s", key, e)
                result.warnings.append(f"Could not copy to clipboard: {e}")

            if record.shortcut:
                try:
                    self.launcher(record.shortcut)
                    result.launched = True
                except OSError as e:
                    warning = f"Could not launch shortcut {record.shortcut}: {e}"
                    logger.warning(warning)
                    result.warnings.append(warning)

        if show:
            result.value = record.value

        return result

    def set(self, key: str, value: str, shortcut: Optional[str] = None) -> bool:
        """
        Store a snippet, replacing an existing key in place.

        The value is encrypted on every call, even if unchanged. The line is
        written exactly as given, so replacing without a shortcut drops any
        shortcut the old line had.

        Raises:
            InvalidKey: If key is empty or contains '=' or a line break
            InvalidShortcut: If shortcut contains '|' or a line break

        Returns:
            True if the key was added, False if it was replaced
        """
        stored = self.codec.seal(Record(key, value, shortcut))

        entries = self._load()
        index = self._find(entries, key)
        if index is None:
            entries.append(stored)
        else:
            entries[index] = stored

        self._save(entries)
        logger.info("%s key '%s' in %s", "Added" if index is None else "Updated", key, self.path)
        return index is None

    def remove(self, key: str) -> None:
        """
        Delete a snippet. No confirmation here: the CLI asks first.

        Raises:
            KeyNotFound: If no such key (StoreFileMissing if no database yet)
        """
        if not self.exists():
            raise StoreFileMissing(self.path, key)

        entries = self._load()
        index = self._find(entries, key)
        if index is None:
            raise KeyNotFound(key)

        del entries[index]
        self._save(entries)
        logger.info("Removed key '%s' from %s", key, self.path)

    def list(self, include_values: bool = False, include_shortcuts: bool = False) -> List[ListedEntry]:
        """
        List snippets in file order.

        Args:
            include_values: Decrypt and include each value
            include_shortcuts: Also include shortcuts (requires include_values)

        Returns:
            Entries in file order; empty list for an empty or missing store
        """
        if include_shortcuts and not include_values:
            raise ValueError("include_shortcuts requires include_values")

        listed = []
        for entry in self._load():
            if not isinstance(entry, StoredLine):
                continue
            item = ListedEntry(key=entry.key)
            if include_values:
                item.value = self.protector.unprotect(entry.payload)
            if include_shortcuts:
                item.shortcut = entry.shortcut
            listed.append(item)
        return listed

    def import_file(self, path: str, overwrite: bool = False) -> ImportResult:
        """
        Import a plaintext key=value[|shortcut] file.

        - Existing key: replaced if overwrite, else skipped
        - New key: added (value encrypted on write)
        - Lines without '=' (or with an empty key): counted as malformed only
        - Blank lines: ignored

        When a replacing line has no shortcut, the existing shortcut is kept.

        Raises:
            ImportFileMissing: If path does not exist
        """
        if not os.path.isfile(path):
            raise ImportFileMissing(path)

        result = ImportResult()
        entries = self._load()

        for text in self._read_lines(path):
            try:
                parsed = parse_line(text)
            except MalformedLine:
                result.malformed += 1
                continue

            index = self._find(entries, parsed.key)
            if index is not None and not overwrite:
                result.skipped += 1
                continue

            shortcut = parsed.shortcut
            if index is not None and shortcut is None:
                shortcut = entries[index].shortcut

            stored = self.codec.seal(Record(parsed.key, parsed.payload, shortcut))
            if index is None:
                entries.append(stored)
                result.added += 1
            else:
                entries[index] = stored
                result.replaced += 1

        if result.added or result.replaced:
            self._save(entries)

        if result.malformed:
            logger.warning("Ignored %d malformed line(s) in %s", result.malformed, path)
        logger.info("Imported %s: %d added, %d replaced, %d skipped",
                    path, result.added, result.replaced, result.skipped)
        return result

    def export(self, path: str, fmt: str = "commands") -> int:
        """
        Write every snippet, decrypted, to a file.

        Formats:
            commands: shell script of '<EXPORT_COMMAND> set' invocations
            plain:    key=value[|shortcut] lines (UNENCRYPTED)

        Raises:
            ValueError: If fmt is unknown
            StoreFileMissing: If there is no database yet

        Returns:
            Number of records written
        """
        if fmt not in EXPORT_FORMATS:
            raise ValueError(f"Unknown export format '{fmt}' (expected one of {', '.join(EXPORT_FORMATS)})")
        if not self.exists():
            raise StoreFileMissing(self.path)

        records = [self.codec.open(e) for e in self._load() if isinstance(e, StoredLine)]

        if fmt == "commands":
            lines = self._export_commands(records)
            count = len(records)
        else:
            lines = self._export_plain(records)
            count = len(lines)
            logger.warning("Exported %d value(s) UNENCRYPTED to %s", count, path)

        self._write_lines(path, lines)
        return count

    def migrate(self) -> int:
        """
        Encrypt every legacy plaintext value in place.

        A payload that does not classify as ciphertext for this user and
        machine is treated as plaintext and encrypted. The file is only
        rewritten if something changed, so running twice changes nothing
        the second time.

        Returns:
            Number of lines encrypted
        """
        if not self.exists():
            return 0

        entries = self._load()
        changed = 0

        for i, entry in enumerate(entries):
            if not isinstance(entry, StoredLine) or not entry.payload:
                continue
            if isinstance(self.protector.classify(entry.payload), Unencrypted):
                entries[i] = StoredLine(
                    key=entry.key,
                    payload=self.protector.protect(entry.payload),
                    shortcut=entry.shortcut
                )
                changed += 1

        if changed:
            self._save(entries)
            logger.info("Encrypted %d legacy value(s) in %s", changed, self.path)
        return changed

    # =========================================================================
    # INTERNAL HELPERS
    # =========================================================================

    @staticmethod
    def _find(entries: List[Entry], key: str) -> Optional[int]:
        for i, entry in enumerate(entries):
            if isinstance(entry, StoredLine) and entry.key == key:
                return i
        return None

    @staticmethod
    def _read_lines(path: str) -> List[str]:
        """Read non-blank lines. A UTF-8 BOM (common in Windows-made files) is dropped."""
        with open(path, 'r', encoding='utf-8-sig', newline='') as f:
            text = f.read()
        lines = [line[:-1] if line.endswith('\r') else line for line in text.split('\n')]
        return [line for line in lines if line]

    def _load(self) -> List[Entry]:
        if not self.exists():
            return []
        return [parse_entry(line) for line in self._read_lines(self.path)]

    def _save(self, entries: List[Entry]) -> None:
        self._write_lines(self.path, [format_entry(e) for e in entries])

    def _write_lines(self, path: str, lines: List[str]) -> None:
        """
        Write the whole file through a temporary sibling, then move it in place.

        A crash mid-write leaves the previous file intact. This does not
        serialize concurrent writers.
        """
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)

        tmp_path = path + '.tmp'
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        try:
            # Owner-only from creation
            fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
                for line in lines:
                    f.write(line + '\n')
            os.replace(tmp_path, path)
        except OSError:
            logger.error("Error writing %s", path, exc_info=True)
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

        if platform.system() != 'Windows':
            os.chmod(path, stat.S_IRUSR | stat.S_IWUSR)  # 600

    @staticmethod
    def _export_commands(records: List[Record]) -> List[str]:
        lines = [
            "#!/bin/sh",
            f"# SnipVault export: {len(records)} entries. Values below are NOT encrypted.",
        ]
        for record in records:
            args = [EXPORT_COMMAND, "set"]
            if record.shortcut:
                args += ["--shortcut", shlex.quote(record.shortcut)]
            args += ["--", shlex.quote(record.key), shlex.quote(record.value)]
            lines.append(" ".join(args))
        return lines

    @staticmethod
    def _export_plain(records: List[Record]) -> List[str]:
        lines = []
        for record in records:
            if '\n' in record.value or '\r' in record.value:
                logger.warning("Skipping key '%s' in plain export: value spans lines", record.key)
                continue
            line = format_line(StoredLine(record.key, record.value, record.shortcut))
            # A trailing '|' keeps a '|' inside the value from reading as a shortcut
            if '|' in record.value and not record.shortcut:
                line += '|'
            lines.append(line)
        return lines
