"""
SnipVault - Errors

Every failure a command can report derives from SnipError, so the CLI can
turn any of them into a message and a non-zero exit code.

Note: a value that fails to decrypt is NOT an error. It is classified as
legacy plaintext by crypto.SecretProtector.classify().
"""

from typing import Optional


class SnipError(Exception):
    """Base class for all store errors."""


class KeyNotFound(SnipError):
    """No record with this key exists."""

    def __init__(self, key: str):
        super().__init__(f"Key '{key}' not found")
        self.key = key


class StoreFileMissing(KeyNotFound):
    """The database file has not been created yet (first Set creates it)."""

    def __init__(self, path: str, key: Optional[str] = None):
        if key is None:
            SnipError.__init__(self, f"No database found at {path}")
        else:
            SnipError.__init__(self, f"Key '{key}' not found (no database at {path})")
        self.key = key
        self.path = path


class InvalidKey(SnipError):
    """Key is empty or contains '=' or a line break."""


class InvalidShortcut(SnipError):
    """Shortcut contains '|' or a line break."""


class ImportFileMissing(SnipError):
    def __init__(self, path: str):
        super().__init__(f"Import file not found: {path}")
        self.path = path


class MalformedLine(SnipError):
    """A line has no '=' separator or an empty key."""

    def __init__(self, line: str):
        super().__init__("Malformed line (expected key=value)")
        self.line = line


class ProtectionUnavailable(SnipError):
    """The OS credential store could not provide the protection key."""


class ClipboardUnavailable(SnipError):
    """No clipboard mechanism is available on this system."""
