"""
SnipVault - Record Codec

One record is one line of the database file:

    key=payload
    key=payload|shortcut

- key: everything before the first '='
- payload: ciphertext from SecretProtector.protect(), or a legacy plaintext value
- shortcut: optional path launched after a successful Get, after the last '|'

Lines that do not fit this grammar are kept as RawLine and written back
untouched, so a load/save cycle never loses data it does not understand.
"""

from dataclasses import dataclass
from typing import Optional, Union

from .crypto import SecretProtector
from .errors import InvalidKey, InvalidShortcut, MalformedLine

KEY_SEPARATOR = "="
SHORTCUT_SEPARATOR = "|"
LINE_BREAKS = ("\n", "\r")


# =============================================================================
# Types
# =============================================================================

@dataclass
class Record:
    """A decrypted key/value pair with its optional shortcut."""
    key: str
    value: str
    shortcut: Optional[str] = None


@dataclass
class StoredLine:
    """A parsed line as it sits on disk (payload may or may not be encrypted)."""
    key: str
    payload: str
    shortcut: Optional[str] = None


@dataclass
class RawLine:
    """A line that could not be parsed, preserved verbatim."""
    text: str


Entry = Union[StoredLine, RawLine]


# =============================================================================
# Validation
# =============================================================================

def validate_key(key: str) -> None:
    """
    Raises:
        InvalidKey: If key is empty or contains '=' or a line break
    """
    if not key:
        raise InvalidKey("Key must not be empty")
    if KEY_SEPARATOR in key:
        raise InvalidKey(f"Key must not contain '{KEY_SEPARATOR}': {key!r}")
    if any(c in key for c in LINE_BREAKS):
        raise InvalidKey(f"Key must not contain line breaks: {key!r}")


def validate_shortcut(shortcut: Optional[str]) -> None:
    """
    Raises:
        InvalidShortcut: If shortcut contains '|' or a line break
    """
    if shortcut is None:
        return
    if SHORTCUT_SEPARATOR in shortcut or any(c in shortcut for c in LINE_BREAKS):
        raise InvalidShortcut(
            f"Shortcut must not contain '{SHORTCUT_SEPARATOR}' or line breaks: {shortcut!r}"
        )


# =============================================================================
# Line grammar (no cryptography)
# =============================================================================

def parse_line(text: str) -> StoredLine:
    """
    Split a line into key, payload and optional shortcut.

    The key ends at the first '='. In the remainder, the last '|' (if any)
    starts the shortcut. An empty shortcut segment reads as no shortcut.

    Raises:
        MalformedLine: If there is no '=' or the key is empty
    """
    key, sep, rest = text.partition(KEY_SEPARATOR)
    if not sep or not key:
        raise MalformedLine(text)

    payload, sep, shortcut = rest.rpartition(SHORTCUT_SEPARATOR)
    if not sep:
        return StoredLine(key=key, payload=rest)
    return StoredLine(key=key, payload=payload, shortcut=shortcut or None)


def format_line(line: StoredLine) -> str:
    """Inverse of parse_line()."""
    if line.shortcut:
        return f"{line.key}{KEY_SEPARATOR}{line.payload}{SHORTCUT_SEPARATOR}{line.shortcut}"
    return f"{line.key}{KEY_SEPARATOR}{line.payload}"


def parse_entry(text: str) -> Entry:
    """Parse a line, falling back to RawLine instead of raising."""
    try:
        return parse_line(text)
    except MalformedLine:
        return RawLine(text)


def format_entry(entry: Entry) -> str:
    if isinstance(entry, RawLine):
        return entry.text
    return format_line(entry)


# =============================================================================
# Codec (grammar + encryption)
# =============================================================================

class RecordCodec:
    """
    Converts between Record (plaintext) and its on-disk line.

    Usage:
        codec = RecordCodec(SecretProtector())
        line = codec.encode(Record("iban", "CH132154646"))   # "iban=<ciphertext>"
        codec.decode(line).value                               # "CH132154646"
    """

    def __init__(self, protector: SecretProtector):
        self.protector = protector

    def seal(self, record: Record) -> StoredLine:
        """Validate and encrypt a record into a StoredLine."""
        validate_key(record.key)
        validate_shortcut(record.shortcut)
        return StoredLine(
            key=record.key,
            payload=self.protector.protect(record.value),
            shortcut=record.shortcut or None
        )

    def open(self, line: StoredLine) -> Record:
        """Decrypt a StoredLine. Legacy plaintext payloads pass through as-is."""
        return Record(
            key=line.key,
            value=self.protector.unprotect(line.payload),
            shortcut=line.shortcut
        )

    def encode(self, record: Record) -> str:
        """
        Raises:
            InvalidKey: If key is empty or contains '=' or a line break
            InvalidShortcut: If shortcut contains '|' or a line break
        """
        return format_line(self.seal(record))

    def decode(self, text: str) -> Record:
        """
        Raises:
            MalformedLine: If the line has no '=' or an empty key
        """
        return self.open(parse_line(text))
