"""
SnipVault - Encrypted snippet store for the command line

Short text values (IBANs, phone numbers, licence keys...) stored by key and
copied to the clipboard on demand.

Key Features:
- No password: values are protected with a per-user key held by the OS
  credential store, bound to the current user and machine
- Plain text file: one 'key=value[|shortcut]' line per entry
- Self-migrating: legacy plaintext values are encrypted on first load
- Shortcuts: optionally launch a program after copying a value

Components:
- crypto.py: Value encryption (AES-256-GCM + keyring-held key)
- codec.py: One record <-> one line
- store.py: Get/Set/Remove/List/Import/Export and migration
- config.py: Default paths and the {"DbPath": ...} sidecar file
- desktop.py: Clipboard and shortcut launcher
- cli.py: Command-line interface (uses built-in argparse)

Usage:
    snip set iban CH132154646          # Store a value
    snip get iban                      # Copy it to the clipboard
    snip list --values                 # List entries
    snip remove iban                   # Delete
"""

__version__ = "0.3.0"
__author__ = "SnipVault Team"
