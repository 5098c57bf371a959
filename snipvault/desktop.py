"""
SnipVault - Desktop collaborators

Clipboard writing and shortcut launching. The store only needs two callables:

    set_clipboard_text(text) -> None
    launch(path) -> None        # raises OSError on failure
"""

import os
import sys
import logging
import subprocess

import pyperclip

from .errors import ClipboardUnavailable

logger = logging.getLogger(__name__)


def set_clipboard_text(text: str) -> None:
    """
    Copy text to the system clipboard.

    Raises:
        ClipboardUnavailable: If no copy mechanism is installed
            (e.g. no xclip/xsel/wl-copy on Linux)
    """
    try:
        pyperclip.copy(text)
    except pyperclip.PyperclipException as e:
        raise ClipboardUnavailable(f"Clipboard unavailable: {e}") from e


def launch(path: str) -> None:
    """
    Open a file or program with the desktop's default handler.

    Does not wait for the launched process.

    Raises:
        OSError: If the path cannot be opened
    """
    logger.debug("Launching %s", path)
    if sys.platform == "win32":
        os.startfile(path)
    elif sys.platform == "darwin":
        subprocess.Popen(["open", path])
    else:
        if not os.path.exists(path):
            raise FileNotFoundError(f"No such file: {path}")
        subprocess.Popen(["xdg-open", path],
                         stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
