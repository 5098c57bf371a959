"""
SnipVault - Configuration

Constants plus the one piece of persisted state: which database file to use.

Sidecar file (JSON):
    {"DbPath": "/home/alice/Dropbox/snips.db"}

It is read once at startup. If the file is absent, unreadable, or points to
a database that no longer exists, the default path is used instead.
"""

import os
import json
import logging
from dataclasses import dataclass, replace
from typing import Optional

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

APP_DIR_NAME = ".snipvault"          # Under the user's home directory
DEFAULT_DB_FILE = "snips.db"          # Line-oriented key=value store
CONFIG_FILE = "config.json"           # Sidecar holding {"DbPath": ...}
CONFIG_DB_PATH_KEY = "DbPath"
KEYRING_SERVICE = "snipvault"         # Service name in the OS credential store
EXPORT_COMMAND = "snip"               # Program name written into exported scripts


def app_dir() -> str:
    return os.path.join(os.path.expanduser("~"), APP_DIR_NAME)


def default_db_path() -> str:
    return os.path.join(app_dir(), DEFAULT_DB_FILE)


def default_config_path() -> str:
    return os.path.join(app_dir(), CONFIG_FILE)


# =============================================================================
# Store configuration
# =============================================================================

@dataclass(frozen=True)
class StoreConfig:
    """
    Where the store lives.

    Attributes:
        db_path: Database file the store reads and rewrites
        config_path: Sidecar file the db_path override is persisted to
    """
    db_path: str
    config_path: str


def load_config(config_path: Optional[str] = None) -> StoreConfig:
    """
    Read the sidecar file and resolve the database path.

    Args:
        config_path: Sidecar location (default: ~/.snipvault/config.json)

    Returns:
        StoreConfig with the override applied, or the default path
    """
    config_path = config_path or default_config_path()
    db_path = default_db_path()

    if not os.path.exists(config_path):
        return StoreConfig(db_path=db_path, config_path=config_path)

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", config_path, e)
        return StoreConfig(db_path=db_path, config_path=config_path)

    override = data.get(CONFIG_DB_PATH_KEY) if isinstance(data, dict) else None
    if override is not None and not isinstance(override, str):
        logger.warning("Ignoring non-string %s in %s: %r", CONFIG_DB_PATH_KEY, config_path, override)
        override = None
    if override and os.path.exists(override):
        db_path = override
    elif override:
        logger.warning("Configured database %s does not exist, using default %s",
                       override, db_path)

    return StoreConfig(db_path=db_path, config_path=config_path)


def save_db_path(config: StoreConfig, new_path: str) -> StoreConfig:
    """
    Persist a new database path to the sidecar file.

    The path is stored as an absolute path. An empty database file is
    created there if none exists, so the override holds on the next run.

    Returns:
        A new StoreConfig pointing at new_path
    """
    new_path = os.path.abspath(os.path.expanduser(new_path))

    db_dir = os.path.dirname(new_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)
    if not os.path.exists(new_path):
        open(new_path, "a", encoding="utf-8").close()

    config_dir = os.path.dirname(config.config_path)
    if config_dir:
        os.makedirs(config_dir, exist_ok=True)

    with open(config.config_path, 'w', encoding='utf-8') as f:
        json.dump({CONFIG_DB_PATH_KEY: new_path}, f, indent=2)

    logger.info("Database path set to %s", new_path)
    return replace(config, db_path=new_path)
