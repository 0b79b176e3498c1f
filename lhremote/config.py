"""Application configuration loaded from environment variables."""

import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# CDP endpoint
CDP_PORT = int(os.getenv("LH_CDP_PORT", "9222"))
CDP_HOST = os.getenv("LH_CDP_HOST", "127.0.0.1")
ALLOW_REMOTE = os.getenv("LH_ALLOW_REMOTE", "false").lower() == "true"
CDP_TIMEOUT = float(os.getenv("LH_CDP_TIMEOUT", "30"))

# LinkedHelper data directory (platform default when unset)
DATA_DIR = os.getenv("LINKEDHELPER_DATA_DIR")

# LinkedHelper binary (platform default when unset)
LINKEDHELPER_PATH = os.getenv("LINKEDHELPER_PATH")

# Logging
LOG_LEVEL = os.getenv("LH_LOG_LEVEL", "INFO").upper()
LOG_FORMAT = "%(asctime)s [%(name)s] %(levelname)s: %(message)s"

# Application process (seconds)
LAUNCH_SETTLE_DELAY = 3.0
APP_QUIT_TIMEOUT = 10.0
APP_KILL_TIMEOUT = 5.0

# Instance lifecycle (seconds)
PORT_DISCOVERY_TIMEOUT = 45.0
PORT_SHUTDOWN_TIMEOUT = 15.0
PORT_DISCOVERY_INTERVAL = 1.0
CRASH_RECOVERY_DELAY = 2.0
HANDSHAKE_TIMEOUT = 2.0

# Instance target connection (seconds)
INSTANCE_CONNECT_TIMEOUT = 30.0
INSTANCE_CONNECT_INTERVAL = 1.0

# Campaign runner (seconds)
CAMPAIGN_TRANSITION_TIMEOUT = 60.0
CAMPAIGN_POLL_INTERVAL = 1.0


def get_logger(name: str) -> logging.Logger:
    """Return a module logger that writes to stderr.

    MCP servers must not write to stdout.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
        logger.setLevel(LOG_LEVEL)
        logger.propagate = False
    return logger


def get_base_directory() -> Path:
    """Platform-specific directory where LinkedHelper keeps its account partitions."""
    if DATA_DIR:
        return Path(DATA_DIR)
    home = Path.home()
    if sys.platform == "darwin":
        return home / "Library" / "Application Support" / "linked-helper"
    if sys.platform == "win32":
        appdata = os.getenv("APPDATA")
        return (Path(appdata) if appdata else home / "AppData" / "Roaming") / "linked-helper"
    return home / ".config" / "linked-helper"
