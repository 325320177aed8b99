"""Default paths, environment variable names, and constants."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

APP_NAME = "capi"

CONFIG_DIR = Path.home() / ".capi"
CONFIG_FILE = CONFIG_DIR / "config.yml"
BACKUP_SUFFIX = ".backup"

# Secrets live in the config file
CONFIG_DIR_MODE = 0o700
CONFIG_FILE_MODE = 0o600

# Environment variable names
ENV_CONFIG_PATH = "CAPI_CONFIG"

# Identity service defaults
DEFAULT_CLIENT_ID = "cf"
DEFAULT_CLIENT_SECRET = ""
TOKEN_PATH = "/oauth/token"

# HTTP defaults
DEFAULT_TIMEOUT = 30.0

OUTPUT_FORMATS = ("table", "json", "yaml")
DEFAULT_OUTPUT = "table"

EXPIRING_SOON_WINDOW = timedelta(minutes=5)
