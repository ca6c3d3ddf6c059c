"""
Paths, logging setup, config load/save, safe_print.
"""

import os
import json
import sys
import logging
from pathlib import Path


# ─── Paths ───────────────────────────────────────────────────────
# One data folder per user per machine; GOHAN_HOME wins when set.
_FOLDER_NAME = "GohanClient"

if os.environ.get("GOHAN_HOME"):
    BASE_DIR = Path(os.environ["GOHAN_HOME"])
elif sys.platform == "win32":
    BASE_DIR = Path(os.environ.get("APPDATA", Path.home())) / _FOLDER_NAME
else:
    BASE_DIR = Path.home() / ".gohan"

BASE_DIR.mkdir(parents=True, exist_ok=True)

CONFIG_FILE = BASE_DIR / "config.json"
LOG_FILE = BASE_DIR / "gohan.log"
STORAGE_FILE = BASE_DIR / "storage.json"


# ─── Safe print (no crash without a console) ─────────────────────

def safe_print(*args, **kwargs):
    try:
        print(*args, **kwargs)
    except (OSError, AttributeError):
        pass


# ─── Logging ─────────────────────────────────────────────────────

try:
    if LOG_FILE.exists() and LOG_FILE.stat().st_size > 1_000_000:
        LOG_FILE.write_text("")
except OSError:
    pass

logging.basicConfig(
    filename=str(LOG_FILE),
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    encoding="utf-8",
)
log = logging.getLogger("gohan")

# The console doubles as the UI, so only problems go to stderr.
console_handler = logging.StreamHandler(sys.stderr)
console_handler.setLevel(logging.WARNING)
console_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
log.addHandler(console_handler)


# ─── Config Management ──────────────────────────────────────────

def load_config():
    """Load config from disk. Returns dict or None."""
    config = None
    if CONFIG_FILE.exists():
        try:
            with open(CONFIG_FILE, "r", encoding="utf-8") as f:
                config = json.load(f)
        except (json.JSONDecodeError, IOError):
            return None
    env_url = os.environ.get("GOHAN_API_URL")
    if env_url:
        config = dict(config or {})
        config["apiUrl"] = env_url
    return config


def save_config(config):
    """Save config dict to disk."""
    with open(CONFIG_FILE, "w", encoding="utf-8") as f:
        json.dump(config, f, indent=2)
    log.info("Config saved to %s", CONFIG_FILE)
