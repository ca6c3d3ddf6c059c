"""
Entry point.

SSL CA bundle fix happens in gohan.py (before imports).
"""

import asyncio
import sys

from .constants import CLIENT_VERSION
from .config import log, safe_print, load_config, save_config
from .app import HomeApp, ConsoleView, run_console


def _ensure_config():
    """Load config, asking for the endpoint on first run."""
    config = load_config()
    if config and config.get("apiUrl"):
        log.info("Loaded config (api: %s)", config["apiUrl"])
        return config

    safe_print("No server configured yet.")
    try:
        api_url = input("Script endpoint URL: ").strip()
    except (EOFError, KeyboardInterrupt):
        return None
    if not api_url.startswith(("http://", "https://")):
        safe_print("The endpoint must be an http(s) URL.")
        return None

    config = dict(config or {})
    config["apiUrl"] = api_url
    save_config(config)
    return config


def main():
    """Primary client entry point."""
    safe_print("Gohan meal check v" + CLIENT_VERSION)

    config = _ensure_config()
    if not config:
        sys.exit(1)

    app = HomeApp(config, ConsoleView())
    try:
        asyncio.run(run_console(app))
    except KeyboardInterrupt:
        safe_print("\nStopped by user.")
    except Exception as e:
        log.error("Client crashed: %s", e, exc_info=True)
        sys.exit(1)
    log.info("Client shut down.")
