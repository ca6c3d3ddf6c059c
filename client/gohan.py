"""
Gohan meal check - console client
=================================
Shows this month's staff meal menu from today onwards and lets you mark the
days you will eat. Talks to the menu spreadsheet's script endpoint over
GET/JSONP only.

Usage:
    python gohan.py
"""

import os
import sys

# Frozen builds ship their own CA bundle; point requests at it before import.
if getattr(sys, "frozen", False):
    _bundle = os.path.join(getattr(sys, "_MEIPASS", ""), "certifi", "cacert.pem")
    if os.path.isfile(_bundle):
        os.environ.setdefault("REQUESTS_CA_BUNDLE", _bundle)

from gohan_core.runner import main  # noqa: E402

if __name__ == "__main__":
    main()
