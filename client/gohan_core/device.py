"""
Device classification from the client's identification string.

The mobile/desktop split is a policy input: it picks the transport timeout
and the session lifetime strategy.
"""

import re

from .constants import MOBILE_UA_PATTERN

_MOBILE_RE = re.compile(MOBILE_UA_PATTERN, re.IGNORECASE)


def is_mobile_device(user_agent):
    """True when the user-agent string names a phone or tablet browser."""
    if not user_agent:
        return False
    return _MOBILE_RE.search(user_agent) is not None
