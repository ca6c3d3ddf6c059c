"""
HTTP session with connection pooling and SSL fix.

The entry script (gohan.py) sets REQUESTS_CA_BUNDLE before this module is
imported when running from a frozen build. No automatic retries happen here:
the transport owns the one fallback a call is allowed, and requests itself
follows the redirect the script endpoint answers with.
"""

import os
from http.cookiejar import DefaultCookiePolicy

import certifi
import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import log
from .constants import CLIENT_VERSION

DEFAULT_USER_AGENT = f"gohan-client/{CLIENT_VERSION} (python-requests)"

_retry_strategy = Retry(
    total=0,                # One logical attempt per call
    read=False,
    raise_on_status=False,
    allowed_methods=["GET"],
)


def _get_ca_bundle():
    """Get the CA bundle path.

    Priority: env var, then the certifi bundle.
    """
    env_ca = os.environ.get('REQUESTS_CA_BUNDLE') or os.environ.get('SSL_CERT_FILE')
    if env_ca and os.path.isfile(env_ca):
        return env_ca
    return certifi.where()


def create_session(user_agent=None, cookies=True):
    """Create a new requests.Session with connection pooling and SSL.

    With cookies=False the session never stores or sends cookies, which is
    what the no-credential fallback probe needs.
    """
    session = requests.Session()
    adapter = HTTPAdapter(
        pool_connections=1,
        pool_maxsize=4,
        max_retries=_retry_strategy,
    )
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.verify = _get_ca_bundle()
    session.headers["User-Agent"] = user_agent or DEFAULT_USER_AGENT
    if not cookies:
        session.cookies.set_policy(DefaultCookiePolicy(allowed_domains=[]))
    return session


def reset_session(session):
    """Close and recreate the HTTP session (fixes stale connections)."""
    user_agent = session.headers.get("User-Agent")
    try:
        session.close()
    except Exception as e:
        log.debug("Closing stale HTTP session failed: %s", e)
    return create_session(user_agent)
