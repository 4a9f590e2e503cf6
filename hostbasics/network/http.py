"""HTTP plumbing: sessions pinned to one address family, with retries and browser-like headers."""

import logging
import random
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter, Retry

from hostbasics.config import Settings

logger = logging.getLogger(__name__)

FAMILIES = ("ipv4", "ipv6")

# One is picked per session; some geo-IP endpoints refuse the default requests agent
UA_LIST = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:120.0) Gecko/20100101 Firefox/120.0",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 14_0) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/605.1.15",
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.7",
    "Connection": "close",
}


class FetchError(Exception):
    """A remote source could not be read or decoded."""


class FamilyAdapter(HTTPAdapter):
    """Binds outgoing sockets to the wildcard address of one family so only that family can connect."""

    def __init__(self, family: str, **kwargs):
        if family not in FAMILIES:
            raise ValueError(f"invalid family: {family!r}, expected 'ipv4' or 'ipv6'")
        # Must exist before HTTPAdapter.__init__ builds the pool manager
        self.source_address = ("0.0.0.0", 0) if family == "ipv4" else ("::", 0)
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        pool_kwargs["source_address"] = self.source_address
        super().init_poolmanager(connections, maxsize, block=block, **pool_kwargs)


def new_session(
    family: str,
    settings: Settings,
    browser: bool = False,
    extra_headers: Optional[Dict[str, str]] = None,
    retries: Optional[int] = None,
) -> requests.Session:
    """Creates a session whose connections only use the given address family."""
    retry = Retry(
        total=settings.http_retries if retries is None else retries,
        backoff_factor=1,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=frozenset({"GET"}),
    )
    adapter = FamilyAdapter(family, max_retries=retry)
    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    if browser:
        session.headers.update({"User-Agent": random.choice(UA_LIST), **BROWSER_HEADERS})
    if extra_headers:
        session.headers.update(extra_headers)
    return session


def fetch(session: requests.Session, url: str, timeout: float) -> requests.Response:
    """Performs a GET and raises FetchError for transport errors and non-2xx answers."""
    try:
        response = session.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as exc:
        raise FetchError(f"error fetching {url}: {exc}") from exc
    return response


def fetch_json(
    url: str,
    family: str,
    settings: Settings,
    browser: bool = False,
    extra_headers: Optional[Dict[str, str]] = None,
    timeout: Optional[float] = None,
) -> Dict[str, Any]:
    """Fetches a JSON object over the given family."""
    with new_session(family, settings, browser=browser, extra_headers=extra_headers) as session:
        response = fetch(session, url, timeout or settings.http_timeout)
    try:
        data = response.json()
    except ValueError as exc:
        raise FetchError(f"error decoding {url}: {exc}") from exc
    if not isinstance(data, dict):
        raise FetchError(f"unexpected JSON payload from {url}")
    return data


def fetch_text(
    url: str,
    family: str,
    settings: Settings,
    browser: bool = False,
    timeout: Optional[float] = None,
    retries: Optional[int] = None,
) -> str:
    with new_session(family, settings, browser=browser, retries=retries) as session:
        return fetch(session, url, timeout or settings.http_timeout).text
