"""HTTP helpers shared by retrievers and LLM stages.

Features:
- one `requests.Session` per stage thread (sessions are not shared between threads)
- browser-like headers (User-Agent, Referer, DNT) and optional proxy
- (connect, read) timeouts from configuration
- retries, waiting between retry_wait_fixed_sec and three times that between attempts

Failures after the last retry are logged and reported as an empty result,
never raised into the pipeline.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging
import random
import time

import requests

from ..errors import FetchError

log = logging.getLogger("newslookout.network")

DEFAULT_USER_AGENT = "Mozilla/5.0 (X11; Linux x86_64; rv:128.0) Gecko/20100101 Firefox/128.0"


@dataclass
class NetworkParameters:
    fetch_timeout: float = 60
    connect_timeout: float = 10
    retry_count: int = 3
    retry_wait_fixed_sec: float = 3
    user_agent: str = DEFAULT_USER_AGENT
    proxy_server_url: Optional[str] = None

    @property
    def timeout(self) -> tuple:
        return (self.connect_timeout, self.fetch_timeout)


def build_session(params: NetworkParameters, referer: Optional[str] = None,
                  extra_headers: Optional[Dict[str, str]] = None) -> requests.Session:
    session = requests.Session()
    session.headers.update({
        "User-Agent": params.user_agent or DEFAULT_USER_AGENT,
        "DNT": "1",
        "Connection": "keep-alive",
    })
    if referer:
        session.headers["Referer"] = referer
    if extra_headers:
        session.headers.update(extra_headers)
    if params.proxy_server_url:
        session.proxies.update({"http": params.proxy_server_url, "https": params.proxy_server_url})
    return session


def _retry_wait(params: NetworkParameters) -> float:
    base = max(float(params.retry_wait_fixed_sec), 0.0)
    return random.uniform(base, base * 3)


def fetch(session: requests.Session, url: str, params: NetworkParameters) -> requests.Response:
    """GET with retries; raises FetchError once every attempt has failed."""
    attempts = max(int(params.retry_count), 1)
    last_error = ""
    for attempt in range(attempts):
        try:
            resp = session.get(url, timeout=params.timeout)
            resp.raise_for_status()
            return resp
        except requests.RequestException as e:
            last_error = str(e)
            if attempt < attempts - 1:
                wait = _retry_wait(params)
                log.warning(f"Fetch of {url} failed (attempt {attempt + 1}/{attempts}): {e}; retrying in {wait:.1f}s")
                time.sleep(wait)
    raise FetchError(url, f"{last_error} (after {attempts} attempts)")


def http_get(session: requests.Session, url: str, params: NetworkParameters) -> str:
    """GET a page and return its decoded text, or "" on failure."""
    try:
        return fetch(session, url, params).text
    except FetchError as e:
        log.error(str(e))
        return ""


def http_get_binary(session: requests.Session, url: str, params: NetworkParameters) -> bytes:
    """GET a binary resource (e.g. PDF) and return its bytes, or b"" on failure."""
    try:
        return fetch(session, url, params).content
    except FetchError as e:
        log.error(str(e))
        return b""


def http_post_json(session: requests.Session, url: str, payload: Dict[str, Any],
                   timeout: Any = None) -> Optional[Dict[str, Any]]:
    """POST a JSON payload and return the decoded JSON response, or None on failure."""
    try:
        resp = session.post(url, json=payload, timeout=timeout)
        resp.raise_for_status()
        return resp.json()
    except requests.RequestException as e:
        log.error(f"When posting json payload to {url}: {e}")
    except ValueError as e:
        log.error(f"When decoding json response from {url}: {e}")
    return None
