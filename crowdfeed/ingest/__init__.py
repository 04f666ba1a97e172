"""External data ingestion: live feed, fallback simulator, HTTP helpers."""
from __future__ import annotations

import logging
import threading
import time
from typing import Optional

import requests

from ..errors import TileFetchCancelled

log = logging.getLogger(__name__)

_DEFAULT_TIMEOUT = 15  # seconds per request


def fetch_with_retry(
    url: str,
    *,
    session: Optional[requests.Session] = None,
    params: Optional[dict] = None,
    timeout: float = _DEFAULT_TIMEOUT,
    retries: int = 1,
    backoff: float = 1.0,
    cancel: Optional[threading.Event] = None,
) -> requests.Response:
    """GET *url*, retrying up to *retries* times when the server or network
    is at fault.

    A 5xx status, a dropped connection or a timeout is retried after
    ``backoff × attempt`` seconds; the final failure is re-raised (a 5xx as
    ``requests.HTTPError``).  Client errors (4xx) are raised on the spot.

    Setting *cancel* aborts the backoff wait and raises TileFetchCancelled
    instead of trying again.
    """
    get = requests.get if session is None else session.get
    attempts = retries + 1
    failure: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            resp = get(url, params=params, timeout=timeout)
        except (requests.ConnectionError, requests.Timeout) as exc:
            failure = exc
            log.warning("GET %s: %s [try %d of %d]", url[:80], exc, attempt, attempts)
        else:
            if resp.status_code < 500:
                resp.raise_for_status()
                return resp
            failure = requests.HTTPError(
                f"server answered {resp.status_code} for {url}", response=resp,
            )
            log.warning("GET %s: server answered %d [try %d of %d]",
                        url[:80], resp.status_code, attempt, attempts)

        if attempt == attempts:
            break
        delay = backoff * attempt
        if cancel is not None:
            if cancel.wait(delay):
                raise TileFetchCancelled("cancelled during retry backoff", url=url)
        elif delay > 0:
            time.sleep(delay)

    raise failure
