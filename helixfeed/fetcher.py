# fetcher.py
"""HTTP fetching of regulatory RSS/Atom feeds.

A single GET per call with a fixed timeout.  Non-2xx responses raise
:class:`FetchError` immediately; connection failures and timeouts are
retried with exponential back-off only when ``attempts`` is greater than
one.  Politeness delays between requests are the caller's job.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Optional

import aiohttp
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random_exponential,
)

from .exceptions import FetchError
from .user_agent import feed_request_headers

logger = logging.getLogger(__name__)

TRANSIENT_ERRORS = (aiohttp.ClientConnectionError, asyncio.TimeoutError)
RETRY_WAIT = wait_random_exponential(multiplier=5, max=300)


@dataclass
class FetchResult:
    url: str
    text: str
    status: int
    elapsed: float  # seconds
    size: int  # bytes of decoded text, utf-8


async def _get(
    session: aiohttp.ClientSession,
    url: str,
    timeout: float,
    user_agent: Optional[str],
) -> FetchResult:
    started = time.monotonic()
    async with session.get(
        url,
        headers=feed_request_headers(user_agent),
        timeout=aiohttp.ClientTimeout(total=timeout),
    ) as resp:
        if not 200 <= resp.status < 300:
            raise FetchError(url, resp.status, resp.reason or "")
        text = await resp.text(errors="replace")
    return FetchResult(
        url=url,
        text=text,
        status=resp.status,
        elapsed=time.monotonic() - started,
        size=len(text.encode("utf-8")),
    )


async def fetch_feed(
    session: aiohttp.ClientSession,
    url: str,
    timeout: float = 30,
    attempts: int = 1,
    user_agent: Optional[str] = None,
) -> FetchResult:
    """Download one feed.

    Parameters
    ----------
    session : aiohttp.ClientSession
        HTTP session to issue the request on
    url : str
        Feed URL
    timeout : float
        Total request timeout in seconds
    attempts : int
        Attempts for connection-level failures; HTTP errors are never retried
    user_agent : str, optional
        Overrides the default ``Helix-RSS-Monitor/1.0``

    Returns
    -------
    FetchResult
        Raw body text plus response details

    Raises
    ------
    FetchError
        On a non-2xx status, a connection failure or a timeout
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, attempts)),
        wait=RETRY_WAIT,
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                result = await _get(session, url, timeout, user_agent)
    except asyncio.TimeoutError as e:
        raise FetchError(url, None, f"timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise FetchError(url, None, str(e) or type(e).__name__) from e

    logger.debug(f"Fetched {result.size} bytes from {url} in {result.elapsed:.2f}s")
    return result
