# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""HTTP plumbing for the GitHub REST API.

One pooled :class:`httpx.AsyncClient` per batch of calls, and a request
helper that waits out GitHub's throttling:

    ┌─────────────────────────────────┬──────────────────────────────────┐
    │ Response                        │ Handling                         │
    ├─────────────────────────────────┼──────────────────────────────────┤
    │ 429, 500, 502, 503, 504         │ retried with exponential backoff │
    │ 403 with x-ratelimit-remaining 0│ retried (primary rate limit)     │
    │ either of the above, Retry-After│ waits Retry-After seconds, capped│
    │ connect, read or write error    │ retried, re-raised when exhausted│
    │ anything else                   │ returned to the caller untouched │
    └─────────────────────────────────┴──────────────────────────────────┘

Business outcomes such as "tag already exists" (422) are never retried;
the gateway decides what they mean.

Usage::

    from monorelease.net import http_client, request_with_retry

    async with http_client(headers=headers) as client:
        response = await request_with_retry(client, 'GET', url)
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Final

import httpx

from monorelease import __version__
from monorelease.logging import get_logger

log = get_logger('monorelease.net')

DEFAULT_POOL_SIZE: Final[int] = 10
DEFAULT_TIMEOUT: Final[float] = 30.0
USER_AGENT: Final[str] = f'monorelease/{__version__}'

MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_BASE: Final[float] = 1.0
MAX_RETRY_AFTER: Final[float] = 60.0

RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})

_TRANSPORT_ERRORS = (httpx.ConnectError, httpx.ReadTimeout, httpx.WriteTimeout)


@asynccontextmanager
async def http_client(
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    base_url: str = '',
    headers: dict[str, str] | None = None,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Open a pooled async client.

    A ``User-Agent`` is always sent (GitHub rejects requests without one);
    ``headers`` can override it.

    Args:
        pool_size: Maximum number of connections in the pool.
        timeout: Request timeout in seconds.
        base_url: Optional base URL for all requests.
        headers: Default headers, typically auth and API version.

    Yields:
        An :class:`httpx.AsyncClient` instance.
    """
    limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
    async with httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        base_url=base_url,
        headers={'User-Agent': USER_AGENT, **(headers or {})},
        follow_redirects=True,
    ) as client:
        yield client


def is_rate_limited(response: httpx.Response) -> bool:
    """Whether GitHub is throttling, not refusing, the request."""
    if response.status_code in RETRYABLE_STATUS_CODES:
        return True
    return response.status_code == 403 and response.headers.get('x-ratelimit-remaining') == '0'


def retry_delay(response: httpx.Response | None, attempt: int, backoff_base: float) -> float:
    """Seconds to wait before retry number ``attempt + 1``.

    ``Retry-After`` wins when present and numeric, capped at
    :data:`MAX_RETRY_AFTER`; otherwise ``backoff_base * 2**attempt``.
    """
    if response is not None:
        retry_after = response.headers.get('retry-after', '')
        if retry_after.isdigit():
            return min(float(retry_after), MAX_RETRY_AFTER)
    return backoff_base * (2**attempt)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    backoff_base: float = RETRY_BACKOFF_BASE,
    **kwargs: object,
) -> httpx.Response:
    """Send a request, retrying while GitHub throttles or the transport fails.

    Args:
        client: The httpx async client to use.
        method: HTTP method.
        url: Request URL.
        max_retries: Retries after the first attempt.
        backoff_base: Base delay in seconds for exponential backoff.
        **kwargs: Passed through to ``client.request()``.

    Returns:
        The first response that is not throttled.

    Raises:
        httpx.HTTPStatusError: If every attempt was throttled.
        httpx.TransportError: If every attempt failed to connect, read
            or write.
    """
    response: httpx.Response | None = None
    for attempt in range(max_retries + 1):
        last_attempt = attempt == max_retries
        try:
            response = await client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except _TRANSPORT_ERRORS as exc:
            if last_attempt:
                raise
            delay = retry_delay(None, attempt, backoff_base)
            log.warning('http_retry_error', method=method, url=url, error=str(exc), attempt=attempt + 1, delay=delay)
            await asyncio.sleep(delay)
            continue

        if not is_rate_limited(response):
            return response
        if last_attempt:
            break
        delay = retry_delay(response, attempt, backoff_base)
        log.warning('http_retry', method=method, url=url, status=response.status_code, attempt=attempt + 1, delay=delay)
        await asyncio.sleep(delay)

    if response is None:
        msg = 'request_with_retry: no attempts were made'
        raise RuntimeError(msg)
    log.error('http_retries_exhausted', method=method, url=url, status=response.status_code)
    response.raise_for_status()
    raise httpx.HTTPStatusError(f'Rate limited: {url}', request=response.request, response=response)


__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'MAX_RETRIES',
    'MAX_RETRY_AFTER',
    'RETRYABLE_STATUS_CODES',
    'USER_AGENT',
    'http_client',
    'is_rate_limited',
    'request_with_retry',
    'retry_delay',
]
