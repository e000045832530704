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
"""HTTP utilities for the GitHub REST API.

Provides a managed :class:`httpx.AsyncClient` and a request helper that
retries transient host errors. GitHub signals rate limiting in two
ways, and both are honoured before falling back to exponential backoff::

    429 / 5xx                              retry
    403 + x-ratelimit-remaining: 0         retry (primary rate limit)
    Retry-After: N                         wait N seconds
    x-ratelimit-reset: <epoch>             wait until the reset
    otherwise                              wait backoff_base * 2**attempt

Every wait is capped at ``max_delay``: a CI job would rather fail than
sleep for an hour.

Usage::

    from releasetrain.net import http_client, request_with_retry

    async with http_client(headers=headers) as client:
        response = await request_with_retry(client, 'GET', url)
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Final

import httpx

from releasetrain.logging import get_logger

log = get_logger('releasetrain.net')

DEFAULT_POOL_SIZE: Final[int] = 4
DEFAULT_TIMEOUT: Final[float] = 30.0

MAX_RETRIES: Final[int] = 3
RETRY_BACKOFF_BASE: Final[float] = 1.0
MAX_RETRY_DELAY: Final[float] = 60.0

RETRYABLE_STATUS_CODES: Final[frozenset[int]] = frozenset({429, 500, 502, 503, 504})
TRANSIENT_ERRORS: Final[tuple[type[httpx.TransportError], ...]] = (
    httpx.ConnectError,
    httpx.ReadTimeout,
    httpx.WriteTimeout,
)


@asynccontextmanager
async def http_client(
    *,
    pool_size: int = DEFAULT_POOL_SIZE,
    timeout: float = DEFAULT_TIMEOUT,
    base_url: str = '',
    headers: dict[str, str] | None = None,
) -> AsyncGenerator[httpx.AsyncClient]:
    """Create a managed async HTTP client.

    Args:
        pool_size: Maximum number of connections in the pool.
        timeout: Request timeout in seconds.
        base_url: Optional base URL for all requests.
        headers: Optional default headers.

    Yields:
        An :class:`httpx.AsyncClient` instance.
    """
    limits = httpx.Limits(max_connections=pool_size, max_keepalive_connections=pool_size)
    async with httpx.AsyncClient(
        limits=limits,
        timeout=httpx.Timeout(timeout),
        base_url=base_url,
        headers=headers or {},
        follow_redirects=True,
    ) as client:
        yield client


def is_rate_limited(response: httpx.Response) -> bool:
    """Whether ``response`` is GitHub's primary rate limit (a 403 with no quota left)."""
    return response.status_code == 403 and response.headers.get('x-ratelimit-remaining') == '0'


def is_retryable(response: httpx.Response) -> bool:
    """Whether ``response`` is worth another attempt."""
    return response.status_code in RETRYABLE_STATUS_CODES or is_rate_limited(response)


def retry_delay(
    response: httpx.Response | None,
    attempt: int,
    *,
    backoff_base: float = RETRY_BACKOFF_BASE,
    max_delay: float = MAX_RETRY_DELAY,
    now: Callable[[], float] = time.time,
) -> float:
    """Seconds to wait before attempt ``attempt + 1``.

    ``Retry-After`` wins, then ``x-ratelimit-reset``, then exponential
    backoff. The result is never negative and never above ``max_delay``.
    """
    delay = backoff_base * (2**attempt)
    if response is not None:
        retry_after = response.headers.get('retry-after', '')
        reset = response.headers.get('x-ratelimit-reset', '')
        if retry_after.isdigit():
            delay = float(retry_after)
        elif reset.isdigit() and is_rate_limited(response):
            delay = float(reset) - now()
    return min(max(delay, 0.0), max_delay)


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = MAX_RETRIES,
    backoff_base: float = RETRY_BACKOFF_BASE,
    max_delay: float = MAX_RETRY_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    **kwargs: object,
) -> httpx.Response:
    """Make an HTTP request, retrying transient errors.

    Args:
        client: The httpx async client to use.
        method: HTTP method.
        url: Request URL.
        max_retries: Retries after the first attempt.
        backoff_base: Base delay in seconds.
        max_delay: Upper bound for any single wait.
        sleep: Coroutine used to wait.
        **kwargs: Passed through to ``client.request()``.

    Returns:
        The first non-retryable :class:`httpx.Response`.

    Raises:
        httpx.HTTPStatusError: If the last attempt still got a retryable status.
        httpx.TransportError: If every attempt failed to connect or timed out.
    """
    last_exception: httpx.TransportError | None = None
    response: httpx.Response | None = None

    for attempt in range(max_retries + 1):
        try:
            response = await client.request(method, url, **kwargs)  # type: ignore[arg-type]
        except TRANSIENT_ERRORS as exc:
            last_exception, response = exc, None
            log.warning('http_retry_error', url=url, error=str(exc), attempt=attempt + 1)
        else:
            if not is_retryable(response):
                return response
            log.warning(
                'http_retry',
                url=url,
                status=response.status_code,
                attempt=attempt + 1,
                rate_limited=is_rate_limited(response),
            )
        if attempt < max_retries:
            await sleep(retry_delay(response, attempt, backoff_base=backoff_base, max_delay=max_delay))

    if response is not None:
        response.raise_for_status()
        return response
    if last_exception is not None:
        raise last_exception
    msg = 'request_with_retry: no attempts were made'
    raise RuntimeError(msg)


__all__ = [
    'DEFAULT_POOL_SIZE',
    'DEFAULT_TIMEOUT',
    'MAX_RETRIES',
    'MAX_RETRY_DELAY',
    'RETRYABLE_STATUS_CODES',
    'http_client',
    'is_rate_limited',
    'is_retryable',
    'request_with_retry',
    'retry_delay',
]
