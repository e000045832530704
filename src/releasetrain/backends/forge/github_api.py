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
"""GitHub REST API forge backend for releasetrain.

Implements :class:`~releasetrain.backends.forge.Forge` over ``httpx``.
A run needs a handful of calls against the repository it is running
in::

    GET   /repos/{o}/{r}/issues/{pr}/labels      release signal
    GET   /repos/{o}/{r}/issues/{pr}/comments    find the preview comment
    POST  /repos/{o}/{r}/issues/{pr}/comments    first preview
    PATCH /repos/{o}/{r}/issues/comments/{id}    later previews
    GET   /repos/{o}/{r}/issues?labels=...       open escalation issues
    POST  /repos/{o}/{r}/issues                  new escalation issue

Reads follow ``Link: rel="next"`` pagination and raise
:class:`~releasetrain.errors.BackendUnavailable` on any failure; the
resolver must not run on a partial view. Writes return a
:class:`CommandResult` and leave the decision to the caller.

Inside GitHub Actions the API root comes from ``GITHUB_API_URL``, which
also points at GitHub Enterprise Server when the workflow runs there.
The token is resolved by :func:`resolve_token`.
"""

from __future__ import annotations

import os
from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from typing import Any

import httpx

from releasetrain.backends._run import CommandResult
from releasetrain.errors import BackendUnavailable
from releasetrain.logging import get_logger
from releasetrain.net import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT, http_client, request_with_retry

log = get_logger('releasetrain.backends.forge.github_api')

_DEFAULT_BASE_URL = 'https://api.github.com'
_API_VERSION = '2022-11-28'
_PER_PAGE = 100
_MAX_PAGES = 10


def resolve_token(token: str = '') -> str:
    """Return ``token``, else ``GITHUB_TOKEN``, else ``GH_TOKEN``, else ``''``."""
    return token or os.environ.get('GITHUB_TOKEN', '') or os.environ.get('GH_TOKEN', '')


class GitHubAPIBackend:
    """Forge client for one GitHub repository.

    Args:
        owner: Repository owner (``"acme"`` in ``acme/widgets``).
        repo: Repository name.
        token: API token; see :func:`resolve_token`.
        base_url: API root. Defaults to ``GITHUB_API_URL`` or
            ``https://api.github.com``.
        pool_size: HTTP connection pool size.
        timeout: HTTP request timeout in seconds.

    Raises:
        ValueError: If no token can be found.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str = '',
        base_url: str = '',
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize with the repository coordinates and a token."""
        self._owner = owner
        self._repo = repo
        api_root = (base_url or os.environ.get('GITHUB_API_URL', '') or _DEFAULT_BASE_URL).rstrip('/')
        self._repo_url = f'{api_root}/repos/{owner}/{repo}'
        self._pool_size = pool_size
        self._timeout = timeout

        secret = resolve_token(token)
        if not secret:
            msg = f'No GitHub token for {owner}/{repo}: set GITHUB_TOKEN or GH_TOKEN.'
            raise ValueError(msg)
        self._headers = {
            'Authorization': f'Bearer {secret}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': _API_VERSION,
        }

    def __repr__(self) -> str:
        """Show the repository, never the token."""
        return f'GitHubAPIBackend(owner={self._owner!r}, repo={self._repo!r})'

    def _client(self) -> AbstractAsyncContextManager[httpx.AsyncClient]:
        return http_client(pool_size=self._pool_size, timeout=self._timeout, headers=self._headers)

    async def _pages(self, url: str, what: str) -> AsyncIterator[list[Any]]:
        """Yield each page of a list endpoint; any failure is fatal to the run."""
        async with self._client() as client:
            next_url: str | None = url
            for _ in range(_MAX_PAGES):
                if next_url is None:
                    return
                try:
                    response = await request_with_retry(client, 'GET', next_url)
                except httpx.HTTPError as exc:
                    raise BackendUnavailable(f'Could not read {what}: {exc}') from exc
                if response.status_code != 200:
                    raise BackendUnavailable(
                        f'Could not read {what}: HTTP {response.status_code}',
                        hint='Check GITHUB_TOKEN permissions (pull-requests and issues: read).',
                    )
                try:
                    page = response.json()
                except ValueError as exc:
                    raise BackendUnavailable(f'Could not decode {what}: {exc}') from exc
                if not isinstance(page, list):
                    raise BackendUnavailable(f'Unexpected payload for {what}: {type(page).__name__}')
                yield page
                next_url = response.links.get('next', {}).get('url')
            if next_url is not None:
                log.warning('github_api_pages_truncated', what=what, pages=_MAX_PAGES)

    async def _read_all(self, url: str, what: str) -> list[Any]:
        items: list[Any] = []
        async for page in self._pages(url, what):
            items.extend(page)
        return items

    async def _write(self, method: str, url: str, payload: dict[str, Any], *, dry_run: bool) -> CommandResult:
        if dry_run:
            log.info('dry_run_github_write', method=method, url=url)
            return CommandResult(command=[method, url], return_code=0, dry_run=True)
        try:
            async with self._client() as client:
                response = await request_with_retry(client, method, url, json=payload)
        except httpx.HTTPError as exc:
            log.warning('github_api_write_failed', method=method, url=url, error=str(exc))
            return CommandResult(command=[method, url], return_code=1, stderr=str(exc))
        if not response.is_success:
            log.warning('github_api_write_rejected', method=method, url=url, status=response.status_code)
        return CommandResult(
            command=[method, url],
            return_code=0 if response.is_success else response.status_code,
            stdout=response.text,
            stderr='' if response.is_success else response.text,
        )

    async def pr_labels(self, pr_number: int) -> list[str]:
        """Return the label names on a pull request."""
        url = f'{self._repo_url}/issues/{pr_number}/labels?per_page={_PER_PAGE}'
        data = await self._read_all(url, f'labels of PR #{pr_number}')
        return [lbl.get('name', '') for lbl in data if lbl.get('name')]

    async def list_comments(self, pr_number: int) -> list[dict[str, Any]]:
        """Return the comments on a pull request, oldest first."""
        url = f'{self._repo_url}/issues/{pr_number}/comments?per_page={_PER_PAGE}'
        data = await self._read_all(url, f'comments of PR #{pr_number}')
        return [{'id': c.get('id', 0), 'body': c.get('body') or ''} for c in data]

    async def create_comment(self, pr_number: int, body: str, *, dry_run: bool = False) -> CommandResult:
        """Post a new comment on a pull request."""
        result = await self._write('POST', f'{self._repo_url}/issues/{pr_number}/comments', {'body': body}, dry_run=dry_run)
        log.info('create_comment', pr=pr_number, ok=result.ok)
        return result

    async def update_comment(self, comment_id: int, body: str, *, dry_run: bool = False) -> CommandResult:
        """Replace the body of an existing comment."""
        url = f'{self._repo_url}/issues/comments/{comment_id}'
        result = await self._write('PATCH', url, {'body': body}, dry_run=dry_run)
        log.info('update_comment', comment_id=comment_id, ok=result.ok)
        return result

    async def list_issues(self, *, labels: list[str], state: str = 'open') -> list[dict[str, Any]]:
        """Return issues carrying all ``labels``; pull requests are skipped."""
        url = f'{self._repo_url}/issues?state={state}&labels={",".join(labels)}&per_page={_PER_PAGE}'
        data = await self._read_all(url, 'issues')
        return [
            {'number': issue.get('number', 0), 'title': issue.get('title', '')}
            for issue in data
            if 'pull_request' not in issue
        ]

    async def create_issue(
        self,
        title: str,
        body: str,
        *,
        labels: list[str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Open a tracking issue."""
        payload: dict[str, Any] = {'title': title, 'body': body}
        if labels:
            payload['labels'] = labels
        result = await self._write('POST', f'{self._repo_url}/issues', payload, dry_run=dry_run)
        log.info('create_issue', title=title, labels=labels, ok=result.ok)
        return result


__all__ = [
    'GitHubAPIBackend',
    'resolve_token',
]
