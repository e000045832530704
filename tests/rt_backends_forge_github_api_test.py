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

"""Tests for the GitHub REST API forge backend.

Uses httpx mock transport to avoid real network calls.
"""

from __future__ import annotations

import json
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx
import pytest
from releasetrain.backends.forge import Forge
from releasetrain.backends.forge.github_api import GitHubAPIBackend, resolve_token
from releasetrain.errors import BackendUnavailable

Handler = Callable[[httpx.Request], httpx.Response]


def _make_client_cm(handler: Handler) -> Any:  # noqa: ANN401
    """Create a context manager that yields an httpx.AsyncClient with mock transport."""

    @asynccontextmanager
    async def _client_cm(**kw: Any) -> AsyncGenerator[httpx.AsyncClient]:  # noqa: ANN401
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            yield client

    return _client_cm


class _Recorder:
    """Mock transport handler that records requests and replies from a table."""

    def __init__(self, responses: dict[str, tuple[int, object]]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = f'{request.method} {request.url.path}'
        status, body = self.responses.get(key, (404, {'message': 'Not Found'}))
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)


@pytest.fixture()
def gh() -> GitHubAPIBackend:
    """Create a GitHubAPIBackend fixture."""
    return GitHubAPIBackend(owner='acme', repo='app', token='fake-token', base_url='https://api.github.com')


def _patch(monkeypatch: pytest.MonkeyPatch, recorder: _Recorder) -> None:
    monkeypatch.setattr('releasetrain.backends.forge.github_api.http_client', _make_client_cm(recorder))


class TestInit:
    """Tests for construction and auth."""

    def test_explicit_token(self) -> None:
        """An explicit token is used."""
        api = GitHubAPIBackend(owner='o', repo='r', token='tok')
        assert api._headers['Authorization'] == 'Bearer tok'

    def test_env_github_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """GITHUB_TOKEN is picked up."""
        monkeypatch.setenv('GITHUB_TOKEN', 'env-tok')
        assert GitHubAPIBackend(owner='o', repo='r')._headers['Authorization'] == 'Bearer env-tok'

    def test_env_gh_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """GH_TOKEN is the last fallback."""
        monkeypatch.delenv('GITHUB_TOKEN', raising=False)
        monkeypatch.setenv('GH_TOKEN', 'gh-tok')
        assert GitHubAPIBackend(owner='o', repo='r')._headers['Authorization'] == 'Bearer gh-tok'

    def test_no_token_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """No token fails fast."""
        monkeypatch.delenv('GITHUB_TOKEN', raising=False)
        monkeypatch.delenv('GH_TOKEN', raising=False)
        with pytest.raises(ValueError, match='No GitHub token'):
            GitHubAPIBackend(owner='o', repo='r')

    def test_repr_hides_token(self, gh: GitHubAPIBackend) -> None:
        """The token never appears in repr."""
        assert 'fake-token' not in repr(gh)

    def test_satisfies_protocol(self, gh: GitHubAPIBackend) -> None:
        """The backend is a Forge."""
        assert isinstance(gh, Forge)

    def test_api_root_from_actions(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """GITHUB_API_URL selects the API root, e.g. for GitHub Enterprise."""
        monkeypatch.setenv('GITHUB_API_URL', 'https://ghe.example.com/api/v3/')
        api = GitHubAPIBackend(owner='o', repo='r', token='t')
        assert api._repo_url == 'https://ghe.example.com/api/v3/repos/o/r'

    def test_resolve_token_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Explicit beats GITHUB_TOKEN beats GH_TOKEN."""
        monkeypatch.setenv('GITHUB_TOKEN', 'a')
        monkeypatch.setenv('GH_TOKEN', 'b')
        assert resolve_token('x') == 'x'
        assert resolve_token() == 'a'
        monkeypatch.delenv('GITHUB_TOKEN')
        assert resolve_token() == 'b'


class TestReads:
    """Tests for labels, comments and issues."""

    @pytest.mark.asyncio
    async def test_pr_labels(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """Label names are returned."""
        recorder = _Recorder({'GET /repos/acme/app/issues/4/labels': (200, [{'name': 'minor'}, {'name': 'docs'}])})
        _patch(monkeypatch, recorder)
        assert await gh.pr_labels(4) == ['minor', 'docs']

    @pytest.mark.asyncio
    async def test_pr_labels_unavailable(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """A failed label read is fatal, not an empty set."""
        _patch(monkeypatch, _Recorder({'GET /repos/acme/app/issues/4/labels': (403, {'message': 'Forbidden'})}))
        with pytest.raises(BackendUnavailable):
            await gh.pr_labels(4)

    @pytest.mark.asyncio
    async def test_bad_json(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """An undecodable body is a backend failure."""
        _patch(monkeypatch, _Recorder({'GET /repos/acme/app/issues/4/labels': (200, 'not json')}))
        with pytest.raises(BackendUnavailable):
            await gh.pr_labels(4)

    @pytest.mark.asyncio
    async def test_list_comments(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """Comments come back as id and body."""
        _patch(
            monkeypatch,
            _Recorder({'GET /repos/acme/app/issues/4/comments': (200, [{'id': 11, 'body': 'hi', 'user': {}}])}),
        )
        assert await gh.list_comments(4) == [{'id': 11, 'body': 'hi'}]

    @pytest.mark.asyncio
    async def test_list_issues_skips_pull_requests(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """The issues endpoint also returns PRs; they are dropped."""
        recorder = _Recorder(
            {
                'GET /repos/acme/app/issues': (
                    200,
                    [{'number': 1, 'title': 'Sync conflict: beta -> alpha'}, {'number': 2, 'title': 'PR', 'pull_request': {}}],
                ),
            },
        )
        _patch(monkeypatch, recorder)
        issues = await gh.list_issues(labels=['merge-conflict', 'automated'])
        assert issues == [{'number': 1, 'title': 'Sync conflict: beta -> alpha'}]
        params = recorder.requests[0].url.params
        assert params['labels'] == 'merge-conflict,automated'
        assert params['state'] == 'open'

    @pytest.mark.asyncio
    async def test_pagination(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """Link rel=next is followed until the last page."""
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.url.params.get('page', '1'))
            if 'page' not in request.url.params:
                nxt = 'https://api.github.com/repos/acme/app/issues/4/comments?per_page=100&page=2'
                return httpx.Response(200, json=[{'id': 1, 'body': 'a'}], headers={'link': f'<{nxt}>; rel="next"'})
            return httpx.Response(200, json=[{'id': 2, 'body': 'b'}])

        monkeypatch.setattr('releasetrain.backends.forge.github_api.http_client', _make_client_cm(handler))
        comments = await gh.list_comments(4)
        assert [c['id'] for c in comments] == [1, 2]
        assert seen == ['1', '2']

    @pytest.mark.asyncio
    async def test_non_list_payload(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """An object where a list is expected is a backend failure."""
        _patch(monkeypatch, _Recorder({'GET /repos/acme/app/issues/4/labels': (200, {'message': 'odd'})}))
        with pytest.raises(BackendUnavailable):
            await gh.pr_labels(4)


class TestWrites:
    """Tests for comment and issue writes."""

    @pytest.mark.asyncio
    async def test_create_comment(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """The body is posted as JSON."""
        recorder = _Recorder({'POST /repos/acme/app/issues/4/comments': (201, {'id': 12})})
        _patch(monkeypatch, recorder)
        result = await gh.create_comment(4, 'hello')
        assert result.ok
        assert json.loads(recorder.requests[0].content) == {'body': 'hello'}

    @pytest.mark.asyncio
    async def test_update_comment(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """Updates PATCH the comment by id."""
        recorder = _Recorder({'PATCH /repos/acme/app/issues/comments/12': (200, {'id': 12})})
        _patch(monkeypatch, recorder)
        assert (await gh.update_comment(12, 'new')).ok

    @pytest.mark.asyncio
    async def test_create_issue(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """Issues carry their labels."""
        recorder = _Recorder({'POST /repos/acme/app/issues': (201, {'number': 3})})
        _patch(monkeypatch, recorder)
        result = await gh.create_issue('Sync conflict: beta -> alpha', 'body', labels=['merge-conflict'])
        assert result.ok
        sent = json.loads(recorder.requests[0].content)
        assert sent == {'title': 'Sync conflict: beta -> alpha', 'body': 'body', 'labels': ['merge-conflict']}

    @pytest.mark.asyncio
    async def test_write_failure_is_a_result(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """A rejected write returns a failed result."""
        _patch(monkeypatch, _Recorder({'POST /repos/acme/app/issues': (422, {'message': 'Validation Failed'})}))
        result = await gh.create_issue('t', 'b')
        assert not result.ok
        assert result.return_code == 422
        assert 'Validation Failed' in result.stderr

    @pytest.mark.asyncio
    async def test_dry_run(self, gh: GitHubAPIBackend, monkeypatch: pytest.MonkeyPatch) -> None:
        """Dry runs send nothing."""
        recorder = _Recorder({})
        _patch(monkeypatch, recorder)
        result = await gh.create_comment(4, 'x', dry_run=True)
        assert result.ok
        assert result.dry_run
        assert recorder.requests == []
