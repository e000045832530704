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

"""Fake VCS backend for tests.

Provides a configurable :class:`FakeVCS` that satisfies the full
:class:`~releasetrain.backends.vcs.VCS` protocol. Every call is recorded
in :attr:`FakeVCS.calls` as ``(method, *args)`` so tests can assert on
the exact sequence of git operations.

Results of the operations that can fail (merge, push, commit, tag,
checkout, rebase) are scripted: pass a list and each call pops the next
result; once the list is empty, calls succeed.
"""

from __future__ import annotations

from releasetrain.backends._run import CommandResult
from releasetrain.errors import BackendUnavailable

OK = CommandResult(command=[], return_code=0, stdout='', stderr='')
"""A successful no-op ``CommandResult`` for use as a default return value."""

FAILED = CommandResult(command=[], return_code=1, stdout='', stderr='rejected')
"""A failed ``CommandResult``."""


class FakeVCS:
    """Configurable, recording VCS test double."""

    def __init__(
        self,
        *,
        tags: list[str] | None = None,
        list_tags_fails: bool = False,
        log_lines: list[str] | None = None,
        log_by_range: dict[str, list[str]] | None = None,
        refs: dict[str, str] | None = None,
        merge_results: list[CommandResult] | None = None,
        unmerged: list[list[str]] | None = None,
        push_results: list[CommandResult] | None = None,
        commit_results: list[CommandResult] | None = None,
        tag_results: list[CommandResult] | None = None,
        checkout_results: list[CommandResult] | None = None,
        rebase_results: list[CommandResult] | None = None,
    ) -> None:
        """Initialize with scripted state.

        Args:
            tags: Tag names, oldest first. ``tag()`` appends to it.
            list_tags_fails: Make ``list_tags()`` raise ``BackendUnavailable``.
            log_lines: Lines returned by ``log()`` for unknown ranges.
            log_by_range: Lines returned by ``log()`` per ``rev_range``.
            refs: Ref name to SHA for ``rev_parse()``.
            merge_results: Scripted ``merge()`` results.
            unmerged: Scripted ``unmerged_paths()`` results.
            push_results: Scripted ``push()`` results.
            commit_results: Scripted ``commit()`` results.
            tag_results: Scripted ``tag()`` results.
            checkout_results: Scripted ``checkout()`` results.
            rebase_results: Scripted ``rebase()`` results.
        """
        self.tags: list[str] = list(tags or [])
        self._list_tags_fails = list_tags_fails
        self._log_lines = log_lines or []
        self._log_by_range = log_by_range or {}
        self.refs: dict[str, str] = dict(refs or {})
        self._merge_results = list(merge_results or [])
        self._unmerged = list(unmerged or [])
        self._push_results = list(push_results or [])
        self._commit_results = list(commit_results or [])
        self._tag_results = list(tag_results or [])
        self._checkout_results = list(checkout_results or [])
        self._rebase_results = list(rebase_results or [])
        self.calls: list[tuple[object, ...]] = []
        self.list_tags_calls = 0

    @staticmethod
    def _next(script: list[CommandResult]) -> CommandResult:
        return script.pop(0) if script else OK

    def names(self) -> list[str]:
        """Return the recorded method names, in call order."""
        return [str(call[0]) for call in self.calls]

    # -- Reads ---------------------------------------------------------------

    async def fetch(self, *, remote: str = 'origin', branch: str | None = None, tags: bool = False) -> CommandResult:
        """Record the fetch."""
        self.calls.append(('fetch', remote, branch, tags))
        return OK

    async def list_tags(self) -> list[str]:
        """Return the tag list, or fail if configured to."""
        self.list_tags_calls += 1
        if self._list_tags_fails:
            raise BackendUnavailable('Could not list tags: fake outage')
        return list(self.tags)

    async def rev_parse(self, ref: str) -> str:
        """Return the configured SHA, or ``''``."""
        return self.refs.get(ref, '')

    async def log(self, *, rev_range: str = 'HEAD', format: str = '%s', max_commits: int = 0) -> list[str]:
        """Return canned log lines for ``rev_range``."""
        self.calls.append(('log', rev_range))
        lines = self._log_by_range.get(rev_range, self._log_lines)
        return list(lines[:max_commits] if max_commits else lines)

    async def unmerged_paths(self) -> list[str]:
        """Return the next scripted conflict list."""
        return self._unmerged.pop(0) if self._unmerged else []

    # -- Writes --------------------------------------------------------------

    async def configure_identity(self, name: str, email: str) -> CommandResult:
        """Record the identity."""
        self.calls.append(('configure_identity', name, email))
        return OK

    async def checkout(self, branch: str, *, start_point: str | None = None, dry_run: bool = False) -> CommandResult:
        """Record the checkout."""
        self.calls.append(('checkout', branch, start_point))
        return self._next(self._checkout_results)

    async def merge(
        self,
        ref: str,
        *,
        message: str | None = None,
        commit: bool = True,
        strategy_option: str | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Record the merge."""
        self.calls.append(('merge', ref, commit))
        return self._next(self._merge_results)

    async def merge_abort(self) -> CommandResult:
        """Record the abort."""
        self.calls.append(('merge_abort',))
        return OK

    async def checkout_theirs(self, paths: list[str]) -> CommandResult:
        """Record the resolution."""
        self.calls.append(('checkout_theirs', *paths))
        return OK

    async def checkout_ours(self, paths: list[str]) -> CommandResult:
        """Record the resolution."""
        self.calls.append(('checkout_ours', *paths))
        return OK

    async def add(self, paths: list[str]) -> CommandResult:
        """Record the staging."""
        self.calls.append(('add', *paths))
        return OK

    async def commit(self, message: str, *, paths: list[str] | None = None, dry_run: bool = False) -> CommandResult:
        """Record the commit."""
        self.calls.append(('commit', message))
        return self._next(self._commit_results)

    async def tag(
        self,
        tag_name: str,
        *,
        message: str | None = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Record the tag and add it to the tag list on success."""
        self.calls.append(('tag', tag_name, force))
        result = self._next(self._tag_results)
        if result.ok and tag_name not in self.tags:
            self.tags.append(tag_name)
        return result

    async def push(
        self,
        refspec: str,
        *,
        remote: str = 'origin',
        lease: tuple[str, str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Record the push."""
        self.calls.append(('push', refspec, lease))
        return self._next(self._push_results)

    async def rebase(self, upstream: str, *, rebase_merges: bool = False) -> CommandResult:
        """Record the rebase."""
        self.calls.append(('rebase', upstream, rebase_merges))
        return self._next(self._rebase_results)

    async def rebase_abort(self) -> CommandResult:
        """Record the abort."""
        self.calls.append(('rebase_abort',))
        return OK
