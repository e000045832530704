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

"""Git CLI backend.

Implements the :class:`~releasetrain.backends.vcs.VCS` protocol by
delegating to ``git`` via :func:`~releasetrain.backends._run.run_command`.
All methods are async; blocking subprocess calls are dispatched to
``asyncio.to_thread()`` to avoid blocking the event loop.

Reads that the resolver depends on (the tag list) raise
:class:`~releasetrain.errors.BackendUnavailable` on failure. Writes
return the :class:`CommandResult` and leave the decision to the caller.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from releasetrain.backends._run import CommandResult, run_command
from releasetrain.errors import BackendUnavailable
from releasetrain.logging import get_logger

log = get_logger('releasetrain.backends.git')


class GitCLIBackend:
    """Default :class:`~releasetrain.backends.vcs.VCS` implementation using ``git``.

    Args:
        repo_root: Path to the git repository root.
    """

    def __init__(self, repo_root: Path) -> None:
        """Initialize with the git repository root path."""
        self._root = repo_root

    def _git(self, *args: str, dry_run: bool = False) -> CommandResult:
        """Run a git command synchronously (called via to_thread)."""
        return run_command(['git', *args], cwd=self._root, dry_run=dry_run)

    async def fetch(self, *, remote: str = 'origin', branch: str | None = None, tags: bool = False) -> CommandResult:
        """Fetch ``branch`` (or everything) from ``remote``."""
        cmd_parts = ['fetch', remote]
        if branch:
            cmd_parts.append(branch)
        if tags:
            cmd_parts.extend(['--tags', '--force'])
        return await asyncio.to_thread(self._git, *cmd_parts)

    async def list_tags(self) -> list[str]:
        """Return every tag name, oldest creation first."""
        result = await asyncio.to_thread(
            self._git,
            'for-each-ref',
            '--sort=creatordate',
            '--format=%(refname:short)',
            'refs/tags',
        )
        if not result.ok:
            raise BackendUnavailable(
                f'Could not list tags: {result.stderr.strip()}',
                hint='Check that the checkout is a git repository with its tags fetched.',
            )
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def rev_parse(self, ref: str) -> str:
        """Return the commit SHA of ``ref``, or ``''`` if it does not exist."""
        result = await asyncio.to_thread(self._git, 'rev-parse', '--verify', '--quiet', f'{ref}^{{commit}}')
        return result.stdout.strip() if result.ok else ''

    async def log(self, *, rev_range: str = 'HEAD', format: str = '%s', max_commits: int = 0) -> list[str]:
        """Return one formatted line per commit in ``rev_range``."""
        cmd_parts = ['log', f'--pretty=format:{format}']
        if max_commits > 0:
            cmd_parts.append(f'--max-count={max_commits}')
        cmd_parts.append(rev_range)
        result = await asyncio.to_thread(self._git, *cmd_parts)
        if not result.ok or not result.stdout.strip():
            return []
        return result.stdout.strip().splitlines()

    async def configure_identity(self, name: str, email: str) -> CommandResult:
        """Set ``user.name`` and ``user.email`` in the repository config."""
        await asyncio.to_thread(self._git, 'config', 'user.name', name)
        return await asyncio.to_thread(self._git, 'config', 'user.email', email)

    async def checkout(self, branch: str, *, start_point: str | None = None, dry_run: bool = False) -> CommandResult:
        """Switch to ``branch``, recreating it at ``start_point`` if given."""
        if start_point:
            return await asyncio.to_thread(self._git, 'checkout', '-B', branch, start_point, dry_run=dry_run)
        return await asyncio.to_thread(self._git, 'checkout', branch, dry_run=dry_run)

    async def merge(
        self,
        ref: str,
        *,
        message: str | None = None,
        commit: bool = True,
        strategy_option: str | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Merge ``ref`` into the current branch with ``--no-ff``."""
        cmd_parts = ['merge', '--no-ff']
        cmd_parts.append('--no-edit' if commit else '--no-commit')
        if strategy_option:
            cmd_parts.extend(['-X', strategy_option])
        if message and commit:
            cmd_parts.extend(['-m', message])
        cmd_parts.append(ref)
        log.info('merge', ref=ref, commit=commit, strategy_option=strategy_option)
        return await asyncio.to_thread(self._git, *cmd_parts, dry_run=dry_run)

    async def merge_abort(self) -> CommandResult:
        """Abort an in-progress merge."""
        return await asyncio.to_thread(self._git, 'merge', '--abort')

    async def checkout_theirs(self, paths: list[str]) -> CommandResult:
        """Take the merged-in side for ``paths``."""
        return await asyncio.to_thread(self._git, 'checkout', '--theirs', '--', *paths)

    async def checkout_ours(self, paths: list[str]) -> CommandResult:
        """Take the current branch's side for ``paths``."""
        return await asyncio.to_thread(self._git, 'checkout', '--ours', '--', *paths)

    async def unmerged_paths(self) -> list[str]:
        """Return paths that still carry merge conflicts."""
        result = await asyncio.to_thread(self._git, 'diff', '--name-only', '--diff-filter=U')
        return [line for line in result.stdout.splitlines() if line.strip()]

    async def add(self, paths: list[str]) -> CommandResult:
        """Stage ``paths``."""
        return await asyncio.to_thread(self._git, 'add', '--', *paths)

    async def commit(self, message: str, *, paths: list[str] | None = None, dry_run: bool = False) -> CommandResult:
        """Create a commit, staging ``paths`` first (everything if ``None``)."""
        if paths:
            await asyncio.to_thread(self._git, 'add', '--', *paths, dry_run=dry_run)
        else:
            await asyncio.to_thread(self._git, 'add', '-A', dry_run=dry_run)
        return await asyncio.to_thread(self._git, 'commit', '-m', message, dry_run=dry_run)

    async def tag(
        self,
        tag_name: str,
        *,
        message: str | None = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Create a tag at HEAD, moving an existing one when ``force`` is set."""
        cmd_parts = ['tag']
        if force:
            cmd_parts.append('--force')
        if message:
            cmd_parts.extend(['-a', tag_name, '-m', message])
        else:
            cmd_parts.append(tag_name)
        return await asyncio.to_thread(self._git, *cmd_parts, dry_run=dry_run)

    async def push(
        self,
        refspec: str,
        *,
        remote: str = 'origin',
        lease: tuple[str, str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Push a single refspec, optionally guarded by ``--force-with-lease``."""
        cmd_parts = ['push']
        if lease is not None:
            branch, expected = lease
            cmd_parts.append(f'--force-with-lease={branch}:{expected}')
        cmd_parts.extend([remote, refspec])
        log.info('push', remote=remote, refspec=refspec, lease=bool(lease))
        return await asyncio.to_thread(self._git, *cmd_parts, dry_run=dry_run)

    async def rebase(self, upstream: str, *, rebase_merges: bool = False) -> CommandResult:
        """Rebase the current branch onto ``upstream``."""
        if rebase_merges:
            return await asyncio.to_thread(self._git, 'rebase', '--rebase-merges', upstream)
        return await asyncio.to_thread(self._git, 'rebase', upstream)

    async def rebase_abort(self) -> CommandResult:
        """Abort an in-progress rebase."""
        return await asyncio.to_thread(self._git, 'rebase', '--abort')


__all__ = [
    'GitCLIBackend',
]
