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

"""VCS protocol for releasetrain.

The :class:`VCS` protocol defines the version-control operations the
resolver, the sync coordinator and the orchestrator need. The only
implementation is :class:`~releasetrain.backends.vcs.git.GitCLIBackend`,
which shells out to ``git``; tests use an in-memory fake.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from releasetrain.backends._run import CommandResult
from releasetrain.backends.vcs.git import GitCLIBackend as GitCLIBackend

__all__ = [
    'GitCLIBackend',
    'VCS',
]


@runtime_checkable
class VCS(Protocol):
    """Protocol for version control operations.

    All methods are async to avoid blocking the event loop when
    shelling out to ``git``. Write operations accept ``dry_run`` and
    return a :class:`CommandResult`; callers inspect ``ok`` themselves.
    """

    async def fetch(self, *, remote: str = 'origin', branch: str | None = None, tags: bool = False) -> CommandResult:
        """Fetch ``branch`` (or everything) from ``remote``.

        Args:
            remote: Remote name.
            branch: Single branch to fetch, or ``None`` for all refs.
            tags: Also fetch all tags.
        """
        ...

    async def list_tags(self) -> list[str]:
        """Return every tag name, oldest creation first.

        Raises:
            BackendUnavailable: If the tag list cannot be read.
        """
        ...

    async def rev_parse(self, ref: str) -> str:
        """Return the commit SHA of ``ref``, or ``''`` if it does not exist."""
        ...

    async def log(self, *, rev_range: str = 'HEAD', format: str = '%s', max_commits: int = 0) -> list[str]:
        """Return one formatted line per commit in ``rev_range``.

        Args:
            rev_range: A revision or ``a..b`` range.
            format: ``--pretty=format:`` string.
            max_commits: Limit on returned commits; 0 means no limit.
        """
        ...

    async def configure_identity(self, name: str, email: str) -> CommandResult:
        """Set the author name and email for commits made by this run."""
        ...

    async def checkout(self, branch: str, *, start_point: str | None = None, dry_run: bool = False) -> CommandResult:
        """Switch to ``branch``.

        With ``start_point`` the branch is (re)created at that revision,
        discarding whatever it pointed at before.
        """
        ...

    async def merge(
        self,
        ref: str,
        *,
        message: str | None = None,
        commit: bool = True,
        strategy_option: str | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Merge ``ref`` into the current branch with a merge commit.

        Args:
            ref: Revision to merge.
            message: Merge commit message.
            commit: ``False`` stops before committing (``--no-commit``).
            strategy_option: Passed as ``-X``, e.g. ``"theirs"``.
            dry_run: Log the command without executing it.
        """
        ...

    async def merge_abort(self) -> CommandResult:
        """Abort an in-progress merge."""
        ...

    async def checkout_theirs(self, paths: list[str]) -> CommandResult:
        """Resolve ``paths`` to the merged-in side of an in-progress merge."""
        ...

    async def checkout_ours(self, paths: list[str]) -> CommandResult:
        """Resolve ``paths`` to the current branch's side of an in-progress merge."""
        ...

    async def unmerged_paths(self) -> list[str]:
        """Return paths that still carry merge conflicts."""
        ...

    async def add(self, paths: list[str]) -> CommandResult:
        """Stage ``paths``."""
        ...

    async def commit(self, message: str, *, paths: list[str] | None = None, dry_run: bool = False) -> CommandResult:
        """Create a commit, staging ``paths`` first (everything if ``None``)."""
        ...

    async def tag(
        self,
        tag_name: str,
        *,
        message: str | None = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> CommandResult:
        """Create a tag at HEAD (annotated when ``message`` is given).

        With ``force`` an existing local tag is moved to HEAD.
        """
        ...

    async def push(
        self,
        refspec: str,
        *,
        remote: str = 'origin',
        lease: tuple[str, str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Push a single refspec.

        Args:
            refspec: Branch or tag to push.
            remote: Remote name.
            lease: ``(branch, expected_sha)``; the push only succeeds if
                the remote branch still points at ``expected_sha``.
            dry_run: Log the command without executing it.
        """
        ...

    async def rebase(self, upstream: str, *, rebase_merges: bool = False) -> CommandResult:
        """Rebase the current branch onto ``upstream``, recreating merges if asked."""
        ...

    async def rebase_abort(self) -> CommandResult:
        """Abort an in-progress rebase."""
        ...
