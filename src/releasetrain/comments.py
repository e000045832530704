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

"""Pull request comments and commit message templates.

A run keeps exactly one comment on its pull request, found again by a
hidden marker and rewritten in place::

    <!-- releasetrain -->
    ## Version Management

    | Item            | Value           |
    |-----------------|-----------------|
    | Source branch   | `alpha`         |
    | Target branch   | `beta`          |
    | Current version | `v1.1.0-beta.2` |
    | Next version    | `v1.2.0-beta.0` |

Commit messages of automated commits carry markers that
:func:`is_automated_commit` recognises, so the runs they trigger stop
immediately instead of cascading between branches.
"""

from __future__ import annotations

from collections.abc import Iterable

from releasetrain.backends._run import CommandResult
from releasetrain.backends.forge import Forge
from releasetrain.logging import get_logger

logger = get_logger(__name__)

COMMENT_MARKER = '<!-- releasetrain -->'

SKIP_CI = '[skip ci]'


def bump_commit_message(version: str, branch: str) -> str:
    """Message of the commit that writes the new version."""
    return f'chore: bump version to {version} for {branch}'


def sync_commit_message(source_branch: str, target_branch: str, version: str) -> str:
    """Message of a downstream sync merge."""
    return f'chore: sync {source_branch} v{version} to {target_branch} {SKIP_CI}'


def changelog_commit_message(version: str) -> str:
    """Message of the changelog commit."""
    return f'docs: update CHANGELOG for {version}'


def is_automated_commit(message: str, markers: Iterable[str]) -> bool:
    """Whether ``message`` was written by a previous run."""
    return any(marker in message for marker in markers)


def _header(title: str) -> str:
    return f'{COMMENT_MARKER}\n## {title}\n'


def preview_comment(
    title: str,
    *,
    source_branch: str,
    target_branch: str,
    current: str | None,
    next_version: str,
) -> str:
    """Body of the comment announcing the version a merge will release."""
    return (
        f'{_header(title)}\n'
        '| Item | Value |\n'
        '|------|-------|\n'
        f'| **Source branch** | `{source_branch}` |\n'
        f'| **Target branch** | `{target_branch}` |\n'
        f'| **Current version** | `{current or "none"}` |\n'
        f'| **Next version** | `{next_version}` |\n'
        '\n'
        '> This is a preview. Merging the pull request tags the release and updates the version.'
    )


def skip_comment(title: str, *, target_branch: str, current: str | None, reason: str) -> str:
    """Body of the comment saying a merge will not release anything."""
    return (
        f'{_header(title)}\n'
        '| Item | Value |\n'
        '|------|-------|\n'
        f'| **Target branch** | `{target_branch}` |\n'
        f'| **Current version** | `{current or "none"}` |\n'
        f'| **Status** | `skipped: {reason}` |\n'
        '\n'
        '> No version bump is needed for this merge.'
    )


def error_comment(title: str, *, message: str, hint: str = '') -> str:
    """Body of the comment reporting a rule violation."""
    body = f'{_header(title)}\n**Error**\n\n{message}\n'
    if hint:
        body += f'\n> {hint}'
    return body


async def upsert_comment(
    forge: Forge,
    pr_number: int,
    body: str,
    *,
    marker: str = COMMENT_MARKER,
    dry_run: bool = False,
) -> CommandResult:
    """Update the comment carrying ``marker``, or post a new one.

    Raises:
        BackendUnavailable: If existing comments cannot be listed.
    """
    existing = next(
        (c for c in await forge.list_comments(pr_number) if marker in c.get('body', '')),
        None,
    )
    if existing is not None:
        result = await forge.update_comment(int(existing['id']), body, dry_run=dry_run)
    else:
        result = await forge.create_comment(pr_number, body, dry_run=dry_run)
    if not result.ok:
        logger.warning('comment_upsert_failed', pr=pr_number, stderr=result.stderr.strip()[:200])
    return result


__all__ = [
    'COMMENT_MARKER',
    'bump_commit_message',
    'changelog_commit_message',
    'error_comment',
    'is_automated_commit',
    'preview_comment',
    'skip_comment',
    'sync_commit_message',
    'upsert_comment',
]
