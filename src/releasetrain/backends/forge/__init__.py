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

"""Forge protocol for releasetrain.

The :class:`Forge` protocol covers the code-hosting operations a run
needs: reading pull request labels, upserting the preview comment and
opening escalation issues for unresolved sync conflicts. Implementation:

- :class:`~releasetrain.backends.forge.github_api.GitHubAPIBackend`: GitHub REST API via ``httpx``

The client is constructed once by the caller and passed explicitly to
every component that needs it.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from releasetrain.backends._run import CommandResult
from releasetrain.backends.forge.github_api import GitHubAPIBackend as GitHubAPIBackend

__all__ = [
    'Forge',
    'GitHubAPIBackend',
]


@runtime_checkable
class Forge(Protocol):
    """Protocol for code-hosting operations."""

    async def pr_labels(self, pr_number: int) -> list[str]:
        """Return the label names on a pull request.

        Raises:
            BackendUnavailable: If the host cannot be read.
        """
        ...

    async def list_comments(self, pr_number: int) -> list[dict[str, Any]]:
        """Return ``{"id", "body"}`` dicts for the comments on a pull request."""
        ...

    async def create_comment(self, pr_number: int, body: str, *, dry_run: bool = False) -> CommandResult:
        """Post a new comment on a pull request."""
        ...

    async def update_comment(self, comment_id: int, body: str, *, dry_run: bool = False) -> CommandResult:
        """Replace the body of an existing comment."""
        ...

    async def list_issues(self, *, labels: list[str], state: str = 'open') -> list[dict[str, Any]]:
        """Return ``{"number", "title"}`` dicts for issues carrying all ``labels``."""
        ...

    async def create_issue(
        self,
        title: str,
        body: str,
        *,
        labels: list[str] | None = None,
        dry_run: bool = False,
    ) -> CommandResult:
        """Open a tracking issue."""
        ...
