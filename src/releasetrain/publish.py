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

"""Registry publishing.

Runs the configured publish command once a version has been tagged::

    publish_command = ["npm", "publish", "--tag", "{dist_tag}"]

    v1.2.0-alpha.3  →  npm publish --tag alpha
    v1.2.0-beta.0   →  npm publish --tag beta
    v1.2.0          →  npm publish --tag latest

``{dist_tag}`` and ``{version}`` are substituted in every argument.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from releasetrain.backends._run import CommandResult, run_command
from releasetrain.logging import get_logger

logger = get_logger(__name__)


class CommandPublisher:
    """Publishes by running a command in the repository root.

    Args:
        command: Argument template.
        cwd: Working directory for the command.
        timeout: Seconds before the command is killed.
    """

    def __init__(self, command: Sequence[str], *, cwd: Path, timeout: int = 600) -> None:
        """Initialize with the command template."""
        self._command = tuple(command)
        self._cwd = cwd
        self._timeout = timeout

    def render(self, version: str, dist_tag: str) -> list[str]:
        """Return the command with placeholders filled in."""
        return [arg.replace('{dist_tag}', dist_tag).replace('{version}', version) for arg in self._command]

    async def publish(self, version: str, dist_tag: str, *, dry_run: bool = False) -> CommandResult:
        """Publish ``version`` under ``dist_tag``; the result reports success."""
        cmd = self.render(version, dist_tag)
        result = await asyncio.to_thread(run_command, cmd, cwd=self._cwd, dry_run=dry_run, timeout=self._timeout)
        if result.ok:
            logger.info('publish_succeeded', version=version, dist_tag=dist_tag)
        else:
            logger.error('publish_failed', version=version, dist_tag=dist_tag, stderr=result.stderr.strip()[:500])
        return result


__all__ = [
    'CommandPublisher',
]
