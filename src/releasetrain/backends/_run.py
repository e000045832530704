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
"""Central subprocess seam for releasetrain.

Every ``git`` invocation and the publish command go through
:func:`run_command`. A CI job has no terminal and its log is public, so
the seam:

- never lets a command prompt (``GIT_TERMINAL_PROMPT=0``);
- masks credentials embedded in remote URLs before logging;
- logs the command in dry-run mode and returns a synthetic success;
- turns a missing executable or a timeout into a failed
  :class:`CommandResult` instead of an exception.

Callers decide what a failure means: reads raise, writes report.
"""

from __future__ import annotations

import os
import re
import subprocess  # noqa: S404 - subprocess is the core purpose of this module
import time
from dataclasses import dataclass
from pathlib import Path

from releasetrain.logging import get_logger

log = get_logger('releasetrain.backends.run')

DEFAULT_TIMEOUT_SECONDS = 300

# Exit codes used by shells for "timed out" and "not found".
TIMEOUT_RETURN_CODE = 124
NOT_FOUND_RETURN_CODE = 127

NON_INTERACTIVE_ENV: dict[str, str] = {'GIT_TERMINAL_PROMPT': '0'}

_URL_CREDENTIALS_RE = re.compile(r'(://)[^/@\s]+@')


def redact(text: str) -> str:
    """Mask ``user:token@`` in URLs, e.g. ``https://***@github.com/o/r``."""
    return _URL_CREDENTIALS_RE.sub(r'\1***@', text)


@dataclass(frozen=True)
class CommandResult:
    """Result of a subprocess invocation.

    Attributes:
        command: The command that was executed.
        return_code: Process exit code (0 = success).
        stdout: Captured standard output.
        stderr: Captured standard error.
        duration: Wall-clock duration in milliseconds.
        dry_run: Whether the command was only logged.
    """

    command: list[str]
    return_code: int
    stdout: str = ''
    stderr: str = ''
    duration: float = 0.0
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        """Whether the command succeeded."""
        return self.return_code == 0

    @property
    def command_str(self) -> str:
        """The command as one string, credentials masked."""
        return redact(' '.join(self.command))


def run_command(
    cmd: list[str],
    *,
    cwd: Path | str | None = None,
    env: dict[str, str] | None = None,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
    dry_run: bool = False,
) -> CommandResult:
    """Execute ``cmd`` with logging and dry-run support.

    Args:
        cmd: Command and arguments.
        cwd: Working directory for the command.
        env: Extra environment variables, merged over the current env.
        timeout: Seconds to wait before killing the process.
        dry_run: Log the command without executing it.

    Returns:
        A :class:`CommandResult`. A missing executable gives return code
        127 and a timeout gives 124.
    """
    result = CommandResult(command=cmd, return_code=0, dry_run=dry_run)
    cmd_str = result.command_str
    log.debug('run_command', cmd=cmd_str, cwd=str(cwd or '.'), dry_run=dry_run)

    if dry_run:
        log.info('dry_run', cmd=cmd_str)
        return result

    full_env = {**os.environ, **NON_INTERACTIVE_ENV, **(env or {})}
    start = time.monotonic()
    try:
        proc = subprocess.run(  # noqa: S603 -- trusted inputs from backends
            cmd,
            cwd=cwd,
            env=full_env,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except FileNotFoundError:
        log.error('command_not_found', cmd=cmd_str, executable=cmd[0])
        return CommandResult(command=cmd, return_code=NOT_FOUND_RETURN_CODE, stderr=f'{cmd[0]}: command not found')
    except subprocess.TimeoutExpired:
        duration = (time.monotonic() - start) * 1000
        log.error('command_timeout', cmd=cmd_str, timeout=timeout, duration=duration)
        return CommandResult(
            command=cmd,
            return_code=TIMEOUT_RETURN_CODE,
            stderr=f'timed out after {timeout}s',
            duration=duration,
        )

    duration = (time.monotonic() - start) * 1000
    if proc.returncode != 0:
        log.warning(
            'command_failed',
            cmd=cmd_str,
            return_code=proc.returncode,
            stderr=redact(proc.stderr[:500]),
            duration=duration,
        )
    else:
        log.debug('command_ok', cmd=cmd_str, duration=duration)

    return CommandResult(
        command=cmd,
        return_code=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
        duration=duration,
    )


__all__ = [
    'DEFAULT_TIMEOUT_SECONDS',
    'NON_INTERACTIVE_ENV',
    'NOT_FOUND_RETURN_CODE',
    'TIMEOUT_RETURN_CODE',
    'CommandResult',
    'redact',
    'run_command',
]
