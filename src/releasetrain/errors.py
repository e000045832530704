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

"""Structured error system for releasetrain.

Every error has a unique ``RT-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Four failure classes carry meaning for the release pipeline and get their
own exception types so callers can handle them separately::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Exception           │ When                                           │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ ParseError          │ A version or tag string is not X.Y.Z at its    │
    │                     │ core. Fatal to the operation that parsed it.   │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ PolicyError         │ A branch-hierarchy rule was violated (wrong    │
    │                     │ source branch, missing prerequisite tag).      │
    │                     │ Fatal to the run, never auto-corrected.        │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ BackendUnavailable  │ git or the host API could not be read. Reads   │
    │                     │ are never retried so a run stays deterministic.│
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ UnresolvedConflict  │ A downstream sync edge could not be merged.    │
    │                     │ Escalated as an issue, not fatal to the run.   │
    └─────────────────────┴────────────────────────────────────────────────┘

Code categories::

    RT-CONFIG-*       Configuration errors
    RT-VERSION-*      Version parsing errors
    RT-POLICY-*       Branch-hierarchy rule violations
    RT-BACKEND-*      git / host API availability
    RT-METADATA-*     Package metadata file errors
    RT-COMMIT-*, RT-TAG-*, RT-PUSH-*   Write-side git failures
    RT-SYNC-*         Downstream propagation
    RT-PUBLISH-*      Registry publish

Usage::

    from releasetrain.errors import E, PolicyError

    raise PolicyError(
        code=E.POLICY_WRONG_SOURCE,
        message="main only accepts merges from 'beta', got 'feature/x'",
        hint='Open the pull request against beta first.',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all releasetrain diagnostic codes."""

    # Configuration
    CONFIG_NOT_FOUND = 'RT-CONFIG-NOT-FOUND'
    CONFIG_INVALID_KEY = 'RT-CONFIG-INVALID-KEY'
    CONFIG_INVALID_VALUE = 'RT-CONFIG-INVALID-VALUE'

    # Versions
    VERSION_INVALID = 'RT-VERSION-INVALID'

    # Branch-hierarchy policy
    POLICY_WRONG_SOURCE = 'RT-POLICY-WRONG-SOURCE'
    POLICY_MISSING_TAG = 'RT-POLICY-MISSING-TAG'
    POLICY_LINE_SEALED = 'RT-POLICY-LINE-SEALED'

    # Backends
    BACKEND_UNAVAILABLE = 'RT-BACKEND-UNAVAILABLE'

    # Package metadata
    METADATA_NOT_FOUND = 'RT-METADATA-NOT-FOUND'
    METADATA_INVALID = 'RT-METADATA-INVALID'

    # Write-side git operations
    COMMIT_FAILED = 'RT-COMMIT-FAILED'
    TAG_CREATION_FAILED = 'RT-TAG-CREATION-FAILED'
    PUSH_REJECTED = 'RT-PUSH-REJECTED'

    # Downstream sync
    SYNC_FAILED = 'RT-SYNC-FAILED'
    SYNC_UNRESOLVED_CONFLICT = 'RT-SYNC-UNRESOLVED-CONFLICT'

    # Registry
    PUBLISH_FAILED = 'RT-PUBLISH-FAILED'


E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``RT-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class ReleaseTrainError(Exception):
    """Base exception for all releasetrain errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(f'[{code.value}] {message}')

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint


class ParseError(ReleaseTrainError):
    """A version or tag string could not be parsed."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with the fixed ``RT-VERSION-INVALID`` code."""
        super().__init__(E.VERSION_INVALID, message, hint)


class PolicyError(ReleaseTrainError):
    """A branch-hierarchy rule was violated."""


class BackendUnavailable(ReleaseTrainError):
    """The VCS or the host API could not be reached for a read."""

    def __init__(self, message: str, hint: str = '') -> None:
        """Initialize with the fixed ``RT-BACKEND-UNAVAILABLE`` code."""
        super().__init__(E.BACKEND_UNAVAILABLE, message, hint)


class UnresolvedConflict(ReleaseTrainError):
    """A propagation edge reached its terminal escalated state."""

    def __init__(self, source: str, target: str, message: str, hint: str = '') -> None:
        """Initialize with the edge that failed."""
        self.source = source
        self.target = target
        super().__init__(E.SYNC_UNRESOLVED_CONFLICT, message, hint)


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_NOT_FOUND: ErrorInfo(
        code=E.CONFIG_NOT_FOUND,
        message='releasetrain.toml exists but could not be read.',
        hint='Check file permissions, or delete the file to use the defaults.',
    ),
    E.CONFIG_INVALID_KEY: ErrorInfo(
        code=E.CONFIG_INVALID_KEY,
        message='releasetrain.toml contains a key releasetrain does not know.',
        hint='Check the spelling; the error message suggests the closest valid key.',
    ),
    E.CONFIG_INVALID_VALUE: ErrorInfo(
        code=E.CONFIG_INVALID_VALUE,
        message='A releasetrain.toml value has the wrong type or is out of range.',
        hint='See the README for the type and default of every key.',
    ),
    E.VERSION_INVALID: ErrorInfo(
        code=E.VERSION_INVALID,
        message='A version string is not MAJOR.MINOR.PATCH at its core.',
        hint='Tags look like v1.2.3, v1.2.3-alpha.0 or v1.2.3-beta.4.',
    ),
    E.POLICY_WRONG_SOURCE: ErrorInfo(
        code=E.POLICY_WRONG_SOURCE,
        message='The pull request source branch is not allowed for this target tier.',
        hint='main only accepts beta; changes flow alpha -> beta -> main.',
    ),
    E.POLICY_MISSING_TAG: ErrorInfo(
        code=E.POLICY_MISSING_TAG,
        message='The prerequisite tag for this transition does not exist.',
        hint='No functionality may enter beta without first completing alpha.',
    ),
    E.POLICY_LINE_SEALED: ErrorInfo(
        code=E.POLICY_LINE_SEALED,
        message='The version line this change targets was already released downstream.',
        hint='Open a new line through alpha instead of patching a released one.',
    ),
    E.BACKEND_UNAVAILABLE: ErrorInfo(
        code=E.BACKEND_UNAVAILABLE,
        message='git or the repository host could not be read.',
        hint='Reads are not retried; re-run the workflow once the backend is reachable.',
    ),
    E.METADATA_NOT_FOUND: ErrorInfo(
        code=E.METADATA_NOT_FOUND,
        message='The package metadata file holding the version does not exist.',
        hint='Set metadata_file to your package.json or pyproject.toml.',
    ),
    E.METADATA_INVALID: ErrorInfo(
        code=E.METADATA_INVALID,
        message='The package metadata file cannot be parsed or has no version field.',
        hint='package.json needs a top-level "version"; pyproject.toml needs [project].version.',
    ),
    E.COMMIT_FAILED: ErrorInfo(
        code=E.COMMIT_FAILED,
        message='The version commit could not be created. Nothing was tagged.',
        hint='Check the git identity and that the metadata file actually changed.',
    ),
    E.TAG_CREATION_FAILED: ErrorInfo(
        code=E.TAG_CREATION_FAILED,
        message='The version commit succeeded but its tag could not be created.',
        hint='Create the tag by hand on the version commit; the run was failed on purpose.',
    ),
    E.PUSH_REJECTED: ErrorInfo(
        code=E.PUSH_REJECTED,
        message='The remote rejected the push after every retry.',
        hint='Another run is pushing to the same branch; re-run once it finishes.',
    ),
    E.SYNC_FAILED: ErrorInfo(
        code=E.SYNC_FAILED,
        message='A downstream branch could not be checked out or reset for syncing.',
        hint='Check that the branch exists on the remote.',
    ),
    E.SYNC_UNRESOLVED_CONFLICT: ErrorInfo(
        code=E.SYNC_UNRESOLVED_CONFLICT,
        message='A downstream branch could not be synchronized automatically.',
        hint='Resolve the merge by hand and close the tracking issue to re-enable syncing.',
    ),
    E.PUBLISH_FAILED: ErrorInfo(
        code=E.PUBLISH_FAILED,
        message='The registry publish command failed.',
        hint='The tag is already pushed; publish the tagged commit by hand.',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"RT-POLICY-MISSING-TAG"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: ReleaseTrainError, *, file: TextIO | None = None) -> None:
    """Render an error in compiler style.

    Output format::

        error[RT-POLICY-MISSING-TAG]: No beta tag exists for 1.2.0.
          |
          = hint: No functionality may enter beta without first completing alpha.

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.info.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.info.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'E',
    'ERRORS',
    'BackendUnavailable',
    'ErrorCode',
    'ErrorInfo',
    'ParseError',
    'PolicyError',
    'ReleaseTrainError',
    'UnresolvedConflict',
    'explain',
    'render_error',
]
