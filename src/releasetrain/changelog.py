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

"""Changelog sections for released versions.

After a version is tagged, a section is prepended to ``CHANGELOG.md``
below its ``# Changelog`` heading. Commit subjects since the previous
release tag are grouped by their Conventional Commit type::

    # Changelog

    ## v1.2.0-beta.0 (2026-03-14)

    ### Features

    - **api:** add bulk export (#41)

    ### Bug Fixes

    - handle empty pages

    ### Other

    - refresh screenshots

Automated commits (version bumps and syncs) are left out. Re-running
for a version already in the file is a no-op.
"""

from __future__ import annotations

import datetime
from collections.abc import Iterable
from pathlib import Path

from releasetrain.classify import CC_PATTERN
from releasetrain.logging import get_logger

logger = get_logger(__name__)

_CHANGELOG_HEADING = '# Changelog\n'

# (commit types, section title), in rendering order.
_SECTIONS: tuple[tuple[frozenset[str], str], ...] = (
    (frozenset({'feat'}), 'Features'),
    (frozenset({'fix'}), 'Bug Fixes'),
    (frozenset({'perf'}), 'Performance'),
)
_OTHER = 'Other'


def _entry(subject: str) -> tuple[str, str]:
    """Return ``(section title, bullet text)`` for one commit subject."""
    m = CC_PATTERN.match(subject.strip())
    if m is None:
        return _OTHER, subject.strip()
    description = m.group('description').strip()
    scope = m.group('scope')
    text = f'**{scope}:** {description}' if scope else description
    if m.group('breaking'):
        text = f'**BREAKING** {text}'
    for types, title in _SECTIONS:
        if m.group('type') in types:
            return title, text
    return _OTHER, text


def render_section(
    heading: str,
    subjects: Iterable[str],
    *,
    date: datetime.date | None = None,
    skip_markers: Iterable[str] = (),
) -> str:
    """Render one ``## <heading> (<date>)`` section.

    Args:
        heading: Usually the release tag, e.g. ``"v1.2.0"``.
        subjects: Commit subjects, newest first.
        date: Release date; defaults to today (UTC).
        skip_markers: Subjects containing any of these are left out.
    """
    day = date or datetime.datetime.now(datetime.timezone.utc).date()
    markers = tuple(skip_markers)
    grouped: dict[str, list[str]] = {}
    for subject in subjects:
        if not subject.strip() or any(marker in subject for marker in markers):
            continue
        title, text = _entry(subject)
        grouped.setdefault(title, []).append(text)

    lines = [f'## {heading} ({day.isoformat()})', '']
    titles = [title for _, title in _SECTIONS] + [_OTHER]
    for title in titles:
        if title not in grouped:
            continue
        lines.append(f'### {title}')
        lines.append('')
        lines.extend(f'- {text}' for text in grouped[title])
        lines.append('')
    if not grouped:
        lines.extend(['No notable changes.', ''])
    return '\n'.join(lines)


def prepend_section(existing: str, section: str) -> str:
    """Insert ``section`` as the newest entry of a changelog text.

    Anything above the ``# Changelog`` heading (badges, comments) stays
    where it is. A file without the heading gets one.
    """
    heading = _CHANGELOG_HEADING.strip()
    before, found, after = existing.partition(heading)
    if not found:
        body = existing.lstrip('\n')
        return f'{heading}\n\n{section}\n{body}' if body else f'{heading}\n\n{section}\n'
    rest = after.lstrip('\n')
    return f'{before}{heading}\n\n{section}\n{rest}' if rest else f'{before}{heading}\n\n{section}\n'


def write_changelog(changelog_path: Path, rendered: str, *, dry_run: bool = False) -> bool:
    """Add a rendered section to the changelog file, newest first.

    Returns ``False`` without touching the file when a section for the
    same tag already exists, whatever its date.
    """
    first_line = rendered.split('\n', 1)[0].strip()
    # "## v1.2.0 (" matches the same tag written on any day.
    tag_key = first_line.rsplit(' (', 1)[0] + ' ('
    existing = changelog_path.read_text(encoding='utf-8') if changelog_path.exists() else ''
    if tag_key in existing:
        logger.info('changelog_skip_duplicate', path=str(changelog_path), version_heading=first_line)
        return False

    if dry_run:
        logger.info('changelog_dry_run', path=str(changelog_path), version_heading=first_line)
        return True

    changelog_path.parent.mkdir(parents=True, exist_ok=True)
    changelog_path.write_text(prepend_section(existing, rendered), encoding='utf-8')
    logger.info('changelog_written', path=str(changelog_path), version_heading=first_line)
    return True


__all__ = [
    'prepend_section',
    'render_section',
    'write_changelog',
]
