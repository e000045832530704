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

"""Release-signal classification.

Maps the labels on a pull request to the magnitude of the bump it asks
for. Only the strongest recognised label wins::

    labels                          signal
    ──────────────────────────────  ──────────────────────────
    {"minor", "docs"}               MINOR
    {"patch", "major", "minor"}     MAJOR   (minor, patch ignored)
    {"docs"}                        absent  (no bump)

Labels are never summed: ``minor`` plus ``patch`` is a minor bump, not
two bumps.

When ``scan_commits`` is enabled and no label is present, the commit
subjects on the change are read as Conventional Commits instead
(``feat`` → minor, ``fix``/``perf`` → patch, ``!`` or
``BREAKING CHANGE`` → major).
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from releasetrain.logging import get_logger
from releasetrain.version import Magnitude

logger = get_logger(__name__)

DEFAULT_LABELS: dict[str, str] = {'major': 'major', 'minor': 'minor', 'patch': 'patch'}

CC_PATTERN: re.Pattern[str] = re.compile(
    r'^(?P<type>[a-z]+)'  # type (e.g. feat, fix, chore)
    r'(?:\((?P<scope>[^)]*)\))?'  # optional scope in parens
    r'(?P<breaking>!)?'  # optional breaking change indicator
    r':\s*'  # colon + space
    r'(?P<description>.+)$',  # description
)

MINOR_TYPES: frozenset[str] = frozenset({'feat'})
PATCH_TYPES: frozenset[str] = frozenset({'fix', 'perf'})


@dataclass(frozen=True)
class ReleaseSignal:
    """The bump a change asks for.

    Attributes:
        magnitude: Requested bump size, or ``None`` when absent.
        source: Where the signal came from (``"label"``, ``"commits"``
            or ``""`` when absent).
    """

    magnitude: Magnitude | None = None
    source: str = ''

    @property
    def present(self) -> bool:
        """Whether any recognised signal was found."""
        return self.magnitude is not None

    @classmethod
    def absent(cls) -> ReleaseSignal:
        """A signal asking for no bump."""
        return cls()


class ReleaseClassifier:
    """Classifies label sets into a :class:`ReleaseSignal`.

    Args:
        label_names: Label name per magnitude, keyed by ``"major"``,
            ``"minor"`` and ``"patch"``.
    """

    def __init__(self, label_names: Mapping[str, str] | None = None) -> None:
        """Initialize with the configured label names."""
        names = {**DEFAULT_LABELS, **(label_names or {})}
        self._by_label: dict[str, Magnitude] = {names[m.label]: m for m in Magnitude}

    def classify(self, labels: Iterable[str]) -> ReleaseSignal:
        """Return the strongest recognised label as a signal."""
        found = sorted({self._by_label[label] for label in labels if label in self._by_label}, reverse=True)
        if not found:
            return ReleaseSignal.absent()
        winner = found[0]
        if len(found) > 1:
            logger.info(
                'release_labels_ignored',
                chosen=winner.label,
                ignored=[m.label for m in found[1:]],
            )
        return ReleaseSignal(magnitude=winner, source='label')

    def classify_commits(self, messages: Iterable[str]) -> ReleaseSignal:
        """Return the strongest Conventional Commit bump in ``messages``."""
        best: Magnitude | None = None
        for message in messages:
            magnitude = commit_magnitude(message)
            if magnitude is not None and (best is None or magnitude > best):
                best = magnitude
        if best is None:
            return ReleaseSignal.absent()
        return ReleaseSignal(magnitude=best, source='commits')


def commit_magnitude(message: str) -> Magnitude | None:
    """Return the bump one commit message implies, if any."""
    lines = message.strip().splitlines()
    if not lines:
        return None
    m = CC_PATTERN.match(lines[0].strip())
    if m is None:
        return None
    if m.group('breaking') or 'BREAKING CHANGE' in message or 'BREAKING-CHANGE' in message:
        return Magnitude.MAJOR
    commit_type = m.group('type')
    if commit_type in MINOR_TYPES:
        return Magnitude.MINOR
    if commit_type in PATCH_TYPES:
        return Magnitude.PATCH
    return None


__all__ = [
    'CC_PATTERN',
    'Magnitude',
    'ReleaseClassifier',
    'ReleaseSignal',
    'commit_magnitude',
]
