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

"""Immutable semantic versions with tag-prefix handling.

:class:`VersionValue` is the only version representation used by the
resolver and the sync coordinator. It is parsed from tag names or from
the package metadata file, never mutated, and every derivation returns a
new instance.

Version format::

    <prefix><major>.<minor>.<patch>[-<identifier>.<counter>]

    v1.2.0            stable (main)
    v1.2.0-alpha.3    pre-release line 1.2.0, counter 3
    v1.2.0-beta.0     staging line 1.2.0, counter 0

Parsing is lenient about the pre-release part and strict about the core:
anything that is not ``X.Y.Z`` at its core raises :class:`ParseError`,
while malformed pre-release encodings are rewritten to the canonical
``<identifier>.<counter>`` form first::

    1.2.0-0.alpha.3   →  1.2.0-alpha.3    (stray numeric segment dropped)
    1.2.0-alpha3      →  1.2.0-alpha.3    (counter glued to identifier)
    1.2.0-alpha       →  1.2.0-alpha.0    (missing counter)

Precedence follows Semantic Versioning 2.0: major, minor, patch, then a
pre-release sorts below its release, then identifier, then counter.
"""

from __future__ import annotations

import enum
import functools
import re
from dataclasses import dataclass, replace

from releasetrain.errors import ParseError
from releasetrain.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PREFIX = 'v'

# Prefixes older tags in the wild were created with.
LEGACY_PREFIXES: tuple[str, ...] = ('v', 'version-', 'ver-', 'rel-')

_CORE_RE = re.compile(
    r'^(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)'
    r'(?:-(?P<pre>[0-9A-Za-z.\-]+))?'
    r'(?:\+[0-9A-Za-z.\-]+)?$'
)

# "alpha3" style: identifier with the counter glued on.
_GLUED_RE = re.compile(r'^(?P<ident>[A-Za-z][A-Za-z\-]*?)(?P<num>\d+)$')


class Magnitude(enum.IntEnum):
    """Size of a version bump. Higher values win when combined."""

    PATCH = 1
    MINOR = 2
    MAJOR = 3

    @property
    def label(self) -> str:
        """Lower-case name, e.g. ``"minor"``."""
        return self.name.lower()


def strip_prefix(text: str, prefix: str = DEFAULT_PREFIX, legacy_prefixes: tuple[str, ...] = LEGACY_PREFIXES) -> str:
    """Remove a tag prefix from ``text``.

    The configured prefix is preferred. Legacy prefixes are accepted with a
    warning so that old tags still count towards the history. Longer
    prefixes are tried first, so ``version-1.0.0`` is not mistaken for a
    ``v`` tag.
    """
    candidates = sorted({prefix, *legacy_prefixes} - {''}, key=len, reverse=True)
    for candidate in candidates:
        rest = text[len(candidate) :]
        if text.startswith(candidate) and rest[:1].isdigit():
            if candidate != prefix:
                logger.warning('nonstandard_version_prefix', version=text, found=candidate, expected=prefix)
            return rest
    return text


def _normalize_prerelease(pre: str, original: str) -> tuple[str | None, int]:
    """Rewrite a pre-release suffix to ``(identifier, counter)``."""
    parts = [p for p in re.split(r'[.\-]', pre) if p]
    if not parts:
        raise ParseError(
            f'Cannot parse version {original!r}: empty pre-release',
            hint='Use a pre-release like "alpha.0" after the hyphen.',
        )
    ident_index = next((i for i, part in enumerate(parts) if not part.isdigit()), None)

    if ident_index is None:
        # Numeric-only pre-release such as "1.0.0-3": keep the last number.
        if len(parts) > 1:
            logger.warning('prerelease_normalized', version=original, kept=parts[-1])
        return None, int(parts[-1])

    ident = parts[ident_index]
    counter: int | None = None
    glued = _GLUED_RE.match(ident)
    if glued:
        ident = glued.group('ident')
        counter = int(glued.group('num'))
    elif ident_index + 1 < len(parts) and parts[ident_index + 1].isdigit():
        counter = int(parts[ident_index + 1])

    canonical = f'{ident}.{counter if counter is not None else 0}'
    if canonical != pre:
        logger.warning('prerelease_normalized', version=original, canonical=canonical)
    return ident, counter if counter is not None else 0


@functools.total_ordering
@dataclass(frozen=True)
class VersionValue:
    """An immutable semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease_tag: Pre-release identifier (``"alpha"``, ``"beta"``),
            or ``None`` for a stable version.
        prerelease_counter: Trailing pre-release number. Always set when
            ``prerelease_tag`` is set.
    """

    major: int
    minor: int
    patch: int
    prerelease_tag: str | None = None
    prerelease_counter: int | None = None

    def __post_init__(self) -> None:
        """Enforce the pre-release invariant."""
        if min(self.major, self.minor, self.patch) < 0:
            raise ParseError(f'Version components must be non-negative: {self.major}.{self.minor}.{self.patch}')
        if self.prerelease_tag is not None and self.prerelease_counter is None:
            raise ParseError(f'Pre-release {self.prerelease_tag!r} has no counter')
        if self.prerelease_counter is not None and self.prerelease_counter < 0:
            raise ParseError(f'Pre-release counter must be >= 0, got {self.prerelease_counter}')

    @classmethod
    def parse(
        cls,
        text: str,
        *,
        prefix: str = DEFAULT_PREFIX,
        legacy_prefixes: tuple[str, ...] = LEGACY_PREFIXES,
    ) -> VersionValue:
        """Parse a tag name or metadata version string.

        Args:
            text: ``"v1.2.0-alpha.3"``, ``"1.2.0"``, ``"rel-1.0.0"`` ...
            prefix: The configured tag prefix.
            legacy_prefixes: Other prefixes accepted with a warning.

        Raises:
            ParseError: If the string is not ``X.Y.Z`` at its core.
        """
        stripped = strip_prefix(text.strip(), prefix, legacy_prefixes)
        m = _CORE_RE.match(stripped)
        if m is None:
            raise ParseError(
                f'Cannot parse version {text!r}',
                hint='Use a version like "1.2.3", "v1.2.3" or "v1.2.3-alpha.0".',
            )
        major, minor, patch = int(m.group('major')), int(m.group('minor')), int(m.group('patch'))
        pre = m.group('pre')
        if not pre:
            return cls(major, minor, patch)
        tag, counter = _normalize_prerelease(pre, text)
        return cls(major, minor, patch, tag, counter)

    @classmethod
    def zero(cls) -> VersionValue:
        """Return ``0.0.0``, the base used when no tag exists yet."""
        return cls(0, 0, 0)

    @property
    def is_prerelease(self) -> bool:
        """Whether the version carries a pre-release suffix."""
        return self.prerelease_counter is not None

    def base_version(self) -> VersionValue:
        """Return the version without its pre-release suffix."""
        return VersionValue(self.major, self.minor, self.patch)

    def _precedence(self) -> tuple[int, int, int, int, tuple[int, str], int]:
        if not self.is_prerelease:
            return (self.major, self.minor, self.patch, 1, (0, ''), 0)
        # Numeric identifiers sort below alphanumeric ones.
        ident = (0, '') if self.prerelease_tag is None else (1, self.prerelease_tag)
        return (self.major, self.minor, self.patch, 0, ident, self.prerelease_counter or 0)

    def compare(self, other: VersionValue) -> int:
        """Return -1, 0 or 1 by semantic-version precedence."""
        mine, theirs = self._precedence(), other._precedence()
        return (mine > theirs) - (mine < theirs)

    def __lt__(self, other: object) -> bool:
        """Order by semantic-version precedence."""
        if not isinstance(other, VersionValue):
            return NotImplemented
        return self._precedence() < other._precedence()

    def bump(self, magnitude: Magnitude | None = None, identifier: str | None = None) -> VersionValue:
        """Derive the next version.

        With a ``magnitude`` the base is incremented (lower components
        reset to zero); when ``identifier`` is also given the result opens
        a new pre-release line at counter 0, otherwise it is stable.

        Without a ``magnitude`` only the pre-release counter moves: a
        matching (or omitted) identifier increments the counter, a
        different identifier restarts at 0 on the same base, and a stable
        version moves to the next patch's first pre-release.

        Examples::

            1.0.0           bump(MINOR, 'alpha')  →  1.1.0-alpha.0
            1.1.0-alpha.2   bump()                →  1.1.0-alpha.3
            1.1.0-alpha.2   bump(None, 'beta')    →  1.1.0-beta.0
            1.1.0-beta.4    bump(MAJOR)           →  2.0.0
        """
        if magnitude is not None:
            if magnitude is Magnitude.MAJOR:
                core = (self.major + 1, 0, 0)
            elif magnitude is Magnitude.MINOR:
                core = (self.major, self.minor + 1, 0)
            else:
                core = (self.major, self.minor, self.patch + 1)
            if identifier is None:
                return VersionValue(*core)
            return VersionValue(*core, identifier, 0)

        if self.is_prerelease:
            if identifier is None or identifier == self.prerelease_tag:
                return replace(self, prerelease_counter=(self.prerelease_counter or 0) + 1)
            return VersionValue(self.major, self.minor, self.patch, identifier, 0)

        return VersionValue(self.major, self.minor, self.patch + 1, identifier, 0)

    def with_prefix(self, prefix: str = DEFAULT_PREFIX) -> str:
        """Render as a tag name, e.g. ``"v1.2.0-beta.1"``."""
        return f'{prefix}{self}'

    def __str__(self) -> str:
        """Render without a prefix, e.g. ``"1.2.0-beta.1"``."""
        core = f'{self.major}.{self.minor}.{self.patch}'
        if not self.is_prerelease:
            return core
        if self.prerelease_tag is None:
            return f'{core}-{self.prerelease_counter}'
        return f'{core}-{self.prerelease_tag}.{self.prerelease_counter}'


__all__ = [
    'DEFAULT_PREFIX',
    'LEGACY_PREFIXES',
    'Magnitude',
    'VersionValue',
    'strip_prefix',
]
