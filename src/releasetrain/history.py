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

"""Release tag history.

The full set of release tags is the only persisted state the resolver
consults. :class:`TagHistoryReader` lists the tags exactly once per run
and returns an immutable :class:`TagSnapshot` that answers every
question the resolver asks without further round trips::

    git for-each-ref --sort=creatordate refs/tags
          │
          ▼
    ┌──────────────────────────┐   not a version / foreign suffix
    │ parse + classify by role │ ───────────────────────────────→ skipped
    └────────────┬─────────────┘
                 ▼
    ┌──────────────────────────┐
    │ TagSnapshot              │
    │   latest(role)           │  newest by creation order
    │   global_highest_base()  │  highest X.Y.Z across all roles
    │   latest_created()       │  newest tag of any role
    │   is_sealed(role, base)  │  a more stable tier tagged this base
    └──────────────────────────┘

"Latest" means most recently created, never the highest string.
"""

from __future__ import annotations

from dataclasses import dataclass

from releasetrain.backends.vcs import VCS
from releasetrain.errors import ParseError
from releasetrain.logging import get_logger
from releasetrain.roles import BranchLayout, BranchRole
from releasetrain.version import DEFAULT_PREFIX, LEGACY_PREFIXES, VersionValue

logger = get_logger(__name__)


@dataclass(frozen=True)
class TagRecord:
    """One release tag.

    Attributes:
        name: The tag name as it exists in the repository.
        version: Parsed version.
        role: Tier the tag belongs to.
        creation_order: Position in creation order, 0 for the oldest.
    """

    name: str
    version: VersionValue
    role: BranchRole
    creation_order: int


@dataclass(frozen=True)
class TagSnapshot:
    """Immutable view over every release tag, in creation order."""

    records: tuple[TagRecord, ...] = ()

    def for_role(self, role: BranchRole) -> tuple[TagRecord, ...]:
        """Return the tags of ``role``, oldest first."""
        return tuple(r for r in self.records if r.role is role)

    def latest(self, role: BranchRole) -> TagRecord | None:
        """Return the most recently created tag of ``role``."""
        records = self.for_role(role)
        return max(records, key=lambda r: r.creation_order) if records else None

    def latest_created(self) -> TagRecord | None:
        """Return the most recently created tag of any role."""
        return max(self.records, key=lambda r: r.creation_order) if self.records else None

    def global_highest_base(self) -> VersionValue:
        """Return the highest base version tagged by any role, or ``0.0.0``."""
        if not self.records:
            return VersionValue.zero()
        return max(r.version.base_version() for r in self.records)

    def base_of(self, role: BranchRole) -> VersionValue | None:
        """Return the base version of ``role``'s latest tag."""
        record = self.latest(role)
        return record.version.base_version() if record else None

    def has_base(self, role: BranchRole, base: VersionValue) -> bool:
        """Whether ``role`` has any tag on ``base``."""
        return any(r.version.base_version() == base for r in self.for_role(role))

    def is_sealed(self, role: BranchRole, base: VersionValue) -> bool:
        """Whether a more stable tier already tagged ``base``.

        A sealed line is closed for ``role``: alpha work on ``1.2.0`` is
        sealed once beta or main tags ``1.2.0``.
        """
        return any(
            self.has_base(other, base) for other in BranchRole if other.stability > role.stability
        )

    def __len__(self) -> int:
        """Number of release tags."""
        return len(self.records)


def build_snapshot(
    tag_names: list[str],
    layout: BranchLayout,
    *,
    prefix: str = DEFAULT_PREFIX,
    legacy_prefixes: tuple[str, ...] = LEGACY_PREFIXES,
) -> TagSnapshot:
    """Parse and classify ``tag_names`` (oldest first) into a snapshot.

    Tags that are not versions, or whose pre-release identifier belongs
    to none of the three tiers, are skipped with a debug log.
    """
    records: list[TagRecord] = []
    for order, name in enumerate(tag_names):
        try:
            version = VersionValue.parse(name, prefix=prefix, legacy_prefixes=legacy_prefixes)
        except ParseError:
            logger.debug('tag_skipped_not_a_version', tag=name)
            continue
        role = layout.role_of_version(version)
        if role is None:
            logger.debug('tag_skipped_unknown_identifier', tag=name, identifier=version.prerelease_tag)
            continue
        records.append(TagRecord(name=name, version=version, role=role, creation_order=order))
    return TagSnapshot(records=tuple(records))


class TagHistoryReader:
    """Reads the release tag history from a :class:`VCS`.

    Args:
        vcs: Version-control backend.
        layout: Branch names and identifiers.
        prefix: Configured tag prefix.
        legacy_prefixes: Other prefixes accepted on old tags.
    """

    def __init__(
        self,
        vcs: VCS,
        layout: BranchLayout,
        *,
        prefix: str = DEFAULT_PREFIX,
        legacy_prefixes: tuple[str, ...] = LEGACY_PREFIXES,
    ) -> None:
        """Initialize with the backend and tag conventions."""
        self._vcs = vcs
        self._layout = layout
        self._prefix = prefix
        self._legacy_prefixes = legacy_prefixes

    async def snapshot(self) -> TagSnapshot:
        """List every tag once and classify it.

        Raises:
            BackendUnavailable: If the tag list cannot be read. Not retried.
        """
        names = await self._vcs.list_tags()
        snapshot = build_snapshot(names, self._layout, prefix=self._prefix, legacy_prefixes=self._legacy_prefixes)
        latest: dict[str, str | None] = {}
        for role in BranchRole:
            record = snapshot.latest(role)
            latest[f'latest_{role.value}'] = str(record.version) if record else None
        logger.info('tag_history_read', tags=len(names), releases=len(snapshot), **latest)
        return snapshot


__all__ = [
    'TagHistoryReader',
    'TagRecord',
    'TagSnapshot',
    'build_snapshot',
]
