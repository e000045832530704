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

"""The three branch tiers and how they map onto branch names and tags.

::

    role    default branch   tag identifier   example tag
    ─────   ──────────────   ──────────────   ───────────────
    ALPHA   alpha            alpha            v1.2.0-alpha.3
    BETA    beta             beta             v1.2.0-beta.1
    MAIN    main             (none)           v1.2.0

Changes flow ALPHA → BETA → MAIN through pull requests; committed state
flows back MAIN → BETA → ALPHA through the sync coordinator.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from releasetrain.version import VersionValue


class BranchRole(enum.Enum):
    """A release tier, independent of the configured branch name."""

    ALPHA = 'alpha'
    BETA = 'beta'
    MAIN = 'main'

    @property
    def stability(self) -> int:
        """0 for alpha, 1 for beta, 2 for main."""
        return _STABILITY[self]

    def downstream(self) -> BranchRole | None:
        """The next less stable tier that receives this tier's state."""
        if self is BranchRole.MAIN:
            return BranchRole.BETA
        if self is BranchRole.BETA:
            return BranchRole.ALPHA
        return None

    def upstream(self) -> BranchRole | None:
        """The tier this one promotes into."""
        if self is BranchRole.ALPHA:
            return BranchRole.BETA
        if self is BranchRole.BETA:
            return BranchRole.MAIN
        return None


_STABILITY = {BranchRole.ALPHA: 0, BranchRole.BETA: 1, BranchRole.MAIN: 2}


@dataclass(frozen=True)
class BranchLayout:
    """Branch names and tag identifiers for the three roles.

    Attributes:
        alpha_branch: Branch holding pre-release work.
        beta_branch: Branch holding staging pre-releases.
        main_branch: Stable branch.
        alpha_identifier: Pre-release identifier on alpha tags.
        beta_identifier: Pre-release identifier on beta tags.
    """

    alpha_branch: str = 'alpha'
    beta_branch: str = 'beta'
    main_branch: str = 'main'
    alpha_identifier: str = 'alpha'
    beta_identifier: str = 'beta'

    def branch(self, role: BranchRole) -> str:
        """Return the configured branch name for ``role``."""
        return {
            BranchRole.ALPHA: self.alpha_branch,
            BranchRole.BETA: self.beta_branch,
            BranchRole.MAIN: self.main_branch,
        }[role]

    def role_of_branch(self, branch: str) -> BranchRole | None:
        """Return the role of ``branch``, or ``None`` for any other branch."""
        for role in BranchRole:
            if self.branch(role) == branch:
                return role
        return None

    def identifier(self, role: BranchRole) -> str | None:
        """Return the tag identifier for ``role``; ``None`` for main."""
        if role is BranchRole.ALPHA:
            return self.alpha_identifier
        if role is BranchRole.BETA:
            return self.beta_identifier
        return None

    def role_of_version(self, version: VersionValue) -> BranchRole | None:
        """Classify a tagged version by its suffix.

        No suffix is main; the alpha or beta identifier is that tier; any
        other suffix belongs to none of the three tiers.
        """
        if not version.is_prerelease:
            return BranchRole.MAIN
        if version.prerelease_tag == self.alpha_identifier:
            return BranchRole.ALPHA
        if version.prerelease_tag == self.beta_identifier:
            return BranchRole.BETA
        return None

    def dist_tag(self, role: BranchRole) -> str:
        """Registry distribution tag for releases cut from ``role``."""
        return self.identifier(role) or 'latest'


__all__ = [
    'BranchLayout',
    'BranchRole',
]
