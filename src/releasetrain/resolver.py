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

"""Branch-aware next-version resolution.

Given the target branch of a merge, the branch it came from, the release
signal and the tag history, :class:`VersionResolver` decides whether a
bump is warranted and what the next version is. Each role has its own
strategy, a pure function over a :class:`VersionUpgradeContext`::

    ┌────────┬──────────────────────┬──────────────────────────────────────┐
    │ Target │ Source               │ Result                               │
    ├────────┼──────────────────────┼──────────────────────────────────────┤
    │ alpha  │ any, no label        │ no bump                              │
    │ alpha  │ any, label L         │ candidate = main base bumped by L    │
    │        │                      │ candidate > alpha base → cand-alpha.0│
    │        │                      │ otherwise → alpha counter + 1        │
    ├────────┼──────────────────────┼──────────────────────────────────────┤
    │ beta   │ alpha branch         │ alpha base > beta base → base-beta.0 │
    │        │                      │ otherwise → beta counter + 1         │
    │ beta   │ any other branch     │ needs an open beta line              │
    │        │                      │ → beta counter + 1, else PolicyError │
    ├────────┼──────────────────────┼──────────────────────────────────────┤
    │ main   │ beta branch          │ beta base, verbatim (promotion)      │
    │ main   │ any other branch     │ PolicyError                          │
    └────────┴──────────────────────┴──────────────────────────────────────┘

Worked example (main ``1.0.0``, alpha ``1.1.0-alpha.2``)::

    minor → candidate 1.1.0 ≤ 1.1.0 → 1.1.0-alpha.3   (same line)
    major → candidate 2.0.0 > 1.1.0 → 2.0.0-alpha.0   (new line)

A line is sealed once a more stable tier has tagged its base. A sealed
alpha line never receives more counters: the next alpha opens above the
highest base any tier has tagged.

Rule violations raise :class:`~releasetrain.errors.PolicyError`; they
are never turned into "no bump".
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from releasetrain.classify import ReleaseSignal
from releasetrain.errors import E, PolicyError
from releasetrain.history import TagSnapshot
from releasetrain.logging import get_logger
from releasetrain.roles import BranchLayout, BranchRole
from releasetrain.version import VersionValue

logger = get_logger(__name__)


@dataclass(frozen=True)
class VersionUpgradeContext:
    """Everything one strategy needs, built once per resolution.

    Attributes:
        base: Latest version of the target role, or ``0.0.0``.
        target: Role of the branch receiving the merge.
        source_branch: Name of the branch being merged.
        signal: Requested bump.
        snapshot: Tag history for this run.
        layout: Branch names and identifiers.
    """

    base: VersionValue
    target: BranchRole
    source_branch: str
    signal: ReleaseSignal
    snapshot: TagSnapshot
    layout: BranchLayout


@dataclass(frozen=True)
class Resolution:
    """Outcome of a resolution.

    Attributes:
        target: Role that was resolved.
        base: Version the target was at before this resolution.
        next_version: New version, or ``None`` for no bump.
        reason: Why there is no bump, or how the version was derived.
    """

    target: BranchRole
    base: VersionValue
    next_version: VersionValue | None
    reason: str = ''

    @property
    def bumped(self) -> bool:
        """Whether a new version was produced."""
        return self.next_version is not None


Strategy = Callable[[VersionUpgradeContext], Resolution]


def _no_bump(ctx: VersionUpgradeContext, reason: str) -> Resolution:
    return Resolution(target=ctx.target, base=ctx.base, next_version=None, reason=reason)


def _bumped(ctx: VersionUpgradeContext, version: VersionValue, reason: str) -> Resolution:
    return Resolution(target=ctx.target, base=ctx.base, next_version=version, reason=reason)


def _open_line(base: VersionValue, identifier: str) -> VersionValue:
    """First pre-release of a new line, e.g. ``1.2.0-beta.0``."""
    return VersionValue(base.major, base.minor, base.patch, identifier, 0)


def resolve_alpha(ctx: VersionUpgradeContext) -> Resolution:
    """Pre-release strategy: new line on a bigger candidate, else next counter."""
    magnitude = ctx.signal.magnitude
    if magnitude is None:
        return _no_bump(ctx, 'no release label')

    identifier = ctx.layout.alpha_identifier
    main_base = ctx.snapshot.base_of(BranchRole.MAIN) or VersionValue.zero()
    candidate = main_base.bump(magnitude)

    alpha = ctx.snapshot.latest(BranchRole.ALPHA)
    if alpha is None:
        return _bumped(ctx, _open_line(candidate, identifier), f'first {identifier} line from {main_base}')

    alpha_base = alpha.version.base_version()
    if ctx.snapshot.is_sealed(BranchRole.ALPHA, alpha_base):
        floor = ctx.snapshot.global_highest_base().bump(magnitude)
        logger.info('alpha_line_sealed', base=str(alpha_base), floor=str(floor))
        candidate = max(candidate, floor)

    if candidate > alpha_base:
        return _bumped(ctx, _open_line(candidate, identifier), f'new {identifier} line ({magnitude.label})')
    return _bumped(ctx, alpha.version.bump(None, identifier), f'next counter on {alpha_base}')


def resolve_beta(ctx: VersionUpgradeContext) -> Resolution:
    """Staging strategy: open lines only from alpha, fixes only on an open line."""
    layout = ctx.layout
    identifier = layout.beta_identifier
    beta = ctx.snapshot.latest(BranchRole.BETA)

    if ctx.source_branch == layout.alpha_branch:
        alpha = ctx.snapshot.latest(BranchRole.ALPHA)
        if alpha is None:
            raise PolicyError(
                code=E.POLICY_MISSING_TAG,
                message=f"'{layout.beta_branch}' cannot be opened: '{layout.alpha_branch}' has no release tag",
                hint=f'Merge a labelled pull request into {layout.alpha_branch} first.',
            )
        alpha_base = alpha.version.base_version()
        if ctx.snapshot.has_base(BranchRole.MAIN, alpha_base):
            raise PolicyError(
                code=E.POLICY_LINE_SEALED,
                message=f'{alpha_base} is already released on {layout.main_branch}; {alpha.name} has nothing new',
                hint=f'Open a new line on {layout.alpha_branch} with a release label.',
            )
        if beta is None or alpha_base > beta.version.base_version():
            return _bumped(ctx, _open_line(alpha_base, identifier), f'promoted from {alpha.name}')
        # Alpha has not moved past beta's line: keep the line, advance the counter.
        logger.warning(
            'alpha_beta_same_base',
            alpha=str(alpha.version),
            beta=str(beta.version),
            hint='Beta keeps its base and advances its counter.',
        )
        return _bumped(ctx, beta.version.bump(None, identifier), f'next counter on {beta.version.base_version()}')

    if beta is None:
        raise PolicyError(
            code=E.POLICY_MISSING_TAG,
            message=f"'{ctx.source_branch}' cannot merge into '{layout.beta_branch}': no {identifier} line is open",
            hint=f'New work must pass through {layout.alpha_branch} first.',
        )
    beta_base = beta.version.base_version()
    if ctx.snapshot.is_sealed(BranchRole.BETA, beta_base):
        raise PolicyError(
            code=E.POLICY_LINE_SEALED,
            message=f'{beta_base} is already released on {layout.main_branch}; the {identifier} line is closed',
            hint=f'New work must pass through {layout.alpha_branch} first.',
        )
    return _bumped(ctx, beta.version.bump(None, identifier), f'fix from {ctx.source_branch}')


def resolve_main(ctx: VersionUpgradeContext) -> Resolution:
    """Stable strategy: promote beta's base version verbatim."""
    layout = ctx.layout
    if ctx.source_branch != layout.beta_branch:
        raise PolicyError(
            code=E.POLICY_WRONG_SOURCE,
            message=f"'{layout.main_branch}' only accepts merges from '{layout.beta_branch}', got '{ctx.source_branch}'",
            hint=f'Open the pull request against {layout.beta_branch} first.',
        )
    beta = ctx.snapshot.latest(BranchRole.BETA)
    if beta is None:
        raise PolicyError(
            code=E.POLICY_MISSING_TAG,
            message=f"'{layout.beta_branch}' has no release tag to promote",
            hint=f'Merge {layout.alpha_branch} into {layout.beta_branch} first.',
        )
    promoted = beta.version.base_version()
    main = ctx.snapshot.latest(BranchRole.MAIN)
    if main is not None and main.version >= promoted:
        return _no_bump(ctx, f'{promoted} already released')
    return _bumped(ctx, promoted, f'promoted from {beta.name}')


STRATEGIES: dict[BranchRole, Strategy] = {
    BranchRole.ALPHA: resolve_alpha,
    BranchRole.BETA: resolve_beta,
    BranchRole.MAIN: resolve_main,
}


class VersionResolver:
    """Resolves the next version for a merge into one of the three tiers.

    Args:
        layout: Branch names and identifiers.
        strategies: Strategy per role; defaults to :data:`STRATEGIES`.
    """

    def __init__(self, layout: BranchLayout, strategies: dict[BranchRole, Strategy] | None = None) -> None:
        """Initialize with the branch layout."""
        self._layout = layout
        self._strategies = strategies or STRATEGIES

    def context(
        self,
        target: BranchRole,
        source_branch: str,
        signal: ReleaseSignal,
        snapshot: TagSnapshot,
    ) -> VersionUpgradeContext:
        """Build the context a strategy consumes."""
        latest = snapshot.latest(target)
        return VersionUpgradeContext(
            base=latest.version if latest else VersionValue.zero(),
            target=target,
            source_branch=source_branch,
            signal=signal,
            snapshot=snapshot,
            layout=self._layout,
        )

    def resolve(
        self,
        target: BranchRole,
        source_branch: str,
        signal: ReleaseSignal,
        snapshot: TagSnapshot,
    ) -> Resolution:
        """Compute the next version for a merge of ``source_branch`` into ``target``.

        Raises:
            PolicyError: If the merge breaks a branch-hierarchy rule.
        """
        ctx = self.context(target, source_branch, signal, snapshot)
        resolution = self._strategies[target](ctx)
        logger.info(
            'version_resolved',
            target=target.value,
            source=source_branch,
            signal=ctx.signal.magnitude.label if ctx.signal.magnitude else None,
            base=str(resolution.base),
            next_version=str(resolution.next_version) if resolution.next_version else None,
            reason=resolution.reason,
        )
        return resolution


def reconcile(target_version: VersionValue | None, source_version: VersionValue) -> VersionValue:
    """Pick the metadata version after merging ``source`` into ``target``.

    The more advanced base version wins. A target whose own base is
    ahead of the source keeps its version; otherwise the source version
    is taken.
    """
    if target_version is not None and target_version.base_version() > source_version.base_version():
        return target_version
    return source_version


__all__ = [
    'STRATEGIES',
    'Resolution',
    'Strategy',
    'VersionResolver',
    'VersionUpgradeContext',
    'reconcile',
    'resolve_alpha',
    'resolve_beta',
    'resolve_main',
]
