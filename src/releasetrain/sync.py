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

"""Downstream branch synchronization.

After a branch is released, its state flows down the tiers::

    released   edges
    ────────   ─────────────────────────────
    main       main → beta, then beta → alpha
    beta       beta → alpha
    alpha      (none; alpha only moves up through pull requests)

The two edges use different strategies on purpose:

``main → beta`` realigns beta onto main (history rewrite). Beta is
reset to main's tip and force-pushed with a lease, so beta stays linear
relative to main. Commits that only existed on beta are dropped and
listed in a warning.

``beta → alpha`` merges with a merge commit so alpha keeps its own
commits, which may be ahead of beta. Conflicts go down a ladder::

    1. merge --no-ff                        ok → done
    2. merge --no-commit, take the source's metadata file,
       commit if nothing else conflicts     ok → done
    3. merge --no-commit, keep the target's metadata file but write
       the reconciled version into it,
       commit if nothing else conflicts     ok → done
    4. open a tracking issue                → unresolved conflict

An unresolved edge is terminal. While its tracking issue is open, later
runs report the edge as unresolved again without retrying the merge.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from releasetrain.backends.forge import Forge
from releasetrain.backends.vcs import VCS
from releasetrain.comments import sync_commit_message
from releasetrain.config import TrainConfig
from releasetrain.errors import E, ReleaseTrainError
from releasetrain.logging import get_logger
from releasetrain.metadata import MetadataStore
from releasetrain.push import PushPolicy, push_with_retry
from releasetrain.resolver import reconcile
from releasetrain.roles import BranchRole
from releasetrain.version import VersionValue

logger = get_logger(__name__)

REALIGN = 'realign'
MERGE = 'merge'
MERGE_SOURCE_METADATA = 'merge-source-metadata'
MERGE_RECONCILED = 'merge-reconciled'


@dataclass(frozen=True)
class SyncEdge:
    """A downstream propagation ``source → target``."""

    source: BranchRole
    target: BranchRole

    @property
    def rewrites_history(self) -> bool:
        """Whether the target is realigned rather than merged into."""
        return self.source is BranchRole.MAIN


@dataclass(frozen=True)
class BranchSyncResult:
    """Outcome of one propagation edge.

    Attributes:
        edge: The edge that was attempted.
        success: Whether the target now carries the source's state.
        resulting_version: Version recorded in the target's metadata.
        error: What went wrong, when ``success`` is false.
        unresolved_conflict: The edge is escalated and needs a human.
        strategy: Which step of the ladder succeeded.
    """

    edge: SyncEdge
    success: bool
    resulting_version: VersionValue | None = None
    error: str | None = None
    unresolved_conflict: bool = False
    strategy: str = ''


def sync_edges(released: BranchRole) -> list[SyncEdge]:
    """Edges to walk, in order, after ``released`` was tagged."""
    edges: list[SyncEdge] = []
    source = released
    target = source.downstream()
    while target is not None:
        edges.append(SyncEdge(source=source, target=target))
        source, target = target, target.downstream()
    return edges


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class BranchSyncCoordinator:
    """Propagates a released branch into the tiers below it.

    Args:
        vcs: Version-control backend.
        config: Run configuration.
        repo_root: Repository root holding the metadata file.
        forge: Host client for escalation issues; ``None`` only logs.
        push_policy: Retry schedule for pushes.
        remote: Remote name.
        dry_run: Log writes without executing them.
        clock: Source of the timestamp put in escalation issues.
    """

    def __init__(
        self,
        vcs: VCS,
        config: TrainConfig,
        *,
        repo_root: Path,
        forge: Forge | None = None,
        push_policy: PushPolicy | None = None,
        remote: str = 'origin',
        dry_run: bool = False,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        """Initialize with backends and settings."""
        self._vcs = vcs
        self._config = config
        self._layout = config.layout
        self._metadata_path = config.metadata_file
        self._metadata = MetadataStore(repo_root / config.metadata_file)
        self._forge = forge
        self._push_policy = push_policy or PushPolicy(attempts=config.push_attempts)
        self._remote = remote
        self._dry_run = dry_run
        self._clock = clock

    async def propagate(self, released: BranchRole, version: VersionValue) -> list[BranchSyncResult]:
        """Walk every edge below ``released``; stop at the first failed edge."""
        results: list[BranchSyncResult] = []
        for edge in sync_edges(released):
            result = await self.sync_edge(edge, version)
            results.append(result)
            if not result.success:
                logger.warning(
                    'sync_chain_stopped',
                    source=edge.source.value,
                    target=edge.target.value,
                    unresolved_conflict=result.unresolved_conflict,
                )
                break
        return results

    async def sync_edge(self, edge: SyncEdge, version: VersionValue) -> BranchSyncResult:
        """Propagate one edge, escalating if the merge ladder runs out."""
        source_branch = self._layout.branch(edge.source)
        target_branch = self._layout.branch(edge.target)
        log = logger.bind(source=source_branch, target=target_branch, version=str(version))

        try:
            escalated = await self._escalation_open(edge)
        except ReleaseTrainError as exc:
            log.error('sync_escalation_check_failed', error=exc.info.message)
            return BranchSyncResult(edge=edge, success=False, error=exc.info.message)
        if escalated:
            log.warning('sync_edge_escalated', hint='Close the tracking issue once the branches are reconciled.')
            return BranchSyncResult(
                edge=edge,
                success=False,
                error=f'{source_branch} -> {target_branch} has an open conflict issue',
                unresolved_conflict=True,
            )

        fetched = await self._vcs.fetch(remote=self._remote, branch=target_branch)
        if not fetched.ok:
            log.warning('sync_fetch_failed', stderr=fetched.stderr.strip()[:300])

        try:
            if edge.rewrites_history:
                strategy = await self._realign(source_branch, target_branch, version)
                resulting = version
            else:
                outcome = await self._merge_ladder(source_branch, target_branch, version)
                if outcome is None:
                    return await self._escalate(edge, version)
                strategy, resulting = outcome
                await push_with_retry(
                    self._vcs,
                    target_branch,
                    remote=self._remote,
                    policy=self._push_policy,
                    rebase_merges=True,
                    dry_run=self._dry_run,
                )
        except ReleaseTrainError as exc:
            log.error('sync_edge_failed', error=exc.info.message)
            return BranchSyncResult(edge=edge, success=False, error=exc.info.message)

        log.info('sync_edge_done', strategy=strategy, resulting_version=str(resulting))
        return BranchSyncResult(edge=edge, success=True, resulting_version=resulting, strategy=strategy)

    async def _realign(self, source_branch: str, target_branch: str, version: VersionValue) -> str:
        """Reset ``target_branch`` to ``source_branch`` and force-push with a lease."""
        remote_target = f'{self._remote}/{target_branch}'
        dropped = await self._vcs.log(rev_range=f'{source_branch}..{remote_target}', format='%h %s')
        dropped = [line for line in dropped if line.strip()]
        if dropped:
            logger.warning(
                'sync_realign_drops_commits',
                target=target_branch,
                count=len(dropped),
                commits=dropped[:20],
                hint=f'These commits were only on {target_branch}; land them through a pull request again.',
            )

        async def realign() -> bool:
            result = await self._vcs.checkout(target_branch, start_point=source_branch, dry_run=self._dry_run)
            return result.ok

        if not await realign():
            raise ReleaseTrainError(
                code=E.SYNC_FAILED,
                message=f'Could not reset {target_branch} to {source_branch}',
            )
        await push_with_retry(
            self._vcs,
            target_branch,
            remote=self._remote,
            force=True,
            policy=self._push_policy,
            replay=realign,
            dry_run=self._dry_run,
        )
        logger.info('sync_realigned', target=target_branch, source=source_branch, version=str(version))
        return REALIGN

    async def _merge_ladder(
        self,
        source_branch: str,
        target_branch: str,
        version: VersionValue,
    ) -> tuple[str, VersionValue] | None:
        """Merge ``source_branch`` into ``target_branch``; ``None`` if every step failed."""
        vcs = self._vcs
        message = sync_commit_message(source_branch, target_branch, str(version))
        checkout = await vcs.checkout(
            target_branch,
            start_point=f'{self._remote}/{target_branch}',
            dry_run=self._dry_run,
        )
        if not checkout.ok:
            raise ReleaseTrainError(
                code=E.SYNC_FAILED,
                message=f'Could not check out {target_branch}: {checkout.stderr.strip()}',
            )

        # 1. Plain merge.
        merged = await vcs.merge(source_branch, message=message, dry_run=self._dry_run)
        if merged.ok:
            return MERGE, version
        logger.warning('sync_merge_conflict', source=source_branch, target=target_branch, step=1)
        await vcs.merge_abort()

        # 2. Take the source's metadata file.
        await vcs.merge(source_branch, commit=False, dry_run=self._dry_run)
        await vcs.checkout_theirs([self._metadata_path])
        await vcs.add([self._metadata_path])
        if not await vcs.unmerged_paths():
            committed = await vcs.commit(f'{message} (source metadata)', paths=[self._metadata_path])
            if committed.ok:
                return MERGE_SOURCE_METADATA, version
        logger.warning('sync_merge_conflict', source=source_branch, target=target_branch, step=2)
        await vcs.merge_abort()

        # 3. Keep the target's metadata file, write the reconciled version.
        await vcs.merge(source_branch, commit=False, dry_run=self._dry_run)
        await vcs.checkout_ours([self._metadata_path])
        try:
            own = VersionValue.parse(
                self._metadata.read_version(),
                prefix=self._config.tag_prefix,
                legacy_prefixes=self._config.legacy_prefixes,
            )
        except ReleaseTrainError as exc:
            logger.warning('sync_target_metadata_unreadable', error=exc.info.message)
            own = None
        reconciled = reconcile(own, version)
        try:
            self._metadata.write_version(str(reconciled))
        except ReleaseTrainError as exc:
            logger.warning('sync_metadata_write_failed', error=exc.info.message)
        else:
            await vcs.add([self._metadata_path])
            conflicts = await vcs.unmerged_paths()
            if not conflicts:
                committed = await vcs.commit(f'{message} (reconciled version)', paths=[self._metadata_path])
                if committed.ok:
                    return MERGE_RECONCILED, reconciled
            else:
                logger.warning('sync_unresolved_paths', target=target_branch, paths=conflicts)
        logger.warning('sync_merge_conflict', source=source_branch, target=target_branch, step=3)
        await vcs.merge_abort()
        return None

    def _escalation_title(self, edge: SyncEdge) -> str:
        return f'Sync conflict: {self._layout.branch(edge.source)} -> {self._layout.branch(edge.target)}'

    async def _escalation_open(self, edge: SyncEdge) -> bool:
        if self._forge is None:
            return False
        issues = await self._forge.list_issues(labels=list(self._config.escalation_labels))
        title = self._escalation_title(edge)
        return any(issue.get('title') == title for issue in issues)

    async def _escalate(self, edge: SyncEdge, version: VersionValue) -> BranchSyncResult:
        source_branch = self._layout.branch(edge.source)
        target_branch = self._layout.branch(edge.target)
        title = self._escalation_title(edge)
        body = (
            '## Merge conflict\n\n'
            f'**Source branch**: `{source_branch}`\n'
            f'**Target branch**: `{target_branch}`\n'
            f'**Version**: `{version.with_prefix(self._config.tag_prefix)}`\n'
            f'**Time**: {self._clock().isoformat()}\n\n'
            'Automatic merging could not resolve the conflict. To fix it:\n\n'
            f'1. Merge `{source_branch}` into `{target_branch}` by hand and resolve the conflicts.\n'
            f'2. Push `{target_branch}`.\n'
            '3. Close this issue so automatic syncing resumes.\n'
        )
        error = f'Could not merge {source_branch} into {target_branch}; escalated as "{title}"'
        if self._forge is None:
            logger.error('sync_conflict_unreported', source=source_branch, target=target_branch, hint='No forge configured.')
        else:
            created = await self._forge.create_issue(
                title,
                body,
                labels=list(self._config.escalation_labels),
                dry_run=self._dry_run,
            )
            if created.ok:
                logger.error('sync_conflict_escalated', source=source_branch, target=target_branch, title=title)
            else:
                logger.error('sync_conflict_issue_failed', title=title, stderr=created.stderr.strip()[:300])
        return BranchSyncResult(edge=edge, success=False, error=error, unresolved_conflict=True)


__all__ = [
    'BranchSyncCoordinator',
    'BranchSyncResult',
    'SyncEdge',
    'sync_edges',
]
