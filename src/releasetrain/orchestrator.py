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

"""Release orchestration for one pull request event.

One CI run handles one branch transition. The orchestrator sequences
the whole pass and stops at the first fatal error::

    TriggerEvent (pull_request)
         │
         ├─ not a PR / unknown target / automated commit ──→ skip
         ▼
    fetch tags ─→ TagSnapshot ─→ ReleaseSignal ─→ Resolution
         │
         ├─ PR open (preview) ──→ upsert PR comment, outputs, done
         ▼
    PR merged (execute)
         │
         ├─ write metadata ─→ commit ─→ tag      (commit + tag are one unit)
         ├─ push branch and tag with retry
         ├─ changelog section (failures logged only)
         ├─ publish (optional; result reported, not fatal)
         └─ sync downstream (unresolved conflicts escalated, not fatal)

Errors before the commit leave the repository untouched. A commit
without its tag fails the run with ``RT-TAG-CREATION-FAILED``.
"""

from __future__ import annotations

import datetime
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from releasetrain.backends.forge import Forge
from releasetrain.backends.vcs import VCS
from releasetrain.changelog import render_section, write_changelog
from releasetrain.classify import ReleaseClassifier, ReleaseSignal
from releasetrain.comments import (
    bump_commit_message,
    changelog_commit_message,
    error_comment,
    is_automated_commit,
    preview_comment,
    skip_comment,
    upsert_comment,
)
from releasetrain.config import TrainConfig
from releasetrain.errors import E, PolicyError, ReleaseTrainError
from releasetrain.history import TagHistoryReader, TagSnapshot
from releasetrain.logging import bind_run_context, get_logger
from releasetrain.metadata import MetadataStore
from releasetrain.publish import CommandPublisher
from releasetrain.push import PushPolicy, push_with_retry
from releasetrain.resolver import Resolution, VersionResolver
from releasetrain.roles import BranchRole
from releasetrain.sync import BranchSyncCoordinator, BranchSyncResult
from releasetrain.version import VersionValue

logger = get_logger(__name__)

PULL_REQUEST = 'pull_request'


@dataclass(frozen=True)
class TriggerEvent:
    """The CI event that started the run.

    Attributes:
        event_name: CI event type; only ``pull_request`` is handled.
        source_branch: Head branch of the pull request.
        target_branch: Base branch of the pull request.
        pr_number: Pull request number, if any.
        merged: Whether the pull request was merged.
        closed: Whether the pull request is closed.
        labels: Label names carried in the event payload.
        head_commit_message: Message of the commit that triggered the run.
        head_sha: Head commit of the pull request, used to read its message
            when the payload carries none.
    """

    event_name: str
    source_branch: str = ''
    target_branch: str = ''
    pr_number: int | None = None
    merged: bool = False
    closed: bool = False
    labels: tuple[str, ...] = ()
    head_commit_message: str = ''
    head_sha: str = ''

    @property
    def is_preview(self) -> bool:
        """An open pull request only previews the version."""
        return not self.merged

    @classmethod
    def from_github(cls, event_name: str, payload: Mapping[str, Any]) -> TriggerEvent:  # noqa: ANN401
        """Build an event from a GitHub Actions event payload."""
        pr = payload.get('pull_request') or {}
        head_commit = payload.get('head_commit') or {}
        state = pr.get('state', '')
        return cls(
            event_name=event_name,
            source_branch=(pr.get('head') or {}).get('ref', ''),
            target_branch=(pr.get('base') or {}).get('ref', ''),
            pr_number=pr.get('number'),
            merged=state == 'closed' and pr.get('merged') is True,
            closed=state == 'closed',
            labels=tuple(lbl.get('name', '') for lbl in pr.get('labels') or [] if lbl.get('name')),
            head_commit_message=head_commit.get('message', ''),
            head_sha=(pr.get('head') or {}).get('sha', ''),
        )


@dataclass(frozen=True)
class RunOutcome:
    """What a run did, for the calling pipeline.

    Attributes:
        next_version: Resolved version, or ``None`` for no bump.
        is_preview: Whether the run only previewed.
        published: Registry publish result; ``None`` when not attempted.
        sync_results: One entry per propagation edge attempted.
        tag_prefix: Prefix used to render the version as a tag.
        skipped: Why the run did nothing, if it did nothing.
    """

    next_version: VersionValue | None = None
    is_preview: bool = False
    published: bool | None = None
    sync_results: tuple[BranchSyncResult, ...] = ()
    tag_prefix: str = 'v'
    skipped: str = ''

    @property
    def unresolved(self) -> list[BranchSyncResult]:
        """Sync edges that ended escalated."""
        return [r for r in self.sync_results if r.unresolved_conflict]

    def outputs(self) -> dict[str, str]:
        """Key/value outputs for ``$GITHUB_OUTPUT``."""
        version = self.next_version.with_prefix(self.tag_prefix) if self.next_version else ''
        out = {'is-preview': 'true' if self.is_preview else 'false'}
        if self.is_preview:
            out['preview-version'] = version
        else:
            out['next-version'] = version
        out['published'] = 'true' if self.published else 'false'
        return out


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class ReleaseOrchestrator:
    """Top-level driver: classify, resolve, release, sync.

    Every collaborator is injected; nothing is looked up globally.

    Args:
        vcs: Version-control backend.
        config: Run configuration.
        repo_root: Repository root.
        forge: Host client for labels, comments and issues; ``None``
            reads labels from the event and skips comments.
        publisher: Registry publisher, used when ``config.publish`` is set.
        push_policy: Retry schedule for pushes.
        remote: Remote name.
        dry_run: Log writes without executing them.
        clock: Source of dates for the changelog and escalation issues.
    """

    def __init__(
        self,
        vcs: VCS,
        config: TrainConfig,
        *,
        repo_root: Path,
        forge: Forge | None = None,
        publisher: CommandPublisher | None = None,
        push_policy: PushPolicy | None = None,
        remote: str = 'origin',
        dry_run: bool = False,
        clock: Callable[[], datetime.datetime] = _utcnow,
    ) -> None:
        """Initialize with injected backends."""
        self.vcs = vcs
        self.config = config
        self.repo_root = repo_root
        self.forge = forge
        self.publisher = publisher
        self.push_policy = push_policy or PushPolicy(attempts=config.push_attempts)
        self.remote = remote
        self.dry_run = dry_run
        self.clock = clock
        self.layout = config.layout
        self.classifier = ReleaseClassifier(config.label_names)
        self.resolver = VersionResolver(self.layout)
        self.metadata = MetadataStore(repo_root / config.metadata_file)

    def _tag(self, version: VersionValue) -> str:
        return version.with_prefix(self.config.tag_prefix)

    def _skip(self, reason: str, **kw: Any) -> RunOutcome:  # noqa: ANN401
        logger.info('run_skipped', reason=reason, **kw)
        return RunOutcome(tag_prefix=self.config.tag_prefix, skipped=reason)

    async def _head_message(self, event: TriggerEvent) -> str:
        """Read the pull request head commit message from the local clone.

        Pull request payloads carry no ``head_commit``; an unknown sha
        reads as an empty message.
        """
        if not event.head_sha:
            return ''
        lines = await self.vcs.log(rev_range=event.head_sha, format='%B', max_commits=1)
        return '\n'.join(lines)

    async def run(self, event: TriggerEvent) -> RunOutcome:
        """Handle one event.

        Raises:
            PolicyError: When a merged pull request breaks a hierarchy rule.
            BackendUnavailable: When tags or labels cannot be read.
            ReleaseTrainError: When committing, tagging or pushing fails.
        """
        if event.event_name != PULL_REQUEST:
            return self._skip('unsupported event', event_name=event.event_name)
        if event.closed and not event.merged:
            return self._skip('pull request closed without merging', pr=event.pr_number)
        target = self.layout.role_of_branch(event.target_branch)
        if target is None:
            return self._skip('unsupported target branch', target=event.target_branch)
        message = event.head_commit_message or await self._head_message(event)
        if is_automated_commit(message, self.config.skip_markers):
            return self._skip('automated commit', message=message.strip().split('\n', 1)[0])

        bind_run_context(
            source=event.source_branch,
            target=event.target_branch,
            pr=event.pr_number,
            mode='preview' if event.is_preview else 'execute',
        )
        logger.info('run_started')

        fetched = await self.vcs.fetch(remote=self.remote, tags=True)
        if not fetched.ok:
            logger.warning('tag_fetch_failed', stderr=fetched.stderr.strip()[:300])
        snapshot = await TagHistoryReader(
            self.vcs,
            self.layout,
            prefix=self.config.tag_prefix,
            legacy_prefixes=self.config.legacy_prefixes,
        ).snapshot()

        if event.is_preview:
            return await self._preview(event, target, snapshot)
        return await self._execute(event, target, snapshot)

    async def classify(self, event: TriggerEvent, target: BranchRole, snapshot: TagSnapshot) -> ReleaseSignal:
        """Read the release signal: labels first, commit subjects if enabled."""
        labels: list[str] = list(event.labels)
        if self.forge is not None and event.pr_number is not None:
            labels = await self.forge.pr_labels(event.pr_number)
        signal = self.classifier.classify(labels)
        if signal.present or not self.config.scan_commits:
            return signal
        latest = snapshot.latest(target)
        rev_range = f'{latest.name}..HEAD' if latest else 'HEAD'
        subjects = await self.vcs.log(rev_range=rev_range, format='%s')
        return self.classifier.classify_commits(subjects)

    async def resolve(self, event: TriggerEvent, target: BranchRole, snapshot: TagSnapshot) -> Resolution:
        """Classify and resolve without side effects."""
        signal = await self.classify(event, target, snapshot)
        return self.resolver.resolve(target, event.source_branch, signal, snapshot)

    async def _comment(self, event: TriggerEvent, body: str) -> None:
        if self.forge is None or event.pr_number is None:
            logger.debug('comment_skipped', reason='no forge or pull request')
            return
        await upsert_comment(self.forge, event.pr_number, body, dry_run=self.dry_run)

    async def _preview(self, event: TriggerEvent, target: BranchRole, snapshot: TagSnapshot) -> RunOutcome:
        title = self.config.comment_title
        latest = snapshot.latest(target)
        current = latest.name if latest else None
        try:
            resolution = await self.resolve(event, target, snapshot)
        except PolicyError as exc:
            logger.warning('preview_policy_error', code=exc.code.value, error=exc.info.message)
            await self._comment(event, error_comment(title, message=exc.info.message, hint=exc.hint))
            return RunOutcome(is_preview=True, tag_prefix=self.config.tag_prefix)

        if resolution.next_version is None:
            await self._comment(
                event,
                skip_comment(title, target_branch=event.target_branch, current=current, reason=resolution.reason),
            )
        else:
            await self._comment(
                event,
                preview_comment(
                    title,
                    source_branch=event.source_branch,
                    target_branch=event.target_branch,
                    current=current,
                    next_version=self._tag(resolution.next_version),
                ),
            )
        logger.info('preview_done', next_version=str(resolution.next_version) if resolution.next_version else None)
        return RunOutcome(next_version=resolution.next_version, is_preview=True, tag_prefix=self.config.tag_prefix)

    async def _execute(self, event: TriggerEvent, target: BranchRole, snapshot: TagSnapshot) -> RunOutcome:
        try:
            resolution = await self.resolve(event, target, snapshot)
        except PolicyError as exc:
            await self._comment(event, error_comment(self.config.comment_title, message=exc.info.message, hint=exc.hint))
            raise

        version = resolution.next_version
        if version is None:
            logger.info('no_version_bump', reason=resolution.reason, base=str(resolution.base))
            return RunOutcome(tag_prefix=self.config.tag_prefix)

        branch = event.target_branch
        tag_name = self._tag(version)
        await self.release(branch, version, tag_name)
        await self._changelog(branch, target, snapshot, tag_name)
        published = await self._publish(target, version)

        coordinator = BranchSyncCoordinator(
            self.vcs,
            self.config,
            repo_root=self.repo_root,
            forge=self.forge,
            push_policy=self.push_policy,
            remote=self.remote,
            dry_run=self.dry_run,
            clock=self.clock,
        )
        results = await coordinator.propagate(target, version)
        for result in results:
            if not result.success:
                logger.warning(
                    'sync_incomplete',
                    source=result.edge.source.value,
                    target=result.edge.target.value,
                    unresolved_conflict=result.unresolved_conflict,
                    error=result.error,
                )

        logger.info('release_done', version=str(version), tag=tag_name, published=published)
        return RunOutcome(
            next_version=version,
            is_preview=False,
            published=published,
            sync_results=tuple(results),
            tag_prefix=self.config.tag_prefix,
        )

    async def release(self, branch: str, version: VersionValue, tag_name: str) -> None:
        """Write, commit, tag and push ``version`` on ``branch``.

        Raises:
            ReleaseTrainError: ``RT-COMMIT-FAILED`` before anything is
                tagged, ``RT-TAG-CREATION-FAILED`` when the commit exists
                without its tag, ``RT-PUSH-REJECTED`` when the remote
                keeps rejecting.
        """
        vcs = self.vcs
        await vcs.configure_identity(self.config.git_user_name, self.config.git_user_email)
        await vcs.fetch(remote=self.remote, branch=branch)
        checkout = await vcs.checkout(branch, start_point=f'{self.remote}/{branch}', dry_run=self.dry_run)
        if not checkout.ok:
            raise ReleaseTrainError(
                code=E.COMMIT_FAILED,
                message=f'Could not check out {branch}: {checkout.stderr.strip()}',
            )

        if self.dry_run:
            logger.info('dry_run_metadata_write', path=str(self.metadata.path), version=str(version))
        else:
            self.metadata.write_version(str(version))

        committed = await vcs.commit(
            bump_commit_message(str(version), branch),
            paths=[self.config.metadata_file],
            dry_run=self.dry_run,
        )
        if not committed.ok:
            raise ReleaseTrainError(
                code=E.COMMIT_FAILED,
                message=f'Could not commit {self.config.metadata_file} for {tag_name}: {committed.stderr.strip()}',
                hint='Nothing was tagged or pushed.',
            )

        tagged = await vcs.tag(tag_name, dry_run=self.dry_run)
        if not tagged.ok:
            raise ReleaseTrainError(
                code=E.TAG_CREATION_FAILED,
                message=f'Committed {version} on {branch} but could not create tag {tag_name}: {tagged.stderr.strip()}',
                hint=f'Tag the version commit by hand: git tag {tag_name} && git push origin {branch} {tag_name}',
            )

        await push_with_retry(
            vcs,
            branch,
            tag_name=tag_name,
            remote=self.remote,
            policy=self.push_policy,
            dry_run=self.dry_run,
        )
        logger.info('version_released', version=str(version), tag=tag_name, branch=branch)

    async def _changelog(self, branch: str, target: BranchRole, snapshot: TagSnapshot, tag_name: str) -> None:
        if not self.config.changelog:
            return
        previous = snapshot.latest(target)
        rev_range = f'{previous.name}..{tag_name}' if previous else tag_name
        try:
            subjects = await self.vcs.log(rev_range=rev_range, format='%s')
            section = render_section(tag_name, subjects, date=self.clock().date(), skip_markers=self.config.skip_markers)
            path = self.repo_root / self.config.changelog_file
            if not write_changelog(path, section, dry_run=self.dry_run):
                return
            committed = await self.vcs.commit(
                changelog_commit_message(tag_name),
                paths=[self.config.changelog_file],
                dry_run=self.dry_run,
            )
            if not committed.ok:
                logger.warning('changelog_commit_failed', stderr=committed.stderr.strip()[:300])
                return
            await push_with_retry(self.vcs, branch, remote=self.remote, policy=self.push_policy, dry_run=self.dry_run)
        except (ReleaseTrainError, OSError) as exc:
            logger.warning('changelog_failed', tag=tag_name, error=str(exc))

    async def _publish(self, target: BranchRole, version: VersionValue) -> bool | None:
        if not self.config.publish or self.publisher is None:
            return None
        result = await self.publisher.publish(str(version), self.layout.dist_tag(target), dry_run=self.dry_run)
        return result.ok


__all__ = [
    'PULL_REQUEST',
    'ReleaseOrchestrator',
    'RunOutcome',
    'TriggerEvent',
]
