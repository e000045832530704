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

"""Pushing to a shared remote with optimistic concurrency.

Independent runs can race to push the same branch. A push that loses
the race is rejected by the remote; the loser waits a random 1-3
seconds, fetches, replays its commits on top of the new remote head
and tries again, up to a fixed number of attempts::

    attempt 1: push ─── rejected
               sleep(uniform(1, 3))
               fetch origin <branch>
               rebase origin/<branch>   (tag moved to the new HEAD)
    attempt 2: push ─── ok
               push <tag>

History-rewriting pushes (``force=True``) are guarded by
``--force-with-lease=<branch>:<last fetched sha>`` so they only replace
the exact remote head this run has seen.

The random source and the sleep function are injectable so the retry
schedule is deterministic under test.
"""

from __future__ import annotations

import asyncio
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from releasetrain.backends.vcs import VCS
from releasetrain.errors import E, ReleaseTrainError
from releasetrain.logging import get_logger

logger = get_logger(__name__)

DEFAULT_PUSH_ATTEMPTS = 3

# Re-applies local work on top of the fetched remote head. Returns False
# when that is not possible.
Replay = Callable[[], Awaitable[bool]]


@dataclass(frozen=True)
class PushPolicy:
    """Retry schedule for contended pushes.

    Attributes:
        attempts: Total push attempts.
        min_delay: Lower bound of the random pause, in seconds.
        max_delay: Upper bound of the random pause, in seconds.
        rng: Random source for the pause.
        sleep: Coroutine used to pause.
    """

    attempts: int = DEFAULT_PUSH_ATTEMPTS
    min_delay: float = 1.0
    max_delay: float = 3.0
    rng: random.Random = field(default_factory=random.Random)
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def delay(self) -> float:
        """Draw the next pause."""
        return self.rng.uniform(self.min_delay, self.max_delay)


async def push_with_retry(
    vcs: VCS,
    branch: str,
    *,
    tag_name: str | None = None,
    remote: str = 'origin',
    force: bool = False,
    policy: PushPolicy | None = None,
    replay: Replay | None = None,
    rebase_merges: bool = False,
    dry_run: bool = False,
) -> int:
    """Push ``branch`` (and then ``tag_name``), retrying lost races.

    Args:
        vcs: Version-control backend, checked out on ``branch``.
        branch: Branch to push.
        tag_name: Local tag to push once the branch is accepted. It is
            moved to the new HEAD whenever local commits are replayed.
        remote: Remote name.
        force: Rewrite the remote branch, guarded by a lease on the last
            fetched remote head.
        policy: Retry schedule.
        replay: Custom way to re-apply local work after a rejection;
            defaults to rebasing onto the fetched remote branch.
        rebase_merges: Keep merge commits when rebasing.
        dry_run: Log the pushes without executing them.

    Returns:
        The attempt number that succeeded.

    Raises:
        ReleaseTrainError: ``RT-PUSH-REJECTED`` after the last attempt,
            or when local work cannot be replayed.
    """
    policy = policy or PushPolicy()
    remote_ref = f'{remote}/{branch}'
    last_error = ''

    for attempt in range(1, policy.attempts + 1):
        lease = None
        if force:
            lease = (branch, await vcs.rev_parse(remote_ref))
        result = await vcs.push(branch, remote=remote, lease=lease, dry_run=dry_run)
        if result.ok:
            if tag_name:
                tag_result = await vcs.push(tag_name, remote=remote, dry_run=dry_run)
                if not tag_result.ok:
                    raise ReleaseTrainError(
                        code=E.PUSH_REJECTED,
                        message=f'Pushed {branch} but the remote rejected tag {tag_name}: {tag_result.stderr.strip()}',
                        hint=f'Push the tag by hand: git push {remote} {tag_name}',
                    )
            logger.info('push_succeeded', branch=branch, tag=tag_name, attempt=attempt)
            return attempt

        last_error = result.stderr.strip()
        logger.warning('push_rejected', branch=branch, attempt=attempt, attempts=policy.attempts, stderr=last_error[:300])
        if attempt == policy.attempts:
            break

        delay = policy.delay()
        logger.info('push_backoff', branch=branch, delay=round(delay, 2))
        await policy.sleep(delay)
        await vcs.fetch(remote=remote, branch=branch)

        if replay is not None:
            replayed = await replay()
        else:
            replayed = await _rebase(vcs, remote_ref, rebase_merges=rebase_merges)
        if not replayed:
            raise ReleaseTrainError(
                code=E.PUSH_REJECTED,
                message=f'Could not replay local commits on {remote_ref}',
                hint='Another run changed the branch in a conflicting way; re-run after it finishes.',
            )
        if tag_name:
            await vcs.tag(tag_name, force=True, dry_run=dry_run)

    raise ReleaseTrainError(
        code=E.PUSH_REJECTED,
        message=f'Push of {branch} rejected {policy.attempts} times: {last_error}',
        hint='Another run keeps updating the branch; re-run once it settles.',
    )


async def _rebase(vcs: VCS, upstream: str, *, rebase_merges: bool) -> bool:
    result = await vcs.rebase(upstream, rebase_merges=rebase_merges)
    if result.ok:
        return True
    logger.warning('rebase_failed', upstream=upstream, stderr=result.stderr.strip()[:300])
    await vcs.rebase_abort()
    return False


__all__ = [
    'DEFAULT_PUSH_ATTEMPTS',
    'PushPolicy',
    'push_with_retry',
]
