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

"""Tests for releasetrain.comments: PR comment bodies and commit markers."""

from __future__ import annotations

import pytest
from releasetrain.comments import (
    COMMENT_MARKER,
    bump_commit_message,
    error_comment,
    is_automated_commit,
    preview_comment,
    skip_comment,
    sync_commit_message,
    upsert_comment,
)
from releasetrain.config import TrainConfig
from tests._fakes import FakeForge

_MARKERS = TrainConfig().skip_markers


class TestCommitMessages:
    """Automated commits must be recognisable as automated."""

    def test_bump_is_automated(self) -> None:
        """Version commits carry a skip marker."""
        message = bump_commit_message('1.2.0', 'main')
        assert message == 'chore: bump version to 1.2.0 for main'
        assert is_automated_commit(message, _MARKERS)

    def test_sync_is_automated(self) -> None:
        """Sync commits carry [skip ci]."""
        message = sync_commit_message('beta', 'alpha', '1.2.0-beta.1')
        assert message == 'chore: sync beta v1.2.0-beta.1 to alpha [skip ci]'
        assert is_automated_commit(message, _MARKERS)

    def test_human_commit(self) -> None:
        """Regular merges are not automated."""
        assert not is_automated_commit('Merge pull request #4 from org/feature', _MARKERS)


class TestBodies:
    """Tests for comment bodies."""

    def test_preview(self) -> None:
        """The preview shows both branches and versions."""
        body = preview_comment(
            'Version Management',
            source_branch='alpha',
            target_branch='beta',
            current='v1.1.0-beta.2',
            next_version='v1.2.0-beta.0',
        )
        assert body.startswith(f'{COMMENT_MARKER}\n## Version Management\n')
        assert '| **Next version** | `v1.2.0-beta.0` |' in body
        assert '| **Current version** | `v1.1.0-beta.2` |' in body

    def test_preview_without_current(self) -> None:
        """A first release shows none."""
        body = preview_comment('T', source_branch='a', target_branch='b', current=None, next_version='v0.1.0')
        assert '`none`' in body

    def test_skip(self) -> None:
        """The skip body states the reason."""
        body = skip_comment('T', target_branch='alpha', current='v1.0.0', reason='no release label')
        assert '`skipped: no release label`' in body

    def test_error_with_hint(self) -> None:
        """Errors quote the hint."""
        body = error_comment('T', message='bad source', hint='go via beta')
        assert '**Error**' in body
        assert body.endswith('> go via beta')


class TestUpsert:
    """Tests for upsert_comment."""

    @pytest.mark.asyncio
    async def test_creates_then_updates(self) -> None:
        """The marker finds the previous comment."""
        forge = FakeForge(comments=[{'id': 1, 'body': 'unrelated'}])
        await upsert_comment(forge, 3, f'{COMMENT_MARKER}\nfirst')
        await upsert_comment(forge, 3, f'{COMMENT_MARKER}\nsecond')
        assert len(forge.comments) == 2
        assert forge.comment_updates == [2]
        assert forge.comments[1]['body'].endswith('second')
        assert forge.comments[0]['body'] == 'unrelated'
