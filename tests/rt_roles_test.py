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

"""Tests for releasetrain.roles."""

from __future__ import annotations

from releasetrain.roles import BranchLayout, BranchRole
from releasetrain.version import VersionValue


class TestBranchRole:
    """Tests for BranchRole."""

    def test_downstream_chain(self) -> None:
        """State flows main → beta → alpha."""
        assert BranchRole.MAIN.downstream() is BranchRole.BETA
        assert BranchRole.BETA.downstream() is BranchRole.ALPHA
        assert BranchRole.ALPHA.downstream() is None

    def test_upstream_chain(self) -> None:
        """Promotions go alpha → beta → main."""
        assert BranchRole.ALPHA.upstream() is BranchRole.BETA
        assert BranchRole.MAIN.upstream() is None

    def test_stability(self) -> None:
        """Main is the most stable tier."""
        assert BranchRole.ALPHA.stability < BranchRole.BETA.stability < BranchRole.MAIN.stability


class TestBranchLayout:
    """Tests for BranchLayout."""

    def test_custom_branch_names(self) -> None:
        """Branch names map onto roles."""
        layout = BranchLayout(alpha_branch='develop', beta_branch='staging', main_branch='master')
        assert layout.role_of_branch('staging') is BranchRole.BETA
        assert layout.branch(BranchRole.MAIN) == 'master'
        assert layout.role_of_branch('feature/x') is None

    def test_role_of_version(self) -> None:
        """Tags are classified by their suffix."""
        layout = BranchLayout(alpha_identifier='dev', beta_identifier='rc')
        assert layout.role_of_version(VersionValue.parse('1.0.0')) is BranchRole.MAIN
        assert layout.role_of_version(VersionValue.parse('1.0.0-dev.1')) is BranchRole.ALPHA
        assert layout.role_of_version(VersionValue.parse('1.0.0-rc.0')) is BranchRole.BETA
        assert layout.role_of_version(VersionValue.parse('1.0.0-alpha.0')) is None
        assert layout.role_of_version(VersionValue.parse('1.0.0-4')) is None

    def test_dist_tags(self) -> None:
        """Main publishes as latest."""
        layout = BranchLayout()
        assert layout.dist_tag(BranchRole.ALPHA) == 'alpha'
        assert layout.dist_tag(BranchRole.MAIN) == 'latest'
