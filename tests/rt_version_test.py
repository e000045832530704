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

"""Tests for releasetrain.version: parsing, ordering and derivation."""

from __future__ import annotations

import pytest
from releasetrain.errors import ParseError
from releasetrain.version import Magnitude, VersionValue, strip_prefix


class TestParse:
    """Tests for VersionValue.parse."""

    def test_stable(self) -> None:
        """A stable tag parses into its three components."""
        v = VersionValue.parse('v1.2.3')
        assert (v.major, v.minor, v.patch) == (1, 2, 3)
        assert v.prerelease_tag is None
        assert not v.is_prerelease

    def test_prerelease(self) -> None:
        """Identifier and counter are split."""
        v = VersionValue.parse('v1.2.0-alpha.3')
        assert v.prerelease_tag == 'alpha'
        assert v.prerelease_counter == 3

    def test_no_prefix(self) -> None:
        """Metadata versions carry no prefix."""
        assert VersionValue.parse('0.4.1') == VersionValue(0, 4, 1)

    def test_legacy_prefix(self) -> None:
        """Legacy prefixes are accepted."""
        assert VersionValue.parse('rel-2.0.0') == VersionValue(2, 0, 0)
        assert VersionValue.parse('version-1.0.0-beta.2') == VersionValue(1, 0, 0, 'beta', 2)

    def test_custom_prefix(self) -> None:
        """A configured prefix is stripped."""
        assert VersionValue.parse('release/1.0.0', prefix='release/') == VersionValue(1, 0, 0)

    def test_stray_numeric_segment(self) -> None:
        """A stray number before the identifier is dropped."""
        assert VersionValue.parse('1.2.0-0.alpha.3') == VersionValue(1, 2, 0, 'alpha', 3)

    def test_glued_counter(self) -> None:
        """A counter glued to the identifier is split off."""
        assert VersionValue.parse('1.2.0-beta4') == VersionValue(1, 2, 0, 'beta', 4)

    def test_missing_counter(self) -> None:
        """A bare identifier gets counter 0."""
        assert VersionValue.parse('1.2.0-alpha') == VersionValue(1, 2, 0, 'alpha', 0)

    def test_numeric_only_prerelease(self) -> None:
        """A numeric pre-release keeps its number and has no identifier."""
        v = VersionValue.parse('1.0.0-3')
        assert v.prerelease_tag is None
        assert v.prerelease_counter == 3
        assert v.is_prerelease

    def test_build_metadata_ignored(self) -> None:
        """Build metadata does not change the version."""
        assert VersionValue.parse('1.0.0+sha.abc') == VersionValue(1, 0, 0)

    @pytest.mark.parametrize('text', ['', 'v1.2', 'latest', '1.x.0', 'v-1.0.0', '1.0.0.0', 'v1.0.0--', '1.0.0-.'])
    def test_rejects_bad_core(self, text: str) -> None:
        """Anything that is not X.Y.Z at its core is a ParseError."""
        with pytest.raises(ParseError):
            VersionValue.parse(text)

    def test_prerelease_without_counter_is_invalid(self) -> None:
        """The pre-release invariant is enforced on construction."""
        with pytest.raises(ParseError):
            VersionValue(1, 0, 0, 'alpha', None)


class TestStripPrefix:
    """Tests for strip_prefix."""

    def test_longest_prefix_wins(self) -> None:
        """'version-' is not mistaken for 'v'."""
        assert strip_prefix('version-1.0.0') == '1.0.0'

    def test_prefix_needs_digit(self) -> None:
        """A prefix not followed by a digit is left alone."""
        assert strip_prefix('vnext') == 'vnext'


class TestOrdering:
    """Tests for semantic-version precedence."""

    def test_prerelease_below_release(self) -> None:
        """1.0.0-beta.9 < 1.0.0."""
        assert VersionValue.parse('1.0.0-beta.9') < VersionValue.parse('1.0.0')

    def test_identifier_then_counter(self) -> None:
        """alpha < beta, then counters compare numerically."""
        assert VersionValue.parse('1.0.0-alpha.10') < VersionValue.parse('1.0.0-beta.0')
        assert VersionValue.parse('1.0.0-beta.2') < VersionValue.parse('1.0.0-beta.10')

    def test_numeric_identifier_sorts_first(self) -> None:
        """Numeric pre-releases sort below named ones."""
        assert VersionValue.parse('1.0.0-5') < VersionValue.parse('1.0.0-alpha.0')

    def test_compare(self) -> None:
        """compare returns -1, 0 or 1."""
        a, b = VersionValue.parse('1.0.0'), VersionValue.parse('1.1.0')
        assert a.compare(b) == -1
        assert b.compare(a) == 1
        assert a.compare(VersionValue(1, 0, 0)) == 0

    def test_base_version(self) -> None:
        """base_version strips the pre-release."""
        assert VersionValue.parse('2.1.0-beta.4').base_version() == VersionValue(2, 1, 0)


class TestBump:
    """Tests for VersionValue.bump."""

    def test_magnitudes(self) -> None:
        """Each magnitude resets the lower components."""
        v = VersionValue.parse('1.2.3')
        assert v.bump(Magnitude.PATCH) == VersionValue(1, 2, 4)
        assert v.bump(Magnitude.MINOR) == VersionValue(1, 3, 0)
        assert v.bump(Magnitude.MAJOR) == VersionValue(2, 0, 0)

    def test_magnitude_with_identifier_opens_line(self) -> None:
        """A magnitude plus identifier starts at counter 0."""
        assert VersionValue.parse('1.0.0').bump(Magnitude.MINOR, 'alpha') == VersionValue(1, 1, 0, 'alpha', 0)

    def test_counter_increment(self) -> None:
        """Without a magnitude only the counter moves."""
        assert VersionValue.parse('1.1.0-alpha.2').bump() == VersionValue(1, 1, 0, 'alpha', 3)

    def test_identifier_switch_restarts(self) -> None:
        """A different identifier restarts at 0 on the same base."""
        assert VersionValue.parse('1.1.0-alpha.2').bump(None, 'beta') == VersionValue(1, 1, 0, 'beta', 0)

    def test_original_unchanged(self) -> None:
        """Derivation returns a new instance."""
        v = VersionValue.parse('1.1.0-alpha.2')
        v.bump()
        assert str(v) == '1.1.0-alpha.2'


class TestRender:
    """Tests for string rendering."""

    def test_with_prefix(self) -> None:
        """with_prefix prepends the tag prefix."""
        assert VersionValue(1, 2, 0, 'beta', 1).with_prefix() == 'v1.2.0-beta.1'
        assert VersionValue(1, 2, 0).with_prefix('rel-') == 'rel-1.2.0'

    def test_magnitude_label(self) -> None:
        """Magnitude labels are lower case."""
        assert Magnitude.MAJOR.label == 'major'
