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

"""Tests for releasetrain.metadata: version field of package.json / pyproject.toml."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from releasetrain.errors import E, ReleaseTrainError
from releasetrain.metadata import MetadataStore

_PYPROJECT = """\
# Build settings
[project]
name = "app"
version = "0.3.0"  # managed by releasetrain

[tool.other]
key = 1
"""


class TestPackageJson:
    """Tests for package.json."""

    def test_read(self, tmp_path: Path) -> None:
        """The top-level version is returned."""
        path = tmp_path / 'package.json'
        path.write_text('{"name": "app", "version": "1.2.0-beta.1"}', encoding='utf-8')
        assert MetadataStore(path).read_version() == '1.2.0-beta.1'

    def test_write_keeps_indent_and_fields(self, tmp_path: Path) -> None:
        """Four-space files stay four-space; other keys are untouched."""
        path = tmp_path / 'package.json'
        path.write_text(json.dumps({'name': 'app', 'version': '1.0.0', 'private': True}, indent=4), encoding='utf-8')
        old = MetadataStore(path).write_version('1.1.0-alpha.0')
        text = path.read_text(encoding='utf-8')
        assert old == '1.0.0'
        assert '\n    "version": "1.1.0-alpha.0"' in text
        assert text.endswith('\n')
        assert json.loads(text) == {'name': 'app', 'version': '1.1.0-alpha.0', 'private': True}

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is RT-METADATA-NOT-FOUND."""
        with pytest.raises(ReleaseTrainError) as exc_info:
            MetadataStore(tmp_path / 'package.json').read_version()
        assert exc_info.value.code is E.METADATA_NOT_FOUND

    def test_missing_version(self, tmp_path: Path) -> None:
        """A file without a version is RT-METADATA-INVALID."""
        path = tmp_path / 'package.json'
        path.write_text('{"name": "app"}', encoding='utf-8')
        with pytest.raises(ReleaseTrainError) as exc_info:
            MetadataStore(path).read_version()
        assert exc_info.value.code is E.METADATA_INVALID

    def test_invalid_json(self, tmp_path: Path) -> None:
        """Broken JSON is RT-METADATA-INVALID."""
        path = tmp_path / 'package.json'
        path.write_text('{"version": ', encoding='utf-8')
        with pytest.raises(ReleaseTrainError) as exc_info:
            MetadataStore(path).write_version('1.0.0')
        assert exc_info.value.code is E.METADATA_INVALID

    def test_not_an_object(self, tmp_path: Path) -> None:
        """A JSON array is not package metadata."""
        path = tmp_path / 'package.json'
        path.write_text('[]', encoding='utf-8')
        with pytest.raises(ReleaseTrainError):
            MetadataStore(path).read_version()


class TestPyproject:
    """Tests for pyproject.toml."""

    def test_read(self, tmp_path: Path) -> None:
        """[project].version is returned."""
        path = tmp_path / 'pyproject.toml'
        path.write_text(_PYPROJECT, encoding='utf-8')
        assert MetadataStore(path).read_version() == '0.3.0'

    def test_write_keeps_comments(self, tmp_path: Path) -> None:
        """Only the version value changes."""
        path = tmp_path / 'pyproject.toml'
        path.write_text(_PYPROJECT, encoding='utf-8')
        MetadataStore(path).write_version('0.4.0-beta.0')
        text = path.read_text(encoding='utf-8')
        assert 'version = "0.4.0-beta.0"' in text
        assert '# managed by releasetrain' in text
        assert text.startswith('# Build settings\n')
        assert '[tool.other]\nkey = 1' in text

    def test_missing_project_table(self, tmp_path: Path) -> None:
        """No [project] table is RT-METADATA-INVALID."""
        path = tmp_path / 'pyproject.toml'
        path.write_text('[tool.x]\na = 1\n', encoding='utf-8')
        with pytest.raises(ReleaseTrainError) as exc_info:
            MetadataStore(path).read_version()
        assert exc_info.value.code is E.METADATA_INVALID
        assert '[project].version' in exc_info.value.info.message
