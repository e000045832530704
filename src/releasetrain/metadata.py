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

"""Package metadata version store.

Reads and writes the single ``version`` field of the package metadata
file. Two formats are supported::

    package.json     {"version": "1.2.0-beta.1", ...}     json, indent kept
    pyproject.toml   [project] version = "1.2.0-beta.1"    tomlkit, comments kept

Only the version field is touched; everything else round-trips as-is.
"""

from __future__ import annotations

import json
import re
from pathlib import Path

import tomlkit
import tomlkit.exceptions

from releasetrain.errors import E, ReleaseTrainError
from releasetrain.logging import get_logger

logger = get_logger(__name__)

_INDENT_RE = re.compile(r'^\{\s*\n(?P<indent>[ \t]+)"')


class MetadataStore:
    """Version field of one metadata file.

    Args:
        path: Path to ``package.json`` or ``pyproject.toml``.
    """

    def __init__(self, path: Path) -> None:
        """Initialize with the metadata file path."""
        self.path = path

    @property
    def is_toml(self) -> bool:
        """Whether the file is a ``pyproject.toml``."""
        return self.path.suffix == '.toml'

    def _read_text(self) -> str:
        try:
            return self.path.read_text(encoding='utf-8')
        except FileNotFoundError as exc:
            raise ReleaseTrainError(
                code=E.METADATA_NOT_FOUND,
                message=f'Metadata file {self.path} does not exist',
                hint='Set metadata_file in releasetrain.toml.',
            ) from exc
        except OSError as exc:
            raise ReleaseTrainError(
                code=E.METADATA_INVALID,
                message=f'Cannot read {self.path}: {exc}',
            ) from exc

    def _write_text(self, text: str) -> None:
        try:
            self.path.write_text(text, encoding='utf-8')
        except OSError as exc:
            raise ReleaseTrainError(
                code=E.METADATA_INVALID,
                message=f'Cannot write {self.path}: {exc}',
                hint=f'Check file permissions for {self.path}.',
            ) from exc

    def read_version(self) -> str:
        """Return the stored version string.

        Raises:
            ReleaseTrainError: If the file is missing, unparseable, or has
                no version field.
        """
        text = self._read_text()
        if self.is_toml:
            project = self._toml(text).get('project')
            if not isinstance(project, dict) or 'version' not in project:
                raise self._no_version()
            return str(project['version'])
        data = self._json(text)
        if 'version' not in data:
            raise self._no_version()
        return str(data['version'])

    def write_version(self, version: str) -> str:
        """Replace the stored version and return the old one.

        Raises:
            ReleaseTrainError: If the file cannot be read, parsed, or written.
        """
        text = self._read_text()
        if self.is_toml:
            doc = self._toml(text)
            project = doc.get('project')
            if not isinstance(project, dict) or 'version' not in project:
                raise self._no_version()
            old_version = str(project['version'])
            project['version'] = version
            self._write_text(tomlkit.dumps(doc))
        else:
            data = self._json(text)
            old_version = str(data.get('version', ''))
            data['version'] = version
            m = _INDENT_RE.match(text)
            indent = m.group('indent') if m else '  '
            self._write_text(json.dumps(data, indent=indent, ensure_ascii=False) + '\n')

        logger.info('metadata_version_written', path=str(self.path), old=old_version, new=version)
        return old_version

    def _toml(self, text: str) -> tomlkit.TOMLDocument:
        try:
            return tomlkit.parse(text)
        except tomlkit.exceptions.TOMLKitError as exc:
            raise ReleaseTrainError(
                code=E.METADATA_INVALID,
                message=f'Cannot parse {self.path}: {exc}',
                hint=f'Check that {self.path} contains valid TOML.',
            ) from exc

    def _json(self, text: str) -> dict:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ReleaseTrainError(
                code=E.METADATA_INVALID,
                message=f'Cannot parse {self.path}: {exc}',
                hint=f'Check that {self.path} contains valid JSON.',
            ) from exc
        if not isinstance(data, dict):
            raise ReleaseTrainError(code=E.METADATA_INVALID, message=f'{self.path} is not a JSON object')
        return data

    def _no_version(self) -> ReleaseTrainError:
        where = '[project].version' if self.is_toml else '"version"'
        return ReleaseTrainError(
            code=E.METADATA_INVALID,
            message=f'No {where} key in {self.path}',
            hint=f'Add a {where} field to {self.path.name}.',
        )


__all__ = [
    'MetadataStore',
]
