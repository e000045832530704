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

"""Configuration reader for releasetrain.

Reads the optional ``releasetrain.toml`` at the repository root and
returns a validated, frozen :class:`TrainConfig`. A missing file means
all defaults.

Validation pipeline::

    releasetrain.toml
    ┌──────────────────┐
    │ tag_prefx = "v"  │  ← typo!
    └────────┬─────────┘
             ▼
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 1. Unknown key   │────→│ RT-CONFIG-INVALID-KEY:       │
    │    detection     │     │ hint: "Did you mean          │
    └────────┬─────────┘     │       'tag_prefix'?"         │
             ▼               └──────────────────────────────┘
    ┌──────────────────┐     ┌──────────────────────────────┐
    │ 2. Type check    │────→│ RT-CONFIG-INVALID-VALUE      │
    └────────┬─────────┘     └──────────────────────────────┘
             ▼
    ┌──────────────────┐
    │ TrainConfig()    │
    └──────────────────┘

Supported keys::

    tag_prefix        = "v"
    legacy_prefixes   = ["v", "version-", "ver-", "rel-"]
    git_user_name     = "GitHub Action"
    git_user_email    = "action@github.com"
    metadata_file     = "package.json"     # or "pyproject.toml"
    changelog         = true
    changelog_file    = "CHANGELOG.md"
    comment_title     = "Version Management"
    escalation_labels = ["merge-conflict", "automated", "priority-high"]
    skip_markers      = ["[skip ci]", "chore: sync", "chore: bump version"]
    scan_commits      = false
    publish           = false
    publish_command   = ["npm", "publish", "--tag", "{dist_tag}"]
    push_attempts     = 3
    forge             = "github"           # or "none"
    repo_owner        = ""
    repo_name         = ""

    [branches]      alpha = "alpha"   beta = "beta"   main = "main"
    [identifiers]   alpha = "alpha"   beta = "beta"
    [labels]        major = "major"   minor = "minor" patch = "patch"
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import tomlkit
import tomlkit.exceptions

from releasetrain.errors import E, ReleaseTrainError
from releasetrain.logging import get_logger
from releasetrain.roles import BranchLayout
from releasetrain.version import LEGACY_PREFIXES

logger = get_logger(__name__)

CONFIG_FILENAME = 'releasetrain.toml'

ALLOWED_FORGES: frozenset[str] = frozenset({'github', 'none'})
ALLOWED_METADATA_FILES: frozenset[str] = frozenset({'package.json', 'pyproject.toml'})

_TYPE_MAP: dict[str, type | tuple[type, ...]] = {
    'tag_prefix': str,
    'legacy_prefixes': list,
    'git_user_name': str,
    'git_user_email': str,
    'metadata_file': str,
    'changelog': bool,
    'changelog_file': str,
    'comment_title': str,
    'escalation_labels': list,
    'skip_markers': list,
    'scan_commits': bool,
    'publish': bool,
    'publish_command': list,
    'push_attempts': int,
    'forge': str,
    'repo_owner': str,
    'repo_name': str,
    'branches': dict,
    'identifiers': dict,
    'labels': dict,
}

VALID_KEYS: frozenset[str] = frozenset(_TYPE_MAP)

_TABLE_KEYS: dict[str, frozenset[str]] = {
    'branches': frozenset({'alpha', 'beta', 'main'}),
    'identifiers': frozenset({'alpha', 'beta'}),
    'labels': frozenset({'major', 'minor', 'patch'}),
}


@dataclass(frozen=True)
class TrainConfig:
    """Validated releasetrain settings.

    Attributes:
        tag_prefix: Prefix on every release tag.
        legacy_prefixes: Other prefixes accepted when reading old tags.
        layout: Branch names and tag identifiers per role.
        label_names: Label name per magnitude (``major``, ``minor``, ``patch``).
        git_user_name: Author name for automated commits.
        git_user_email: Author email for automated commits.
        metadata_file: Package metadata file holding the version.
        changelog: Whether to prepend a changelog section after tagging.
        changelog_file: Changelog path relative to the repository root.
        comment_title: Heading of the preview comment on pull requests.
        escalation_labels: Labels put on sync-conflict issues.
        skip_markers: Commit-message markers of automated commits.
        scan_commits: Fall back to Conventional Commit subjects when no
            label is present.
        publish: Publish to the registry after tagging.
        publish_command: Publish command; ``{dist_tag}`` and ``{version}``
            are substituted.
        push_attempts: Attempts for the push retry loop.
        forge: ``"github"`` or ``"none"``.
        repo_owner: Repository owner on the host.
        repo_name: Repository name on the host.
        config_path: File the settings were read from, if any.
    """

    tag_prefix: str = 'v'
    legacy_prefixes: tuple[str, ...] = LEGACY_PREFIXES
    layout: BranchLayout = field(default_factory=BranchLayout)
    label_names: dict[str, str] = field(
        default_factory=lambda: {'major': 'major', 'minor': 'minor', 'patch': 'patch'},
    )
    git_user_name: str = 'GitHub Action'
    git_user_email: str = 'action@github.com'
    metadata_file: str = 'package.json'
    changelog: bool = True
    changelog_file: str = 'CHANGELOG.md'
    comment_title: str = 'Version Management'
    escalation_labels: tuple[str, ...] = ('merge-conflict', 'automated', 'priority-high')
    skip_markers: tuple[str, ...] = ('[skip ci]', 'chore: sync', 'chore: bump version')
    scan_commits: bool = False
    publish: bool = False
    publish_command: tuple[str, ...] = ('npm', 'publish', '--tag', '{dist_tag}')
    push_attempts: int = 3
    forge: str = 'github'
    repo_owner: str = ''
    repo_name: str = ''
    config_path: Path | None = None

    def with_overrides(self, **overrides: Any) -> TrainConfig:  # noqa: ANN401 - CLI values
        """Return a copy with the given CLI overrides applied; ``None`` means unset."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values) if values else self


def _invalid_key(key: str, valid: frozenset[str], where: str) -> ReleaseTrainError:
    suggestion = difflib.get_close_matches(key, valid, n=1, cutoff=0.6)
    hint = f"Did you mean '{suggestion[0]}'?" if suggestion else f'Valid keys: {", ".join(sorted(valid))}.'
    return ReleaseTrainError(
        code=E.CONFIG_INVALID_KEY,
        message=f"Unknown key '{key}' in {where}",
        hint=hint,
    )


def _validate_type(key: str, value: Any, expected: type | tuple[type, ...]) -> None:  # noqa: ANN401
    # bool is a subclass of int; reject it where an int is expected.
    if expected is int and isinstance(value, bool):
        ok = False
    else:
        ok = isinstance(value, expected)
    if not ok:
        name = expected.__name__ if isinstance(expected, type) else ' or '.join(t.__name__ for t in expected)
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"'{key}' must be {name}, got {type(value).__name__}",
        )


def _string_list(key: str, items: list[Any]) -> tuple[str, ...]:  # noqa: ANN401
    for item in items:
        if not isinstance(item, str):
            raise ReleaseTrainError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"'{key}' entries must be strings, got {type(item).__name__}",
            )
    return tuple(str(item) for item in items)


def _string_table(key: str, table: dict[str, Any]) -> dict[str, str]:  # noqa: ANN401
    allowed = _TABLE_KEYS[key]
    result: dict[str, str] = {}
    for sub_key, value in table.items():
        if sub_key not in allowed:
            raise _invalid_key(sub_key, allowed, f'[{key}]')
        if not isinstance(value, str) or not value:
            raise ReleaseTrainError(
                code=E.CONFIG_INVALID_VALUE,
                message=f"[{key}].{sub_key} must be a non-empty string",
            )
        result[sub_key] = str(value)
    return result


def parse_config(raw: dict[str, Any], *, config_path: Path | None = None) -> TrainConfig:  # noqa: ANN401
    """Validate a decoded TOML document into a :class:`TrainConfig`.

    Raises:
        ReleaseTrainError: On unknown keys or ill-typed values.
    """
    for key in raw:
        if key not in VALID_KEYS:
            raise _invalid_key(key, VALID_KEYS, CONFIG_FILENAME)
    for key, value in raw.items():
        _validate_type(key, value, _TYPE_MAP[key])

    kwargs: dict[str, Any] = {'config_path': config_path}  # noqa: ANN401
    for key, value in raw.items():
        if key in _TABLE_KEYS:
            continue
        if isinstance(value, list):
            kwargs[key] = _string_list(key, value)
        else:
            kwargs[key] = value

    if kwargs.get('forge', 'github') not in ALLOWED_FORGES:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message=f"forge must be one of {sorted(ALLOWED_FORGES)}, got {kwargs['forge']!r}",
        )
    if kwargs.get('metadata_file', 'package.json').rsplit('/', 1)[-1] not in ALLOWED_METADATA_FILES:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'metadata_file must be one of {sorted(ALLOWED_METADATA_FILES)}',
            hint='Point metadata_file at a package.json or pyproject.toml.',
        )
    if kwargs.get('push_attempts', 3) < 1:
        raise ReleaseTrainError(code=E.CONFIG_INVALID_VALUE, message='push_attempts must be at least 1')

    branches = _string_table('branches', dict(raw.get('branches', {})))
    identifiers = _string_table('identifiers', dict(raw.get('identifiers', {})))
    default_layout = BranchLayout()
    layout = BranchLayout(
        alpha_branch=branches.get('alpha', default_layout.alpha_branch),
        beta_branch=branches.get('beta', default_layout.beta_branch),
        main_branch=branches.get('main', default_layout.main_branch),
        alpha_identifier=identifiers.get('alpha', default_layout.alpha_identifier),
        beta_identifier=identifiers.get('beta', default_layout.beta_identifier),
    )
    if len({layout.alpha_branch, layout.beta_branch, layout.main_branch}) != 3:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message='[branches] alpha, beta and main must be three different branches',
        )
    if layout.alpha_identifier == layout.beta_identifier:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message='[identifiers] alpha and beta must differ',
        )
    kwargs['layout'] = layout

    labels = _string_table('labels', dict(raw.get('labels', {})))
    if labels:
        kwargs['label_names'] = {**TrainConfig().label_names, **labels}

    return TrainConfig(**kwargs)


def load_config(repo_root: Path) -> TrainConfig:
    """Load and validate ``releasetrain.toml`` from ``repo_root``.

    Returns defaults when the file does not exist.

    Raises:
        ReleaseTrainError: If the file cannot be read, parsed or validated.
    """
    config_path = repo_root / CONFIG_FILENAME
    if not config_path.is_file():
        logger.debug('no_releasetrain_config', path=str(config_path))
        return TrainConfig()

    try:
        text = config_path.read_text(encoding='utf-8')
    except OSError as exc:
        raise ReleaseTrainError(
            code=E.CONFIG_NOT_FOUND,
            message=f'Failed to read {config_path}: {exc}',
        ) from exc

    try:
        doc = tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'Failed to parse {config_path}: {exc}',
        ) from exc

    config = parse_config(doc.unwrap(), config_path=config_path)
    logger.debug('config_loaded', path=str(config_path))
    return config


__all__ = [
    'CONFIG_FILENAME',
    'TrainConfig',
    'VALID_KEYS',
    'load_config',
    'parse_config',
]
