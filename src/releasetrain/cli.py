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

"""Command-line interface for releasetrain.

Subcommands::

    releasetrain run        Handle the current GitHub Actions pull_request event.
    releasetrain resolve    Resolve the next version locally, without side effects.
    releasetrain tags       Show the classified release tags.
    releasetrain explain    Explain an RT-* error code.

``run`` reads ``GITHUB_EVENT_NAME``, ``GITHUB_EVENT_PATH`` and
``GITHUB_REPOSITORY`` and writes ``next-version``, ``preview-version``,
``is-preview`` and ``published`` to ``$GITHUB_OUTPUT`` (stdout when
unset).
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table
from rich_argparse import RichHelpFormatter

from releasetrain import __version__
from releasetrain.backends.forge import Forge, GitHubAPIBackend
from releasetrain.backends.vcs import GitCLIBackend
from releasetrain.classify import ReleaseClassifier
from releasetrain.config import TrainConfig, load_config
from releasetrain.errors import E, ReleaseTrainError, UnresolvedConflict, explain, render_error
from releasetrain.history import TagHistoryReader
from releasetrain.logging import configure_logging, get_logger
from releasetrain.orchestrator import ReleaseOrchestrator, TriggerEvent
from releasetrain.publish import CommandPublisher
from releasetrain.resolver import VersionResolver
from releasetrain.roles import BranchRole

logger = get_logger(__name__)


def _load(args: argparse.Namespace) -> TrainConfig:
    config = load_config(args.repo_root)
    return config.with_overrides(tag_prefix=getattr(args, 'tag_prefix', None))


def _create_forge(config: TrainConfig) -> Forge | None:
    """Create the host client from config and the Actions environment."""
    if config.forge == 'none':
        return None
    owner, repo = config.repo_owner, config.repo_name
    if not (owner and repo):
        owner, _, repo = os.environ.get('GITHUB_REPOSITORY', '').partition('/')
    if not (owner and repo):
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message='Repository coordinates are unknown',
            hint='Set repo_owner and repo_name in releasetrain.toml, or GITHUB_REPOSITORY.',
        )
    try:
        return GitHubAPIBackend(owner=owner, repo=repo)
    except ValueError as exc:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message=str(exc),
            hint='Pass the workflow token as GITHUB_TOKEN, or set forge = "none".',
        ) from exc


def read_event(event_name: str | None, event_path: str | None) -> TriggerEvent:
    """Load the triggering event from the Actions environment."""
    name = event_name or os.environ.get('GITHUB_EVENT_NAME', '')
    path = event_path or os.environ.get('GITHUB_EVENT_PATH', '')
    if not path:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message='No event payload: GITHUB_EVENT_PATH is not set',
            hint='Run inside GitHub Actions, or pass --event-path and --event-name.',
        )
    try:
        payload = json.loads(Path(path).read_text(encoding='utf-8'))
    except (OSError, json.JSONDecodeError) as exc:
        raise ReleaseTrainError(
            code=E.CONFIG_INVALID_VALUE,
            message=f'Cannot read event payload {path}: {exc}',
        ) from exc
    return TriggerEvent.from_github(name, payload)


def write_outputs(outputs: dict[str, str]) -> None:
    """Append step outputs to ``$GITHUB_OUTPUT``, or print them."""
    lines = [f'{key}={value}' for key, value in outputs.items()]
    output_path = os.environ.get('GITHUB_OUTPUT', '')
    if output_path:
        with Path(output_path).open('a', encoding='utf-8') as fh:
            fh.write('\n'.join(lines) + '\n')
        return
    for line in lines:
        print(line)  # noqa: T201 - CLI output


async def _cmd_run(args: argparse.Namespace) -> int:
    """Handle the ``run`` subcommand."""
    config = _load(args)
    event = read_event(args.event_name, args.event_path)
    publisher = None
    if config.publish:
        publisher = CommandPublisher(config.publish_command, cwd=args.repo_root)
    orchestrator = ReleaseOrchestrator(
        GitCLIBackend(args.repo_root),
        config,
        repo_root=args.repo_root,
        forge=_create_forge(config),
        publisher=publisher,
        dry_run=args.dry_run,
    )
    outcome = await orchestrator.run(event)
    write_outputs(outcome.outputs())

    if args.fail_on_conflict and outcome.unresolved:
        first = outcome.unresolved[0]
        raise UnresolvedConflict(
            source=first.edge.source.value,
            target=first.edge.target.value,
            message=first.error or 'Downstream sync was escalated',
        )
    if config.publish and outcome.published is False:
        render_error(
            ReleaseTrainError(code=E.PUBLISH_FAILED, message=f'Publishing {outcome.next_version} failed'),
        )
        return 1
    return 0


async def _cmd_resolve(args: argparse.Namespace) -> int:
    """Handle the ``resolve`` subcommand."""
    config = _load(args)
    layout = config.layout
    target = layout.role_of_branch(args.target)
    if target is None:
        try:
            target = BranchRole(args.target)
        except ValueError:
            print(f'Unknown target branch: {args.target}', file=sys.stderr)  # noqa: T201 - CLI output
            return 2
    vcs = GitCLIBackend(args.repo_root)
    snapshot = await TagHistoryReader(
        vcs,
        layout,
        prefix=config.tag_prefix,
        legacy_prefixes=config.legacy_prefixes,
    ).snapshot()
    signal = ReleaseClassifier(config.label_names).classify(args.label or [])
    resolution = VersionResolver(layout).resolve(target, args.source, signal, snapshot)
    if resolution.next_version is None:
        print(f'no bump ({resolution.reason})', file=sys.stderr)  # noqa: T201 - CLI output
        return 0
    print(resolution.next_version.with_prefix(config.tag_prefix))  # noqa: T201 - CLI output
    return 0


async def _cmd_tags(args: argparse.Namespace) -> int:
    """Handle the ``tags`` subcommand."""
    config = _load(args)
    snapshot = await TagHistoryReader(
        GitCLIBackend(args.repo_root),
        config.layout,
        prefix=config.tag_prefix,
        legacy_prefixes=config.legacy_prefixes,
    ).snapshot()

    table = Table(title='Release tags')
    table.add_column('#', justify='right')
    table.add_column('Tag')
    table.add_column('Role')
    table.add_column('Base')
    latest = {role: snapshot.latest(role) for role in BranchRole}
    for record in snapshot.records:
        marker = ' (latest)' if latest[record.role] == record else ''
        table.add_row(
            str(record.creation_order),
            record.name,
            f'{record.role.value}{marker}',
            str(record.version.base_version()),
        )
    Console().print(table)
    print(f'highest base: {snapshot.global_highest_base()}')  # noqa: T201 - CLI output
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='releasetrain',
        description='Branch-aware versioning and downstream sync for alpha/beta/main release trains.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging.')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only log warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Log one JSON object per line.')
    parser.add_argument(
        '--repo-root',
        type=Path,
        default=Path.cwd(),
        help='Repository root (default: current directory).',
    )

    subparsers = parser.add_subparsers(dest='command')

    run_parser = subparsers.add_parser(
        'run',
        help='Handle the current pull_request event.',
        formatter_class=RichHelpFormatter,
    )
    run_parser.add_argument('--dry-run', action='store_true', help='Log writes without executing them.')
    run_parser.add_argument('--event-name', default=None, help='Override GITHUB_EVENT_NAME.')
    run_parser.add_argument('--event-path', default=None, help='Override GITHUB_EVENT_PATH.')
    run_parser.add_argument('--tag-prefix', default=None, help='Override tag_prefix.')
    run_parser.add_argument(
        '--fail-on-conflict',
        action='store_true',
        help='Exit non-zero when a downstream sync is escalated.',
    )

    resolve_parser = subparsers.add_parser(
        'resolve',
        help='Print the version a merge would release.',
        formatter_class=RichHelpFormatter,
    )
    resolve_parser.add_argument('--target', required=True, help='Target branch or role (alpha, beta, main).')
    resolve_parser.add_argument('--source', required=True, help='Source branch of the merge.')
    resolve_parser.add_argument(
        '--label',
        action='append',
        metavar='LABEL',
        help='Pull request label; repeat for several.',
    )
    resolve_parser.add_argument('--tag-prefix', default=None, help='Override tag_prefix.')

    tags_parser = subparsers.add_parser(
        'tags',
        help='Show the classified release tags.',
        formatter_class=RichHelpFormatter,
    )
    tags_parser.add_argument('--tag-prefix', default=None, help='Override tag_prefix.')

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
        formatter_class=RichHelpFormatter,
    )
    explain_parser.add_argument('code', help='Error code, e.g. RT-POLICY-MISSING-TAG.')

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(
        verbose=args.verbose,
        quiet=args.quiet,
        json_log=args.json_log,
        annotations=os.environ.get('GITHUB_ACTIONS') == 'true',
    )

    try:
        command = args.command
        if command == 'run':
            return asyncio.run(_cmd_run(args))
        if command == 'resolve':
            return asyncio.run(_cmd_resolve(args))
        if command == 'tags':
            return asyncio.run(_cmd_tags(args))
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except ReleaseTrainError as exc:
        render_error(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
    'read_event',
    'write_outputs',
]
