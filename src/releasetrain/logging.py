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
"""Structured logging for releasetrain.

Configures `structlog <https://www.structlog.org/>`_ for a CI job. Every
event is rendered on stderr, either for people (colored console output
on a TTY) or for log search (``--json-log``, one object per line).
stdout stays free for ``releasetrain resolve`` and step outputs.

Two processors are specific to running inside a workflow:

- :func:`redact_secrets` masks token-like keys before anything is
  rendered. A GitHub token must never reach a job log.
- :class:`GitHubAnnotations` mirrors warnings and errors as
  ``::warning::`` / ``::error::`` workflow commands, so a dropped
  commit or an escalated sync shows up on the run summary page.

Usage::

    from releasetrain.logging import configure_logging, get_logger

    configure_logging(verbose=True, annotations=True)
    log = get_logger(__name__)
    log.warning('sync_realign_drops_commits', target='beta', count=2)

Events are snake_case names with key/value context. The orchestrator
binds the branch pair and PR number once per run with
:func:`bind_run_context`.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any, TextIO

import structlog

# Keys whose values are replaced before rendering.
SECRET_KEYS: frozenset[str] = frozenset({'token', 'github_token', 'authorization', 'password'})

_ANNOTATION_COMMANDS = {'warning': 'warning', 'error': 'error', 'critical': 'error'}
_ANNOTATION_SKIP = frozenset({'event', 'level', 'logger', 'timestamp'})


def redact_secrets(_logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:  # noqa: ANN401
    """Replace the value of any secret-looking key with ``***``."""
    for key in event_dict:
        if key.lower() in SECRET_KEYS and event_dict[key]:
            event_dict[key] = '***'
    return event_dict


def _escape_command(text: str) -> str:
    return text.replace('%', '%25').replace('\r', '%0D').replace('\n', '%0A')


class GitHubAnnotations:
    """Processor that echoes warnings and errors as workflow commands.

    The event itself passes through unchanged and is still rendered by
    the regular renderer.

    Args:
        stream: Where to write the commands; defaults to ``sys.stderr``
            at call time.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        """Initialize with an optional output stream."""
        self._stream = stream

    def __call__(self, _logger: Any, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:  # noqa: ANN401
        """Write one ``::level::message`` line for warnings and errors."""
        command = _ANNOTATION_COMMANDS.get(str(event_dict.get('level', '')))
        if command is None:
            return event_dict
        details = ' '.join(f'{k}={v}' for k, v in event_dict.items() if k not in _ANNOTATION_SKIP)
        message = f'{event_dict.get("event", "")} {details}'.strip()
        stream = self._stream or sys.stderr
        stream.write(f'::{command}::{_escape_command(message)}\n')
        return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool = False,
    annotations: bool = False,
) -> None:
    """Configure structlog for releasetrain.

    Call once at startup, before any logging calls. ``quiet`` wins over
    ``verbose``.

    Args:
        verbose: Enable debug-level output.
        quiet: Only warnings and errors.
        json_log: Use JSON output instead of console output.
        annotations: Also emit workflow commands for warnings and errors.
    """
    level = logging.WARNING if quiet else logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=level, force=True)

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        redact_secrets,
    ]
    if annotations:
        processors.append(GitHubAnnotations())
    processors.extend([
        structlog.processors.TimeStamper(fmt='iso'),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ])

    if json_log:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=processors,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
    )
    for handler in logging.root.handlers:
        handler.setFormatter(formatter)


def bind_run_context(**values: object) -> None:
    """Attach key/value pairs to every log event of the current run."""
    structlog.contextvars.bind_contextvars(**values)


def clear_run_context() -> None:
    """Drop everything bound with :func:`bind_run_context`."""
    structlog.contextvars.clear_contextvars()


def get_logger(name: str = 'releasetrain') -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger named ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'SECRET_KEYS',
    'GitHubAnnotations',
    'bind_run_context',
    'clear_run_context',
    'configure_logging',
    'get_logger',
    'redact_secrets',
]
