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

"""Structured logging for monorelease.

Events are snake_case names with key-value context, rendered by
`structlog <https://www.structlog.org/>`_ to stderr:

- **Console** on an interactive terminal.
- **JSON lines** otherwise (the CI runner), or when ``--json-log`` is set.

Stdout is reserved for workflow commands (``::error::``) and plan output.

Credentials never reach the log: values under keys such as ``token`` or
``authorization`` are replaced before rendering.

Usage::

    from monorelease.logging import configure_logging, get_logger

    configure_logging(verbose=True)
    log = get_logger(__name__)
    log.info('release_pr_opened', pr=42, target='main')
"""

from __future__ import annotations

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

import structlog

REDACTED = '***'

_SECRET_KEYS = frozenset({'token', 'authorization', 'password', 'secret'})


def redact_secrets(_logger: object, _method: str, event_dict: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
    """structlog processor: mask credential-looking keys."""
    for key in event_dict:
        if key.lower() in _SECRET_KEYS and event_dict[key]:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    *,
    verbose: bool = False,
    quiet: bool = False,
    json_log: bool | None = None,
) -> None:
    """Configure structlog and the stdlib root logger.

    Call once per process, before the first event.

    Args:
        verbose: Enable debug events.
        quiet: Only warnings and errors.
        json_log: Force JSON (True) or console (False) output. ``None``
            picks JSON unless stderr is a terminal.
    """
    level = logging.WARNING if quiet else logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(format='%(message)s', stream=sys.stderr, level=level, force=True)

    interactive = sys.stderr.isatty()
    if json_log is None:
        json_log = not interactive

    renderer: structlog.types.Processor
    if json_log:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=interactive)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt='iso'),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
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
    """Stamp every event of the current run with ``values``.

    The CLI binds the repository and release target, so logs of
    concurrent per-target runs stay apart.
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def get_logger(name: str = 'monorelease') -> structlog.stdlib.BoundLogger:
    """Return a bound structlog logger named ``name``."""
    return structlog.get_logger(name)


__all__ = [
    'REDACTED',
    'bind_run_context',
    'configure_logging',
    'get_logger',
    'redact_secrets',
]
