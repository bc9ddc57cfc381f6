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

"""Structured error system for monorelease.

Every error has a unique ``MR-NAMED-KEY`` code, a human-readable message,
and an optional hint with a suggested fix.

Code categories::

    MR-CONFIG-*       Invocation inputs and unversionable packages
    MR-MANIFEST-*     Release manifest problems
    MR-VERSION-*      Version strings that cannot be bumped
    MR-CONTEXT-*      Missing or malformed CI event context
    MR-FORGE-*        Write failures against the hosting platform

Only configuration and unexpected write failures are raised. Read
failures degrade to empty values, and "already exists" conflicts on
tags, releases and branches are logged as warnings because they mean a
previous run already made that progress.

Usage::

    from monorelease.errors import E, ReleaseError

    raise ReleaseError(
        code=E.CONFIG_RESERVED_TARGET,
        message='release-target cannot be "latest"',
        hint='Pick a lane name such as "main" or "canary".',
    )
"""

from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import Enum
from typing import TextIO

from rich.console import Console
from rich.markup import escape as rich_escape


class ErrorCode(str, Enum):
    """Enumeration of all monorelease diagnostic codes."""

    # Configuration
    CONFIG_MISSING_REQUIRED = 'MR-CONFIG-MISSING-REQUIRED'
    CONFIG_INVALID_VALUE = 'MR-CONFIG-INVALID-VALUE'
    CONFIG_RESERVED_TARGET = 'MR-CONFIG-RESERVED-TARGET'
    CONFIG_UNVERSIONABLE_PACKAGE = 'MR-CONFIG-UNVERSIONABLE-PACKAGE'

    # Manifest
    MANIFEST_INVALID = 'MR-MANIFEST-INVALID'

    # Versioning
    VERSION_INVALID = 'MR-VERSION-INVALID'

    # CI context
    CONTEXT_MISSING = 'MR-CONTEXT-MISSING'

    # Forge writes
    FORGE_WRITE_FAILED = 'MR-FORGE-WRITE-FAILED'
    FORGE_CONFLICT = 'MR-FORGE-CONFLICT'


# Convenience alias for shorter imports.
E = ErrorCode


@dataclass(frozen=True)
class ErrorInfo:
    """Metadata for a single error code.

    Attributes:
        code: The ``MR-NAMED-KEY`` error code.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    code: ErrorCode
    message: str
    hint: str = ''


class ReleaseError(Exception):
    """Base exception for all monorelease errors.

    Args:
        code: The error code from :class:`ErrorCode`.
        message: Human-readable description of what went wrong.
        hint: Optional suggestion for how to fix the error.
    """

    def __init__(self, code: ErrorCode, message: str, hint: str = '') -> None:
        """Initialize with an error code, message, and optional hint."""
        self.info = ErrorInfo(code=code, message=message, hint=hint)
        super().__init__(message)

    @property
    def code(self) -> ErrorCode:
        """The error code."""
        return self.info.code

    @property
    def hint(self) -> str:
        """Suggestion for fixing this error, or empty string."""
        return self.info.hint

    @property
    def message(self) -> str:
        """The bare message, without code or hint."""
        return self.info.message


class ForgeWriteError(ReleaseError):
    """A write against the hosting platform failed.

    Carries the HTTP status so callers can tell a conflict (the object
    already exists) from a permission or network problem.
    """

    def __init__(self, message: str, *, status: int, conflict: bool = False, hint: str = '') -> None:
        """Initialize with the failing HTTP status."""
        code = E.FORGE_CONFLICT if conflict else E.FORGE_WRITE_FAILED
        super().__init__(code=code, message=message, hint=hint)
        self.status = status

    @property
    def is_conflict(self) -> bool:
        """Whether the platform rejected the write because the object exists."""
        return self.code == E.FORGE_CONFLICT


ERRORS: dict[ErrorCode, ErrorInfo] = {
    E.CONFIG_RESERVED_TARGET: ErrorInfo(
        code=E.CONFIG_RESERVED_TARGET,
        message='release-target cannot be "latest", because it is reserved for the latest release.',
        hint='"latest" is the version ceiling across all targets. Use a lane name like "main" or "canary".',
    ),
    E.CONFIG_UNVERSIONABLE_PACKAGE: ErrorInfo(
        code=E.CONFIG_UNVERSIONABLE_PACKAGE,
        message='No package.json, Cargo.toml, or version.txt found for a package in the manifest.',
        hint='Add one of the supported version files to the package directory, or remove it from the manifest.',
    ),
    E.CONFIG_MISSING_REQUIRED: ErrorInfo(
        code=E.CONFIG_MISSING_REQUIRED,
        message='A required input was not provided.',
        hint='Pass the input via the workflow "with:" block or the matching CLI flag.',
    ),
    E.CONTEXT_MISSING: ErrorInfo(
        code=E.CONTEXT_MISSING,
        message='The CI event context could not be determined.',
        hint='Run inside GitHub Actions, or pass --repository and --event-path explicitly.',
    ),
    E.FORGE_WRITE_FAILED: ErrorInfo(
        code=E.FORGE_WRITE_FAILED,
        message='A write to the hosting platform failed.',
        hint='Check that the token has "contents: write" and "pull-requests: write" permissions.',
    ),
}


def explain(code: str) -> str | None:
    """Return a detailed explanation for an error code.

    Args:
        code: The error code string, e.g. ``"MR-CONFIG-RESERVED-TARGET"``.

    Returns:
        A formatted explanation string, or ``None`` if the code is unknown.
    """
    try:
        error_code = ErrorCode(code)
    except ValueError:
        return None

    info = ERRORS.get(error_code)
    if info is None:
        return f'{code}: No detailed explanation available.'

    lines = [f'{code}: {info.message}']
    if info.hint:
        lines.append(f'  Hint: {info.hint}')
    return '\n'.join(lines)


def render_error(exc: ReleaseError, *, file: TextIO | None = None) -> None:
    """Render an error in compiler style.

    Output format::

        error[MR-CONFIG-RESERVED-TARGET]: release-target cannot be "latest".
          |
          = hint: Use a lane name like "main" or "canary".

    Args:
        exc: The error to render.
        file: Output stream (defaults to ``sys.stderr``).
    """
    out = file or sys.stderr

    if out.isatty():
        console = Console(file=out, highlight=False)
        msg = rich_escape(exc.message)
        console.print(
            f'[bold red]error[/bold red][bold red]\\[{exc.code.value}][/bold red][bold]: {msg}[/bold]',
        )
        if exc.hint:
            console.print('  [dim]|[/dim]')
            console.print(f'  [dim]=[/dim] [cyan]hint[/cyan]: {rich_escape(exc.hint)}')
        console.print()
    else:
        print(f'error[{exc.code.value}]: {exc.message}', file=out)  # noqa: T201 - CLI output
        if exc.hint:
            print('  |', file=out)  # noqa: T201 - CLI output
            print(f'  = hint: {exc.hint}', file=out)  # noqa: T201 - CLI output
        print(file=out)  # noqa: T201 - CLI output


__all__ = [
    'E',
    'ERRORS',
    'ErrorCode',
    'ErrorInfo',
    'ForgeWriteError',
    'ReleaseError',
    'explain',
    'render_error',
]
