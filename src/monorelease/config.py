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

"""Invocation inputs.

Inputs arrive the way GitHub Actions passes them, as ``INPUT_<NAME>``
environment variables (``INPUT_ROOT-DIR``; the underscore spelling
``INPUT_ROOT_DIR`` is accepted too). CLI flags override them.

Inputs::

    ┌─────────────────────┬──────────────────────────┬───────────────────────┐
    │ Input               │ Default                  │ Notes                 │
    ├─────────────────────┼──────────────────────────┼───────────────────────┤
    │ token               │ (GITHUB_TOKEN, GH_TOKEN) │ required              │
    │ root-dir            │ .                        │ package paths and the │
    │                     │                          │ manifest are relative │
    │                     │                          │ to this               │
    │ manifest-file       │ .release-manifest.json   │                       │
    │ create-prereleases  │ false                    │ "true" / "false"      │
    │ prerelease-label    │ Prerelease               │                       │
    │ release-target      │ main                     │ "latest" is rejected  │
    │ indentation         │ 2                        │ "tab" or N spaces     │
    │ lookback            │ 50                       │ commits, first release│
    └─────────────────────┴──────────────────────────┴───────────────────────┘

Usage::

    from monorelease.config import load_config

    config = load_config(overrides={'release_target': 'canary'})
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass

from monorelease.carriers import repo_path
from monorelease.errors import E, ERRORS, ReleaseError
from monorelease.manifest import LATEST_KEY

DEFAULT_MANIFEST_FILE = '.release-manifest.json'
DEFAULT_PRERELEASE_LABEL = 'Prerelease'
DEFAULT_RELEASE_TARGET = 'main'
DEFAULT_INDENTATION = 2
DEFAULT_LOOKBACK = 50

_TRUE = frozenset({'true', '1', 'yes', 'on'})
_FALSE = frozenset({'false', '0', 'no', 'off', ''})


@dataclass(frozen=True)
class ActionConfig:
    """Validated inputs for one run.

    Attributes:
        token: Credential for the GitHub API.
        root_dir: Directory the manifest and package paths are relative to.
        manifest_file: Manifest file name under ``root_dir``.
        create_prereleases: Whether prerelease-labeled PRs cut RCs.
        prerelease_label: PR label that requests a prerelease.
        release_target: The lane this run releases to.
        indentation: ``"tab"`` or a number of spaces for JSON writes.
        lookback: Commits to scan when a package was never released.
    """

    token: str
    root_dir: str = '.'
    manifest_file: str = DEFAULT_MANIFEST_FILE
    create_prereleases: bool = False
    prerelease_label: str = DEFAULT_PRERELEASE_LABEL
    release_target: str = DEFAULT_RELEASE_TARGET
    indentation: int | str = DEFAULT_INDENTATION
    lookback: int = DEFAULT_LOOKBACK

    @property
    def manifest_path(self) -> str:
        """Repo-relative path of the manifest."""
        return repo_path(self.root_dir, self.manifest_file)

    def package_dir(self, package_path: str) -> str:
        """Repo-relative directory of a manifest package."""
        if self.root_dir in ('.', ''):
            return package_path
        if package_path == '.':
            return self.root_dir.rstrip('/')
        return repo_path(self.root_dir, package_path)


def _input(env: Mapping[str, str], name: str) -> str | None:
    upper = name.upper()
    for key in (f'INPUT_{upper}', f'INPUT_{upper.replace("-", "_")}'):
        value = env.get(key)
        if value is not None:
            return value.strip()
    return None


def _invalid(name: str, value: object, expected: str) -> ReleaseError:
    return ReleaseError(
        code=E.CONFIG_INVALID_VALUE,
        message=f'Invalid value for {name}: {value!r} (expected {expected})',
        hint=f'Set {name} to {expected}.',
    )


def parse_bool(name: str, value: str) -> bool:
    """Parse a GitHub Actions boolean input."""
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise _invalid(name, value, '"true" or "false"')


def parse_indentation(value: str | int) -> int | str:
    """Parse ``"tab"`` or a non-negative number of spaces."""
    if isinstance(value, int):
        spaces = value
    elif value == '\t' or value.strip().lower() in ('tab', '\\t'):
        return 'tab'
    else:
        try:
            spaces = int(value)
        except ValueError:
            raise _invalid('indentation', value, '"tab" or a number of spaces') from None
    if spaces < 0:
        raise _invalid('indentation', value, '"tab" or a number of spaces')
    return spaces


def _parse_lookback(value: str | int) -> int:
    try:
        lookback = int(value)
    except ValueError:
        raise _invalid('lookback', value, 'a positive integer') from None
    if lookback < 1:
        raise _invalid('lookback', value, 'a positive integer')
    return lookback


def validate_release_target(target: str) -> str:
    """Reject empty targets and the reserved ``latest``."""
    target = target.strip()
    if not target:
        raise _invalid('release-target', target, 'a non-empty lane name')
    if target == LATEST_KEY:
        info = ERRORS[E.CONFIG_RESERVED_TARGET]
        raise ReleaseError(code=info.code, message=info.message, hint=info.hint)
    return target


def load_config(
    overrides: Mapping[str, object | None] | None = None,
    env: Mapping[str, str] | None = None,
) -> ActionConfig:
    """Build an :class:`ActionConfig` from overrides and the environment.

    Args:
        overrides: Values keyed by :class:`ActionConfig` field name.
            ``None`` values are ignored, so unset CLI flags fall
            through to the environment.
        env: Environment mapping (defaults to ``os.environ``).

    Raises:
        ReleaseError: For a missing token or an invalid input.
    """
    env = os.environ if env is None else env
    given = {k: v for k, v in (overrides or {}).items() if v is not None}

    def pick(field_name: str, input_name: str, default: object) -> object:
        if field_name in given:
            return given[field_name]
        value = _input(env, input_name)
        if value is None or value == '':
            return default
        return value

    token = str(pick('token', 'token', '') or env.get('GITHUB_TOKEN', '') or env.get('GH_TOKEN', ''))
    if not token:
        raise ReleaseError(
            code=E.CONFIG_MISSING_REQUIRED,
            message='No GitHub token provided.',
            hint='Pass the "token" input, or set GITHUB_TOKEN.',
        )

    create = pick('create_prereleases', 'create-prereleases', False)
    if isinstance(create, str):
        create = parse_bool('create-prereleases', create)

    indentation = pick('indentation', 'indentation', DEFAULT_INDENTATION)
    lookback = pick('lookback', 'lookback', DEFAULT_LOOKBACK)

    return ActionConfig(
        token=token,
        root_dir=str(pick('root_dir', 'root-dir', '.')).rstrip('/') or '.',
        manifest_file=str(pick('manifest_file', 'manifest-file', DEFAULT_MANIFEST_FILE)),
        create_prereleases=bool(create),
        prerelease_label=str(pick('prerelease_label', 'prerelease-label', DEFAULT_PRERELEASE_LABEL)),
        release_target=validate_release_target(str(pick('release_target', 'release-target', DEFAULT_RELEASE_TARGET))),
        indentation=parse_indentation(indentation),  # type: ignore[arg-type]
        lookback=_parse_lookback(lookback),  # type: ignore[arg-type]
    )


__all__ = [
    'DEFAULT_LOOKBACK',
    'DEFAULT_MANIFEST_FILE',
    'ActionConfig',
    'load_config',
    'parse_bool',
    'parse_indentation',
    'validate_release_target',
]
