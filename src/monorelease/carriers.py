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

"""Per-package version carriers.

A carrier is the file that holds a package's own version. Exactly one
is rewritten per package per release, picked in this order:

    1. ``package.json``  top-level ``"version"``
    2. ``Cargo.toml``    ``[package].version``
    3. ``version.txt``   the whole file

Rewriters take the current file text and return the new text, changing
only the version. They never touch the network or the disk; the
gateway fetches the file from the default branch and stages the result.
"""

from __future__ import annotations

import json
import re
from collections.abc import Callable
from dataclasses import dataclass

import tomlkit
import tomlkit.exceptions

from monorelease.errors import E, ReleaseError
from monorelease.tags import ROOT_PACKAGE

# First "version": "..." pair. package.json puts it at the top level
# in practice; the result is verified after substitution.
_PACKAGE_JSON_VERSION_RE = re.compile(r'("version"\s*:\s*)"[^"]*"')


def repo_path(package_path: str, filename: str) -> str:
    """Join a package path and a file name into a repo-relative path."""
    if package_path in (ROOT_PACKAGE, ''):
        return filename
    return f'{package_path.rstrip("/")}/{filename}'


def _unversionable(path: str, detail: str) -> ReleaseError:
    return ReleaseError(
        code=E.CONFIG_UNVERSIONABLE_PACKAGE,
        message=f'Cannot set the version in {path}: {detail}',
        hint='Give the file an explicit version field, or use version.txt.',
    )


def rewrite_package_json(text: str, version: str, *, path: str = 'package.json') -> str:
    """Set the top-level ``version`` of a package.json document."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _unversionable(path, f'invalid JSON ({exc})') from exc
    if not isinstance(data, dict) or 'version' not in data:
        raise _unversionable(path, 'no top-level "version" key')

    new_text = _PACKAGE_JSON_VERSION_RE.sub(rf'\g<1>"{version}"', text, count=1)
    if json.loads(new_text).get('version') == version:
        return new_text

    # The first match was nested; fall back to a full re-serialization.
    data['version'] = version
    return json.dumps(data, indent=2, ensure_ascii=False) + '\n'


def rewrite_cargo_toml(text: str, version: str, *, path: str = 'Cargo.toml') -> str:
    """Set ``[package].version`` in a Cargo.toml, preserving formatting."""
    try:
        doc = tomlkit.parse(text)
    except tomlkit.exceptions.TOMLKitError as exc:
        raise _unversionable(path, f'invalid TOML ({exc})') from exc

    package = doc.get('package')
    if not isinstance(package, dict) or not isinstance(package.get('version'), str):
        raise _unversionable(path, 'no literal [package].version')

    package['version'] = version
    return tomlkit.dumps(doc)


def rewrite_version_txt(text: str, version: str, *, path: str = 'version.txt') -> str:  # noqa: ARG001
    """Replace a bare version file."""
    return f'{version}\n'


@dataclass(frozen=True)
class VersionCarrier:
    """A file name and the function that rewrites its version."""

    filename: str
    rewrite: Callable[..., str]


CARRIERS: tuple[VersionCarrier, ...] = (
    VersionCarrier('package.json', rewrite_package_json),
    VersionCarrier('Cargo.toml', rewrite_cargo_toml),
    VersionCarrier('version.txt', rewrite_version_txt),
)


def no_carrier_error(package_path: str) -> ReleaseError:
    """The error raised when a package has none of the carrier files."""
    names = ', '.join(c.filename for c in CARRIERS)
    return ReleaseError(
        code=E.CONFIG_UNVERSIONABLE_PACKAGE,
        message=f'No {names} found in {package_path}',
        hint='Add one of these files to the package, or remove the package from the manifest.',
    )


__all__ = [
    'CARRIERS',
    'VersionCarrier',
    'no_carrier_error',
    'repo_path',
    'rewrite_cargo_toml',
    'rewrite_package_json',
    'rewrite_version_txt',
]
