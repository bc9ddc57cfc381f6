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

"""Semver bump computation.

Folds classified commits into a single bump and applies it to a
version string. Pure functions only; the orchestrator decides which
commits and which base version to feed in.

Conventional Commit → BumpType mapping::

    any "!" (breaking)           →  major (short-circuits the fold)
    feat:                        →  minor
    fix:, perf:, refactor:,
    revert:                      →  patch
    docs:, style:, test:,
    chore:, ci:, build:          →  none

Prereleases are always release candidates of the *bumped* version. A
minor bump on ``1.2.3`` with RC ordinal 2 gives ``1.3.0-rc.2``, not
``1.2.4-rc.2``.

Usage::

    from monorelease.versioning import determine_bump, next_version

    bump = determine_bump(commits)
    assert next_version('1.2.3', bump, is_prerelease=False) == '1.3.0'
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from monorelease.commit_parsing import BumpType, ConventionalCommit, max_bump
from monorelease.errors import E, ReleaseError

PRERELEASE_LABEL = 'rc'

_SEMVER_RE = re.compile(
    r'^v?(?P<major>\d+)\.(?P<minor>\d+)\.(?P<patch>\d+)'
    r'(?:-(?P<pre>[0-9A-Za-z.-]+))?'
    r'(?:\+[0-9A-Za-z.-]+)?$',
)

_RC_RE = re.compile(r'^rc\.(?P<num>\d+)$')


@dataclass(frozen=True)
class Version:
    """A parsed semantic version.

    Attributes:
        major: Major version number.
        minor: Minor version number.
        patch: Patch version number.
        prerelease: The pre-release identifier (``"rc.2"``), or ``""``.
    """

    major: int
    minor: int
    patch: int
    prerelease: str = ''

    @property
    def base(self) -> str:
        """The ``MAJOR.MINOR.PATCH`` part."""
        return f'{self.major}.{self.minor}.{self.patch}'

    @property
    def rc_number(self) -> int:
        """The RC ordinal, or 0 for stable or non-RC prereleases."""
        m = _RC_RE.match(self.prerelease)
        return int(m.group('num')) if m else 0

    def sort_key(self) -> tuple[int, int, int, int, int]:
        """Key ordering prereleases before the stable version they precede."""
        if self.prerelease:
            return (self.major, self.minor, self.patch, 0, self.rc_number)
        return (self.major, self.minor, self.patch, 1, 0)

    def __str__(self) -> str:
        """Render back to a version string."""
        if self.prerelease:
            return f'{self.base}-{self.prerelease}'
        return self.base


def parse_version(version: str) -> Version:
    """Parse a semver string (a leading ``v`` is tolerated).

    Raises:
        ReleaseError: If the string is not ``MAJOR.MINOR.PATCH[-pre][+build]``.
    """
    m = _SEMVER_RE.match(version.strip())
    if not m:
        raise ReleaseError(
            code=E.VERSION_INVALID,
            message=f'Invalid version: {version}',
            hint='Use a version string like "1.2.3" (MAJOR.MINOR.PATCH).',
        )
    return Version(
        major=int(m.group('major')),
        minor=int(m.group('minor')),
        patch=int(m.group('patch')),
        prerelease=m.group('pre') or '',
    )


def is_valid_version(version: str) -> bool:
    """Return True if ``version`` parses as semver."""
    return _SEMVER_RE.match(version.strip()) is not None


def is_prerelease(version: str) -> bool:
    """Return True if ``version`` carries a pre-release suffix."""
    m = _SEMVER_RE.match(version.strip())
    return bool(m and m.group('pre'))


def base_version(version: str) -> str:
    """Strip any pre-release or build suffix: ``1.3.0-rc.2`` gives ``1.3.0``."""
    return parse_version(version).base


def compare_versions(a: str, b: str) -> int:
    """Compare two versions: negative if ``a < b``, zero if equal, positive otherwise."""
    ka = parse_version(a).sort_key()
    kb = parse_version(b).sort_key()
    return (ka > kb) - (ka < kb)


def determine_bump(commits: Iterable[ConventionalCommit]) -> BumpType:
    """Fold commits into the strongest bump they imply.

    Returns ``MAJOR`` as soon as a breaking commit is seen; otherwise the
    running maximum under ``none < patch < minor < major``.
    """
    highest = BumpType.NONE
    for commit in commits:
        if commit.breaking:
            return BumpType.MAJOR
        highest = max_bump(highest, commit.bump)
    return highest


def next_version(
    current: str,
    bump: BumpType,
    is_prerelease: bool = False,
    rc_number: int | None = None,
) -> str:
    """Apply a bump to ``current``.

    ``NONE`` leaves the numeric part untouched. When ``is_prerelease`` is
    set the result gets a ``-rc.<rc_number>`` suffix (ordinal 1 if not
    given), replacing any pre-release suffix already present, so
    re-applying with the same ordinal is a no-op.

    Raises:
        ReleaseError: If ``current`` is not a valid version.
    """
    parsed = parse_version(current)
    major, minor, patch = parsed.major, parsed.minor, parsed.patch

    if bump == BumpType.MAJOR:
        major, minor, patch = major + 1, 0, 0
    elif bump == BumpType.MINOR:
        minor, patch = minor + 1, 0
    elif bump == BumpType.PATCH:
        patch += 1
    elif not is_prerelease:
        return current

    base = f'{major}.{minor}.{patch}'
    if is_prerelease:
        return f'{base}-{PRERELEASE_LABEL}.{rc_number or 1}'
    return base


__all__ = [
    'PRERELEASE_LABEL',
    'Version',
    'base_version',
    'compare_versions',
    'determine_bump',
    'is_prerelease',
    'is_valid_version',
    'next_version',
    'parse_version',
]
