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

"""Pure types for commit message parsing.

This module has **zero** runtime dependencies beyond the standard library.
Everything here is a frozen dataclass or enum: no I/O, no logging, no
side effects.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class BumpType(Enum):
    """Semver bump types, ordered by precedence (highest first).

    The "strongest" bump wins when multiple commits affect the same
    package: a ``feat:`` and a ``fix:`` together give ``MINOR``.
    """

    MAJOR = 'major'
    MINOR = 'minor'
    PATCH = 'patch'
    NONE = 'none'


BUMP_PRECEDENCE: list[BumpType] = [
    BumpType.MAJOR,
    BumpType.MINOR,
    BumpType.PATCH,
    BumpType.NONE,
]


def max_bump(a: BumpType, b: BumpType) -> BumpType:
    """Return the higher-precedence bump type.

    >>> max_bump(BumpType.MINOR, BumpType.PATCH)
    <BumpType.MINOR: 'minor'>
    >>> max_bump(BumpType.NONE, BumpType.MAJOR)
    <BumpType.MAJOR: 'major'>
    """
    a_idx = BUMP_PRECEDENCE.index(a)
    b_idx = BUMP_PRECEDENCE.index(b)
    return BUMP_PRECEDENCE[min(a_idx, b_idx)]


# Recognized commit types and the bump each one implies on its own.
COMMIT_TYPE_BUMPS: dict[str, BumpType] = {
    'feat': BumpType.MINOR,
    'fix': BumpType.PATCH,
    'docs': BumpType.NONE,
    'style': BumpType.NONE,
    'refactor': BumpType.PATCH,
    'perf': BumpType.PATCH,
    'test': BumpType.NONE,
    'chore': BumpType.NONE,
    'revert': BumpType.PATCH,
    'ci': BumpType.NONE,
    'build': BumpType.NONE,
}


@dataclass(frozen=True)
class ConventionalCommit:
    """A classified commit message.

    Attributes:
        type: One of the keys of :data:`COMMIT_TYPE_BUMPS`.
        message: The commit subject after the ``type(scope):`` prefix, or
            the whole raw message when it did not parse.
        scope: The optional scope (e.g. ``"core"``), ``None`` if absent.
        breaking: Whether the commit is marked with ``!``.
        sha: Opaque identifier of the source commit.
    """

    type: str
    message: str
    scope: str | None = None
    breaking: bool = False
    sha: str = ''

    @property
    def bump(self) -> BumpType:
        """The bump this commit implies on its own."""
        if self.breaking:
            return BumpType.MAJOR
        return COMMIT_TYPE_BUMPS.get(self.type, BumpType.NONE)
