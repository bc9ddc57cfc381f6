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

"""Value types shared by the gateway and the orchestrator.

Everything here is a frozen dataclass: no I/O, no logging.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from monorelease.commit_parsing import BumpType, ConventionalCommit

RELEASE_ME_LABEL = 'release-me'
RELEASED_LABEL = 'released'
RELEASE_TARGET_LABEL_PREFIX = 'release-target:'
RELEASE_BRANCH_PREFIX = 'release-'


@dataclass(frozen=True)
class CommitRecord:
    """A commit as listed by the forge.

    Attributes:
        sha: Full commit SHA.
        message: Raw commit message, subject and body.
        files: Paths touched by the commit, relative to the repo root.
    """

    sha: str
    message: str
    files: tuple[str, ...] = ()


@dataclass(frozen=True)
class PullRequest:
    """The subset of pull request state the release workflow reads."""

    number: int
    title: str = ''
    state: str = 'open'
    merged: bool = False
    head_ref: str = ''
    base_ref: str = ''
    head_sha: str = ''
    merge_commit_sha: str = ''
    labels: tuple[str, ...] = ()

    def has_label(self, name: str) -> bool:
        """Return True if the PR carries ``name``."""
        return name in self.labels


@dataclass(frozen=True)
class FileEdit:
    """A staged file write for the next release commit.

    Attributes:
        path: Repo-relative file path.
        content: Complete new file content.
    """

    path: str
    content: str


@dataclass(frozen=True)
class PackageChanges:
    """What one run decided to do with one package.

    Attributes:
        path: Package path as keyed in the manifest (``"."`` for root).
        name: Display name (last path component, or the repo name).
        current_version: The version the computation started from.
        new_version: The version to assign or release.
        release_target: The lane being released.
        commits: Classified commits attributed to the package.
        changelog: Rendered changelog body.
        bump: The bump the commits implied.
        catch_up: True when only the target moves forward to ``latest``.
    """

    path: str
    name: str
    current_version: str
    new_version: str
    release_target: str
    commits: tuple[ConventionalCommit, ...] = ()
    changelog: str = ''
    bump: BumpType = BumpType.NONE
    catch_up: bool = False


@dataclass(frozen=True)
class ReleaseOutcome:
    """Tags and releases a ``cut_release`` call produced.

    Attributes:
        created: Tag names created by this call.
        existing: Tag names that were already present.
        release_urls: HTML URLs of created releases, by tag name.
    """

    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    release_urls: dict[str, str] = field(default_factory=dict)


def release_branch(target: str) -> str:
    """Branch that carries the standing release PR for ``target``."""
    return f'{RELEASE_BRANCH_PREFIX}{target}'


def target_label(target: str) -> str:
    """Label that ties a release PR to ``target``."""
    return f'{RELEASE_TARGET_LABEL_PREFIX}{target}'


__all__ = [
    'RELEASED_LABEL',
    'RELEASE_BRANCH_PREFIX',
    'RELEASE_ME_LABEL',
    'RELEASE_TARGET_LABEL_PREFIX',
    'CommitRecord',
    'FileEdit',
    'PackageChanges',
    'PullRequest',
    'ReleaseOutcome',
    'release_branch',
    'target_label',
]
