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

"""Forge protocol for monorelease.

The :class:`Forge` protocol is the raw, endpoint-shaped view of the
hosting platform: commits, contents, git objects, refs, pull requests,
labels, comments and releases. It knows nothing about manifests or
release targets; :mod:`monorelease.gateway` builds the release
workflow's operations on top of it.

Conventions:

- Reads return ``None`` or an empty list when the object is missing or
  the request fails. Absence is a normal state for the release
  workflow, so it is not an error.
- Writes return an :class:`ApiResult` and never raise for HTTP errors.
  The caller decides whether a 422 ("already exists") is fatal.

Implementations:

- :class:`~monorelease.backends.forge.github_api.GitHubAPIBackend`: GitHub REST API
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from monorelease.backends._result import ApiResult as ApiResult
from monorelease.backends.forge.github_api import GitHubAPIBackend as GitHubAPIBackend


@runtime_checkable
class Forge(Protocol):
    """Protocol for the hosting platform operations monorelease uses."""

    async def compare(self, base: str, head: str, *, page: int = 1, per_page: int = 100) -> dict[str, Any] | None:
        """Compare two refs; returns the page of commits from ``base`` to ``head``."""
        ...

    async def list_commits(self, sha: str, *, per_page: int = 50, page: int = 1) -> list[dict[str, Any]]:
        """List commits reachable from ``sha``, newest first."""
        ...

    async def get_commit(self, sha: str) -> dict[str, Any] | None:
        """Fetch one commit, including its touched files."""
        ...

    async def get_content(self, path: str, ref: str) -> str | None:
        """Fetch a file's decoded text at ``ref``."""
        ...

    async def get_ref(self, branch: str) -> dict[str, Any] | None:
        """Fetch ``refs/heads/<branch>``."""
        ...

    async def get_git_commit(self, sha: str) -> dict[str, Any] | None:
        """Fetch a git commit object (tree and parents)."""
        ...

    async def create_tree(self, base_tree: str, files: dict[str, str]) -> ApiResult:
        """Create a tree from ``base_tree`` with ``files`` (path → content) replaced."""
        ...

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> ApiResult:
        """Create a commit object."""
        ...

    async def create_ref(self, ref: str, sha: str) -> ApiResult:
        """Create a fully qualified ref (``refs/heads/x``, ``refs/tags/y``)."""
        ...

    async def update_ref(self, branch: str, sha: str, *, force: bool = True) -> ApiResult:
        """Point ``refs/heads/<branch>`` at ``sha``."""
        ...

    async def list_prs(self, *, state: str = 'open', head: str = '', per_page: int = 100) -> list[dict[str, Any]]:
        """List pull requests."""
        ...

    async def get_pr(self, number: int) -> dict[str, Any] | None:
        """Fetch one pull request."""
        ...

    async def commit_pulls(self, sha: str) -> list[dict[str, Any]]:
        """List pull requests associated with a commit."""
        ...

    async def create_pr(self, *, title: str, body: str, head: str, base: str) -> ApiResult:
        """Open a pull request."""
        ...

    async def update_pr(self, number: int, *, title: str = '', body: str = '') -> ApiResult:
        """Edit a pull request's title and body."""
        ...

    async def add_labels(self, number: int, labels: list[str]) -> ApiResult:
        """Add labels to a pull request."""
        ...

    async def remove_label(self, number: int, label: str) -> ApiResult:
        """Remove one label from a pull request."""
        ...

    async def create_comment(self, number: int, body: str) -> ApiResult:
        """Comment on a pull request."""
        ...

    async def list_releases(self, *, per_page: int = 100, page: int = 1) -> list[dict[str, Any]]:
        """List releases, newest first."""
        ...

    async def create_release(
        self,
        tag: str,
        *,
        name: str,
        body: str = '',
        prerelease: bool = False,
        target_commitish: str = '',
    ) -> ApiResult:
        """Publish a release for an existing tag."""
        ...


__all__ = [
    'ApiResult',
    'Forge',
    'GitHubAPIBackend',
]
