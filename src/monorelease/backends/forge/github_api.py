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

"""GitHub REST API forge backend for monorelease.

Implements the :class:`~monorelease.backends.forge.Forge` protocol using
the GitHub REST API v3 via ``httpx``. Everything the release workflow
does goes through here, including branch commits: release commits are
built from git objects (tree → commit → ref) so no checkout is needed.

Authentication:

    Resolves a token in order of precedence:

    1. ``token`` constructor parameter.
    2. ``GITHUB_TOKEN`` env var (set automatically by GitHub Actions).
    3. ``GH_TOKEN`` env var (used by the ``gh`` CLI).

    If none are set, the backend raises ``ValueError`` at construction
    to fail fast rather than silently on the first API call.

Usage::

    from monorelease.backends.forge.github_api import GitHubAPIBackend

    forge = GitHubAPIBackend(owner='acme', repo='monorepo')
    manifest = await forge.get_content('.release-manifest.json', ref='main')

.. seealso::

    `GitHub REST API <https://docs.github.com/en/rest>`_
"""

from __future__ import annotations

import base64
import binascii
import json
import os
from typing import Any
from urllib.parse import quote

import httpx

from monorelease.backends._result import ApiResult
from monorelease.logging import get_logger
from monorelease.net import DEFAULT_POOL_SIZE, DEFAULT_TIMEOUT, http_client, request_with_retry

log = get_logger('monorelease.backends.forge.github_api')

# GitHub REST API base URL.
_DEFAULT_BASE_URL = 'https://api.github.com'

# API version header for stable API behavior.
_API_VERSION = '2022-11-28'

_FILE_MODE = '100644'


def _json_or(response: httpx.Response, default: Any, event: str, **context: object) -> Any:  # noqa: ANN401 - JSON
    """Decode a JSON body, logging and returning ``default`` if it is malformed."""
    try:
        return response.json()
    except (ValueError, json.JSONDecodeError):
        log.warning(event, **context)
        return default


class GitHubAPIBackend:
    """Forge implementation using the GitHub REST API.

    Uses ``httpx`` for async HTTP with connection pooling and automatic
    retry on transient errors (429, 5xx). Business-level failures are
    not retried: reads come back as ``None``/``[]`` and writes as an
    :class:`~monorelease.backends._result.ApiResult` carrying the status.

    Args:
        owner: Repository owner (e.g., ``"acme"``).
        repo: Repository name (e.g., ``"monorepo"``).
        token: GitHub API token. Falls back to ``GITHUB_TOKEN`` or
            ``GH_TOKEN`` env vars.
        base_url: API base URL (override for GitHub Enterprise Server).
        pool_size: HTTP connection pool size.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        owner: str,
        repo: str,
        *,
        token: str = '',
        base_url: str = _DEFAULT_BASE_URL,
        pool_size: int = DEFAULT_POOL_SIZE,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        """Initialize with owner, repo, and API token."""
        self._owner = owner
        self._repo = repo
        self._base_url = base_url.rstrip('/')
        self._repo_url = f'{self._base_url}/repos/{owner}/{repo}'
        self._pool_size = pool_size
        self._timeout = timeout

        # Resolve auth: explicit token > GITHUB_TOKEN > GH_TOKEN.
        resolved_token = token or os.environ.get('GITHUB_TOKEN', '') or os.environ.get('GH_TOKEN', '')
        if not resolved_token:
            msg = 'GitHub API token required: pass token= or set GITHUB_TOKEN or GH_TOKEN env var.'
            raise ValueError(msg)

        self._headers = {
            'Authorization': f'Bearer {resolved_token}',
            'Accept': 'application/vnd.github+json',
            'X-GitHub-Api-Version': _API_VERSION,
        }

    def __repr__(self) -> str:
        """Return a safe repr that never exposes the API token."""
        return f'GitHubAPIBackend(owner={self._owner!r}, repo={self._repo!r})'

    async def _request(self, method: str, url: str, **kwargs: object) -> httpx.Response:
        async with http_client(
            pool_size=self._pool_size,
            timeout=self._timeout,
            headers=self._headers,
        ) as client:
            try:
                return await request_with_retry(client, method, url, **kwargs)
            except httpx.HTTPStatusError as exc:
                # Retries exhausted on 429/5xx; callers see the last response.
                return exc.response

    async def _get(self, url: str, **kwargs: object) -> httpx.Response:
        return await self._request('GET', url, **kwargs)

    async def _write(self, method: str, url: str, payload: dict[str, Any] | None = None) -> ApiResult:
        if payload is None:
            response = await self._request(method, url)
        else:
            response = await self._request(method, url, json=payload)
        return ApiResult.from_response(response)

    # Commits

    async def compare(
        self,
        base: str,
        head: str,
        *,
        page: int = 1,
        per_page: int = 100,
    ) -> dict[str, Any] | None:
        """Compare ``base...head``; commits come oldest first."""
        url = f'{self._repo_url}/compare/{quote(base, safe="/")}...{quote(head, safe="/")}'
        response = await self._get(url, params={'page': page, 'per_page': per_page})
        if response.status_code != 200:
            log.warning('compare_failed', base=base, head=head, status=response.status_code)
            return None
        return _json_or(response, None, 'compare_parse_error', base=base, head=head)

    async def list_commits(self, sha: str, *, per_page: int = 50, page: int = 1) -> list[dict[str, Any]]:
        """List commits reachable from ``sha``, newest first."""
        url = f'{self._repo_url}/commits'
        response = await self._get(url, params={'sha': sha, 'per_page': per_page, 'page': page})
        if response.status_code != 200:
            log.warning('list_commits_failed', sha=sha, status=response.status_code)
            return []
        return _json_or(response, [], 'commit_list_parse_error', sha=sha)

    async def get_commit(self, sha: str) -> dict[str, Any] | None:
        """Fetch one commit with its ``files`` list."""
        response = await self._get(f'{self._repo_url}/commits/{sha}')
        if response.status_code != 200:
            return None
        return _json_or(response, None, 'commit_parse_error', sha=sha)

    # Contents and git objects

    async def get_content(self, path: str, ref: str) -> str | None:
        """Fetch a file's text at ``ref``, or ``None`` if it does not exist."""
        url = f'{self._repo_url}/contents/{quote(path)}'
        response = await self._get(url, params={'ref': ref})
        if response.status_code != 200:
            return None

        data = _json_or(response, {}, 'content_parse_error', path=path)
        if not isinstance(data, dict) or data.get('type', 'file') != 'file':
            return None
        try:
            return base64.b64decode(data.get('content', '')).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            log.warning('content_decode_error', path=path, ref=ref)
            return None

    async def get_ref(self, branch: str) -> dict[str, Any] | None:
        """Fetch ``refs/heads/<branch>``, or ``None`` if the branch does not exist."""
        response = await self._get(f'{self._repo_url}/git/ref/heads/{quote(branch, safe="/")}')
        if response.status_code != 200:
            return None
        return _json_or(response, None, 'ref_parse_error', branch=branch)

    async def get_git_commit(self, sha: str) -> dict[str, Any] | None:
        """Fetch a git commit object."""
        response = await self._get(f'{self._repo_url}/git/commits/{sha}')
        if response.status_code != 200:
            return None
        return _json_or(response, None, 'git_commit_parse_error', sha=sha)

    async def create_tree(self, base_tree: str, files: dict[str, str]) -> ApiResult:
        """Create a tree on top of ``base_tree`` with ``files`` replaced."""
        payload = {
            'base_tree': base_tree,
            'tree': [
                {'path': path, 'mode': _FILE_MODE, 'type': 'blob', 'content': content}
                for path, content in sorted(files.items())
            ],
        }
        result = await self._write('POST', f'{self._repo_url}/git/trees', payload)
        log.debug('create_tree', files=len(files), status=result.status)
        return result

    async def create_commit(self, message: str, tree: str, parents: list[str]) -> ApiResult:
        """Create a commit object."""
        payload = {'message': message, 'tree': tree, 'parents': parents}
        result = await self._write('POST', f'{self._repo_url}/git/commits', payload)
        log.debug('create_commit', tree=tree, status=result.status)
        return result

    async def create_ref(self, ref: str, sha: str) -> ApiResult:
        """Create ``ref`` (fully qualified, e.g. ``refs/tags/v1.0.0``) at ``sha``."""
        result = await self._write('POST', f'{self._repo_url}/git/refs', {'ref': ref, 'sha': sha})
        log.info('create_ref', ref=ref, sha=sha[:8], status=result.status)
        return result

    async def update_ref(self, branch: str, sha: str, *, force: bool = True) -> ApiResult:
        """Move ``refs/heads/<branch>`` to ``sha``."""
        url = f'{self._repo_url}/git/refs/heads/{quote(branch, safe="/")}'
        result = await self._write('PATCH', url, {'sha': sha, 'force': force})
        log.info('update_ref', branch=branch, sha=sha[:8], force=force, status=result.status)
        return result

    # Pull requests

    async def list_prs(self, *, state: str = 'open', head: str = '', per_page: int = 100) -> list[dict[str, Any]]:
        """List pull requests, optionally filtered by head branch."""
        params: dict[str, Any] = {'state': state, 'per_page': per_page}
        if head:
            # GitHub expects head in "owner:branch" format.
            params['head'] = f'{self._owner}:{head}'
        response = await self._get(f'{self._repo_url}/pulls', params=params)
        if response.status_code != 200:
            return []
        return _json_or(response, [], 'pr_list_parse_error')

    async def get_pr(self, number: int) -> dict[str, Any] | None:
        """Fetch one pull request."""
        response = await self._get(f'{self._repo_url}/pulls/{number}')
        if response.status_code != 200:
            return None
        return _json_or(response, None, 'pr_data_parse_error', pr=number)

    async def commit_pulls(self, sha: str) -> list[dict[str, Any]]:
        """List pull requests associated with ``sha``."""
        response = await self._get(f'{self._repo_url}/commits/{sha}/pulls')
        if response.status_code != 200:
            return []
        return _json_or(response, [], 'commit_pulls_parse_error', sha=sha)

    async def create_pr(self, *, title: str, body: str, head: str, base: str) -> ApiResult:
        """Open a pull request."""
        payload = {'title': title, 'body': body, 'head': head, 'base': base}
        result = await self._write('POST', f'{self._repo_url}/pulls', payload)
        log.info('create_pr', title=title, status=result.status)
        return result

    async def update_pr(self, number: int, *, title: str = '', body: str = '') -> ApiResult:
        """Update a PR's title and/or body."""
        payload: dict[str, Any] = {}
        if title:
            payload['title'] = title
        if body:
            payload['body'] = body
        result = await self._write('PATCH', f'{self._repo_url}/pulls/{number}', payload)
        log.info('update_pr', pr=number, status=result.status)
        return result

    # Labels and comments

    async def add_labels(self, number: int, labels: list[str]) -> ApiResult:
        """Add labels to a PR (or issue)."""
        result = await self._write('POST', f'{self._repo_url}/issues/{number}/labels', {'labels': labels})
        log.info('add_labels', pr=number, labels=labels, status=result.status)
        return result

    async def remove_label(self, number: int, label: str) -> ApiResult:
        """Remove one label from a PR (or issue)."""
        url = f'{self._repo_url}/issues/{number}/labels/{quote(label, safe="")}'
        result = await self._write('DELETE', url)
        log.info('remove_label', pr=number, label=label, status=result.status)
        return result

    async def create_comment(self, number: int, body: str) -> ApiResult:
        """Comment on a PR (or issue)."""
        result = await self._write('POST', f'{self._repo_url}/issues/{number}/comments', {'body': body})
        log.info('create_comment', pr=number, status=result.status)
        return result

    # Releases

    async def list_releases(self, *, per_page: int = 100, page: int = 1) -> list[dict[str, Any]]:
        """List releases, newest first."""
        response = await self._get(f'{self._repo_url}/releases', params={'per_page': per_page, 'page': page})
        if response.status_code != 200:
            return []
        return _json_or(response, [], 'release_list_parse_error')

    async def create_release(
        self,
        tag: str,
        *,
        name: str,
        body: str = '',
        prerelease: bool = False,
        target_commitish: str = '',
    ) -> ApiResult:
        """Create a GitHub Release for ``tag``."""
        payload: dict[str, Any] = {
            'tag_name': tag,
            'name': name,
            'body': body,
            'draft': False,
            'prerelease': prerelease,
        }
        if target_commitish:
            payload['target_commitish'] = target_commitish
        result = await self._write('POST', f'{self._repo_url}/releases', payload)
        log.info('create_release', tag=tag, prerelease=prerelease, status=result.status)
        return result


__all__ = [
    'GitHubAPIBackend',
]
