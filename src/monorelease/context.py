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

"""The triggering event, as seen by one invocation.

GitHub Actions describes the event through environment variables and a
JSON payload file::

    GITHUB_REPOSITORY   owner/repo
    GITHUB_REF          refs/heads/main, refs/pull/7/merge, ...
    GITHUB_SHA          the commit the workflow runs on
    GITHUB_EVENT_PATH   path to the webhook payload

For ``pull_request`` events the refs come from the payload instead of
``GITHUB_REF``: ``base_ref`` is the branch the PR targets and
``head_ref`` is the PR's own branch.

Usage::

    from monorelease.context import ReleaseContext

    ctx = ReleaseContext.from_env()
    if ctx.is_pull_request:
        ...
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from monorelease.errors import E, ReleaseError
from monorelease.logging import get_logger

log = get_logger(__name__)

_HEADS_PREFIX = 'refs/heads/'
_DEFAULT_BRANCH = 'main'


@dataclass(frozen=True)
class ReleaseContext:
    """Read-only description of the event that triggered this run.

    Attributes:
        owner: Repository owner.
        repo: Repository name.
        base_ref: Target branch of the PR, or the pushed branch.
        head_ref: Source branch of the PR, or the pushed branch.
        sha: The commit the workflow runs on.
        is_pull_request: Whether the event is a pull request event.
        pull_request_number: PR number for pull request events.
        head_sha: Tip of the PR branch (``sha`` for pushes).
        default_branch: The repository's default branch.
    """

    owner: str
    repo: str
    base_ref: str
    head_ref: str
    sha: str = ''
    is_pull_request: bool = False
    pull_request_number: int | None = None
    head_sha: str = ''
    default_branch: str = _DEFAULT_BRANCH

    @property
    def full_name(self) -> str:
        """``owner/repo``."""
        return f'{self.owner}/{self.repo}'

    @classmethod
    def from_event(
        cls,
        payload: Mapping[str, Any],
        *,
        repository: str,
        ref: str = '',
        sha: str = '',
    ) -> ReleaseContext:
        """Build a context from a webhook payload.

        Args:
            payload: The decoded event payload (may be empty).
            repository: ``owner/repo``.
            ref: The full git ref of the run.
            sha: The commit SHA of the run.

        Raises:
            ReleaseError: If ``repository`` is not ``owner/repo``.
        """
        owner, _, repo = repository.partition('/')
        if not owner or not repo:
            raise ReleaseError(
                code=E.CONTEXT_MISSING,
                message=f'Repository must be "owner/repo", got {repository!r}',
                hint='Set GITHUB_REPOSITORY or pass --repository owner/repo.',
            )

        repository_info = payload.get('repository') or {}
        default_branch = repository_info.get('default_branch') or _DEFAULT_BRANCH
        branch = ref.removeprefix(_HEADS_PREFIX) if ref else default_branch

        pr = payload.get('pull_request')
        if pr:
            return cls(
                owner=owner,
                repo=repo,
                base_ref=pr['base']['ref'],
                head_ref=pr['head']['ref'],
                sha=sha,
                is_pull_request=True,
                pull_request_number=int(pr['number']),
                head_sha=pr['head'].get('sha') or sha,
                default_branch=default_branch,
            )

        return cls(
            owner=owner,
            repo=repo,
            base_ref=branch,
            head_ref=branch,
            sha=sha,
            head_sha=sha,
            default_branch=default_branch,
        )

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None) -> ReleaseContext:
        """Build a context from the GitHub Actions environment.

        A missing or unreadable payload file is treated as an empty
        payload, which describes a push to ``GITHUB_REF``.

        Raises:
            ReleaseError: If ``GITHUB_REPOSITORY`` is not set.
        """
        env = os.environ if env is None else env
        repository = env.get('GITHUB_REPOSITORY', '')
        if not repository:
            raise ReleaseError(
                code=E.CONTEXT_MISSING,
                message='GITHUB_REPOSITORY is not set.',
                hint='Run inside GitHub Actions, or pass --repository owner/repo.',
            )

        payload: dict[str, Any] = {}
        event_path = env.get('GITHUB_EVENT_PATH', '')
        if event_path:
            try:
                payload = json.loads(Path(event_path).read_text(encoding='utf-8'))
            except (OSError, json.JSONDecodeError) as exc:
                log.warning('event_payload_unreadable', path=event_path, error=str(exc))

        return cls.from_event(
            payload,
            repository=repository,
            ref=env.get('GITHUB_REF', ''),
            sha=env.get('GITHUB_SHA', ''),
        )


__all__ = [
    'ReleaseContext',
]
