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

"""Source-control gateway: the release workflow's view of the repository.

The orchestrator never talks to the forge directly. It reads state and
performs writes through the operations here, which are idempotent and
safe to call again after a partial failure.

Key Concepts::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ Plain-English                               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Anchor                  │ The newest non-prerelease release tag of a  │
    │                         │ package. Commits are counted from there.    │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Lookback                │ With no anchor, only the last N commits are │
    │                         │ scanned.                                    │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Staged edit             │ A file write held in memory until the next  │
    │                         │ release commit is built.                    │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ Release branch          │ ``release-<target>``. Disposable: each      │
    │                         │ update replaces it with one fresh commit on │
    │                         │ top of the default branch.                  │
    └─────────────────────────┴─────────────────────────────────────────────┘

Failure policy:

- Reads fail soft. A missing manifest, release or PR is absence, not an
  error; the caller gets an empty value and a warning is logged.
- Writes fail hard with :class:`~monorelease.errors.ForgeWriteError`,
  except "already exists" on tags, releases and branches, which is
  logged as a warning.

Release commit flow::

    staged edits + manifest
         │
         ▼
    create_tree(base_tree=<default head tree>)
         │
         ├── tree == release branch tree? → nothing to push
         │
         ▼
    create_commit(parents=[<default head>])
         │
         ▼
    update_ref(release-<target>, force=True) / create_ref
         │
         ▼
    update_pr / create_pr → add_labels(release-me, release-target:<t>)
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from monorelease._types import (
    RELEASE_BRANCH_PREFIX,
    RELEASE_ME_LABEL,
    RELEASE_TARGET_LABEL_PREFIX,
    RELEASED_LABEL,
    CommitRecord,
    FileEdit,
    PackageChanges,
    PullRequest,
    ReleaseOutcome,
    release_branch,
    target_label,
)
from monorelease.backends._result import ApiResult
from monorelease.backends.forge import Forge
from monorelease.carriers import CARRIERS, no_carrier_error, repo_path
from monorelease.changelog import CHANGELOG_FILE, extract_section, prepend_section
from monorelease.commit_parsing import BumpType, parse_commit_message
from monorelease.config import DEFAULT_LOOKBACK
from monorelease.context import ReleaseContext
from monorelease.errors import ForgeWriteError, ReleaseError
from monorelease.logging import get_logger
from monorelease.manifest import PackageManifest, PackageTargetVersions, apply_changes, parse_manifest, render_manifest
from monorelease.tags import ROOT_PACKAGE, format_release_name, format_tag, parse_tag
from monorelease.versioning import parse_version

log = get_logger(__name__)

# GitHub caps per_page at 100.
PAGE_SIZE = 100

# Releases are listed newest first; older ones never hold an anchor.
_MAX_RELEASE_PAGES = 10


def release_pr_title(changes: Sequence[PackageChanges], target: str) -> str:
    """Deterministic release PR title.

    >>> release_pr_title([PackageChanges('pkg/a', 'a', '1.0.0', '1.1.0', 'main')], 'main')
    'chore: release pkg/a@1.1.0'
    """
    if len(changes) == 1:
        change = changes[0]
        return f'chore: release {change.path}@{change.new_version}'
    return f'chore: release {target}'


def release_pr_body(changes: Iterable[PackageChanges]) -> str:
    """Markdown body listing each package's version move and changelog."""
    sections = []
    for change in changes:
        heading = f'## {change.path} ({change.current_version} -> {change.new_version})'
        if change.catch_up:
            detail = f'Version bump only: `{change.release_target}` catches up with the latest release.'
        else:
            detail = change.changelog or '_No changelog entries._'
        sections.append(f'{heading}\n\n{detail}')
    return '\n\n'.join(sections)


def _triggers_bump(raw: Mapping[str, Any]) -> bool:
    message = raw.get('commit', {}).get('message', '')
    return any(c.bump != BumpType.NONE for c in parse_commit_message(message))


def _to_pr(data: Mapping[str, Any]) -> PullRequest:
    return PullRequest(
        number=int(data.get('number', 0)),
        title=data.get('title') or '',
        state=data.get('state') or 'open',
        merged=bool(data.get('merged_at') or data.get('merged')),
        head_ref=(data.get('head') or {}).get('ref', ''),
        base_ref=(data.get('base') or {}).get('ref', ''),
        head_sha=(data.get('head') or {}).get('sha', ''),
        merge_commit_sha=data.get('merge_commit_sha') or '',
        labels=tuple(label.get('name', '') for label in data.get('labels') or []),
    )


def _checked(result: ApiResult, action: str) -> ApiResult:
    if not result.ok:
        raise ForgeWriteError(
            f'Failed to {action}: HTTP {result.status} {result.text[:200]}'.rstrip(),
            status=result.status,
            conflict=result.is_conflict,
            hint='Check that the token has "contents: write" and "pull-requests: write" permissions.',
        )
    return result


class SourceControlGateway:
    """Idempotent release operations on top of a :class:`Forge`.

    One instance serves one run. Commit file lists and the release list
    are cached for the lifetime of the instance.

    Args:
        forge: The hosting platform backend.
        context: The triggering event.
        lookback: Commits to scan when a package has no release yet.
    """

    def __init__(self, forge: Forge, context: ReleaseContext, *, lookback: int = DEFAULT_LOOKBACK) -> None:
        """Initialize with a forge backend and the run's context."""
        self._forge = forge
        self._ctx = context
        self._lookback = lookback
        self._files_by_sha: dict[str, tuple[str, ...]] = {}
        self._commits_by_window: dict[tuple[str | None, str], list[CommitRecord]] = {}
        self._releases: list[dict[str, Any]] | None = None
        self._staged: dict[str, FileEdit] = {}

    @property
    def context(self) -> ReleaseContext:
        """The run's event context."""
        return self._ctx

    @property
    def default_branch(self) -> str:
        """The branch the manifest and carriers are read from."""
        return self._ctx.default_branch

    @property
    def staged_edits(self) -> list[FileEdit]:
        """Edits waiting for the next release commit, in staging order."""
        return list(self._staged.values())

    # Commits

    async def _files(self, sha: str) -> tuple[str, ...]:
        if sha not in self._files_by_sha:
            data = await self._forge.get_commit(sha)
            if data is None:
                log.warning('commit_files_unavailable', sha=sha[:8])
                files: tuple[str, ...] = ()
            else:
                files = tuple(f.get('filename', '') for f in data.get('files') or [])
            self._files_by_sha[sha] = files
        return self._files_by_sha[sha]

    async def _recent_commits(self, head: str) -> list[dict[str, Any]]:
        """The last ``lookback`` commits reachable from ``head``, newest first."""
        per_page = min(self._lookback, PAGE_SIZE)
        raw: list[dict[str, Any]] = []
        page = 1
        while len(raw) < self._lookback:
            batch = await self._forge.list_commits(head, per_page=per_page, page=page)
            raw.extend(batch)
            if len(batch) < per_page:
                break
            page += 1
        return raw[: self._lookback]

    async def commits_since_last_release(self, path: str | None = None, head: str | None = None) -> list[CommitRecord]:
        """List commits after the package's last stable release, oldest first.

        Args:
            path: Manifest key whose release tags anchor the window, or
                ``None`` to anchor on the newest stable release of any
                package.
            head: Ref or SHA ending the window (default branch if unset).

        Returns:
            Commit records with their touched files.
        """
        head = head or self.default_branch
        anchor = await self._last_stable_tag(path)
        key = (anchor, head)
        if key in self._commits_by_window:
            return self._commits_by_window[key]

        raw: list[dict[str, Any]] = []
        if anchor is None:
            raw = list(reversed(await self._recent_commits(head)))
            log.info('commits_lookback', path=path, head=head, count=len(raw), lookback=self._lookback)
        else:
            page = 1
            while True:
                data = await self._forge.compare(anchor, head, page=page, per_page=PAGE_SIZE)
                batch = (data or {}).get('commits') or []
                raw.extend(batch)
                if len(batch) < PAGE_SIZE:
                    break
                if not any(_triggers_bump(c) for c in batch):
                    log.debug('compare_short_circuit', anchor=anchor, page=page)
                    break
                page += 1
            log.info('commits_since_anchor', path=path, anchor=anchor, head=head, count=len(raw))

        records = []
        for item in raw:
            sha = item.get('sha', '')
            message = (item.get('commit') or {}).get('message', '')
            records.append(CommitRecord(sha=sha, message=message, files=await self._files(sha)))
        self._commits_by_window[key] = records
        return records

    @staticmethod
    def filter_for_package(path: str, commits: Iterable[CommitRecord]) -> list[CommitRecord]:
        """Keep commits touching a file under ``path``; ``"."`` keeps all."""
        if path in (ROOT_PACKAGE, ''):
            return list(commits)
        prefix = path.rstrip('/') + '/'
        return [c for c in commits if any(f == path or f.startswith(prefix) for f in c.files)]

    # Releases

    async def _all_releases(self) -> list[dict[str, Any]]:
        if self._releases is None:
            releases: list[dict[str, Any]] = []
            for page in range(1, _MAX_RELEASE_PAGES + 1):
                batch = await self._forge.list_releases(per_page=100, page=page)
                releases.extend(batch)
                if len(batch) < 100:
                    break
            self._releases = [r for r in releases if not r.get('draft')]
        return self._releases

    async def _package_releases(self, path: str | None) -> list[tuple[str, dict[str, Any]]]:
        """``(version, release)`` pairs for ``path``, newest first.

        With ``path=None`` every release matches and the tag name stands
        in for the version.
        """
        pairs = []
        for release in await self._all_releases():
            tag = release.get('tag_name', '')
            version = tag if path is None else parse_tag(tag, path)
            if version:
                pairs.append((version, release))
        return pairs

    async def _last_stable_tag(self, path: str | None) -> str | None:
        for _, release in await self._package_releases(path):
            if not release.get('prerelease'):
                return release.get('tag_name')
        return None

    async def last_release_version(self, path: str) -> str | None:
        """Version of the newest non-prerelease release of ``path``."""
        for version, release in await self._package_releases(path):
            if not release.get('prerelease'):
                return version
        return None

    async def latest_prerelease_ordinal(self, path: str, base_version: str) -> int:
        """Highest ``-rc.N`` ordinal released for ``base_version`` (0 if none)."""
        highest = 0
        for version, _ in await self._package_releases(path):
            try:
                parsed = parse_version(version)
            except ReleaseError:
                continue
            if parsed.prerelease and parsed.base == base_version:
                highest = max(highest, parsed.rc_number)
        return highest

    async def prerelease_at(self, path: str, base_version: str, sha: str) -> str | None:
        """Version of an existing prerelease of ``base_version`` cut at ``sha``."""
        for version, release in await self._package_releases(path):
            if not release.get('prerelease') or release.get('target_commitish') != sha:
                continue
            try:
                if parse_version(version).base == base_version:
                    return version
            except ReleaseError:
                continue
        return None

    async def cut_release(self, changes: Iterable[PackageChanges], *, prerelease: bool, sha: str) -> ReleaseOutcome:
        """Create one tag and one release per change at ``sha``.

        A tag or release that already exists is logged and skipped.

        Raises:
            ForgeWriteError: If a tag or release cannot be created for
                any other reason.
        """
        outcome = ReleaseOutcome()
        for change in changes:
            tag = format_tag(change.path, change.new_version)
            ref_result = await self._forge.create_ref(f'refs/tags/{tag}', sha)
            if ref_result.is_conflict:
                log.warning('tag_exists', tag=tag)
                outcome.existing.append(tag)
            else:
                _checked(ref_result, f'create tag {tag}')
                outcome.created.append(tag)

            release_result = await self._forge.create_release(
                tag,
                name=format_release_name(change.path, change.new_version),
                body=change.changelog,
                prerelease=prerelease,
                target_commitish=sha,
            )
            if release_result.is_conflict:
                log.warning('release_exists', tag=tag)
                continue
            _checked(release_result, f'create release {tag}')
            outcome.release_urls[tag] = release_result.data.get('html_url', '')
            log.info('release_created', tag=tag, prerelease=prerelease)
        return outcome

    # Manifest and files

    async def read_manifest_from_default_branch(self, manifest_path: str) -> PackageManifest:
        """Read the manifest fresh from the default branch.

        Returns an empty manifest, with a warning, if the file is missing
        or unparsable.
        """
        text = await self._forge.get_content(manifest_path, ref=self.default_branch)
        if text is None:
            log.warning('manifest_missing', path=manifest_path, branch=self.default_branch)
            return {}
        try:
            return parse_manifest(text)
        except ReleaseError as exc:
            log.warning('manifest_invalid', path=manifest_path, error=exc.message)
            return {}

    async def _read_manifest_at(self, manifest_path: str, ref: str) -> PackageManifest | None:
        text = await self._forge.get_content(manifest_path, ref=ref)
        if text is None:
            return None
        try:
            return parse_manifest(text)
        except ReleaseError:
            return None

    async def manifest_target_changes(self, manifest_path: str, target: str, sha: str) -> dict[str, str]:
        """Packages whose ``target`` version changed in commit ``sha``.

        Compares the manifest at ``sha`` with the manifest at its first
        parent. A commit that introduces the manifest changes nothing.
        """
        commit = await self._forge.get_git_commit(sha)
        parents = (commit or {}).get('parents') or []
        if not parents:
            return {}
        after = await self._read_manifest_at(manifest_path, sha)
        before = await self._read_manifest_at(manifest_path, parents[0]['sha'])
        if not after or before is None:
            return {}

        changed = {}
        for path, entry in after.items():
            version = entry.version_for(target)
            previous = before.get(path)
            if previous is None or previous.version_for(target) != version:
                changed[path] = version
        return changed

    async def was_manifest_touched_in_last_commit(self, manifest_path: str, target: str, sha: str) -> bool:
        """Whether commit ``sha`` moved any package's ``target`` version."""
        return bool(await self.manifest_target_changes(manifest_path, target, sha))

    def stage_file(self, path: str, content: str) -> FileEdit:
        """Stage a whole-file write for the next release commit."""
        edit = FileEdit(path=path, content=content)
        self._staged[path] = edit
        return edit

    async def write_package_version(self, path: str, version: str) -> FileEdit:
        """Stage a version rewrite of the package's carrier file.

        Args:
            path: Package directory, relative to the repo root.
            version: The version to write.

        Raises:
            ReleaseError: If the package has no carrier file, or the
                carrier has no version field to rewrite.
        """
        for carrier in CARRIERS:
            file_path = repo_path(path, carrier.filename)
            text = await self._forge.get_content(file_path, ref=self.default_branch)
            if text is None:
                continue
            log.debug('carrier_found', package=path, file=file_path)
            return self.stage_file(file_path, carrier.rewrite(text, version, path=file_path))
        raise no_carrier_error(path)

    async def stage_changelog(self, path: str, version: str, changelog: str) -> FileEdit:
        """Stage a ``## <version>`` section at the top of ``<path>/CHANGELOG.md``."""
        file_path = repo_path(path, CHANGELOG_FILE)
        existing = await self._forge.get_content(file_path, ref=self.default_branch) or ''
        return self.stage_file(file_path, prepend_section(existing, version, changelog))

    async def changelog_section(self, path: str, version: str) -> str:
        """The ``## <version>`` section of the package's changelog, or ``""``."""
        file_path = repo_path(path, CHANGELOG_FILE)
        text = await self._forge.get_content(file_path, ref=self.default_branch)
        if text is None:
            log.warning('changelog_missing', path=file_path)
            return ''
        return extract_section(text, version)

    # Pull requests

    async def pull_request(self, number: int) -> PullRequest | None:
        """Fetch a pull request, or ``None`` if it cannot be read."""
        data = await self._forge.get_pr(number)
        return _to_pr(data) if data else None

    async def pull_request_labels(self) -> list[str]:
        """Labels of the triggering PR; empty for non-PR events."""
        if not self._ctx.is_pull_request or self._ctx.pull_request_number is None:
            return []
        pr = await self.pull_request(self._ctx.pull_request_number)
        if pr is None:
            log.warning('pr_labels_unavailable', pr=self._ctx.pull_request_number)
            return []
        return list(pr.labels)

    async def release_branch_deleted(self, release_branch_prefix: str = RELEASE_BRANCH_PREFIX) -> bool:
        """Whether the head ref is a release branch that no longer exists."""
        head_ref = self._ctx.head_ref
        if not head_ref.startswith(release_branch_prefix) or head_ref == self.default_branch:
            return False
        return await self._forge.get_ref(head_ref) is None

    async def find_release_pr(self, target: str, title: str) -> PullRequest | None:
        """Find the standing release PR for ``target``.

        Looked up by labels first, then by head branch, then by title.
        PRs labeled for a different target never match.
        """
        own_label = target_label(target)
        open_prs = [
            pr
            for pr in (_to_pr(d) for d in await self._forge.list_prs(state='open'))
            if not any(label.startswith(RELEASE_TARGET_LABEL_PREFIX) and label != own_label for label in pr.labels)
        ]
        branch = release_branch(target)
        for match in (
            lambda pr: pr.has_label(RELEASE_ME_LABEL) and pr.has_label(own_label),
            lambda pr: pr.head_ref == branch,
            lambda pr: pr.title == title,
        ):
            for pr in open_prs:
                if match(pr):
                    return pr
        return None

    async def find_merged_release_pr(self, sha: str, title: str = '') -> PullRequest | None:
        """The merged PR that produced ``sha``, falling back to a title match."""
        for data in await self._forge.commit_pulls(sha):
            pr = _to_pr(data)
            if pr.merged:
                return pr
        if title:
            for data in await self._forge.list_prs(state='closed'):
                pr = _to_pr(data)
                if pr.merged and pr.title == title:
                    log.info('release_pr_found_by_title', pr=pr.number, title=title)
                    return pr
        return None

    async def _head_sha(self, branch: str) -> str:
        ref = await self._forge.get_ref(branch)
        if ref is None:
            raise ForgeWriteError(f'Branch {branch} not found', status=404)
        return ref['object']['sha']

    async def release_pr_up_to_date(self, *, target: str, title: str, manifest_path: str, manifest_text: str) -> bool:
        """Whether the standing release PR already carries this release.

        True when the PR exists with this title and the ``release-me``
        label, its branch is one commit on top of the current default
        branch head, and the manifest on the branch is ``manifest_text``.
        """
        pr = await self.find_release_pr(target, title)
        if pr is None or pr.title != title or not pr.has_label(RELEASE_ME_LABEL):
            return False
        branch = release_branch(target)
        ref = await self._forge.get_ref(branch)
        base_ref = await self._forge.get_ref(self.default_branch)
        if ref is None or base_ref is None:
            return False
        head = await self._forge.get_git_commit(ref['object']['sha'])
        parents = [p.get('sha') for p in (head or {}).get('parents') or []]
        if parents != [base_ref['object']['sha']]:
            return False
        return await self._forge.get_content(manifest_path, ref=branch) == manifest_text

    async def _push_release_branch(self, branch: str, message: str, files: dict[str, str]) -> bool:
        base_sha = await self._head_sha(self.default_branch)
        base_commit = await self._forge.get_git_commit(base_sha)
        if base_commit is None:
            raise ForgeWriteError(f'Commit {base_sha} not found', status=404)

        tree = _checked(await self._forge.create_tree(base_commit['tree']['sha'], files), 'create tree')
        tree_sha = tree.data.get('sha', '')

        existing = await self._forge.get_ref(branch)
        if existing is not None:
            current = await self._forge.get_git_commit(existing['object']['sha'])
            if current is not None and current.get('tree', {}).get('sha') == tree_sha:
                log.info('release_branch_unchanged', branch=branch)
                return False

        commit = _checked(await self._forge.create_commit(message, tree_sha, [base_sha]), 'create commit')
        commit_sha = commit.data.get('sha', '')
        if existing is None:
            created = await self._forge.create_ref(f'refs/heads/{branch}', commit_sha)
            if not created.is_conflict:
                _checked(created, f'create branch {branch}')
                return True
            log.warning('branch_exists', branch=branch)
        _checked(await self._forge.update_ref(branch, commit_sha, force=True), f'update branch {branch}')
        return True

    async def open_or_update_release_pr(
        self,
        changes: Sequence[PackageChanges],
        *,
        target: str,
        manifest_path: str,
        manifest: Mapping[str, PackageTargetVersions],
        indent: int | str = 2,
    ) -> PullRequest:
        """Create or refresh the standing release PR for ``target``.

        The manifest (with ``changes`` applied) and all staged edits go
        into one fresh commit on top of the default branch head, which
        replaces the release branch. Staged edits are cleared afterwards.

        Raises:
            ForgeWriteError: If a git object, branch or PR write fails.
        """
        title = release_pr_title(changes, target)
        branch = release_branch(target)
        self.stage_file(manifest_path, render_manifest(apply_changes(manifest, changes, target), indent))
        files = {edit.path: edit.content for edit in self._staged.values()}

        pushed = await self._push_release_branch(branch, title, files)

        body = release_pr_body(changes)
        pr = await self.find_release_pr(target, title)
        if pr is None:
            created = _checked(
                await self._forge.create_pr(title=title, body=body, head=branch, base=self.default_branch),
                'create release PR',
            )
            pr = _to_pr(created.data)
            log.info('release_pr_opened', pr=pr.number, title=title, branch=branch)
        elif pushed or pr.title != title:
            _checked(await self._forge.update_pr(pr.number, title=title, body=body), f'update PR #{pr.number}')
            log.info('release_pr_updated', pr=pr.number, title=title)

        await self.add_labels(pr.number, [RELEASE_ME_LABEL, target_label(target)])
        self._staged.clear()
        return pr

    # Labels and comments

    async def add_labels(self, number: int, labels: list[str]) -> None:
        """Add labels to a PR.

        Raises:
            ForgeWriteError: If the labels cannot be added.
        """
        _checked(await self._forge.add_labels(number, labels), f'label PR #{number}')

    async def remove_label(self, number: int, label: str) -> bool:
        """Remove a label, best effort. Returns whether it was removed."""
        result = await self._forge.remove_label(number, label)
        if not result.ok:
            log.warning('remove_label_failed', pr=number, label=label, status=result.status)
        return result.ok

    async def mark_released(self, number: int) -> None:
        """Move a PR from ``release-me`` to ``released``."""
        await self.remove_label(number, RELEASE_ME_LABEL)
        await self.add_labels(number, [RELEASED_LABEL])
        log.info('pr_marked_released', pr=number)

    async def comment(self, number: int, body: str) -> None:
        """Post a comment on a PR.

        Raises:
            ForgeWriteError: If the comment cannot be posted.
        """
        _checked(await self._forge.create_comment(number, body), f'comment on PR #{number}')


__all__ = [
    'PAGE_SIZE',
    'SourceControlGateway',
    'release_pr_body',
    'release_pr_title',
]
