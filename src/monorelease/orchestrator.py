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

"""Release lifecycle state machine.

Nothing persists between runs. Every invocation rebuilds the lifecycle
state from labels, branches, releases and the manifest into one frozen
:class:`Snapshot`, picks the first rule whose guard holds, and performs
that rule's single write path.

Rule table (first match wins)::

    ┌────┬──────────────────────────┬──────────────────────────────────────┐
    │ #  │ Transition               │ Guard                                │
    ├────┼──────────────────────────┼──────────────────────────────────────┤
    │ 1  │ SKIP_RELEASED            │ head is a deleted release branch     │
    │ 2  │ SKIP_RELEASED            │ PR already labeled "released"        │
    │ 3  │ SKIP_DISABLED_PRERELEASE │ prerelease PR, prereleases disabled  │
    │ 5  │ SKIP_NOTHING             │ no bump and no target behind latest  │
    │ 6  │ PRERELEASE               │ prerelease-labeled PR                │
    │ 7  │ MERGED_RELEASE           │ merged release PR / manifest diff    │
    │ 7a │ SKIP_UP_TO_DATE          │ release PR already has these changes │
    │ 8  │ VERSION_BUMP_ONLY        │ only catch-up changes                │
    │ 9  │ OPEN_RELEASE_PR          │ default                              │
    └────┴──────────────────────────┴──────────────────────────────────────┘

Changes (step 4) are computed while the snapshot is built, and only
when none of rules 1-3 already holds.

An interrupted run leaves state from which the next run's guards resume
at the right step: an already-pushed branch compares equal, and tags or
releases that exist are skipped.

Usage::

    from monorelease.orchestrator import run

    result = await run(gateway, config)
    print(result.transition)
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum

from monorelease._types import (
    RELEASE_ME_LABEL,
    RELEASE_TARGET_LABEL_PREFIX,
    RELEASED_LABEL,
    PackageChanges,
    PullRequest,
    target_label,
)
from monorelease.changelog import generate_changelog
from monorelease.commit_parsing import BumpType, ConventionalCommit, parse_commit_message
from monorelease.config import ActionConfig
from monorelease.context import ReleaseContext
from monorelease.gateway import SourceControlGateway, release_pr_title
from monorelease.logging import get_logger
from monorelease.manifest import PackageTargetVersions, apply_changes, render_manifest, target_versions
from monorelease.tags import ROOT_PACKAGE, format_tag
from monorelease.versioning import compare_versions, determine_bump, next_version

log = get_logger(__name__)

DISABLED_PRERELEASE_COMMENT = (
    '⚠️ Prereleases are currently disabled for this repository.\n\n'
    'This pull request carries the `{label}` label, but the release workflow '
    'runs with `create-prereleases: false`, so no release candidate was created.'
)


class Transition(str, Enum):
    """The mutually exclusive outcomes of one run."""

    SKIP_RELEASED = 'skip_released'
    SKIP_DISABLED_PRERELEASE = 'skip_disabled_prerelease'
    SKIP_NOTHING = 'skip_nothing'
    SKIP_UP_TO_DATE = 'skip_up_to_date'
    PRERELEASE = 'prerelease'
    MERGED_RELEASE = 'merged_release'
    VERSION_BUMP_ONLY = 'version_bump_only'
    OPEN_RELEASE_PR = 'open_release_pr'

    @property
    def is_skip(self) -> bool:
        """Whether the transition performs no release work."""
        return self.name.startswith('SKIP_')


@dataclass(frozen=True)
class Snapshot:
    """Everything the rules look at, read once at the start of a run.

    Attributes:
        config: The run's inputs.
        context: The triggering event.
        release_branch_deleted: Head ref is a release branch that is gone.
        labels: Labels of the triggering PR.
        loaded: Whether manifest and changes were read (rules 1-3 skip it).
        manifest: The manifest from the default branch.
        changes: Release or prerelease changes, in manifest order.
        merged_release: Whether this run lands a release PR.
        merged_pr: The release PR that landed, if it could be resolved.
        release_changes: Final releases to cut for a landed release PR.
        release_pr_up_to_date: The standing release PR already matches.
    """

    config: ActionConfig
    context: ReleaseContext
    release_branch_deleted: bool = False
    labels: tuple[str, ...] = ()
    loaded: bool = False
    manifest: Mapping[str, PackageTargetVersions] = field(default_factory=dict)
    changes: tuple[PackageChanges, ...] = ()
    merged_release: bool = False
    merged_pr: PullRequest | None = None
    release_changes: tuple[PackageChanges, ...] = ()
    release_pr_up_to_date: bool = False

    @property
    def target(self) -> str:
        """The release target of this run."""
        return self.config.release_target

    @property
    def is_prerelease_pr(self) -> bool:
        """Whether the triggering PR asks for a prerelease."""
        return self.context.is_pull_request and self.config.prerelease_label in self.labels

    @property
    def bumped(self) -> tuple[PackageChanges, ...]:
        """Changes driven by commits."""
        return tuple(c for c in self.changes if not c.catch_up)

    @property
    def catch_ups(self) -> tuple[PackageChanges, ...]:
        """Changes that only move the target up to ``latest``."""
        return tuple(c for c in self.changes if c.catch_up)


@dataclass(frozen=True)
class RunResult:
    """What a run did, for action outputs.

    Attributes:
        transition: The rule that fired.
        releases: Packages released (final or prerelease) by this run.
        prerelease: Whether ``releases`` are prereleases.
        pr_number: The release PR opened or updated, if any.
    """

    transition: Transition
    releases: tuple[PackageChanges, ...] = ()
    prerelease: bool = False
    pr_number: int | None = None


Action = Callable[[Snapshot, SourceControlGateway], Awaitable[RunResult]]


@dataclass(frozen=True)
class Rule:
    """One row of the rule table."""

    step: str
    transition: Transition
    guard: Callable[[Snapshot], bool]
    action: Action | None = None


def _package_name(path: str, context: ReleaseContext) -> str:
    if path == ROOT_PACKAGE:
        return context.repo
    return path.rstrip('/').rsplit('/', 1)[-1]


async def _settle_deleted_branch(snapshot: Snapshot, gateway: SourceControlGateway) -> RunResult:
    number = snapshot.context.pull_request_number
    if number is not None and RELEASE_ME_LABEL in snapshot.labels and RELEASED_LABEL not in snapshot.labels:
        await gateway.mark_released(number)
    return RunResult(Transition.SKIP_RELEASED)


async def _comment_disabled_prerelease(snapshot: Snapshot, gateway: SourceControlGateway) -> RunResult:
    number = snapshot.context.pull_request_number
    if number is not None:
        await gateway.comment(number, DISABLED_PRERELEASE_COMMENT.format(label=snapshot.config.prerelease_label))
    return RunResult(Transition.SKIP_DISABLED_PRERELEASE)


def prerelease_summary(changes: tuple[PackageChanges, ...]) -> str:
    """Markdown comment listing the release candidates cut for a PR."""
    rows = [f'| {c.path} | {c.new_version} | `{format_tag(c.path, c.new_version)}` |' for c in changes]
    return '\n'.join([
        '### 🚀 Prerelease created',
        '',
        '| Package | Version | Tag |',
        '| --- | --- | --- |',
        *rows,
    ])


async def _cut_prerelease(snapshot: Snapshot, gateway: SourceControlGateway) -> RunResult:
    ctx = snapshot.context
    await gateway.cut_release(snapshot.changes, prerelease=True, sha=ctx.head_sha or ctx.sha)
    if ctx.pull_request_number is not None:
        await gateway.comment(ctx.pull_request_number, prerelease_summary(snapshot.changes))
    return RunResult(Transition.PRERELEASE, releases=snapshot.changes, prerelease=True)


async def _cut_final_release(snapshot: Snapshot, gateway: SourceControlGateway) -> RunResult:
    pr = snapshot.merged_pr
    sha = snapshot.context.sha
    if snapshot.context.is_pull_request and pr is not None and pr.merge_commit_sha:
        sha = pr.merge_commit_sha
    await gateway.cut_release(snapshot.release_changes, prerelease=False, sha=sha)
    if pr is not None and not pr.has_label(RELEASED_LABEL):
        await gateway.mark_released(pr.number)
    return RunResult(Transition.MERGED_RELEASE, releases=snapshot.release_changes, pr_number=pr.number if pr else None)


async def _open_release_pr(snapshot: Snapshot, gateway: SourceControlGateway) -> RunResult:
    config = snapshot.config
    for change in snapshot.bumped:
        package_dir = config.package_dir(change.path)
        await gateway.write_package_version(package_dir, change.new_version)
        await gateway.stage_changelog(package_dir, change.new_version, change.changelog)
    pr = await gateway.open_or_update_release_pr(
        snapshot.changes,
        target=snapshot.target,
        manifest_path=config.manifest_path,
        manifest=snapshot.manifest,
        indent=config.indentation,
    )
    transition = Transition.OPEN_RELEASE_PR if snapshot.bumped else Transition.VERSION_BUMP_ONLY
    return RunResult(transition, pr_number=pr.number)


RULES: tuple[Rule, ...] = (
    Rule('1', Transition.SKIP_RELEASED, lambda s: s.release_branch_deleted, _settle_deleted_branch),
    Rule('2', Transition.SKIP_RELEASED, lambda s: RELEASED_LABEL in s.labels),
    Rule(
        '3',
        Transition.SKIP_DISABLED_PRERELEASE,
        lambda s: s.is_prerelease_pr and not s.config.create_prereleases,
        _comment_disabled_prerelease,
    ),
    Rule('5', Transition.SKIP_NOTHING, lambda s: not s.changes),
    Rule('6', Transition.PRERELEASE, lambda s: s.is_prerelease_pr, _cut_prerelease),
    Rule('7', Transition.MERGED_RELEASE, lambda s: s.merged_release, _cut_final_release),
    Rule('7a', Transition.SKIP_UP_TO_DATE, lambda s: s.release_pr_up_to_date),
    Rule('8', Transition.VERSION_BUMP_ONLY, lambda s: not s.bumped, _open_release_pr),
    Rule('9', Transition.OPEN_RELEASE_PR, lambda s: True, _open_release_pr),
)

# Rules decidable from labels and branches alone.
_EARLY_RULES = RULES[:3]


def select_rule(snapshot: Snapshot) -> Rule:
    """Return the first rule whose guard holds."""
    for rule in RULES:
        if rule.guard(snapshot):
            return rule
    raise AssertionError('the default rule always matches')


async def _classify(
    gateway: SourceControlGateway,
    config: ActionConfig,
    path: str,
    head: str,
) -> tuple[BumpType, tuple[ConventionalCommit, ...], str]:
    records = await gateway.commits_since_last_release(path, head=head)
    touched = gateway.filter_for_package(config.package_dir(path), records)
    commits = tuple(c for record in touched for c in parse_commit_message(record.message, sha=record.sha))
    return determine_bump(commits), commits, generate_changelog(commits)


async def _release_changes(
    gateway: SourceControlGateway,
    config: ActionConfig,
    manifest: Mapping[str, PackageTargetVersions],
) -> list[PackageChanges]:
    """Bumps for the release PR, plus catch-ups for lagging targets."""
    target = config.release_target
    changes = []
    for path, entry in manifest.items():
        bump, commits, changelog = await _classify(gateway, config, path, gateway.default_branch)
        current = entry.version_for(target)
        name = _package_name(path, gateway.context)
        if bump == BumpType.NONE:
            if entry.is_behind(target):
                changes.append(PackageChanges(path, name, current, entry.latest, target, catch_up=True))
            continue
        new_version = next_version(entry.latest, bump)
        changes.append(PackageChanges(path, name, current, new_version, target, commits, changelog, bump))
        log.info('package_bump', path=path, bump=bump.value, current=current, new=new_version)
    return changes


async def _prerelease_changes(
    gateway: SourceControlGateway,
    config: ActionConfig,
    manifest: Mapping[str, PackageTargetVersions],
) -> list[PackageChanges]:
    """Next unused release candidates for the PR head."""
    ctx = gateway.context
    head = ctx.head_sha or ctx.sha
    changes = []
    for path, entry in manifest.items():
        bump, commits, changelog = await _classify(gateway, config, path, head)
        if bump == BumpType.NONE:
            continue
        base = next_version(entry.latest, bump)
        existing = await gateway.prerelease_at(path, base, head)
        if existing is not None:
            log.info('prerelease_exists', path=path, version=existing, sha=head[:8])
            continue
        ordinal = await gateway.latest_prerelease_ordinal(path, base) + 1
        new_version = next_version(entry.latest, bump, is_prerelease=True, rc_number=ordinal)
        changes.append(
            PackageChanges(
                path,
                _package_name(path, ctx),
                entry.latest,
                new_version,
                config.release_target,
                commits,
                changelog,
                bump,
            ),
        )
    return changes


def _is_release_pr(pr: PullRequest, target: str, title: str = '') -> bool:
    """Whether ``pr`` is a release PR for ``target``.

    A release PR carries ``release-me`` or ``released``, or failing that
    the expected release title. A ``release-target:`` label naming another
    target rules it out.
    """
    foreign = any(
        label.startswith(RELEASE_TARGET_LABEL_PREFIX) and label != target_label(target) for label in pr.labels
    )
    marked = pr.has_label(RELEASE_ME_LABEL) or pr.has_label(RELEASED_LABEL) or (bool(title) and pr.title == title)
    return marked and not foreign


async def _landed_release_pr(
    gateway: SourceControlGateway,
    config: ActionConfig,
) -> tuple[PullRequest | None, dict[str, str]]:
    """Find the release PR this run lands, and the versions it moved.

    A PR event looks at the triggering PR itself. A push resolves the PR
    behind the pushed commit, and only when no PR is linked to it does
    a manifest diff stand in for one.
    """
    ctx = gateway.context
    target = config.release_target
    if ctx.is_pull_request:
        if ctx.pull_request_number is None:
            return None, {}
        pr = await gateway.pull_request(ctx.pull_request_number)
        if pr is None or not pr.merged or not _is_release_pr(pr, target):
            return None, {}
        return pr, {}

    moved = await gateway.manifest_target_changes(config.manifest_path, target, ctx.sha)
    title = ''
    if moved:
        title = release_pr_title([PackageChanges(p, '', '', v, target) for p, v in moved.items()], target)
    pr = await gateway.find_merged_release_pr(ctx.sha, title)
    if pr is not None and not _is_release_pr(pr, target, title):
        log.info('merged_pr_not_a_release', pr=pr.number, title=pr.title)
        return None, {}
    return pr, moved


async def _merged_release(
    gateway: SourceControlGateway,
    config: ActionConfig,
    manifest: Mapping[str, PackageTargetVersions],
) -> tuple[bool, PullRequest | None, list[PackageChanges]]:
    """Detect a landed release PR and list the releases it still owes."""
    ctx = gateway.context
    target = config.release_target
    pr, moved = await _landed_release_pr(gateway, config)
    if pr is None and not moved:
        return False, None, []

    versions = moved or target_versions(manifest, target)
    releases = []
    for path, version in versions.items():
        last = await gateway.last_release_version(path)
        if last is not None and compare_versions(version, last) <= 0:
            log.info('already_released', path=path, version=version, last=last)
            continue
        changelog = await gateway.changelog_section(config.package_dir(path), version)
        releases.append(
            PackageChanges(path, _package_name(path, ctx), last or '0.0.0', version, target, changelog=changelog),
        )
    log.info('merged_release_detected', pr=pr.number if pr else None, manifest_diff=bool(moved), releases=len(releases))
    return True, pr, releases


async def build_snapshot(gateway: SourceControlGateway, config: ActionConfig) -> Snapshot:
    """Read the lifecycle state for one run.

    Stops after labels and branches when one of rules 1-3 already holds;
    otherwise reads the manifest and computes changes.
    """
    ctx = gateway.context
    snapshot = Snapshot(
        config=config,
        context=ctx,
        release_branch_deleted=await gateway.release_branch_deleted(),
        labels=tuple(await gateway.pull_request_labels()),
    )
    if any(rule.guard(snapshot) for rule in _EARLY_RULES):
        return snapshot

    manifest = await gateway.read_manifest_from_default_branch(config.manifest_path)
    if not manifest:
        log.warning('manifest_empty', path=config.manifest_path, root_dir=config.root_dir)
        return Snapshot(config=config, context=ctx, labels=snapshot.labels, loaded=True)

    if snapshot.is_prerelease_pr:
        changes = await _prerelease_changes(gateway, config, manifest)
        return Snapshot(
            config=config,
            context=ctx,
            labels=snapshot.labels,
            loaded=True,
            manifest=manifest,
            changes=tuple(changes),
        )

    changes = await _release_changes(gateway, config, manifest)
    merged, merged_pr, releases = await _merged_release(gateway, config, manifest)

    up_to_date = False
    if changes and not merged:
        up_to_date = await gateway.release_pr_up_to_date(
            target=config.release_target,
            title=release_pr_title(changes, config.release_target),
            manifest_path=config.manifest_path,
            manifest_text=render_manifest(apply_changes(manifest, changes, config.release_target), config.indentation),
        )

    return Snapshot(
        config=config,
        context=ctx,
        labels=snapshot.labels,
        loaded=True,
        manifest=manifest,
        changes=tuple(changes),
        merged_release=merged,
        merged_pr=merged_pr,
        release_changes=tuple(releases),
        release_pr_up_to_date=up_to_date,
    )


async def run(gateway: SourceControlGateway, config: ActionConfig) -> RunResult:
    """Run one lifecycle step: snapshot, pick a rule, perform its action."""
    snapshot = await build_snapshot(gateway, config)
    rule = select_rule(snapshot)
    log.info(
        'transition',
        step=rule.step,
        transition=rule.transition.value,
        changes=len(snapshot.changes),
        releases=len(snapshot.release_changes),
    )
    if rule.action is None:
        return RunResult(rule.transition)
    return await rule.action(snapshot, gateway)


__all__ = [
    'DISABLED_PRERELEASE_COMMENT',
    'RULES',
    'Rule',
    'RunResult',
    'Snapshot',
    'Transition',
    'build_snapshot',
    'prerelease_summary',
    'run',
    'select_rule',
]
