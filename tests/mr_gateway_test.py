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

"""Tests for monorelease.gateway against the in-memory forge."""

from __future__ import annotations

import json

import pytest
from monorelease._types import CommitRecord, PackageChanges
from monorelease.context import ReleaseContext
from monorelease.errors import E, ForgeWriteError, ReleaseError
from monorelease.gateway import SourceControlGateway, release_pr_body, release_pr_title
from monorelease.logging import configure_logging
from monorelease.manifest import parse_manifest

from tests._fakes import FakeForge

configure_logging(quiet=True)

MANIFEST = '.release-manifest.json'


def _repo() -> FakeForge:
    """A repository with one released package, ``pkg/a`` at 1.0.0."""
    forge = FakeForge()
    init = forge.commit(
        'chore: init',
        {
            MANIFEST: '{"pkg/a": {"latest": "1.0.0", "main": "1.0.0"}}\n',
            'pkg/a/package.json': '{\n  "name": "a",\n  "version": "1.0.0"\n}\n',
        },
    )
    forge.add_release('pkg/a-v1.0.0', init)
    return forge


def _push(forge: FakeForge, **kwargs: object) -> SourceControlGateway:
    ctx = ReleaseContext(owner='acme', repo='widgets', base_ref='main', head_ref='main', sha=forge.head())
    return SourceControlGateway(forge, ctx, **kwargs)  # type: ignore[arg-type]


def _pr(forge: FakeForge, number: int, head_ref: str) -> SourceControlGateway:
    ctx = ReleaseContext(
        owner='acme',
        repo='widgets',
        base_ref='main',
        head_ref=head_ref,
        sha=forge.head(),
        is_pull_request=True,
        pull_request_number=number,
        head_sha=forge.branches.get(head_ref, ''),
    )
    return SourceControlGateway(forge, ctx)


def _change(version: str = '1.1.0', path: str = 'pkg/a', target: str = 'main', **kwargs: object) -> PackageChanges:
    return PackageChanges(path, path.rsplit('/', 1)[-1], '1.0.0', version, target, **kwargs)  # type: ignore[arg-type]


class TestReleasePrTitle:
    """Tests for release_pr_title() and release_pr_body()."""

    def test_single_package(self) -> None:
        """One package names path and version."""
        assert release_pr_title([_change()], 'main') == 'chore: release pkg/a@1.1.0'

    def test_many_packages(self) -> None:
        """Several packages name the target."""
        assert release_pr_title([_change(), _change('0.2.0', 'pkg/b')], 'canary') == 'chore: release canary'

    def test_body(self) -> None:
        """The body lists every package with its changelog or catch-up note."""
        body = release_pr_body([_change(changelog='- x'), _change('2.0.0', 'pkg/b', catch_up=True)])
        assert '## pkg/a (1.0.0 -> 1.1.0)\n\n- x' in body
        assert '## pkg/b (1.0.0 -> 2.0.0)\n\nVersion bump only' in body


class TestCommitsSinceLastRelease:
    """Tests for commits_since_last_release() and filter_for_package()."""

    @pytest.mark.asyncio()
    async def test_since_anchor(self) -> None:
        """Only commits after the last stable tag, oldest first, with files."""
        forge = _repo()
        forge.commit('feat(a): one', {'pkg/a/x.js': '1'})
        forge.commit('fix(b): two', {'pkg/b/y.js': '2'})
        records = await _push(forge).commits_since_last_release('pkg/a')
        assert [r.message for r in records] == ['feat(a): one', 'fix(b): two']
        assert records[0].files == ('pkg/a/x.js',)

    @pytest.mark.asyncio()
    async def test_prerelease_is_not_an_anchor(self) -> None:
        """RC tags do not move the window."""
        forge = _repo()
        rc = forge.commit('feat(a): one', {'pkg/a/x.js': '1'})
        forge.add_release('pkg/a-v1.1.0-rc.1', rc, prerelease=True)
        records = await _push(forge).commits_since_last_release('pkg/a')
        assert [r.message for r in records] == ['feat(a): one']

    @pytest.mark.asyncio()
    async def test_lookback_without_release(self) -> None:
        """With no release, only the last ``lookback`` commits are scanned."""
        forge = FakeForge()
        for i in range(5):
            forge.commit(f'fix: c{i}', {f'pkg/a/{i}': str(i)})
        records = await _push(forge, lookback=3).commits_since_last_release('pkg/a')
        assert [r.message for r in records] == ['fix: c2', 'fix: c3', 'fix: c4']

    @pytest.mark.asyncio()
    async def test_lookback_beyond_one_page(self) -> None:
        """A lookback above the page size is collected across pages."""
        forge = FakeForge()
        for i in range(160):
            forge.commit(f'fix: c{i}', {f'pkg/a/{i}': str(i)})
        records = await _push(forge, lookback=150).commits_since_last_release('pkg/a')
        assert len(records) == 150
        assert records[0].message == 'fix: c10'
        assert records[-1].message == 'fix: c159'

    @pytest.mark.asyncio()
    async def test_quiet_page_short_circuits(self) -> None:
        """A full page without bump-triggering commits ends paging."""
        forge = _repo()
        for i in range(130):
            forge.commit(f'chore: c{i}', {'README.md': str(i)})
        records = await _push(forge).commits_since_last_release('pkg/a')
        assert len(records) == 100

    @pytest.mark.asyncio()
    async def test_busy_page_keeps_paging(self) -> None:
        """A page with a bump-triggering commit fetches the next page."""
        forge = _repo()
        for i in range(130):
            forge.commit('feat: c0' if i == 0 else f'chore: c{i}', {'README.md': str(i)})
        records = await _push(forge).commits_since_last_release('pkg/a')
        assert len(records) == 130

    def test_filter_for_package(self) -> None:
        """Path prefixes match whole directories; root keeps everything."""
        commits = [
            CommitRecord('1', 'a', ('pkg/a/index.js',)),
            CommitRecord('2', 'b', ('pkg/ab/index.js',)),
            CommitRecord('3', 'c', ('README.md', 'pkg/a/x')),
        ]
        assert [c.sha for c in SourceControlGateway.filter_for_package('pkg/a', commits)] == ['1', '3']
        assert len(SourceControlGateway.filter_for_package('.', commits)) == 3


class TestReleases:
    """Tests for release lookups and cut_release()."""

    @pytest.mark.asyncio()
    async def test_versions_and_ordinals(self) -> None:
        """Stable and RC lookups are per package."""
        forge = _repo()
        sha = forge.commit('feat(a): x', {'pkg/a/x': '1'})
        forge.add_release('pkg/a-v1.1.0-rc.1', sha, prerelease=True)
        forge.add_release('pkg/a-v1.1.0-rc.2', sha, prerelease=True)
        forge.add_release('pkg/ab-v9.0.0-rc.7', sha, prerelease=True)
        gateway = _push(forge)
        assert await gateway.last_release_version('pkg/a') == '1.0.0'
        assert await gateway.latest_prerelease_ordinal('pkg/a', '1.1.0') == 2
        assert await gateway.latest_prerelease_ordinal('pkg/a', '2.0.0') == 0
        assert await gateway.prerelease_at('pkg/a', '1.1.0', sha) == '1.1.0-rc.2'
        assert await gateway.prerelease_at('pkg/a', '1.1.0', 'other') is None

    @pytest.mark.asyncio()
    async def test_drafts_ignored(self) -> None:
        """Draft releases never anchor."""
        forge = _repo()
        forge.add_release('pkg/a-v5.0.0', forge.head(), draft=True)
        assert await _push(forge).last_release_version('pkg/a') == '1.0.0'

    @pytest.mark.asyncio()
    async def test_cut_release(self) -> None:
        """One tag and one release per change, at the given commit."""
        forge = _repo()
        sha = forge.head()
        outcome = await _push(forge).cut_release(
            [_change(changelog='- x'), _change('2.0.0', '.')],
            prerelease=False,
            sha=sha,
        )
        assert outcome.created == ['pkg/a-v1.1.0', 'v2.0.0']
        assert forge.tags['pkg/a-v1.1.0'] == sha
        release = forge.release('pkg/a-v1.1.0')
        assert release is not None
        assert release['name'] == 'pkg/a v1.1.0'
        assert release['body'] == '- x'
        assert release['prerelease'] is False
        assert forge.release('v2.0.0') is not None

    @pytest.mark.asyncio()
    async def test_cut_release_rerun(self) -> None:
        """Existing tags and releases are skipped, not fatal."""
        forge = _repo()
        await _push(forge).cut_release([_change()], prerelease=False, sha=forge.head())
        outcome = await _push(forge).cut_release([_change()], prerelease=False, sha=forge.head())
        assert outcome.created == []
        assert outcome.existing == ['pkg/a-v1.1.0']
        assert len([r for r in forge.releases if r['tag_name'] == 'pkg/a-v1.1.0']) == 1

    @pytest.mark.asyncio()
    async def test_cut_release_permission_denied(self) -> None:
        """Other write failures propagate."""
        forge = _repo()
        forge.fail['create_ref'] = 403
        with pytest.raises(ForgeWriteError) as exc_info:
            await _push(forge).cut_release([_change()], prerelease=False, sha=forge.head())
        assert exc_info.value.status == 403
        assert not exc_info.value.is_conflict

    @pytest.mark.asyncio()
    async def test_cut_release_invalid_tag_target(self) -> None:
        """A 422 that is not "already exists" is a write failure."""
        forge = _repo()
        forge.fail['create_ref'] = 422
        forge.fail_body['create_ref'] = {'message': 'Object does not exist'}
        with pytest.raises(ForgeWriteError) as exc_info:
            await _push(forge).cut_release([_change()], prerelease=False, sha='deadbeef')
        assert exc_info.value.status == 422
        assert exc_info.value.code == E.FORGE_WRITE_FAILED
        assert forge.release('pkg/a-v1.1.0') is None

    @pytest.mark.asyncio()
    async def test_cut_release_invalid_release(self) -> None:
        """A release rejected for a bad ``target_commitish`` propagates."""
        forge = _repo()
        forge.fail['create_release'] = 422
        forge.fail_body['create_release'] = {
            'message': 'Validation Failed',
            'errors': [{'resource': 'Release', 'code': 'invalid', 'field': 'target_commitish'}],
        }
        with pytest.raises(ForgeWriteError) as exc_info:
            await _push(forge).cut_release([_change()], prerelease=False, sha=forge.head())
        assert not exc_info.value.is_conflict


class TestManifest:
    """Tests for manifest reads and diffs."""

    @pytest.mark.asyncio()
    async def test_read_from_default_branch(self) -> None:
        """The manifest is parsed into the canonical shape."""
        manifest = await _push(_repo()).read_manifest_from_default_branch(MANIFEST)
        assert manifest['pkg/a'].version_for('main') == '1.0.0'

    @pytest.mark.asyncio()
    async def test_missing_or_invalid_is_empty(self) -> None:
        """Read failures are absence."""
        forge = FakeForge()
        forge.commit('chore: init', {'broken.json': '{'})
        gateway = _push(forge)
        assert await gateway.read_manifest_from_default_branch(MANIFEST) == {}
        assert await gateway.read_manifest_from_default_branch('broken.json') == {}

    @pytest.mark.asyncio()
    async def test_target_changes(self) -> None:
        """Only packages whose target moved are reported."""
        forge = _repo()
        forge.commit('chore: release', {MANIFEST: '{"pkg/a": {"latest": "1.1.0", "main": "1.1.0"}}\n'})
        gateway = _push(forge)
        assert await gateway.manifest_target_changes(MANIFEST, 'main', forge.head()) == {'pkg/a': '1.1.0'}
        assert await gateway.manifest_target_changes(MANIFEST, 'canary', forge.head()) == {'pkg/a': '1.1.0'}
        assert await gateway.was_manifest_touched_in_last_commit(MANIFEST, 'main', forge.head())

    @pytest.mark.asyncio()
    async def test_other_target_untouched(self) -> None:
        """Moving canary does not touch main."""
        forge = _repo()
        forge.commit('chore: release', {MANIFEST: '{"pkg/a": {"latest": "1.1.0", "main": "1.0.0", "canary": "1.1.0"}}'})
        gateway = _push(forge)
        assert await gateway.manifest_target_changes(MANIFEST, 'main', forge.head()) == {}

    @pytest.mark.asyncio()
    async def test_introduced_manifest_is_not_a_release(self) -> None:
        """A commit that adds the manifest moves nothing."""
        forge = FakeForge()
        forge.commit('chore: init', {'README.md': 'hi'})
        forge.commit('chore: add manifest', {MANIFEST: '{"pkg/a": "1.0.0"}'})
        gateway = _push(forge)
        assert await gateway.manifest_target_changes(MANIFEST, 'main', forge.head()) == {}


class TestStaging:
    """Tests for carrier and changelog staging."""

    @pytest.mark.asyncio()
    async def test_carrier_priority(self) -> None:
        """package.json wins over version.txt."""
        forge = _repo()
        forge.commit('chore: add', {'pkg/a/version.txt': '1.0.0\n'})
        gateway = _push(forge)
        edit = await gateway.write_package_version('pkg/a', '1.1.0')
        assert edit.path == 'pkg/a/package.json'
        assert json.loads(edit.content)['version'] == '1.1.0'
        assert [e.path for e in gateway.staged_edits] == ['pkg/a/package.json']

    @pytest.mark.asyncio()
    async def test_cargo_then_version_txt(self) -> None:
        """Cargo.toml, then version.txt."""
        forge = FakeForge()
        forge.commit(
            'chore: init',
            {'crates/x/Cargo.toml': '[package]\nname = "x"\nversion = "0.1.0"\n', 'tools/version.txt': '3.0.0\n'},
        )
        gateway = _push(forge)
        assert (await gateway.write_package_version('crates/x', '0.2.0')).content.endswith('version = "0.2.0"\n')
        assert (await gateway.write_package_version('tools', '3.0.1')).content == '3.0.1\n'

    @pytest.mark.asyncio()
    async def test_unversionable(self) -> None:
        """No carrier is a configuration error."""
        with pytest.raises(ReleaseError) as exc_info:
            await _push(_repo()).write_package_version('pkg/missing', '1.0.0')
        assert exc_info.value.code == E.CONFIG_UNVERSIONABLE_PACKAGE

    @pytest.mark.asyncio()
    async def test_changelog_round_trip(self) -> None:
        """A staged section is what changelog_section() reads after merge."""
        forge = _repo()
        gateway = _push(forge)
        edit = await gateway.stage_changelog('pkg/a', '1.1.0', '### 🚀 Features\n\n- x')
        forge.commit('chore: release', {edit.path: edit.content})
        assert await _push(forge).changelog_section('pkg/a', '1.1.0') == '### 🚀 Features\n\n- x'
        assert await _push(forge).changelog_section('pkg/b', '1.1.0') == ''


class TestReleasePr:
    """Tests for the standing release PR."""

    async def _open(self, forge: FakeForge, changes: list[PackageChanges], target: str = 'main') -> int:
        gateway = _push(forge)
        manifest = await gateway.read_manifest_from_default_branch(MANIFEST)
        pr = await gateway.open_or_update_release_pr(changes, target=target, manifest_path=MANIFEST, manifest=manifest)
        return pr.number

    @pytest.mark.asyncio()
    async def test_opens_pr_with_manifest(self) -> None:
        """A new branch and PR carry the updated manifest."""
        forge = _repo()
        number = await self._open(forge, [_change()])
        pr = forge.prs[number]
        assert pr['title'] == 'chore: release pkg/a@1.1.0'
        assert pr['head']['ref'] == 'release-main'
        assert forge.labels(number) == ['release-me', 'release-target:main']
        text = forge.read(MANIFEST, 'release-main')
        assert text is not None
        assert json.loads(text) == {'pkg/a': {'latest': '1.1.0', 'main': '1.1.0'}}

    @pytest.mark.asyncio()
    async def test_manifest_round_trip(self) -> None:
        """What the gateway writes, it reads back unchanged."""
        forge = _repo()
        await self._open(forge, [_change()])
        written = await _push(forge)._read_manifest_at(MANIFEST, 'release-main')
        assert written == parse_manifest('{"pkg/a": {"latest": "1.1.0", "main": "1.1.0"}}')

    @pytest.mark.asyncio()
    async def test_reopen_is_noop(self) -> None:
        """The same content twice pushes nothing and opens no second PR."""
        forge = _repo()
        first = await self._open(forge, [_change()])
        branch_sha = forge.head('release-main')
        second = await self._open(forge, [_change()])
        assert first == second
        assert len(forge.prs) == 1
        assert forge.head('release-main') == branch_sha
        assert 'update_pr' not in forge.calls

    @pytest.mark.asyncio()
    async def test_branch_replaced_on_new_base(self) -> None:
        """New default-branch commits rebuild the branch as one fresh commit."""
        forge = _repo()
        await self._open(forge, [_change()])
        forge.commit('fix(a): more', {'pkg/a/y.js': 'y'})
        await self._open(forge, [_change()])
        head = forge.commits[forge.head('release-main')]
        assert head['parents'] == [forge.head()]
        assert 'update_ref' in forge.calls
        assert 'update_pr' in forge.calls
        assert len(forge.prs) == 1

    @pytest.mark.asyncio()
    async def test_staged_edits_are_committed_and_cleared(self) -> None:
        """Carrier and changelog edits ride along in the release commit."""
        forge = _repo()
        gateway = _push(forge)
        await gateway.write_package_version('pkg/a', '1.1.0')
        manifest = await gateway.read_manifest_from_default_branch(MANIFEST)
        await gateway.open_or_update_release_pr([_change()], target='main', manifest_path=MANIFEST, manifest=manifest)
        assert gateway.staged_edits == []
        package_json = forge.read('pkg/a/package.json', 'release-main')
        assert package_json is not None
        assert '"version": "1.1.0"' in package_json

    @pytest.mark.asyncio()
    async def test_targets_do_not_share_prs(self) -> None:
        """A PR for another target is never reused, even with the same title."""
        forge = _repo()
        main_pr = await self._open(forge, [_change()])
        canary_pr = await self._open(forge, [_change(target='canary', catch_up=True)], target='canary')
        assert main_pr != canary_pr
        assert forge.prs[canary_pr]['head']['ref'] == 'release-canary'

    @pytest.mark.asyncio()
    async def test_find_by_title(self) -> None:
        """An unlabeled PR is rediscovered by its title."""
        forge = _repo()
        forge.branch('someone-else')
        number = forge.open_pr(title='chore: release pkg/a@1.1.0', head='someone-else')
        found = await _push(forge).find_release_pr('main', 'chore: release pkg/a@1.1.0')
        assert found is not None
        assert found.number == number

    @pytest.mark.asyncio()
    async def test_up_to_date(self) -> None:
        """The standing PR matches until the default branch moves."""
        forge = _repo()
        await self._open(forge, [_change()])
        text = forge.read(MANIFEST, 'release-main')
        assert text is not None
        check = {'target': 'main', 'title': 'chore: release pkg/a@1.1.0', 'manifest_path': MANIFEST}
        assert await _push(forge).release_pr_up_to_date(**check, manifest_text=text)
        assert not await _push(forge).release_pr_up_to_date(**check, manifest_text=text + ' ')
        forge.commit('docs: more', {'README.md': 'x'})
        assert not await _push(forge).release_pr_up_to_date(**check, manifest_text=text)

    @pytest.mark.asyncio()
    async def test_create_pr_failure_raises(self) -> None:
        """A failed PR write is fatal."""
        forge = _repo()
        forge.fail['create_pr'] = 403
        with pytest.raises(ForgeWriteError):
            await self._open(forge, [_change()])


class TestMergedPr:
    """Tests for find_merged_release_pr()."""

    @pytest.mark.asyncio()
    async def test_by_commit(self) -> None:
        """The PR associated with the merge commit is found."""
        forge = _repo()
        forge.branch('release-main')
        number = forge.open_pr(title='chore: release pkg/a@1.1.0', head='release-main')
        sha = forge.merge_pr(number)
        pr = await _push(forge).find_merged_release_pr(sha)
        assert pr is not None
        assert pr.number == number
        assert pr.merged

    @pytest.mark.asyncio()
    async def test_by_title_when_unlinked(self) -> None:
        """Without a commit link, the closed PR is found by title."""
        forge = _repo()
        forge.branch('release-main')
        number = forge.open_pr(title='chore: release pkg/a@1.1.0', head='release-main')
        sha = forge.merge_pr(number, link=False)
        gateway = _push(forge)
        assert await gateway.find_merged_release_pr(sha) is None
        pr = await gateway.find_merged_release_pr(sha, 'chore: release pkg/a@1.1.0')
        assert pr is not None
        assert pr.number == number


class TestLabels:
    """Tests for label operations."""

    @pytest.mark.asyncio()
    async def test_mark_released(self) -> None:
        """release-me is swapped for released."""
        forge = _repo()
        forge.branch('release-main')
        number = forge.open_pr(title='t', head='release-main', labels=('release-me', 'release-target:main'))
        await _push(forge).mark_released(number)
        assert forge.labels(number) == ['release-target:main', 'released']

    @pytest.mark.asyncio()
    async def test_mark_released_without_release_me(self) -> None:
        """A failed removal is logged and labeling continues."""
        forge = _repo()
        forge.branch('release-main')
        number = forge.open_pr(title='t', head='release-main')
        gateway = _push(forge)
        assert await gateway.remove_label(number, 'release-me') is False
        await gateway.mark_released(number)
        assert forge.labels(number) == ['released']

    @pytest.mark.asyncio()
    async def test_pull_request_labels(self) -> None:
        """Labels are read for PR events only."""
        forge = _repo()
        forge.branch('feature')
        number = forge.open_pr(title='feat: x', head='feature', labels=('Prerelease',))
        assert await _pr(forge, number, 'feature').pull_request_labels() == ['Prerelease']
        assert await _push(forge).pull_request_labels() == []

    @pytest.mark.asyncio()
    async def test_release_branch_deleted(self) -> None:
        """Only a missing release-prefixed head counts."""
        forge = _repo()
        forge.branch('release-main')
        number = forge.open_pr(title='t', head='release-main')
        assert not await _pr(forge, number, 'release-main').release_branch_deleted()
        del forge.branches['release-main']
        assert await _pr(forge, number, 'release-main').release_branch_deleted()
        assert not await _pr(forge, number, 'feature').release_branch_deleted()
