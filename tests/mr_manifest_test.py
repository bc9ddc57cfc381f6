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

"""Tests for monorelease.manifest."""

from __future__ import annotations

import json

import pytest
from monorelease._types import PackageChanges
from monorelease.errors import E, ReleaseError
from monorelease.manifest import (
    PackageTargetVersions,
    apply_changes,
    parse_manifest,
    render_manifest,
    target_versions,
)


class TestParseManifest:
    """Tests for parse_manifest()."""

    def test_canonical_shape(self) -> None:
        """Per-target objects parse as-is."""
        manifest = parse_manifest('{"pkg/a": {"latest": "1.0.0", "main": "1.0.0", "canary": "0.9.0"}}')
        entry = manifest['pkg/a']
        assert entry.latest == '1.0.0'
        assert dict(entry.targets) == {'main': '1.0.0', 'canary': '0.9.0'}

    def test_legacy_string_entry(self) -> None:
        """A bare version string becomes latest-only."""
        manifest = parse_manifest('{"pkg/a": "1.2.0", ".": "3.0.0"}')
        assert manifest['pkg/a'] == PackageTargetVersions(latest='1.2.0')
        assert manifest['.'].version_for('main') == '3.0.0'

    def test_missing_latest_uses_highest_target(self) -> None:
        """Without latest, the highest target version stands in."""
        manifest = parse_manifest('{"pkg/a": {"main": "1.0.0", "canary": "1.2.0"}}')
        assert manifest['pkg/a'].latest == '1.2.0'

    def test_preserves_key_order(self) -> None:
        """Package order is the file's order."""
        manifest = parse_manifest('{"z": "1.0.0", "a": "1.0.0", "m": "1.0.0"}')
        assert list(manifest) == ['z', 'a', 'm']

    @pytest.mark.parametrize(
        'text',
        [
            'not json',
            '[]',
            '{"pkg/a": 1}',
            '{"pkg/a": {}}',
            '{"pkg/a": "one"}',
            '{"pkg/a": {"latest": "1.0.0", "main": null}}',
        ],
    )
    def test_invalid(self, text: str) -> None:
        """Malformed manifests raise a coded error."""
        with pytest.raises(ReleaseError) as exc_info:
            parse_manifest(text)
        assert exc_info.value.code == E.MANIFEST_INVALID


class TestPackageTargetVersions:
    """Tests for PackageTargetVersions."""

    def test_missing_target_is_latest(self) -> None:
        """A target without an entry sits at latest."""
        entry = PackageTargetVersions(latest='2.0.0', targets={'main': '1.0.0'})
        assert entry.version_for('canary') == '2.0.0'
        assert entry.is_behind('main')
        assert not entry.is_behind('canary')

    def test_latest_never_moves_backwards(self) -> None:
        """Setting a lower target version keeps latest."""
        entry = PackageTargetVersions(latest='2.0.0').with_version('lts', '1.5.0')
        assert entry.latest == '2.0.0'
        assert entry.version_for('lts') == '1.5.0'

    def test_to_json_latest_first(self) -> None:
        """latest leads the serialized object."""
        entry = PackageTargetVersions(latest='1.0.0', targets={'main': '1.0.0'})
        assert list(entry.to_json()) == ['latest', 'main']


class TestApplyChanges:
    """Tests for apply_changes() and target_versions()."""

    def test_release_moves_target_and_latest(self) -> None:
        """A bump advances both the target and latest."""
        manifest = parse_manifest('{"pkg/a": {"latest": "1.0.0", "main": "1.0.0"}}')
        change = PackageChanges('pkg/a', 'a', '1.0.0', '1.1.0', 'main')
        updated = apply_changes(manifest, [change], 'main')
        assert updated['pkg/a'].to_json() == {'latest': '1.1.0', 'main': '1.1.0'}
        assert manifest['pkg/a'].latest == '1.0.0'

    def test_catch_up_moves_only_target(self) -> None:
        """A catch-up leaves latest alone."""
        manifest = parse_manifest('{"pkg/a": {"latest": "1.1.0", "main": "1.1.0", "canary": "1.0.0"}}')
        change = PackageChanges('pkg/a', 'a', '1.0.0', '1.1.0', 'canary', catch_up=True)
        updated = apply_changes(manifest, [change], 'canary')
        assert updated['pkg/a'].to_json() == {'latest': '1.1.0', 'main': '1.1.0', 'canary': '1.1.0'}

    def test_target_versions(self) -> None:
        """Every package maps to its target version."""
        manifest = parse_manifest('{"a": {"latest": "2.0.0", "main": "1.0.0"}, "b": "3.0.0"}')
        assert target_versions(manifest, 'main') == {'a': '1.0.0', 'b': '3.0.0'}


class TestRenderManifest:
    """Tests for render_manifest()."""

    def test_round_trip(self) -> None:
        """Rendering then parsing gives the same manifest."""
        manifest = {
            'pkg/a': PackageTargetVersions(latest='1.1.0', targets={'main': '1.1.0'}),
            '.': PackageTargetVersions(latest='0.3.0', targets={'main': '0.2.0', 'canary': '0.3.0'}),
        }
        for indent in (2, 4, 'tab'):
            assert parse_manifest(render_manifest(manifest, indent)) == manifest

    def test_indentation_and_newline(self) -> None:
        """Indentation follows the setting and the file ends with a newline."""
        manifest = {'a': PackageTargetVersions(latest='1.0.0')}
        assert render_manifest(manifest, 2) == '{\n  "a": {\n    "latest": "1.0.0"\n  }\n}\n'
        assert render_manifest(manifest, 'tab') == '{\n\t"a": {\n\t\t"latest": "1.0.0"\n\t}\n}\n'

    def test_legacy_is_rewritten_canonically(self) -> None:
        """Legacy entries are written back in the object shape."""
        text = render_manifest(parse_manifest('{"a": "1.0.0"}'))
        assert json.loads(text) == {'a': {'latest': '1.0.0'}}
