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

"""Tests for monorelease.config."""

from __future__ import annotations

import pytest
from monorelease.config import ActionConfig, load_config, parse_bool, parse_indentation, validate_release_target
from monorelease.errors import E, ReleaseError


class TestLoadConfig:
    """Tests for load_config()."""

    def test_defaults(self) -> None:
        """Only the token is required."""
        config = load_config(env={'INPUT_TOKEN': 'tok'})
        assert config == ActionConfig(token='tok')
        assert config.manifest_path == '.release-manifest.json'
        assert config.lookback == 50

    def test_inputs_from_env(self) -> None:
        """Hyphenated and underscored input variables are both read."""
        config = load_config(
            env={
                'INPUT_TOKEN': 'tok',
                'INPUT_ROOT-DIR': 'js/',
                'INPUT_MANIFEST_FILE': 'versions.json',
                'INPUT_CREATE-PRERELEASES': 'true',
                'INPUT_PRERELEASE-LABEL': 'rc',
                'INPUT_RELEASE-TARGET': 'canary',
                'INPUT_INDENTATION': 'tab',
                'INPUT_LOOKBACK': '200',
            },
        )
        assert config.root_dir == 'js'
        assert config.manifest_path == 'js/versions.json'
        assert config.create_prereleases is True
        assert config.prerelease_label == 'rc'
        assert config.release_target == 'canary'
        assert config.indentation == 'tab'
        assert config.lookback == 200

    def test_overrides_win_and_none_falls_through(self) -> None:
        """Explicit values beat the environment; None does not."""
        config = load_config(
            {'release_target': 'beta', 'lookback': None},
            env={'INPUT_TOKEN': 'tok', 'INPUT_RELEASE-TARGET': 'canary', 'INPUT_LOOKBACK': '10'},
        )
        assert config.release_target == 'beta'
        assert config.lookback == 10

    def test_token_fallbacks(self) -> None:
        """GITHUB_TOKEN then GH_TOKEN stand in for the input."""
        assert load_config(env={'GITHUB_TOKEN': 'a', 'GH_TOKEN': 'b'}).token == 'a'
        assert load_config(env={'GH_TOKEN': 'b'}).token == 'b'

    def test_missing_token(self) -> None:
        """No token anywhere is a configuration error."""
        with pytest.raises(ReleaseError) as exc_info:
            load_config(env={})
        assert exc_info.value.code == E.CONFIG_MISSING_REQUIRED

    def test_latest_target_rejected(self) -> None:
        """``latest`` is reserved."""
        with pytest.raises(ReleaseError) as exc_info:
            load_config(env={'INPUT_TOKEN': 'tok', 'INPUT_RELEASE-TARGET': 'latest'})
        assert exc_info.value.code == E.CONFIG_RESERVED_TARGET

    def test_invalid_lookback(self) -> None:
        """Lookback must be a positive integer."""
        with pytest.raises(ReleaseError) as exc_info:
            load_config(env={'INPUT_TOKEN': 'tok', 'INPUT_LOOKBACK': '0'})
        assert exc_info.value.code == E.CONFIG_INVALID_VALUE


class TestPackageDir:
    """Tests for ActionConfig.package_dir()."""

    def test_root_dir_prefix(self) -> None:
        """Package paths are relative to root-dir."""
        config = ActionConfig(token='t', root_dir='js')
        assert config.package_dir('pkg/a') == 'js/pkg/a'
        assert config.package_dir('.') == 'js'

    def test_default_root(self) -> None:
        """At the repo root, package paths are used as-is."""
        assert ActionConfig(token='t').package_dir('pkg/a') == 'pkg/a'


class TestParsers:
    """Tests for the input parsers."""

    @pytest.mark.parametrize(('value', 'expected'), [('true', True), ('False', False), ('1', True), ('', False)])
    def test_parse_bool(self, value: str, expected: bool) -> None:
        """Action booleans."""
        assert parse_bool('x', value) is expected

    def test_parse_bool_invalid(self) -> None:
        """Anything else is rejected."""
        with pytest.raises(ReleaseError):
            parse_bool('x', 'maybe')

    @pytest.mark.parametrize(('value', 'expected'), [('2', 2), ('4', 4), ('tab', 'tab'), ('\t', 'tab'), (0, 0)])
    def test_parse_indentation(self, value: str | int, expected: int | str) -> None:
        """Spaces or tab."""
        assert parse_indentation(value) == expected

    @pytest.mark.parametrize('value', ['-1', 'wide'])
    def test_parse_indentation_invalid(self, value: str) -> None:
        """Negative or non-numeric widths are rejected."""
        with pytest.raises(ReleaseError):
            parse_indentation(value)

    def test_validate_release_target(self) -> None:
        """Targets are stripped; empty and latest are rejected."""
        assert validate_release_target(' main ') == 'main'
        for bad in ('', 'latest'):
            with pytest.raises(ReleaseError):
                validate_release_target(bad)
