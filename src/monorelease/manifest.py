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

"""The release manifest: per-package, per-target versions.

The manifest is the durable version record of the repository. It lives
on the default branch as JSON::

    {
      "pkg/a": {"latest": "1.1.0", "main": "1.1.0", "canary": "1.1.0"},
      "pkg/b": {"latest": "0.4.0", "main": "0.3.2"}
    }

Key Concepts::

    ┌─────────────────────────┬─────────────────────────────────────────────┐
    │ Concept                 │ Plain-English                               │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ latest                  │ Highest version ever assigned. New bumps    │
    │                         │ always start from here.                     │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ target                  │ A lane such as "main". Its version never    │
    │                         │ exceeds latest and only moves forward.      │
    ├─────────────────────────┼─────────────────────────────────────────────┤
    │ legacy entry            │ ``{"pkg/a": "1.0.0"}``. Read as             │
    │                         │ ``{"latest": "1.0.0"}``; never written.     │
    └─────────────────────────┴─────────────────────────────────────────────┘

A target with no entry of its own is treated as sitting at ``latest``.

Usage::

    from monorelease.manifest import parse_manifest, render_manifest

    manifest = parse_manifest(text)
    manifest = apply_changes(manifest, changes, target='main')
    text = render_manifest(manifest, indent=2)
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from monorelease._types import PackageChanges
from monorelease.errors import E, ReleaseError
from monorelease.versioning import compare_versions, is_valid_version

LATEST_KEY = 'latest'


@dataclass(frozen=True)
class PackageTargetVersions:
    """Versions of one package, by target.

    Attributes:
        latest: Highest version ever assigned.
        targets: Target name → version; never contains ``latest``.
    """

    latest: str
    targets: Mapping[str, str] = field(default_factory=dict)

    def version_for(self, target: str) -> str:
        """The target's version, or ``latest`` if the target has none."""
        return self.targets.get(target, self.latest)

    def is_behind(self, target: str) -> bool:
        """Whether ``target`` lags ``latest``."""
        return compare_versions(self.version_for(target), self.latest) < 0

    def with_version(self, target: str, version: str, *, advance_latest: bool = True) -> PackageTargetVersions:
        """Return a copy with ``target`` (and optionally ``latest``) at ``version``.

        ``latest`` never moves backwards, whatever ``advance_latest`` says.
        """
        latest = self.latest
        if advance_latest and compare_versions(version, latest) > 0:
            latest = version
        return PackageTargetVersions(latest=latest, targets={**self.targets, target: version})

    def to_json(self) -> dict[str, str]:
        """The canonical JSON object, ``latest`` first."""
        return {LATEST_KEY: self.latest, **self.targets}


PackageManifest = dict[str, PackageTargetVersions]


def _invalid(message: str) -> ReleaseError:
    return ReleaseError(
        code=E.MANIFEST_INVALID,
        message=message,
        hint='Each entry must be "<path>": {"latest": "<semver>", "<target>": "<semver>"}.',
    )


def _normalize_entry(path: str, raw: Any) -> PackageTargetVersions:  # noqa: ANN401 - untrusted JSON
    if isinstance(raw, str):
        if not is_valid_version(raw):
            raise _invalid(f'Manifest entry {path!r} has an invalid version: {raw!r}')
        return PackageTargetVersions(latest=raw)

    if not isinstance(raw, dict) or not raw:
        raise _invalid(f'Manifest entry {path!r} must be a version string or an object of versions.')

    for key, value in raw.items():
        if not isinstance(value, str) or not is_valid_version(value):
            raise _invalid(f'Manifest entry {path!r} has an invalid version for {key!r}: {value!r}')

    targets = {k: v for k, v in raw.items() if k != LATEST_KEY}
    latest = raw.get(LATEST_KEY)
    if latest is None:
        latest = targets[next(iter(targets))]
        for version in targets.values():
            if compare_versions(version, latest) > 0:
                latest = version
    return PackageTargetVersions(latest=latest, targets=targets)


def parse_manifest(text: str) -> PackageManifest:
    """Parse manifest JSON into the canonical shape.

    Legacy ``{path: "<semver>"}`` entries become ``{"latest": ...}``.
    An entry without ``latest`` takes its highest target version.

    Raises:
        ReleaseError: If the JSON is malformed or an entry is not a
            version string or an object of version strings.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _invalid(f'Manifest is not valid JSON: {exc}') from exc

    if not isinstance(data, dict):
        raise _invalid('Manifest must be a JSON object keyed by package path.')

    return {path: _normalize_entry(path, raw) for path, raw in data.items()}


def render_manifest(manifest: Mapping[str, PackageTargetVersions], indent: int | str = 2) -> str:
    """Serialize a manifest as JSON with a trailing newline.

    Args:
        manifest: The manifest to write.
        indent: Number of spaces, or ``"tab"`` (also ``"\\t"``) for tabs.
    """
    if indent in ('tab', '\t'):
        indent = '\t'
    data = {path: entry.to_json() for path, entry in manifest.items()}
    return json.dumps(data, indent=indent, ensure_ascii=False) + '\n'


def apply_changes(
    manifest: Mapping[str, PackageTargetVersions],
    changes: Iterable[PackageChanges],
    target: str,
) -> PackageManifest:
    """Return a new manifest with ``changes`` recorded for ``target``.

    A release change moves both the target and ``latest``. A catch-up
    change moves only the target.
    """
    updated: PackageManifest = dict(manifest)
    for change in changes:
        entry = updated.get(change.path) or PackageTargetVersions(latest=change.new_version)
        updated[change.path] = entry.with_version(target, change.new_version, advance_latest=not change.catch_up)
    return updated


def target_versions(manifest: Mapping[str, PackageTargetVersions], target: str) -> dict[str, str]:
    """Map every package path to its version on ``target``."""
    return {path: entry.version_for(target) for path, entry in manifest.items()}


__all__ = [
    'LATEST_KEY',
    'PackageManifest',
    'PackageTargetVersions',
    'apply_changes',
    'parse_manifest',
    'render_manifest',
    'target_versions',
]
