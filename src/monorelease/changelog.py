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

"""Grouped markdown changelogs from Conventional Commits.

Commits are bucketed by type into ten fixed sections. The section
order comes from the bucket table, not from the commits; inside a
section, entries keep the order they were given in. Breaking commits
stay in the section of their type and carry a bold marker.

Rendered body::

    ### 🚀 Features

    - **BREAKING CHANGE:** drop the v1 API
    - add streaming

    ### 🐛 Fixes

    - handle empty input

The body has no version heading. :func:`prepend_section` wraps it in a
``## <version>`` heading for ``CHANGELOG.md``, and
:func:`extract_section` reads it back when the release is cut.

Usage::

    from monorelease.changelog import generate_changelog

    body = generate_changelog(commits)
"""

from __future__ import annotations

import re
from collections.abc import Iterable

from monorelease.commit_parsing import ConventionalCommit

BREAKING_MARKER = '**BREAKING CHANGE:** '

CHANGELOG_FILE = 'CHANGELOG.md'

_CHANGELOG_HEADING = '# Changelog'

# Commit type → section heading, in display order.
SECTIONS: list[tuple[str, str]] = [
    ('feat', '🚀 Features'),
    ('fix', '🐛 Fixes'),
    ('docs', '📝 Documentation'),
    ('refactor', '♻️ Refactors'),
    ('perf', '⚡️ Performance'),
    ('test', '🧪 Tests'),
    ('chore', '🔧 Chores'),
    ('revert', '⏪ Reverts'),
    ('build', '🔨 Build'),
    ('ci', '👷 CI'),
]

_VERSION_HEADING_RE = re.compile(r'^## (?P<version>\S+)\s*$', re.MULTILINE)


def _render_entry(commit: ConventionalCommit) -> str:
    prefix = BREAKING_MARKER if commit.breaking else ''
    return f'- {prefix}{commit.message}'


def generate_changelog(commits: Iterable[ConventionalCommit]) -> str:
    """Render commits as grouped markdown sections.

    ``style`` commits have no section of their own and are left out.
    Empty sections are omitted; an empty input gives ``""``.

    Args:
        commits: Classified commits in history order.

    Returns:
        The sections joined by blank lines, without a trailing newline.
    """
    buckets: dict[str, list[ConventionalCommit]] = {}
    for commit in commits:
        buckets.setdefault(commit.type, []).append(commit)

    sections: list[str] = []
    for commit_type, heading in SECTIONS:
        bucket = buckets.get(commit_type)
        if not bucket:
            continue
        entries = '\n'.join(_render_entry(c) for c in bucket)
        sections.append(f'### {heading}\n\n{entries}')
    return '\n\n'.join(sections)


def prepend_section(existing: str, version: str, body: str) -> str:
    """Insert a ``## <version>`` section at the top of a changelog file.

    The new section goes below the ``# Changelog`` heading, which is
    created when the file is empty. If a section for ``version`` is
    already present, it is replaced rather than duplicated, so
    re-staging the same release yields the same file.

    Args:
        existing: Current file content (``""`` if the file is new).
        version: Version for the section heading.
        body: Output of :func:`generate_changelog`.

    Returns:
        The new file content, ending with a newline.
    """
    section = f'## {version}\n\n{body}'.rstrip() + '\n'
    rest = _remove_section(existing, version).strip('\n')

    if rest.startswith(_CHANGELOG_HEADING):
        rest = rest[len(_CHANGELOG_HEADING) :].lstrip('\n')

    parts = [_CHANGELOG_HEADING, section.rstrip('\n')]
    if rest:
        parts.append(rest)
    return '\n\n'.join(parts) + '\n'


def _section_bounds(text: str, version: str) -> tuple[int, int] | None:
    headings = list(_VERSION_HEADING_RE.finditer(text))
    for i, match in enumerate(headings):
        if match.group('version') != version:
            continue
        end = headings[i + 1].start() if i + 1 < len(headings) else len(text)
        return match.start(), end
    return None


def _remove_section(text: str, version: str) -> str:
    bounds = _section_bounds(text, version)
    if bounds is None:
        return text
    start, end = bounds
    return text[:start] + text[end:]


def extract_section(text: str, version: str) -> str:
    """Return the body of the ``## <version>`` section, or ``""``.

    The body runs up to the next ``## `` heading and excludes the
    heading line itself.
    """
    bounds = _section_bounds(text, version)
    if bounds is None:
        return ''
    start, end = bounds
    section = text[start:end]
    _, _, body = section.partition('\n')
    return body.strip('\n')


__all__ = [
    'BREAKING_MARKER',
    'CHANGELOG_FILE',
    'SECTIONS',
    'extract_section',
    'generate_changelog',
    'prepend_section',
]
