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

"""Conventional Commits parser.

Pure implementation, depends only on ``re`` and :mod:`._types`.
No I/O, no logging, no side effects. Never raises: messages that do not
follow the convention degrade to an unscoped ``chore``.
"""

from __future__ import annotations

import re

from monorelease.commit_parsing._types import COMMIT_TYPE_BUMPS, ConventionalCommit

CC_PATTERN: re.Pattern[str] = re.compile(
    r'^(?P<type>' + '|'.join(COMMIT_TYPE_BUMPS) + r')'
    r'(?:\((?P<scope>[^)]+)\))?'  # optional scope in parens
    r'(?P<breaking>!)?'  # optional breaking change indicator
    r': (?P<message>.+)$',
)

# A ``* feat: x`` or ``- feat: x`` bullet inside a squash-merge body.
_SQUASH_ENTRY_RE: re.Pattern[str] = re.compile(r'^\s*[*-]\s+(?P<entry>\S.*)$')

_BREAKING_FOOTER_RE: re.Pattern[str] = re.compile(r'^BREAKING[ -]CHANGE:', re.MULTILINE)

# The subject prefix, up to (not including) the colon.
_SUBJECT_PREFIX_RE: re.Pattern[str] = re.compile(
    r'^(?P<prefix>(?:' + '|'.join(COMMIT_TYPE_BUMPS) + r')(?:\([^)]+\))?)(?P<bang>!)?: ',
)


class ConventionalCommitParser:
    """Parser for `Conventional Commits <https://www.conventionalcommits.org/>`_.

    Parses messages in the format ``type(scope)!: message``. The pattern
    must match the whole message; a multi-line message only parses after
    it has been pre-split with :meth:`split`.
    """

    def parse(self, message: str, sha: str = '') -> ConventionalCommit:
        """Classify a single commit message.

        Args:
            message: A single-line commit message.
            sha: The commit SHA (for reference).

        Returns:
            A :class:`ConventionalCommit`. Unmatched messages become a
            ``chore`` carrying the entire raw message.
        """
        match = CC_PATTERN.match(message)
        if not match:
            return ConventionalCommit(type='chore', message=message, sha=sha)

        return ConventionalCommit(
            type=match.group('type'),
            scope=match.group('scope'),
            breaking=bool(match.group('breaking')),
            message=match.group('message'),
            sha=sha,
        )

    def split(self, raw: str) -> list[str]:
        """Split a raw commit message into individually parseable entries.

        The first entry is the subject line. Squash merges list the
        original commits as ``*`` bullets in the body; every bullet that
        follows the convention becomes its own entry. A
        ``BREAKING CHANGE:`` footer marks the subject as breaking.

        Args:
            raw: The full commit message, subject and body.

        Returns:
            Single-line messages, subject first, in body order.
        """
        lines = raw.strip().splitlines()
        if not lines:
            return []

        subject = lines[0].strip()
        body = '\n'.join(lines[1:])
        if _BREAKING_FOOTER_RE.search(body):
            subject = _SUBJECT_PREFIX_RE.sub(r'\g<prefix>!: ', subject, count=1)

        entries = [subject]
        for line in lines[1:]:
            bullet = _SQUASH_ENTRY_RE.match(line)
            if bullet and CC_PATTERN.match(bullet.group('entry').strip()):
                entries.append(bullet.group('entry').strip())
        return entries
