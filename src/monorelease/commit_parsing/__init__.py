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

"""Commit message classification.

Usage::

    from monorelease.commit_parsing import parse_conventional_commit

    cc = parse_conventional_commit('feat(core): add x')
    assert cc.type == 'feat'
    assert cc.scope == 'core'
    assert cc.bump == BumpType.MINOR

    # Squash merges carry several commits in one message:
    entries = split_commit_message(raw_message)
    commits = [parse_conventional_commit(e, sha=sha) for e in entries]
"""

from monorelease.commit_parsing._conventional import ConventionalCommitParser
from monorelease.commit_parsing._types import (
    BUMP_PRECEDENCE,
    COMMIT_TYPE_BUMPS,
    BumpType,
    ConventionalCommit,
    max_bump,
)

_DEFAULT_PARSER = ConventionalCommitParser()


def parse_conventional_commit(message: str, sha: str = '') -> ConventionalCommit:
    """Parse a single commit message as a Conventional Commit.

    Convenience wrapper around :meth:`ConventionalCommitParser.parse`.
    """
    return _DEFAULT_PARSER.parse(message, sha=sha)


def split_commit_message(raw: str) -> list[str]:
    """Split a raw (possibly squashed) commit message into entries.

    Convenience wrapper around :meth:`ConventionalCommitParser.split`.
    """
    return _DEFAULT_PARSER.split(raw)


def parse_commit_message(raw: str, sha: str = '') -> list[ConventionalCommit]:
    """Split a raw commit message and classify every entry."""
    return [_DEFAULT_PARSER.parse(entry, sha=sha) for entry in _DEFAULT_PARSER.split(raw)]


__all__ = [
    'BUMP_PRECEDENCE',
    'COMMIT_TYPE_BUMPS',
    'BumpType',
    'ConventionalCommit',
    'ConventionalCommitParser',
    'max_bump',
    'parse_commit_message',
    'parse_conventional_commit',
    'split_commit_message',
]
