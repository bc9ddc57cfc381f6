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

"""Tag and release naming.

Names are derived from the package path and version alone, so the same
logical release always maps to the same tag::

    path      version        tag                 release name
    ────────  ─────────────  ──────────────────  ───────────────────
    pkg/a     1.1.0          pkg/a-v1.1.0        pkg/a v1.1.0
    pkg/a     1.2.0-rc.1     pkg/a-v1.2.0-rc.1   pkg/a v1.2.0-rc.1
    .         2.0.0          v2.0.0              v2.0.0
"""

from __future__ import annotations

ROOT_PACKAGE = '.'


def tag_prefix(path: str) -> str:
    """Everything in a tag name before the version."""
    if path == ROOT_PACKAGE:
        return 'v'
    return f'{path}-v'


def format_tag(path: str, version: str) -> str:
    """Tag name for ``path`` at ``version``.

    >>> format_tag('pkg/a', '1.1.0')
    'pkg/a-v1.1.0'
    >>> format_tag('.', '1.1.0')
    'v1.1.0'
    """
    return f'{tag_prefix(path)}{version}'


def format_release_name(path: str, version: str) -> str:
    """Human-readable release title for ``path`` at ``version``."""
    if path == ROOT_PACKAGE:
        return f'v{version}'
    return f'{path} v{version}'


def parse_tag(tag: str, path: str) -> str | None:
    """Return the version in ``tag`` if it belongs to ``path``, else None.

    The root package only owns bare ``v<version>`` tags; ``pkg/a-v1.0.0``
    is not a root tag even though it ends in ``v1.0.0``.

    >>> parse_tag('pkg/a-v1.1.0', 'pkg/a')
    '1.1.0'
    >>> parse_tag('pkg/ab-v1.1.0', 'pkg/a') is None
    True
    """
    prefix = tag_prefix(path)
    if not tag.startswith(prefix):
        return None
    version = tag[len(prefix) :]
    if not version[:1].isdigit():
        return None
    return version


__all__ = [
    'ROOT_PACKAGE',
    'format_release_name',
    'format_tag',
    'parse_tag',
    'tag_prefix',
]
