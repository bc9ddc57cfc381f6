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

"""Action outputs and the CI failure channel.

Outputs::

    releases-created   "true" if this run cut any release
    version            the version, when exactly one package was released
    versions           JSON [{"path", "target", "version"}], when several
    prerelease         "true" if the releases are release candidates

They are appended to the file named by ``GITHUB_OUTPUT``; outside
Actions they are only logged.
"""

from __future__ import annotations

import json
import os
import sys
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import TextIO

from monorelease.logging import get_logger
from monorelease.orchestrator import RunResult

log = get_logger(__name__)

UNKNOWN_ERROR_MESSAGE = 'An unknown error occurred'


def build_outputs(result: RunResult) -> dict[str, str]:
    """Map a run's result to action output values."""
    releases = result.releases
    outputs = {
        'releases-created': 'true' if releases else 'false',
        'prerelease': 'true' if releases and result.prerelease else 'false',
    }
    if len(releases) == 1:
        outputs['version'] = releases[0].new_version
    elif releases:
        outputs['versions'] = json.dumps(
            [{'path': c.path, 'target': c.release_target, 'version': c.new_version} for c in releases],
        )
    return outputs


def write_outputs(outputs: Mapping[str, str], env: Mapping[str, str] | None = None) -> None:
    """Append outputs to ``$GITHUB_OUTPUT``."""
    env = os.environ if env is None else env
    path = env.get('GITHUB_OUTPUT', '')
    log.info('action_outputs', **{k.replace('-', '_'): v for k, v in outputs.items()})
    if not path:
        return
    with Path(path).open('a', encoding='utf-8') as handle:
        for key, value in outputs.items():
            if '\n' in value:
                delimiter = f'ghadelimiter_{uuid.uuid4()}'
                handle.write(f'{key}<<{delimiter}\n{value}\n{delimiter}\n')
            else:
                handle.write(f'{key}={value}\n')


def _escape_data(message: str) -> str:
    return message.replace('%', '%25').replace('\r', '%0D').replace('\n', '%0A')


def report_failure(exc: BaseException, *, file: TextIO | None = None) -> str:
    """Write an ``::error::`` workflow command for ``exc``.

    Exceptions without a message are reported generically.

    Returns:
        The reported message.
    """
    message = str(exc) or UNKNOWN_ERROR_MESSAGE
    print(f'::error::{_escape_data(message)}', file=file or sys.stdout)  # noqa: T201 - workflow command
    return message


__all__ = [
    'UNKNOWN_ERROR_MESSAGE',
    'build_outputs',
    'report_failure',
    'write_outputs',
]
