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

"""Uniform result type for forge write requests.

Every write a backend performs comes back as an :class:`ApiResult`,
success or not. Backends never raise on HTTP status; the gateway looks
at :attr:`ApiResult.is_conflict` to tell "already exists" (a previous
run got this far) from a real failure.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

import httpx


@dataclass(frozen=True)
class ApiResult:
    """Outcome of a write request.

    Attributes:
        method: HTTP method.
        url: Request URL.
        status: HTTP status code.
        data: Decoded JSON object body, or ``{}``.
        text: Raw response text, kept for error messages.
    """

    method: str
    url: str
    status: int
    data: dict[str, Any] = field(default_factory=dict)
    text: str = ''

    @property
    def ok(self) -> bool:
        """Whether the request succeeded (2xx)."""
        return 200 <= self.status < 300

    @property
    def is_conflict(self) -> bool:
        """Whether the platform rejected the write because the object exists.

        GitHub answers 422 for every validation failure, so the body
        decides: refs report ``Reference already exists`` and releases an
        ``already_exists`` entry under ``errors``.
        """
        if self.status != 422:
            return False
        if 'already exists' in str(self.data.get('message', '')).lower():
            return True
        errors = self.data.get('errors') or []
        return any(isinstance(e, dict) and e.get('code') == 'already_exists' for e in errors)

    @classmethod
    def from_response(cls, response: httpx.Response) -> ApiResult:
        """Wrap an httpx response."""
        data: dict[str, Any] = {}
        if response.content:
            try:
                decoded = response.json()
            except (ValueError, json.JSONDecodeError):
                decoded = None
            if isinstance(decoded, dict):
                data = decoded
        return cls(
            method=response.request.method,
            url=str(response.request.url),
            status=response.status_code,
            data=data,
            text=response.text,
        )


__all__ = [
    'ApiResult',
]
