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

"""CLI entry point for monorelease.

Builds the run's configuration, event context and GitHub backend, and
hands them to the orchestrator.

Subcommands::

    monorelease run      Perform one release lifecycle step (the action)
    monorelease plan     Show the step a run would take, without writing
    monorelease explain  Explain an error code

Usage::

    # Inside GitHub Actions (inputs come from INPUT_* variables):
    monorelease run

    # Preview locally against a repository:
    GITHUB_TOKEN=... monorelease plan --repository acme/widgets --release-target main

    # Explain an error:
    monorelease explain MR-CONFIG-RESERVED-TARGET
"""

from __future__ import annotations

import argparse
import asyncio
import os
import sys
from collections.abc import Mapping

from rich.console import Console
from rich.table import Table
from rich_argparse import RichHelpFormatter

from monorelease import __version__
from monorelease.backends.forge import GitHubAPIBackend
from monorelease.config import ActionConfig, load_config
from monorelease.context import ReleaseContext
from monorelease.errors import ReleaseError, explain, render_error
from monorelease.gateway import SourceControlGateway
from monorelease.logging import bind_run_context, configure_logging, get_logger
from monorelease.orchestrator import Snapshot, build_snapshot, run, select_rule
from monorelease.outputs import build_outputs, report_failure, write_outputs

logger = get_logger(__name__)

_DEFAULT_API_URL = 'https://api.github.com'


def _overrides(args: argparse.Namespace) -> dict[str, object | None]:
    return {
        'token': args.token,
        'root_dir': args.root_dir,
        'manifest_file': args.manifest_file,
        'create_prereleases': args.create_prereleases,
        'prerelease_label': args.prerelease_label,
        'release_target': args.release_target,
        'indentation': args.indentation,
        'lookback': args.lookback,
    }


def _environment(args: argparse.Namespace) -> Mapping[str, str]:
    env = dict(os.environ)
    if args.repository:
        env['GITHUB_REPOSITORY'] = args.repository
    if args.event_path:
        env['GITHUB_EVENT_PATH'] = args.event_path
    return env


def _create_gateway(args: argparse.Namespace) -> tuple[SourceControlGateway, ActionConfig]:
    env = _environment(args)
    config = load_config(_overrides(args), env=env)
    context = ReleaseContext.from_env(env)
    bind_run_context(repository=context.full_name, target=config.release_target)
    api_url = args.api_url or env.get('GITHUB_API_URL', '') or _DEFAULT_API_URL
    forge = GitHubAPIBackend(context.owner, context.repo, token=config.token, base_url=api_url)
    return SourceControlGateway(forge, context, lookback=config.lookback), config


async def _cmd_run(args: argparse.Namespace) -> int:
    """Handle the ``run`` subcommand."""
    gateway, config = _create_gateway(args)
    result = await run(gateway, config)
    write_outputs(build_outputs(result))
    logger.info('run_complete', transition=result.transition.value, releases=len(result.releases))
    return 0


def _print_plan(snapshot: Snapshot, console: Console) -> None:
    rule = select_rule(snapshot)
    console.print(f'[bold]Step {rule.step}[/bold]: {rule.transition.value}')
    changes = snapshot.release_changes if snapshot.merged_release else snapshot.changes
    if not changes:
        return
    table = Table(show_header=True, header_style='bold')
    table.add_column('Package')
    table.add_column('Current')
    table.add_column('Next')
    table.add_column('Bump')
    table.add_column('Target')
    for change in changes:
        bump = 'catch-up' if change.catch_up else change.bump.value
        table.add_row(change.path, change.current_version, change.new_version, bump, change.release_target)
    console.print(table)


async def _cmd_plan(args: argparse.Namespace) -> int:
    """Handle the ``plan`` subcommand."""
    gateway, config = _create_gateway(args)
    snapshot = await build_snapshot(gateway, config)
    _print_plan(snapshot, Console(highlight=False))
    return 0


def _cmd_explain(args: argparse.Namespace) -> int:
    """Handle the ``explain`` subcommand."""
    result = explain(args.code)
    if result is None:
        print(f'Unknown error code: {args.code}')  # noqa: T201 - CLI output
        return 1
    print(result)  # noqa: T201 - CLI output
    return 0


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument('--token', default=None, help='GitHub token (default: INPUT_TOKEN, GITHUB_TOKEN, GH_TOKEN).')
    parser.add_argument('--root-dir', default=None, help='Directory holding the manifest and packages (default: .).')
    parser.add_argument(
        '--manifest-file',
        default=None,
        help='Manifest path relative to --root-dir (default: .release-manifest.json).',
    )
    parser.add_argument(
        '--create-prereleases',
        action='store_true',
        default=None,
        help='Cut release candidates for PRs carrying the prerelease label.',
    )
    parser.add_argument(
        '--prerelease-label',
        default=None,
        help='Label that requests a prerelease (default: Prerelease).',
    )
    parser.add_argument('--release-target', default=None, help='Release target this run serves (default: main).')
    parser.add_argument('--indentation', default=None, help='Manifest indentation: "tab" or a number of spaces.')
    parser.add_argument('--lookback', default=None, help='Commits to scan for a package with no release (default: 50).')
    parser.add_argument('--repository', default=None, metavar='OWNER/REPO', help='Overrides GITHUB_REPOSITORY.')
    parser.add_argument('--event-path', default=None, metavar='FILE', help='Overrides GITHUB_EVENT_PATH.')
    parser.add_argument('--api-url', default=None, help='GitHub API base URL (default: GITHUB_API_URL).')


def build_parser() -> argparse.ArgumentParser:
    """Build the CLI argument parser.

    Returns:
        Configured :class:`argparse.ArgumentParser`.
    """
    RichHelpFormatter.styles['argparse.groups'] = 'bold yellow'
    parser = argparse.ArgumentParser(
        prog='monorelease',
        description='Release PRs, tags and prereleases for multi-package repositories.',
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}',
    )
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging.')
    parser.add_argument('--quiet', '-q', action='store_true', help='Only log warnings and errors.')
    parser.add_argument(
        '--json-log',
        action='store_true',
        default=None,
        help='Log JSON lines (default when stderr is not a terminal).',
    )

    subparsers = parser.add_subparsers(dest='command')

    run_parser = subparsers.add_parser(
        'run',
        help='Perform one release lifecycle step.',
        formatter_class=RichHelpFormatter,
    )
    _add_run_options(run_parser)

    plan_parser = subparsers.add_parser(
        'plan',
        help='Show the step a run would take, without writing anything.',
        formatter_class=RichHelpFormatter,
    )
    _add_run_options(plan_parser)

    explain_parser = subparsers.add_parser(
        'explain',
        help='Explain an error code.',
    )
    explain_parser.add_argument(
        'code',
        help='Error code to explain (e.g., MR-CONFIG-RESERVED-TARGET).',
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for failure).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    try:
        command = args.command
        if command == 'run':
            return asyncio.run(_cmd_run(args))
        if command == 'plan':
            return asyncio.run(_cmd_plan(args))
        if command == 'explain':
            return _cmd_explain(args)

        parser.print_help()  # noqa: T201 - CLI output
        print(  # noqa: T201 - CLI output
            f'\n{parser.prog}: error: please provide a command',
            file=sys.stderr,
        )
        return 2

    except ReleaseError as exc:
        render_error(exc)
        report_failure(exc)
        return 1
    except KeyboardInterrupt:
        logger.info('interrupted')
        return 130
    except Exception as exc:  # noqa: BLE001 - every failure goes to the CI failure channel
        logger.error('run_failed', error_type=type(exc).__name__, error=str(exc))
        report_failure(exc)
        return 1


def _main() -> None:
    """Wrapper for pyproject.toml [project.scripts] entry point."""
    sys.exit(main())


__all__ = [
    'build_parser',
    'main',
]
