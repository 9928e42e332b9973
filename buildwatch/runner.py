"""Command line entry point: run one named composition or watch.

Usage:
    python -m buildwatch [options] [task]

Example:
    python -m buildwatch                 # run "build"
    python -m buildwatch styles
    python -m buildwatch watch --build-first
    python -m buildwatch --list -f site/buildwatch.yaml
"""

import asyncio
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Union

import structlog

from buildwatch import log
from buildwatch.compose import RunResult, describe, run_sync
from buildwatch.config import DEFAULT_CONFIG_FILE, BuildConfig, parse_config_file
from buildwatch.exceptions import ConfigError, InvalidTask
from buildwatch.registry import (
    BUILD_TASK,
    WATCH_TASK,
    TaskRegistry,
    build_route_table,
    create_registry,
)
from buildwatch.routing import RouteTable
from buildwatch.watch import CommandNotifier, Dispatcher, LogNotifier, ReloadNotifier

logger = structlog.get_logger(__name__)


@dataclass
class Project:
    """Everything wired from one configuration file."""

    config: BuildConfig
    registry: TaskRegistry
    table: RouteTable

    def notifier(self) -> ReloadNotifier:
        if self.config.reload:
            return CommandNotifier(self.config.reload)
        return LogNotifier()


def load_project(config_path: Union[str, Path]) -> Project:
    """Parse configuration and wire the registry and route table."""
    config = parse_config_file(config_path)
    registry = create_registry(config)
    table = build_route_table(config, registry)
    return Project(config=config, registry=registry, table=table)


def run_task(project: Project, name: str) -> RunResult:
    """Run one registered composition to completion."""
    node = project.registry.get(name)
    logger.info("task_run", task=name, composition=describe(node))
    result = run_sync(node, name=name)
    if result.failed:
        for failure in result.failures:
            logger.error("task_failure", task=failure.task_name,
                         detail=failure.failure.get_msg())
    return result


async def watch(project: Project, build_first: bool = False) -> None:
    """Watch every route until cancelled."""
    dispatcher = Dispatcher(project.table, project.notifier())
    if build_first:
        # reuse the dispatcher's runner so the build shows up in its logs
        result = await dispatcher.runner.run(project.registry.get(BUILD_TASK))
        if result.failed:
            logger.error("initial_build_failed",
                         failed=[f.task_name for f in result.failures])
    await dispatcher.serve_forever()


def list_tasks(project: Project) -> None:
    for name, node in project.registry.items():
        print(f"{name:<14} {describe(node)}")
    print(f"{WATCH_TASK:<14} watch {len(project.table)} route(s)")
    for route in project.table:
        patterns = ", ".join(str(p) for p in route.patterns)
        reload = "" if route.notify else " (no reload)"
        print(f"  - {patterns} -> {describe(route.node)}{reload}")


def main(args: Optional[List[str]] = None) -> int:
    """CLI entry point.

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    import argparse

    parser = argparse.ArgumentParser(
        description='Run build tasks or watch sources and rebuild on change',
        prog='python -m buildwatch',
    )
    parser.add_argument(
        'task',
        nargs='?',
        default=BUILD_TASK,
        help=f'Task to run, or "{WATCH_TASK}" (default: {BUILD_TASK})',
    )
    parser.add_argument(
        '-f', '--file',
        default=DEFAULT_CONFIG_FILE,
        help=f'Path to the configuration file (default: {DEFAULT_CONFIG_FILE})',
    )
    parser.add_argument(
        '--list',
        action='store_true',
        help='List tasks and watch routes, then exit',
    )
    parser.add_argument(
        '--build-first',
        action='store_true',
        help='In watch mode, run the full build before watching',
    )
    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Print progress of every task',
    )

    parsed = parser.parse_args(args)
    log.configure(verbose=parsed.verbose)

    try:
        project = load_project(parsed.file)

        if parsed.list:
            list_tasks(project)
            return 0

        if parsed.task == WATCH_TASK:
            try:
                asyncio.run(watch(project, build_first=parsed.build_first))
            except KeyboardInterrupt:
                pass
            return 0

        result = run_task(project, parsed.task)
        if result.success:
            print(f"Completed {parsed.task}: {len(result.executed)} task(s) "
                  f"in {result.elapsed:.2f}s")
            return 0
        print(f"Failed {parsed.task}: "
              f"{', '.join(f.task_name for f in result.failures)}",
              file=sys.stderr)
        return 1

    except (FileNotFoundError, ConfigError, InvalidTask) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if parsed.verbose:
            import traceback
            traceback.print_exc()
        return 1


if __name__ == '__main__':
    sys.exit(main())
