"""buildwatch - build and watch orchestration for front-end projects.

Named build steps (TaskUnit) are composed with `series` and `parallel`,
bound to glob patterns in a RouteTable, and re-run by a Dispatcher on
every filesystem change, followed by one reload notification per run.

Example:
    from buildwatch import TaskUnit, series, parallel, Route, RouteTable
    from buildwatch.watch import Dispatcher, CommandNotifier

    styles = series(compile_styles, optimize_styles)
    table = RouteTable([Route.create("src/styles/**/*.scss", styles)])
    asyncio.run(Dispatcher(table, CommandNotifier("browser-sync reload")).serve_forever())

CLI:
    python -m buildwatch watch
"""

from .task import TaskUnit
from .compose import series, parallel, CompositionRunner, RunResult
from .routing import Route, RouteTable

__version__ = '0.1.0'

__all__ = [
    'TaskUnit',
    'series',
    'parallel',
    'CompositionRunner',
    'RunResult',
    'Route',
    'RouteTable',
]
