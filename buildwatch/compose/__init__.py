"""Series/parallel composition of Task Units.

A composition is a tree of nodes:

- Leaf: one TaskUnit
- Series: children run strictly one after another, first failure stops it
- Parallel: children run concurrently, all of them finish, failure if any
  child failed

Example:
    from buildwatch.compose import series, parallel, CompositionRunner

    styles = series(compile_styles, optimize_styles)
    everything = parallel(styles, scripts, series(views, guide))

    result = await CompositionRunner().run(everything)
    print(result.success, result.executed)
"""

from .nodes import Node, Leaf, Series, Parallel, series, parallel, describe, iter_tasks
from .runner import CompositionRunner, RunResult, TaskFailure, run_sync

__all__ = [
    'Node',
    'Leaf',
    'Series',
    'Parallel',
    'series',
    'parallel',
    'describe',
    'iter_tasks',
    'CompositionRunner',
    'RunResult',
    'TaskFailure',
    'run_sync',
]
