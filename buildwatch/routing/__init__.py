"""Route table mapping changed files to the composition to re-run.

Example:
    from buildwatch.routing import Route, RouteTable

    table = RouteTable([
        Route.create("src/styles/**/*.scss", series(compile_styles, optimize_styles)),
        Route.create(["src/scripts/**/*.js", "src/scripts/**/*.mjs"], scripts),
    ])
    routes = table.find_routes("src/styles/base/_reset.scss")
"""

from .patterns import GlobPattern, glob_to_regex, extract_static_root
from .table import Route, RouteTable

__all__ = [
    'GlobPattern',
    'glob_to_regex',
    'extract_static_root',
    'Route',
    'RouteTable',
]
