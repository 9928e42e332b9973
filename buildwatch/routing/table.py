"""Route table: glob patterns bound to the composition they trigger.

The table is built once at startup and never mutated afterwards. When a
file changes, we need to quickly find which routes it belongs to. Routes
are indexed by the static root of each pattern (the directory before any
wildcard), so only routes whose root contains the path are regex-matched.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union

from buildwatch.compose.nodes import Node, NodeLike, as_node, describe
from .patterns import GlobPattern

PatternsLike = Union[str, GlobPattern, Sequence[Union[str, GlobPattern]]]


@dataclass(frozen=True, eq=False)
class Route:
    """Immutable binding of glob patterns to a composition.

    Attributes:
        patterns: Compiled glob patterns; any match triggers the route
        node: Composition to run from scratch on every trigger
        name: Label for diagnostics (defaults to the composition description)
        notify: Whether a completed run triggers a reload notification
    """

    patterns: Tuple[GlobPattern, ...]
    node: Node
    name: str = ''
    notify: bool = True

    @classmethod
    def create(
        cls,
        patterns: PatternsLike,
        node: NodeLike,
        name: Optional[str] = None,
        notify: bool = True,
        base_path: Optional[Path] = None,
    ) -> 'Route':
        """Build a route from pattern strings and a composition.

        Example:
            Route.create("src/styles/**/*.scss",
                         series(compile_styles, optimize_styles))
        """
        if isinstance(patterns, (str, GlobPattern)):
            patterns = [patterns]
        compiled = tuple(
            p if isinstance(p, GlobPattern) else GlobPattern(p, base_path=base_path)
            for p in patterns
        )
        if not compiled:
            raise ValueError("A route needs at least one pattern")
        node = as_node(node)
        return cls(compiled, node, name or describe(node), notify)

    def matches(self, path: Union[str, Path]) -> bool:
        """Return True if any of the route's patterns matches path."""
        return any(p.matches(path) for p in self.patterns)

    @property
    def watch_roots(self) -> List[Path]:
        """Directories a filesystem watcher must subscribe to.

        Subscriptions are recursive, so a root nested below another root
        of the same route is left out.
        """
        roots = []
        for pattern in self.patterns:
            if pattern.static_root not in roots:
                roots.append(pattern.static_root)
        return [root for root in roots
                if not any(other in root.parents for other in roots)]

    def __repr__(self) -> str:
        return "<Route %s: %s>" % (
            self.name, ", ".join(str(p) for p in self.patterns))


@dataclass
class RouteTable:
    """Process-wide, read-only collection of routes.

    Overlapping routes are independent: a path may match several routes,
    and every one of them is returned.

    Example:
        table = RouteTable([
            Route.create("src/styles/**/*.scss", styles),
            Route.create("src/views/**/*.pug", parallel(views, guide)),
        ])
        for route in table.find_routes("src/styles/main.scss"):
            ...
    """

    routes: Tuple[Route, ...] = ()

    _root_to_routes: Dict[str, List[Route]] = field(
        init=False, repr=False, default_factory=dict
    )

    def __post_init__(self):
        self.routes = tuple(self.routes)
        for route in self.routes:
            for pattern in route.patterns:
                prefix = self._as_prefix(pattern.static_root)
                bucket = self._root_to_routes.setdefault(prefix, [])
                if route not in bucket:
                    bucket.append(route)

    @staticmethod
    def _as_prefix(path: Path) -> str:
        return str(path).rstrip('/') + '/'

    def find_routes(self, path: Union[str, Path]) -> List[Route]:
        """Find every route whose patterns match this path.

        Args:
            path: Absolute path, or path relative to the working directory

        Returns:
            Matching routes in table order (no duplicates)
        """
        resolved = Path(path).resolve()
        normalized = self._as_prefix(resolved)

        candidates = set()
        for prefix, routes in self._root_to_routes.items():
            if normalized.startswith(prefix):
                candidates.update(id(r) for r in routes)

        return [r for r in self.routes
                if id(r) in candidates and r.matches(resolved)]

    def get(self, name: str) -> Optional[Route]:
        """Return the first route with this name, if any."""
        for route in self.routes:
            if route.name == name:
                return route
        return None

    def __iter__(self) -> Iterator[Route]:
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self.routes)

    @property
    def prefix_count(self) -> int:
        """Return the number of indexed watch roots."""
        return len(self._root_to_routes)
