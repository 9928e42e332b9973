"""Static task registry and route table wiring.

Both are built once at startup from a BuildConfig:

- every configured asset category becomes a named composition
  (its steps in series)
- "guide" and "guide:dist" come from the guide section
- "build" runs every category and the guide in parallel
- the route table either comes from the `watch` section or mirrors the
  categories: each category's sources re-run that category, views also
  rebuild the guide, guide fragments rebuild the guide
"""

from collections import OrderedDict
from typing import Any, Iterator, List, Optional, Tuple

from buildwatch.compose import Node, Series, parallel, series
from buildwatch.compose.nodes import as_node
from buildwatch.config import KNOWN_CATEGORIES, AssetConfig, BuildConfig
from buildwatch.exceptions import InvalidTask
from buildwatch.guide import GuideRenderer, JsonGuideRenderer, build_guide, dist_guide
from buildwatch.routing import Route, RouteTable
from buildwatch.steps import CopyStep, ShellStep
from buildwatch.task import TaskUnit

WATCH_TASK = 'watch'
BUILD_TASK = 'build'


class TaskRegistry:
    """Named compositions, fixed after wiring.

    Example:
        registry = create_registry(config)
        registry.get('styles')  # Series of the styles steps
    """

    def __init__(self):
        self._entries: 'OrderedDict[str, Node]' = OrderedDict()
        self._docs = {}

    def register(self, name: str, node: Any, doc: Optional[str] = None) -> Node:
        """Register a composition under a name.

        Raises:
            InvalidTask: If the name is already taken or reserved
        """
        if name == WATCH_TASK:
            raise InvalidTask(f"Task name '{WATCH_TASK}' is reserved for watch mode")
        if name in self._entries:
            raise InvalidTask(f"Duplicate task name: {name}")
        node = as_node(node)
        self._entries[name] = node
        self._docs[name] = doc or ''
        return node

    def get(self, name: str) -> Node:
        """Return the composition registered under name.

        Raises:
            InvalidTask: If no such task exists
        """
        try:
            return self._entries[name]
        except KeyError:
            available = ', '.join(self.names())
            raise InvalidTask(f"Unknown task '{name}'. Available: {available}")

    def doc(self, name: str) -> str:
        return self._docs.get(name, '')

    def names(self) -> List[str]:
        return list(self._entries)

    def items(self) -> Iterator[Tuple[str, Node]]:
        return iter(self._entries.items())

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)


def ordered_categories(config: BuildConfig) -> List[AssetConfig]:
    """Configured categories, well-known ones first in their usual order."""
    known = [config.assets[n] for n in KNOWN_CATEGORIES if n in config.assets]
    extra = [a for n, a in config.assets.items() if n not in KNOWN_CATEGORIES]
    return known + extra


def category_node(asset: AssetConfig, config: BuildConfig) -> Series:
    """Build the series of TaskUnits for one asset category."""
    units = []
    single = len(asset.steps) == 1
    for i, step in enumerate(asset.steps):
        if 'name' in step:
            name = f"{asset.name}:{step['name']}"
        elif single:
            name = f"{asset.name}:build"
        else:
            name = f"{asset.name}:{i}"

        if 'run' in step:
            body = ShellStep(step['run'], asset, config)
            doc = step['run']
        else:
            body = CopyStep(asset, config)
            doc = f"copy {asset.name} to {asset.dest}"
        units.append(TaskUnit(name, body, doc=doc))
    return series(*units)


def create_registry(config: BuildConfig,
                    renderer: Optional[GuideRenderer] = None) -> TaskRegistry:
    """Wire the static registry from configuration."""
    registry = TaskRegistry()
    members = []

    for asset in ordered_categories(config):
        node = registry.register(asset.name, category_node(asset, config),
                                 doc=f"Build {asset.name}")
        members.append(node)

    if config.guide is not None:
        guide = registry.register(
            'guide', build_guide(config, renderer or JsonGuideRenderer()),
            doc="Build the design guide")
        registry.register('guide:dist', dist_guide(config),
                          doc="Copy the built design guide into dist")
        members.append(guide)

    registry.register(BUILD_TASK, parallel(*members), doc="Build everything")
    return registry


def resolve_expression(expr: Any, registry: TaskRegistry) -> Node:
    """Turn a composition expression from the configuration into a Node.

    Examples:
        "styles" -> registry.get("styles")
        ["fonts", "styles"] -> series(fonts, styles)
        {"parallel": ["views", "guide"]} -> parallel(views, guide)
    """
    if isinstance(expr, str):
        return registry.get(expr)
    if isinstance(expr, list):
        return series(*(resolve_expression(e, registry) for e in expr))
    (kind, members), = expr.items()
    nodes = [resolve_expression(e, registry) for e in members]
    if kind == 'parallel':
        return parallel(*nodes)
    return series(*nodes)


def build_route_table(config: BuildConfig, registry: TaskRegistry) -> RouteTable:
    """Build the process-wide route table."""
    routes = []
    if config.watch:
        for watch in config.watch:
            node = resolve_expression(watch.run, registry)
            routes.append(Route.create(watch.patterns, node, name=watch.name,
                                       notify=watch.notify,
                                       base_path=config.base_path))
        return RouteTable(routes)

    for asset in ordered_categories(config):
        node = registry.get(asset.name)
        if asset.name == 'views' and 'guide' in registry:
            # views embed guide content
            node = parallel(node, registry.get('guide'))
        routes.append(Route.create(asset.patterns, node, name=asset.name,
                                   notify=asset.notify,
                                   base_path=config.base_path))

    if config.guide is not None:
        routes.append(Route.create(config.guide.patterns, registry.get('guide'),
                                   name='guide', base_path=config.base_path))
    return RouteTable(routes)
