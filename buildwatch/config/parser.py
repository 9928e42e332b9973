"""Parsing and validation of buildwatch.yaml build configurations.

The parsed BuildConfig is constructed once and passed explicitly to the
registry, every task constructor and the route table builder.

Example buildwatch.yaml:
    config:
      build: build
      dist: dist
      reload: "browser-sync reload"

    src:
      styles:
        patterns: "src/styles/**/*.scss"
        dest: styles
        steps:
          - run: "sass {src} {dest}/main.css"
      fonts: "src/fonts/**/*"

    guide:
      patterns: "src/guide/*.yaml"

    watch:
      - patterns: "src/views/**/*.pug"
        run: {parallel: [views, guide]}
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

from buildwatch.exceptions import ConfigError

# asset categories, in the order their tasks are registered
KNOWN_CATEGORIES = ('styles', 'fonts', 'symbols', 'images', 'libs', 'scripts', 'views')

DEFAULT_CONFIG_FILE = 'buildwatch.yaml'

# categories whose output is injected into the page without a reload
NO_RELOAD_CATEGORIES = ('styles',)


@dataclass(frozen=True)
class AssetConfig:
    """Sources, output directory and build steps of one asset category."""

    name: str
    patterns: Tuple[str, ...]
    dest: str
    steps: Tuple[Dict[str, Any], ...] = ({'copy': True},)
    notify: bool = True
    """Whether the default watch route for this category reloads clients
    (off by default for styles)."""


@dataclass(frozen=True)
class GuideConfig:
    """Location of the style-guide fragments and their build output."""

    patterns: str
    dest: str = 'guide'


@dataclass(frozen=True)
class WatchConfig:
    """An explicit watch route: patterns bound to a composition expression."""

    patterns: Tuple[str, ...]
    run: Any
    name: Optional[str] = None
    notify: bool = True


@dataclass(frozen=True)
class BuildConfig:
    """Validated build configuration."""

    base_path: Path
    build: str = 'build'
    dist: str = 'dist'
    package: str = 'package.json'
    reload: Optional[str] = None
    assets: Dict[str, AssetConfig] = field(default_factory=dict)
    guide: Optional[GuideConfig] = None
    watch: Tuple[WatchConfig, ...] = ()
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)
    """The document as parsed, handed to the guide renderer."""

    @property
    def build_dir(self) -> Path:
        return self.base_path / self.build

    @property
    def dist_dir(self) -> Path:
        return self.base_path / self.dist

    @property
    def package_path(self) -> Path:
        return self.base_path / self.package

    def asset(self, name: str) -> AssetConfig:
        """Return the AssetConfig for a category.

        Raises:
            KeyError: If the category is not configured
        """
        return self.assets[name]


def parse_config_file(path: Union[str, Path]) -> BuildConfig:
    """Parse and validate a buildwatch.yaml file.

    Relative `config.base_path` values are resolved against the
    directory containing the file.

    Raises:
        ConfigError: If the file is invalid or missing required fields
        FileNotFoundError: If the file doesn't exist
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data = _load(f)

    return _validate_config_data(data, path.parent.resolve())


def parse_config_string(content: str, base_path: Union[str, Path, None] = None) -> BuildConfig:
    """Parse configuration from a string.

    Args:
        content: YAML content as string
        base_path: Directory relative paths are resolved against
                   (defaults to the current working directory)
    """
    root = Path(base_path) if base_path is not None else Path.cwd()
    return _validate_config_data(_load(content), root.resolve())


def _load(stream) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(stream)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML syntax: {e}")

    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise ConfigError("YAML root must be a mapping")
    return data


def _validate_config_data(data: Dict[str, Any], root: Path) -> BuildConfig:
    """Validate parsed YAML data structure.

    Raises:
        ConfigError: If validation fails
    """
    config = data.get('config', {}) or {}
    if not isinstance(config, dict):
        raise ConfigError("'config' must be a mapping")

    for key in ('base_path', 'build', 'dist', 'package', 'reload'):
        if key in config and config[key] is not None and not isinstance(config[key], str):
            raise ConfigError(f"'config.{key}' must be a string")

    base_path = (root / (config.get('base_path') or '.')).resolve()

    sources = data.get('src', {}) or {}
    if not isinstance(sources, dict):
        raise ConfigError("'src' must be a mapping of category name to sources")
    assets = {name: _validate_asset(name, spec) for name, spec in sources.items()}

    guide = None
    if data.get('guide') is not None:
        guide = _validate_guide(data['guide'])

    watch = data.get('watch', []) or []
    if not isinstance(watch, list):
        raise ConfigError("'watch' must be a list")
    watch_routes = tuple(_validate_watch(spec, i) for i, spec in enumerate(watch))

    return BuildConfig(
        base_path=base_path,
        build=config.get('build', 'build'),
        dist=config.get('dist', 'dist'),
        package=config.get('package', 'package.json'),
        reload=config.get('reload'),
        assets=assets,
        guide=guide,
        watch=watch_routes,
        raw=data,
    )


def _validate_patterns(spec: Any, where: str) -> Tuple[str, ...]:
    """Normalize one pattern or a list of patterns."""
    if isinstance(spec, str):
        return (spec,)
    if isinstance(spec, list) and spec and all(isinstance(p, str) for p in spec):
        return tuple(spec)
    raise ConfigError(f"{where}: 'patterns' must be a string or a non-empty list of strings")


def _validate_asset(name: str, spec: Any) -> AssetConfig:
    """Validate one asset category.

    Short form is a pattern string (or list): sources copied to <build>/<name>.
    """
    if not isinstance(name, str):
        raise ConfigError(f"Asset category name must be a string, got {name!r}")

    if isinstance(spec, (str, list)):
        return AssetConfig(name=name, patterns=_validate_patterns(spec, f"src.{name}"),
                           dest=name, notify=name not in NO_RELOAD_CATEGORIES)

    if not isinstance(spec, dict):
        raise ConfigError(f"src.{name} must be a string, list or mapping")

    if 'patterns' not in spec:
        raise ConfigError(f"src.{name} missing required field 'patterns'")
    patterns = _validate_patterns(spec['patterns'], f"src.{name}")

    dest = spec.get('dest', name)
    if not isinstance(dest, str):
        raise ConfigError(f"src.{name}: 'dest' must be a string")

    steps = spec.get('steps', [{'copy': True}])
    if not isinstance(steps, list):
        raise ConfigError(f"src.{name}: 'steps' must be a list")
    validated_steps = tuple(_validate_step(step, name, i) for i, step in enumerate(steps))

    notify = spec.get('notify', name not in NO_RELOAD_CATEGORIES)
    if not isinstance(notify, bool):
        raise ConfigError(f"src.{name}: 'notify' must be a boolean")

    return AssetConfig(name=name, patterns=patterns, dest=dest,
                       steps=validated_steps, notify=notify)


def _validate_step(step: Any, category: str, index: int) -> Dict[str, Any]:
    """Validate a build step: {run: "<command>"} or {copy: true}."""
    if isinstance(step, str):
        return {'run': step}
    if not isinstance(step, dict):
        raise ConfigError(f"src.{category} step {index} must be a string or mapping")

    if 'run' in step:
        if not isinstance(step['run'], str):
            raise ConfigError(f"src.{category} step {index}: 'run' must be a string")
    elif step.get('copy') is not True:
        raise ConfigError(
            f"src.{category} step {index} must define 'run' or 'copy: true'")

    if 'name' in step and not isinstance(step['name'], str):
        raise ConfigError(f"src.{category} step {index}: 'name' must be a string")
    return step


def _validate_guide(spec: Any) -> GuideConfig:
    if isinstance(spec, str):
        return GuideConfig(patterns=spec)
    if not isinstance(spec, dict) or not isinstance(spec.get('patterns'), str):
        raise ConfigError("'guide' must be a pattern string or a mapping with 'patterns'")
    dest = spec.get('dest', 'guide')
    if not isinstance(dest, str):
        raise ConfigError("guide: 'dest' must be a string")
    return GuideConfig(patterns=spec['patterns'], dest=dest)


def _validate_watch(spec: Any, index: int) -> WatchConfig:
    if not isinstance(spec, dict):
        raise ConfigError(f"Watch route {index} must be a mapping")

    if 'patterns' not in spec:
        raise ConfigError(f"Watch route {index} missing required field 'patterns'")
    patterns = _validate_patterns(spec['patterns'], f"Watch route {index}")

    if 'run' not in spec:
        raise ConfigError(f"Watch route {index} missing required field 'run'")
    validate_expression(spec['run'], f"Watch route {index}")

    name = spec.get('name')
    if name is not None and not isinstance(name, str):
        raise ConfigError(f"Watch route {index}: 'name' must be a string")

    notify = spec.get('notify', True)
    if not isinstance(notify, bool):
        raise ConfigError(f"Watch route {index}: 'notify' must be a boolean")

    return WatchConfig(patterns=patterns, run=spec['run'], name=name, notify=notify)


def validate_expression(expr: Any, where: str) -> None:
    """Validate a composition expression.

    An expression is a task name, a list (shorthand for series), or a
    single-key mapping {series: [...]} / {parallel: [...]}.
    """
    if isinstance(expr, str):
        return
    if isinstance(expr, list):
        for item in expr:
            validate_expression(item, where)
        return
    if isinstance(expr, dict) and len(expr) == 1:
        (kind, members), = expr.items()
        if kind not in ('series', 'parallel'):
            raise ConfigError(
                f"{where}: unknown combinator '{kind}'. Valid: series, parallel")
        if not isinstance(members, list):
            raise ConfigError(f"{where}: '{kind}' members must be a list")
        for item in members:
            validate_expression(item, where)
        return
    raise ConfigError(
        f"{where}: composition must be a task name, a list or "
        f"{{series: [...]}} / {{parallel: [...]}}, got {expr!r}")
