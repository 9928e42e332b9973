"""Style-guide task units: guide:build and guide:dist."""

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

import structlog

from buildwatch.config import BuildConfig
from buildwatch.exceptions import ConfigError
from buildwatch.steps import copy_tree
from buildwatch.task import TaskUnit
from .loader import FragmentLoader

logger = structlog.get_logger(__name__)


class GuideRenderer(ABC):
    """Turns guide content into files below a destination directory."""

    @abstractmethod
    def render(
        self,
        package: Dict[str, Any],
        guide: Dict[str, Any],
        config: BuildConfig,
        destination: Path,
    ) -> None:
        pass


class JsonGuideRenderer(GuideRenderer):
    """Write the guide content as <destination>/<guide.dest>/guide.json.

    Keys are sorted so unchanged fragments produce identical output.
    """

    filename = 'guide.json'

    def render(self, package, guide, config, destination):
        dest = config.guide.dest if config.guide else 'guide'
        target = Path(destination) / dest / self.filename
        target.parent.mkdir(parents=True, exist_ok=True)
        document = {
            'name': package.get('name'),
            'version': package.get('version'),
            'guide': guide,
        }
        target.write_text(
            json.dumps(document, indent=2, sort_keys=True, default=str) + '\n',
            encoding='utf-8')


def read_package(path: Path) -> Dict[str, Any]:
    """Read the package manifest; an absent manifest is an empty mapping."""
    if not path.exists():
        return {}
    with open(path, encoding='utf-8') as f:
        return json.load(f)


def build_guide(config: BuildConfig, renderer: GuideRenderer) -> TaskUnit:
    """Create the guide:build unit.

    Every run reloads all fragments from disk. A renderer failure is
    logged and the unit still completes successfully; a fragment that
    can't be loaded fails the unit.
    """
    if config.guide is None:
        raise ConfigError("guide:build needs a 'guide' section in the configuration")
    loader = FragmentLoader(config.guide.patterns, base_path=config.base_path)

    def build():
        guide = loader.load()
        package = read_package(config.package_path)
        try:
            renderer.render(
                package=package,
                guide=guide.to_dict(),
                config=config,
                destination=config.build_dir,
            )
        except Exception:
            logger.exception("guide_render_skipped",
                             message="Skipping the generation of the Design Guide")
        else:
            logger.info("guide_built", generation=guide.generation,
                        fragments=len(guide.files))
        return True

    return TaskUnit('guide:build', build, doc="Build the design guide from its fragments")


def dist_guide(config: BuildConfig) -> TaskUnit:
    """Create the guide:dist unit copying the built guide into dist."""
    dest = config.guide.dest if config.guide else 'guide'

    def dist():
        copied = copy_tree(config.build_dir / dest, config.dist_dir / dest)
        logger.info("guide_dist", files=copied)
        return True

    return TaskUnit('guide:dist', dist, doc="Copy the built design guide into dist")
