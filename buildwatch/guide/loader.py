"""Fragment loader for the style guide.

The guide's content lives in a directory of fragment files. One file
whose path contains "index" provides the base mapping; every other file
becomes a key (its base name without extension) holding the file's
default value.

Fragments are read and evaluated from disk on every load. Nothing is
cached between loads: each evaluation is tagged with the file path and a
monotonically increasing generation number, so edits made while the
watcher is running show up on the next build.

Supported formats:
- .yaml, .yml, .json: the whole document is the default value
- .py: the module-level name `default`, evaluated in a fresh namespace
"""

import itertools
import runpy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional, Union

import structlog
import yaml

from buildwatch.exceptions import FragmentError
from buildwatch.routing import GlobPattern

logger = structlog.get_logger(__name__)

INDEX_TOKEN = 'index'
DATA_SUFFIXES = ('.yaml', '.yml', '.json')

_generations = itertools.count(1)


def next_generation() -> int:
    """Return a process-wide, strictly increasing load generation."""
    return next(_generations)


def evaluate_fragment(path: Path, generation: int) -> Any:
    """Read a fragment file and evaluate it anew.

    Args:
        path: Fragment file
        generation: Tag of the load this evaluation belongs to

    Returns:
        The fragment's default value

    Raises:
        FragmentError: If the file can't be read, parsed or has no default
    """
    try:
        source = path.read_text(encoding='utf-8')
    except OSError as e:
        raise FragmentError(f"Cannot read fragment {path}: {e}") from e

    suffix = path.suffix.lower()
    if suffix in DATA_SUFFIXES:
        try:
            return yaml.safe_load(source)
        except yaml.YAMLError as e:
            raise FragmentError(f"Invalid fragment {path}: {e}") from e

    if suffix == '.py':
        # run_path compiles from source, never from __pycache__
        try:
            namespace = runpy.run_path(
                str(path), run_name=f"buildwatch_fragment_{path.stem}_{generation}")
        except Exception as e:
            raise FragmentError(f"Error evaluating fragment {path}: {e}") from e
        if 'default' not in namespace:
            raise FragmentError(f"Fragment {path} does not define 'default'")
        return namespace['default']

    raise FragmentError(
        f"Unsupported fragment type '{path.suffix}' for {path}. "
        f"Supported: {', '.join(DATA_SUFFIXES + ('.py',))}")


@dataclass
class FragmentAggregate:
    """Guide content assembled from one load of the fragment directory."""

    values: Dict[str, Any] = field(default_factory=dict)
    generation: int = 0
    index_file: Optional[Path] = None
    files: List[Path] = field(default_factory=list)

    def __getitem__(self, key: str) -> Any:
        return self.values[key]

    def __contains__(self, key: str) -> bool:
        return key in self.values

    def __iter__(self) -> Iterator[str]:
        return iter(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def keys(self):
        return self.values.keys()

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.values)


class FragmentLoader:
    """Assemble a FragmentAggregate from a glob of fragment files.

    Example:
        loader = FragmentLoader("src/guide/*.yaml", base_path=project_root)
        guide = loader.load()
        guide['button']
    """

    def __init__(self, pattern: Union[str, GlobPattern], base_path: Optional[Path] = None):
        if isinstance(pattern, str):
            pattern = GlobPattern(pattern, base_path=base_path)
        self.pattern = pattern

    def split_index(self, files: List[Path]):
        """Separate the index file from the keyed fragments.

        The first file whose path (relative to the base path) contains
        "index" is the index file.

        Raises:
            FragmentError: If no file path contains "index"
        """
        for i, path in enumerate(files):
            if INDEX_TOKEN in self.pattern.relative(path):
                return path, files[:i] + files[i + 1:]
        raise FragmentError(
            f"No '{INDEX_TOKEN}' fragment among files matching '{self.pattern}'")

    def load(self) -> FragmentAggregate:
        """Read every fragment from disk and merge them.

        Raises:
            FragmentError: If the index is missing or is not a mapping, or
                a fragment can't be evaluated
        """
        generation = next_generation()
        files = self.pattern.files()
        index_file, others = self.split_index(files)

        base = evaluate_fragment(index_file, generation)
        if base is None:
            base = {}
        if not isinstance(base, dict):
            raise FragmentError(
                f"Index fragment {index_file} must define a mapping, "
                f"got {type(base).__name__}")

        values = dict(base)
        for path in others:
            values[path.stem] = evaluate_fragment(path, generation)

        logger.debug("fragments_loaded", generation=generation,
                     count=len(files), index=str(index_file))
        return FragmentAggregate(
            values=values,
            generation=generation,
            index_file=index_file,
            files=files,
        )
