"""Style guide built from content fragments reloaded on every run.

Example:
    from buildwatch.guide import FragmentLoader

    guide = FragmentLoader("src/guide/*.yaml").load()
    guide['button']
"""

from .loader import FragmentLoader, FragmentAggregate, evaluate_fragment, next_generation
from .tasks import GuideRenderer, JsonGuideRenderer, build_guide, dist_guide, read_package

__all__ = [
    'FragmentLoader',
    'FragmentAggregate',
    'evaluate_fragment',
    'next_generation',
    'GuideRenderer',
    'JsonGuideRenderer',
    'build_guide',
    'dist_guide',
    'read_package',
]
