"""Glob patterns for selecting source files.

Pattern syntax:
- * - any characters except '/'
- ** - any number of directories (including none)
- ? - a single character except '/'
- [abc], [!abc] - character classes
- {a,b} - alternation

Patterns are relative to a base path. Matching happens on the
'/'-separated path relative to that base.

Example:
    pattern = GlobPattern("src/styles/**/*.scss", base_path=Path("."))
    pattern.matches("src/styles/components/button.scss")  # True
    pattern.static_root  # Path("src/styles") under base_path
    pattern.files()  # sorted existing files
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

WILDCARD_CHARS = '*?[{'


def glob_to_regex(pattern: str) -> str:
    """Translate a glob pattern into an (unanchored) regex string."""
    parts = []
    i = 0
    n = len(pattern)
    while i < n:
        char = pattern[i]
        if pattern.startswith('**/', i):
            parts.append('(?:.*/)?')
            i += 3
        elif pattern.startswith('**', i):
            parts.append('.*')
            i += 2
        elif char == '*':
            parts.append('[^/]*')
            i += 1
        elif char == '?':
            parts.append('[^/]')
            i += 1
        elif char == '[':
            end = pattern.find(']', i + 1)
            if end == -1:
                parts.append(re.escape(char))
                i += 1
                continue
            body = pattern[i + 1:end]
            if body.startswith('!'):
                body = '^' + body[1:]
            parts.append('[%s]' % body.replace('\\', '\\\\'))
            i = end + 1
        elif char == '{':
            end = pattern.find('}', i + 1)
            if end == -1:
                parts.append(re.escape(char))
                i += 1
                continue
            choices = pattern[i + 1:end].split(',')
            parts.append('(?:%s)' % '|'.join(glob_to_regex(c) for c in choices))
            i = end + 1
        else:
            parts.append(re.escape(char))
            i += 1
    return ''.join(parts)


def extract_static_root(pattern: str) -> str:
    """Extract the directory portion before any wildcard.

    Examples:
        "src/styles/**/*.scss" -> "src/styles"
        "src/views/*.pug" -> "src/views"
        "*.js" -> ""
        "config/site.yaml" -> "config"
    """
    segments = pattern.split('/')
    static = []
    for segment in segments[:-1]:
        if any(c in segment for c in WILDCARD_CHARS):
            break
        static.append(segment)
    return '/'.join(static)


@dataclass
class GlobPattern:
    """A compiled glob pattern anchored at a base path."""

    pattern: str
    base_path: Optional[Path] = None

    _regex: Optional[re.Pattern] = field(init=False, repr=False, default=None)

    def __post_init__(self):
        if self.base_path is None:
            self.base_path = Path.cwd()
        self.base_path = Path(self.base_path).resolve()
        pattern = self.pattern
        if pattern.startswith('./'):
            pattern = pattern[2:]
        self._regex = re.compile('^' + glob_to_regex(pattern) + '$')

    @property
    def static_root(self) -> Path:
        """Deepest directory that contains every possible match."""
        relative = extract_static_root(self.pattern)
        if relative in ('', '.'):
            return self.base_path
        return self.base_path / relative

    def relative(self, path: Union[str, Path]) -> Optional[str]:
        """Return path relative to base_path ('/'-separated), or None
        if the path is outside base_path."""
        path = Path(path)
        if not path.is_absolute():
            path = self.base_path / path
        try:
            return path.resolve().relative_to(self.base_path).as_posix()
        except ValueError:
            return None

    def matches(self, path: Union[str, Path]) -> bool:
        """Check if a path (absolute or relative to base_path) matches."""
        relative = self.relative(path)
        if relative is None:
            return False
        return bool(self._regex.match(relative))

    def files(self) -> List[Path]:
        """Return existing files matching the pattern, sorted by path."""
        found = []
        for dirpath, _dirnames, filenames in os.walk(self.static_root):
            for filename in filenames:
                candidate = Path(dirpath) / filename
                if self.matches(candidate):
                    found.append(candidate)
        return sorted(found)

    def __str__(self) -> str:
        return self.pattern
