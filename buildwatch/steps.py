"""Build step bodies for asset categories.

Two kinds of steps exist, both configured per category in buildwatch.yaml:

- ShellStep: run a shell command with variable injection
- CopyStep: copy matched sources into the category's output directory

Variables are injected in TWO ways:
1. Format string substitution: {src}, {dest}, {build}, {dist}, {base}, {name}
2. Environment variables: BUILDWATCH_SRC, BUILDWATCH_DEST, ...

Example:
    template = "sass {src} {dest}/main.css"

    With src=src/styles/main.scss and dest=/project/build/styles:
    - Command: sass src/styles/main.scss /project/build/styles/main.css
    - Env: BUILDWATCH_SRC=src/styles/main.scss, BUILDWATCH_DEST=/project/build/styles
"""

import asyncio
import os
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List

import structlog

from buildwatch.config import AssetConfig, BuildConfig
from buildwatch.routing import GlobPattern

logger = structlog.get_logger(__name__)


def source_files(asset: AssetConfig, config: BuildConfig) -> List[Path]:
    """Resolve an asset category's patterns to existing files (sorted, unique)."""
    files: List[Path] = []
    for pattern in asset.patterns:
        for path in GlobPattern(pattern, base_path=config.base_path).files():
            if path not in files:
                files.append(path)
    return files


def output_dir(asset: AssetConfig, config: BuildConfig) -> Path:
    """Directory an asset category builds into."""
    return config.build_dir / asset.dest


@dataclass
class ShellStep:
    """Shell command step with variable injection."""

    template: str
    asset: AssetConfig
    config: BuildConfig

    def _build_substitutions(self) -> Dict[str, str]:
        """Build the substitution dictionary for format strings and env vars."""
        files = source_files(self.asset, self.config)
        relative = [str(f.relative_to(self.config.base_path)) for f in files]
        return {
            'src': " ".join(shlex.quote(f) for f in relative),
            'dest': str(output_dir(self.asset, self.config)),
            'build': str(self.config.build_dir),
            'dist': str(self.config.dist_dir),
            'base': str(self.config.base_path),
            'name': self.asset.name,
        }

    def _format_command(self, subs: Dict[str, str]) -> str:
        try:
            return self.template.format(**subs)
        except KeyError as e:
            available = ', '.join(sorted(subs.keys()))
            raise KeyError(
                f"Unknown variable {e} in step template. "
                f"Available variables: {available}"
            )

    def _build_environment(self, subs: Dict[str, str]) -> Dict[str, str]:
        env = os.environ.copy()
        for key, value in subs.items():
            env[f'BUILDWATCH_{key.upper()}'] = str(value)
        return env

    async def __call__(self) -> bool:
        """Execute the shell command.

        Raises:
            subprocess.CalledProcessError: If the command fails
        """
        subs = self._build_substitutions()
        cmd = self._format_command(subs)
        env = self._build_environment(subs)
        output_dir(self.asset, self.config).mkdir(parents=True, exist_ok=True)

        proc = await asyncio.create_subprocess_shell(
            cmd,
            cwd=str(self.config.base_path),
            env=env,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            raise subprocess.CalledProcessError(
                proc.returncode,
                cmd,
                stdout.decode(errors='replace'),
                stderr.decode(errors='replace'),
            )
        logger.debug("step_finished", category=self.asset.name, command=cmd)
        return True

    def __repr__(self) -> str:
        return f"ShellStep({self.template!r})"


@dataclass
class CopyStep:
    """Copy an asset category's sources into its output directory.

    Each file keeps its path relative to the static root of the pattern
    that matched it: with pattern "src/fonts/**/*", the file
    "src/fonts/open-sans/regular.woff2" lands in "<dest>/open-sans/regular.woff2".
    """

    asset: AssetConfig
    config: BuildConfig

    def __call__(self) -> bool:
        dest = output_dir(self.asset, self.config)
        copied = 0
        seen = set()
        for pattern_str in self.asset.patterns:
            pattern = GlobPattern(pattern_str, base_path=self.config.base_path)
            for path in pattern.files():
                if path in seen:
                    continue
                seen.add(path)
                target = dest / path.relative_to(pattern.static_root)
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(path, target)
                copied += 1
        logger.debug("files_copied", category=self.asset.name, count=copied,
                     dest=str(dest))
        return True

    def __repr__(self) -> str:
        return f"CopyStep({self.asset.name!r})"


def copy_tree(source: Path, destination: Path) -> int:
    """Copy every file below source into destination.

    Returns:
        Number of files copied (0 if source does not exist)
    """
    if not source.is_dir():
        return 0
    copied = 0
    for path in sorted(source.rglob('*')):
        if path.is_file():
            target = destination / path.relative_to(source)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(path, target)
            copied += 1
    return copied
