"""Project root and project file detection.

The project root is determined from multiple sources:
1. MCP Roots from client (via Context.list_roots())
2. Environment variables (MSBUILD_MCP_PROJECT_ROOT, MCP_PROJECT_ROOT)
3. Explicit --project path
4. Startup CWD (when --project-from-cwd is used)

Inside a root, the solution file is preferred over a single project file.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING
from urllib.parse import unquote, urlparse

if TYPE_CHECKING:
    from mcp.server.fastmcp import Context

logger = logging.getLogger(__name__)

PROJECT_MARKERS: tuple[str, ...] = ("*.sln", "*.vcxproj")


@dataclass
class ProjectRootConfig:
    """Configuration for project root detection."""

    startup_cwd: Path | None = None
    """CWD captured at server startup."""

    use_project_from_cwd: bool = False
    """Whether --project-from-cwd flag was provided."""

    explicit_project_path: Path | None = None
    """Explicit project path from --project flag."""

    env_var_names: tuple[str, ...] = field(
        default_factory=lambda: ("MSBUILD_MCP_PROJECT_ROOT", "MCP_PROJECT_ROOT")
    )
    """Environment variable names to check for project root."""


# Global configuration (set at startup)
_config: ProjectRootConfig = ProjectRootConfig()


def configure_project_root(
    *,
    use_project_from_cwd: bool = False,
    explicit_project_path: str | Path | None = None,
    startup_cwd: str | Path | None = None,
) -> None:
    """Configure project root detection.

    Should be called once at server startup.
    """
    global _config
    _config = ProjectRootConfig(
        use_project_from_cwd=use_project_from_cwd,
        explicit_project_path=Path(explicit_project_path) if explicit_project_path else None,
        startup_cwd=Path(startup_cwd) if startup_cwd else None,
    )
    logger.debug(
        f"Project root configured: use_cwd={use_project_from_cwd}, "
        f"explicit={explicit_project_path}, startup_cwd={startup_cwd}"
    )


def get_config() -> ProjectRootConfig:
    """Get current project root configuration."""
    return _config


def parse_file_uri(uri: str) -> Path | None:
    """Parse a file:// URI to a Path.

    Handles platform-specific path formats:
    - Unix: file:///home/user/project -> /home/user/project
    - Windows: file:///C:/Users/project -> C:\\Users\\project
    - Windows UNC: file://server/share -> \\\\server\\share

    Returns:
        Path object if parsing succeeds, None otherwise
    """
    parsed = urlparse(str(uri))
    if parsed.scheme != "file":
        logger.warning(f"Not a file URI: {uri}")
        return None

    path_str = unquote(parsed.path)

    if sys.platform == "win32":
        # file:///C:/path gives "/C:/path"
        if path_str.startswith("/") and len(path_str) > 2 and path_str[2] == ":":
            path_str = path_str[1:]
        if parsed.netloc:
            path_str = f"\\\\{parsed.netloc}{path_str}"

    path = Path(path_str)
    if not path.is_absolute():
        logger.warning(f"Parsed path is not absolute: {path}")
        return None
    return path


def find_project_root(start_dir: Path | None = None, boundary: Path | None = None) -> Path:
    """Find the C++ project root by walking up from a directory.

    Searches for project markers in this order:
    1. .sln (solution file)
    2. .vcxproj (project file)
    3. .git (git root as fallback)

    Falls back to start_dir if no marker is found.

    Args:
        start_dir: Directory to start search from. Defaults to CWD.
        boundary: Search stops at this directory when given.
    """
    current = (start_dir or Path.cwd()).resolve()
    stop = boundary.resolve() if boundary is not None else None

    def ancestors() -> Iterator[Path]:
        yield current
        if current == stop:
            return
        for parent in current.parents:
            yield parent
            if parent == stop:
                return

    for marker in PROJECT_MARKERS:
        for directory in ancestors():
            if any(directory.glob(marker)):
                return directory

    for directory in ancestors():
        if (directory / ".git").exists():  # .git can be file (worktree) or dir
            return directory

    return current


def find_project_file(path: str | Path) -> Path:
    """Pick the solution or project file for a path.

    A file is returned as is. In a directory the first solution file wins,
    then the first project file, both in name order. When nothing matches the
    path itself is returned and project file validation reports it.
    """
    candidate = Path(path)
    if not candidate.is_dir():
        return candidate

    for marker in PROJECT_MARKERS:
        matches = sorted(candidate.glob(marker))
        if matches:
            if len(matches) > 1:
                logger.info(f"Several {marker} files in {candidate}, using {matches[0].name}")
            return matches[0]
    return candidate


async def get_project_root(ctx: Context | None = None) -> Path | None:
    """Determine the project root directory from available sources.

    Priority order:
    1. MCP Roots from client (via ctx.list_roots()) - if client supports it
    2. Environment variable (MSBUILD_MCP_PROJECT_ROOT or MCP_PROJECT_ROOT)
    3. Explicit --project path (if configured)
    4. Startup CWD with marker search (if --project-from-cwd)

    Returns:
        Path to project root, or None if not determinable
    """
    if ctx is not None:
        try:
            roots = await ctx.list_roots()
        except Exception as e:
            # Client may not support roots
            logger.info(f"Could not get roots from client: {e}")
            roots = None
        if roots:
            path = parse_file_uri(str(roots[0].uri))
            if path and path.is_dir():
                logger.info(f"Using project root from MCP client: {path}")
                return path
            logger.warning(f"MCP root path invalid or not accessible: {path}")

    return get_project_root_sync()


def get_project_root_sync() -> Path | None:
    """Synchronous version of get_project_root (without MCP roots)."""
    config = get_config()

    for env_var in config.env_var_names:
        env_value = os.environ.get(env_var)
        if env_value:
            path = Path(env_value)
            if path.is_dir():
                logger.info(f"Using project root from {env_var}: {path}")
                return path
            logger.warning(f"{env_var}={env_value} - path does not exist or is not a directory")

    if config.explicit_project_path:
        if config.explicit_project_path.exists():
            return config.explicit_project_path
        logger.warning(f"Explicit project path not valid: {config.explicit_project_path}")

    if config.use_project_from_cwd and config.startup_cwd:
        return find_project_root(config.startup_cwd)

    if config.startup_cwd:
        return config.startup_cwd

    logger.warning("Could not determine project root from any source")
    return None
