"""Build policy - pre-flight validation and MSBuild command construction.

Pre-flight checks, in order:
- Packaging type is one MSBuild can produce
- External tool resolves to an existing regular file
- Project or solution file exists and has a supported extension
"""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Final

from ..errors import InvalidPackagingError, InvalidProjectFileError, ToolNotFoundError

logger = logging.getLogger(__name__)


class PhaseKind(str, Enum):
    """Supported phases."""

    BUILD = "build"
    CLEAN = "clean"
    TEST_BUILD = "test-build"
    QUALITY_CHECK = "quality-check"

    @property
    def fail_fast(self) -> bool:
        """Whether the first failing pair aborts the remaining matrix."""
        return self is not PhaseKind.QUALITY_CHECK


# Environment variable that supplies the MSBuild path when not configured
ENV_MSBUILD_PATH: Final[str] = "MSBUILD_PATH"

VALID_PACKAGING: Final[tuple[str, ...]] = ("exe", "dll", "lib")

SOLUTION_EXTENSION: Final[str] = ".sln"
PROJECT_EXTENSION: Final[str] = ".vcxproj"

CLEAN_TARGET: Final[str] = "Clean"


def validate_packaging(packaging: str | None) -> str:
    """Check the packaging type.

    Raises:
        InvalidPackagingError: If packaging is not one of VALID_PACKAGING
    """
    if packaging is None or packaging.lower() not in VALID_PACKAGING:
        raise InvalidPackagingError(
            f"Invalid packaging {packaging!r}, please set packaging to one of "
            f"{', '.join(VALID_PACKAGING)}"
        )
    return packaging.lower()


def locate_tool(
    tool: str,
    configured: str | Path | None,
    env_var: str,
    environ: Mapping[str, str] | None = None,
    executable_in: Callable[[Path], Path] | None = None,
) -> Path:
    """Locate an external tool executable.

    The configured path wins; otherwise the environment variable is used.

    Args:
        tool: Tool name for messages
        configured: Explicitly configured path, if any
        env_var: Environment variable consulted when nothing is configured
        environ: Environment to read (defaults to os.environ)
        executable_in: Maps a located path (e.g. a tool home directory) to
            the executable inside it

    Returns:
        Absolute path to the executable

    Raises:
        ToolNotFoundError: If neither source yields an existing regular file
    """
    env = os.environ if environ is None else environ
    env_value = env.get(env_var)
    candidate = configured if configured else env_value

    if candidate:
        path = Path(os.path.abspath(candidate))
        if executable_in is not None:
            path = executable_in(path)
        if path.is_file():
            logger.debug(f"Using {tool} at {path}")
            return path

    raise ToolNotFoundError(
        tool,
        str(configured) if configured else None,
        env_var,
        env_value,
    )


def validate_project_file(project_file: str | Path | None) -> Path:
    """Check that the project or solution file exists and is supported.

    Raises:
        InvalidProjectFileError: If the file is missing, not a regular file
            or not a .sln/.vcxproj file
    """
    if project_file is None or str(project_file) == "":
        raise InvalidProjectFileError("Missing project file, please check your configuration")

    path = Path(os.path.abspath(project_file))
    if not path.is_file():
        raise InvalidProjectFileError(
            f"The specified project file '{project_file}' is not valid, "
            "please check your configuration"
        )
    if path.suffix.lower() not in (SOLUTION_EXTENSION, PROJECT_EXTENSION):
        raise InvalidProjectFileError(
            f"The specified project file '{project_file}' is not a "
            f"{SOLUTION_EXTENSION} or {PROJECT_EXTENSION} file"
        )
    logger.debug(f"Project file validated at {path}")
    return path


def is_solution(project_file: Path) -> bool:
    return project_file.suffix.lower() == SOLUTION_EXTENSION


@dataclass
class BuildPolicy:
    """Validated inputs for MSBuild invocations.

    Builds the command line for one platform/configuration pair:
    parallel build hint, Configuration and Platform properties, optional
    target list and the project or solution file.
    """

    msbuild_path: Path
    project_file: Path

    def get_msbuild_command(
        self,
        platform: str,
        configuration: str,
        targets: Sequence[str] | None = None,
        extra_args: Sequence[str] | None = None,
    ) -> list[str]:
        """Build the MSBuild command line.

        Args:
            platform: Platform property value
            configuration: Configuration property value
            targets: Targets to run (MSBuild default targets when empty)
            extra_args: Additional arguments placed before the project file

        Returns:
            Complete command line as list
        """
        command = [
            str(self.msbuild_path),
            "/maxcpucount",
            f"/p:Configuration={configuration}",
            f"/p:Platform={platform}",
        ]
        target_list = [t for t in (targets or []) if t]
        if target_list:
            command.append(f"/t:{';'.join(target_list)}")
        command.extend(extra_args or [])
        command.append(str(self.project_file))
        return command

    def targets_for(self, phase: PhaseKind, extra_targets: Sequence[str] | None) -> list[str]:
        """Targets for a build phase."""
        targets = list(extra_targets or [])
        if phase is PhaseKind.CLEAN and CLEAN_TARGET not in targets:
            targets.insert(0, CLEAN_TARGET)
        return targets
