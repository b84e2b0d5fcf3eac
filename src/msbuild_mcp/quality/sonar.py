"""Sonar C++ analysis configuration emitter.

Writes one properties file per platform/configuration pair describing the
parsed projects as Sonar modules, with the report locations of the quality
tools.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final

from ..errors import ReportWriteError
from ..parser import VCProject
from .base import QualityTool
from .cppcheck import CppCheckTool
from .cxxtest import CxxTestGenTool
from .vera import VeraTool

logger = logging.getLogger(__name__)

ENV_SYSTEM_INCLUDE: Final[str] = "INCLUDE"

CONFIG_FILE_PREFIX: Final[str] = "sonar-configuration"

# Report path key of each tool; cxxtest reports are XUnit files
REPORT_PATH_KEYS: Final[dict[str, str]] = {
    "cppcheck": "sonar.cxx.cppcheck.reportPath",
    "vera": "sonar.cxx.vera.reportPath",
    "cxxtest": "sonar.cxx.xunit.reportPath",
}


def system_include_directories(environ: Mapping[str, str] | None = None) -> list[Path]:
    """Include directories of the compiler environment (INCLUDE, ';'-separated)."""
    env = os.environ if environ is None else environ
    value = env.get(ENV_SYSTEM_INCLUDE)
    if not value:
        return []
    return [Path(entry) for entry in value.split(";") if entry]


def _default_report_tools() -> list[QualityTool]:
    return [CppCheckTool(), VeraTool(), CxxTestGenTool()]


def _as_posix(path: Path | str) -> str:
    return str(path).replace("\\", "/")


@dataclass
class SonarConfigEmitter:
    """Renders and writes Sonar properties for the projects of one pair."""

    output_directory: Path
    project_key: str
    project_name: str
    project_version: str = "1.0"
    root_directory: Path | None = None
    extra_defines: list[str] = field(default_factory=list)
    exclusions: list[str] = field(default_factory=list)
    system_includes: list[Path] = field(default_factory=list)
    report_tools: list[QualityTool] = field(default_factory=_default_report_tools)

    def config_path_for(self, platform: str, configuration: str) -> Path:
        return Path(os.path.abspath(self.output_directory)) / (
            f"{CONFIG_FILE_PREFIX}-{platform}-{configuration}.properties"
        )

    def _base_dir(self, project: VCProject) -> str:
        if self.root_directory is None:
            return _as_posix(project.base_directory)
        try:
            relative = os.path.relpath(project.base_directory, self.root_directory)
        except ValueError:
            # Different drives on Windows
            return _as_posix(project.base_directory)
        return _as_posix(relative)

    def _module_lines(self, project: VCProject) -> list[str]:
        include_directories = [
            _as_posix(path) for path in [*project.include_directories, *self.system_includes]
        ]
        defines = [*project.preprocessor_definitions, *self.extra_defines]

        lines = [f"{project.name}.sonar.projectBaseDir={self._base_dir(project)}"]
        if include_directories:
            lines.append(
                f"{project.name}.sonar.cxx.include_directories={','.join(include_directories)}"
            )
        if defines:
            lines.append(f"{project.name}.sonar.cxx.defines={','.join(defines)}")
        if self.exclusions:
            lines.append(f"{project.name}.sonar.exclusions={','.join(self.exclusions)}")
        return lines

    def render(self, projects: Sequence[VCProject], platform: str, configuration: str) -> str:
        """Render the properties text for a pair.

        Lists keep their declared order and duplicates; empty lists are left
        out. Every line ends with a newline.
        """
        lines = [
            f"sonar.projectKey={self.project_key}",
            f"sonar.projectName={self.project_name}",
            f"sonar.projectVersion={self.project_version}",
            "sonar.sources=.",
            "sonar.language=c++",
            f"sonar.modules={','.join(project.name for project in projects)}",
        ]
        for tool in self.report_tools:
            key = REPORT_PATH_KEYS.get(tool.name)
            if key is not None:
                lines.append(f"{key}={tool.report_pattern(platform, configuration)}")

        for project in projects:
            lines.extend(self._module_lines(project))

        return "".join(f"{line}\n" for line in lines)

    def write(self, projects: Sequence[VCProject], platform: str, configuration: str) -> Path:
        """Write the properties file for a pair.

        Raises:
            ReportWriteError: If the file cannot be created, written or closed
        """
        path = self.config_path_for(platform, configuration)
        content = self.render(projects, platform, configuration)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8", newline="\n") as stream:
                stream.write(content)
        except OSError as e:
            raise ReportWriteError(str(path), str(e)) from e

        logger.info(f"Sonar configuration written to {path}")
        return path
