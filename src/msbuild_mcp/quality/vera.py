"""Vera++ coding style checker adapter.

Vera++ reads the files to check from standard input, one path per line,
and writes a checkstyle XML report to standard output.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Final

from ..build.policy import locate_tool
from ..parser import VCProject
from .base import ReportStream, executable_name, interpret_exit_code, report_file, report_glob

ENV_VERA_HOME: Final[str] = "VERA_HOME"

# Directory created next to each project for Vera++ reports
REPORT_DIRECTORY: Final[str] = "checkstyle-reports"


def vera_executable(vera_home: Path) -> Path:
    """Path of the vera++ executable inside a Vera++ installation."""
    return (vera_home / "bin" / executable_name("vera++")).absolute()


def _listed_path(path: Path, base_directory: Path) -> str:
    try:
        return os.path.relpath(path, base_directory)
    except ValueError:
        # Different drives on Windows
        return str(path)


@dataclass
class VeraTool:
    """Runs Vera++ over a project's sources and headers."""

    vera_home: Path | None = None
    profile: str = "full"
    report_name: str = "vera-report"
    report_directory: Path | None = None

    name: ClassVar[str] = "vera"
    report_stream: ClassVar[ReportStream | None] = "stdout"

    def locate(self, environ: Mapping[str, str] | None = None) -> Path:
        executable = locate_tool(
            "Vera++", self.vera_home, ENV_VERA_HOME, environ, executable_in=vera_executable
        )
        self.vera_home = executable.parent.parent
        return executable

    def applies_to(self, project: VCProject) -> bool:
        return bool(project.source_files or project.header_files)

    def build_arguments(self, project: VCProject) -> list[str]:
        root = self.vera_home / "lib" / "vera++" if self.vera_home else Path("lib", "vera++")
        return [
            "--root",
            str(root),
            "--profile",
            self.profile,
            "--checkstyle-report",
            "-",
            "--warning",
            "--quiet",
        ]

    def report_path_for(self, project: VCProject) -> Path:
        return report_file(project, self.report_directory, REPORT_DIRECTORY, self.report_name)

    def report_pattern(self, platform: str, configuration: str) -> str:
        return report_glob(
            self.report_directory, REPORT_DIRECTORY, self.report_name, platform, configuration
        )

    def stdin_for(self, project: VCProject) -> str | None:
        files = [*project.source_files, *project.header_files]
        return "".join(_listed_path(path, project.base_directory) + "\n" for path in files)

    def working_directory_for(self, project: VCProject) -> Path:
        # stdin paths are relative to the base directory
        return project.base_directory

    def interpret_result(self, exit_code: int) -> bool:
        return interpret_exit_code(self.name, exit_code)
