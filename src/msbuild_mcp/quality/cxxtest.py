"""CxxTest test runner generator adapter.

cxxtestgen turns the test suite headers of a project into a test runner
source file. The generated runner writes an XUnit report when executed.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import ClassVar, Final

from ..build.policy import locate_tool
from ..parser import VCProject
from .base import ReportStream, interpret_exit_code, report_file, report_glob

ENV_CXXTEST_HOME: Final[str] = "CXXTEST_HOME"

REPORT_DIRECTORY: Final[str] = "cxxtest-reports"

CXXTEST_SKIP_MESSAGE: Final[str] = "Skipping CxxTest runner generation"


def cxxtestgen_executable(cxxtest_home: Path) -> Path:
    """Path of the cxxtestgen script inside a CxxTest installation."""
    return (cxxtest_home / "bin" / "cxxtestgen").absolute()


@dataclass
class CxxTestGenTool:
    """Generates a CxxTest runner for each project with test suite headers."""

    cxxtest_home: Path | None = None
    test_header_pattern: str = "Test*.h"
    runner_name: str = "cxxtest-runner"
    template_file: Path | None = None
    report_name: str = "cxxtest-report"
    report_directory: Path | None = None

    name: ClassVar[str] = "cxxtest"
    # Generator output is only logged; the report comes from the runner
    report_stream: ClassVar[ReportStream | None] = None

    def locate(self, environ: Mapping[str, str] | None = None) -> Path:
        executable = locate_tool(
            "CxxTestGen",
            self.cxxtest_home,
            ENV_CXXTEST_HOME,
            environ,
            executable_in=cxxtestgen_executable,
        )
        self.cxxtest_home = executable.parent.parent
        return executable

    def test_headers(self, project: VCProject) -> list[Path]:
        return [
            header
            for header in project.header_files
            if fnmatch.fnmatch(header.name, self.test_header_pattern)
        ]

    def runner_path_for(self, project: VCProject) -> Path:
        return project.project_directory / f"{self.runner_name}.cpp"

    def applies_to(self, project: VCProject) -> bool:
        return bool(self.test_headers(project))

    def build_arguments(self, project: VCProject) -> list[str]:
        arguments = [
            "--runner=XUnitPrinter",
            f"--xunit-file={self.report_path_for(project)}",
        ]
        if self.template_file is not None:
            arguments.append(f"--template={self.template_file}")
        arguments.extend(["-o", str(self.runner_path_for(project))])
        arguments.extend(str(header) for header in self.test_headers(project))
        return arguments

    def report_path_for(self, project: VCProject) -> Path:
        return report_file(project, self.report_directory, REPORT_DIRECTORY, self.report_name)

    def report_pattern(self, platform: str, configuration: str) -> str:
        return report_glob(
            self.report_directory, REPORT_DIRECTORY, self.report_name, platform, configuration
        )

    def stdin_for(self, project: VCProject) -> str | None:
        return None

    def working_directory_for(self, project: VCProject) -> Path:
        return project.project_directory

    def interpret_result(self, exit_code: int) -> bool:
        return interpret_exit_code(self.name, exit_code)
