"""CppCheck static analyzer adapter."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import ClassVar, Final

from ..build.policy import locate_tool
from ..errors import ToolExecutionError
from ..parser import VCProject
from .base import ReportStream, report_file, report_glob

ENV_CPPCHECK_PATH: Final[str] = "CPPCHECK_PATH"

REPORT_DIRECTORY: Final[str] = "cppcheck-reports"

# Passed as --error-exitcode so that findings are told apart from success
VIOLATIONS_EXIT_CODE: Final[int] = 1


@dataclass
class CppCheckTool:
    """Runs CppCheck over a project's sources with its includes and defines.

    CppCheck writes its XML report to standard error.
    """

    cppcheck_path: Path | None = None
    enable: list[str] = field(default_factory=list)
    extra_defines: list[str] = field(default_factory=list)
    report_name: str = "cppcheck-report"
    report_directory: Path | None = None

    name: ClassVar[str] = "cppcheck"
    report_stream: ClassVar[ReportStream | None] = "stderr"

    def locate(self, environ: Mapping[str, str] | None = None) -> Path:
        executable = locate_tool("CppCheck", self.cppcheck_path, ENV_CPPCHECK_PATH, environ)
        self.cppcheck_path = executable
        return executable

    def applies_to(self, project: VCProject) -> bool:
        return bool(project.source_files)

    def build_arguments(self, project: VCProject) -> list[str]:
        arguments = [
            "--xml",
            "--xml-version=2",
            "--quiet",
            f"--error-exitcode={VIOLATIONS_EXIT_CODE}",
        ]
        if self.enable:
            arguments.append(f"--enable={','.join(self.enable)}")
        for include_directory in project.include_directories:
            arguments.extend(["-I", str(include_directory)])
        for define in [*project.preprocessor_definitions, *self.extra_defines]:
            arguments.extend(["-D", define])
        arguments.extend(str(source) for source in project.source_files)
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
        """Only the configured error exit code means findings.

        Raises:
            ToolExecutionError: For any other non-zero exit code
        """
        if exit_code == 0:
            return True
        if exit_code == VIOLATIONS_EXIT_CODE:
            return False
        raise ToolExecutionError(self.name, exit_code)
