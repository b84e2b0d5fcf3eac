"""Shared contract of quality tool adapters.

An adapter turns a parsed VCProject into a command line, a report location
and an interpretation of the exit code. Adapters never spawn processes; the
orchestrator combines them with ProcessRunner.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Final, Literal, Protocol, runtime_checkable

from ..errors import ToolExecutionError
from ..parser import VCProject

ReportStream = Literal["stdout", "stderr"]

# Exit codes that mean the tool itself could not run (shell conventions)
LAUNCH_FAILURE_EXIT_CODES: Final[frozenset[int]] = frozenset({126, 127})

# Windows reports crashes as NTSTATUS error values (0xC0000005 and friends)
NTSTATUS_ERROR_BASE: Final[int] = 0x80000000


def is_launch_failure(exit_code: int) -> bool:
    """Whether an exit code means the tool crashed or never ran."""
    return (
        exit_code < 0
        or exit_code in LAUNCH_FAILURE_EXIT_CODES
        or exit_code >= NTSTATUS_ERROR_BASE
    )


@runtime_checkable
class QualityTool(Protocol):
    """Capability interface implemented by every quality tool adapter."""

    name: str
    report_stream: ReportStream | None

    def locate(self, environ: Mapping[str, str] | None = None) -> Path:
        """Resolve the tool executable, raising ToolNotFoundError."""
        ...

    def applies_to(self, project: VCProject) -> bool:
        """Whether the tool has anything to do for the project."""
        ...

    def build_arguments(self, project: VCProject) -> list[str]:
        """Ordered command-line arguments for the project."""
        ...

    def report_path_for(self, project: VCProject) -> Path:
        """Report file written for the project."""
        ...

    def report_pattern(self, platform: str, configuration: str) -> str:
        """Glob matching every report of the tool for a pair."""
        ...

    def stdin_for(self, project: VCProject) -> str | None:
        """Text fed to the tool's standard input, if any."""
        ...

    def working_directory_for(self, project: VCProject) -> Path:
        """Directory the tool runs in."""
        ...

    def interpret_result(self, exit_code: int) -> bool:
        """True when no violations were found."""
        ...


def interpret_exit_code(tool: str, exit_code: int) -> bool:
    """Map an exit code to passed/violations.

    Zero means no violations, other positive codes mean violations were found.
    Negative codes (killed by a signal), the shell's "cannot execute" and
    "not found" codes and Windows NTSTATUS error codes are launch-level
    failures.

    Raises:
        ToolExecutionError: For launch-level failures
    """
    if exit_code == 0:
        return True
    if is_launch_failure(exit_code):
        raise ToolExecutionError(tool, exit_code)
    return False


def report_file(
    project: VCProject, report_directory: Path | None, directory_name: str, report_name: str
) -> Path:
    """Report path: <root>/<report name>-<project>-<platform>-<configuration>.xml.

    The root defaults to a ``directory_name`` folder next to the project file.
    """
    root = report_directory or project.project_directory / directory_name
    return Path(os.path.abspath(root)) / f"{report_name}-{project}.xml"


def report_glob(
    report_directory: Path | None,
    directory_name: str,
    report_name: str,
    platform: str,
    configuration: str,
) -> str:
    """Glob matching report_file() results of every project of a pair."""
    root = report_directory.as_posix() if report_directory else f"**/{directory_name}"
    return f"{root}/{report_name}-*-{platform}-{configuration}.xml"


def executable_name(name: str) -> str:
    return f"{name}.exe" if os.name == "nt" else name
