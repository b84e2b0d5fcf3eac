"""Exception hierarchy for msbuild-mcp.

ConfigurationError - bad packaging, tool path, project file or matrix.
    Always raised before any process is spawned.
ParseError - malformed solution/project, missing referenced file, missing pair.
ProcessError - launch failure, interrupted wait, tool-level failure.
BuildFailedError - MSBuild returned non-zero for a pair (fail-fast phases).
ValidationError - quality results that did not pass, report write failures.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .build.state import BuildDiagnostic, PhaseResult


class MSBuildMcpError(Exception):
    """Base exception for msbuild-mcp errors."""

    kind = "error"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"error": str(self), "errorKind": self.kind}


# Configuration errors


class ConfigurationError(MSBuildMcpError):
    """Raised when the supplied configuration cannot be used."""

    kind = "configuration"


class InvalidPackagingError(ConfigurationError):
    """Raised when the packaging type is not one MSBuild can produce."""

    pass


class ToolNotFoundError(ConfigurationError):
    """Raised when an external tool cannot be located."""

    def __init__(self, tool: str, configured: str | None, env_var: str, env_value: str | None):
        self.tool = tool
        self.configured = configured
        self.env_var = env_var
        self.env_value = env_value
        super().__init__(
            f"{tool} could not be found. Tried configured path "
            f"{configured or '<not set>'} and environment variable "
            f"{env_var}={env_value or '<not set>'}"
        )


class InvalidProjectFileError(ConfigurationError):
    """Raised when the project or solution file is missing or of the wrong type."""

    pass


class InvalidMatrixError(ConfigurationError):
    """Raised when the platform/configuration matrix is inconsistent."""

    def __init__(self, message: str, platform: str | None = None, configuration: str | None = None):
        self.platform = platform
        self.configuration = configuration
        super().__init__(message)


# Parse errors


class ParseError(MSBuildMcpError):
    """Raised when a solution or project file cannot be interpreted."""

    kind = "parse"


class ProjectParseError(ParseError):
    """Raised when a solution or project file is unreadable or malformed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}")


class MissingProjectFileError(ParseError):
    """Raised when a solution references a project file that does not exist."""

    def __init__(self, solution_file: str, project_file: str):
        self.solution_file = solution_file
        self.project_file = project_file
        super().__init__(
            f"Solution {solution_file} references missing project file {project_file}"
        )


class ProjectConfigurationNotFoundError(ParseError):
    """Raised when a project does not define the requested pair."""

    def __init__(self, project_file: str, platform: str, configuration: str):
        self.project_file = project_file
        self.platform = platform
        self.configuration = configuration
        super().__init__(
            f"Project {project_file} does not define platform={platform}, "
            f"configuration={configuration}"
        )


# Process errors


class ProcessError(MSBuildMcpError):
    """Raised when an external process cannot be supervised to completion."""

    kind = "execution"


class ProcessLaunchError(ProcessError):
    """Raised when an executable cannot be spawned."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Failed to launch {command}: {reason}")


class ProcessInterruptedError(ProcessError):
    """Raised when waiting for a process is interrupted or times out."""

    def __init__(self, command: str, reason: str):
        self.command = command
        self.reason = reason
        super().__init__(f"Interrupted while waiting for {command}: {reason}")


class ToolExecutionError(ProcessError):
    """Raised when a quality tool exits with a launch-level failure code."""

    def __init__(self, tool: str, exit_code: int):
        self.tool = tool
        self.exit_code = exit_code
        super().__init__(f"{tool} failed to run (exit code {exit_code})")


# Build execution errors


class BuildFailedError(MSBuildMcpError):
    """Raised when MSBuild fails for a platform/configuration pair."""

    kind = "execution"

    def __init__(
        self,
        platform: str,
        configuration: str,
        exit_code: int,
        diagnostics: list[BuildDiagnostic] | None = None,
        result: PhaseResult | None = None,
    ):
        self.platform = platform
        self.configuration = configuration
        self.exit_code = exit_code
        self.diagnostics = diagnostics or []
        self.result = result
        super().__init__(
            f"MSBuild failed for platform={platform}, configuration={configuration} "
            f"(exit code {exit_code})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = super().to_dict()
        result.update(
            {
                "platform": self.platform,
                "configuration": self.configuration,
                "exitCode": self.exit_code,
                "diagnostics": [d.to_dict() for d in self.diagnostics],
            }
        )
        if self.result is not None:
            result["result"] = self.result.to_dict()
        return result


# Validation errors


class ValidationError(MSBuildMcpError):
    """Raised or recorded when a post-hoc check does not pass."""

    kind = "validation"


class QualityCheckFailedError(ValidationError):
    """Raised when one or more projects failed a quality check."""

    def __init__(self, tool: str, failed: list[str]):
        self.tool = tool
        self.failed = failed
        super().__init__(f"{tool} failed for: {', '.join(failed)}")


class ReportWriteError(ValidationError):
    """Raised when a report file cannot be written or closed."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write report {path}: {reason}")
