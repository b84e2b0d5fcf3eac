"""Invocation, pair and phase results.

Aggregation is bottom-up: an invocation passes or fails, a pair passes when
all of its invocations pass, a phase succeeds when all of its pairs pass.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class BuildErrorSeverity(str, Enum):
    """MSBuild diagnostic severity levels."""

    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class BuildDiagnostic:
    """Parsed MSBuild diagnostic (error/warning)."""

    severity: BuildErrorSeverity
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    project: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "severity": self.severity.value,
            "code": self.code,
            "message": self.message,
        }
        if self.file:
            result["file"] = self.file
        if self.line is not None:
            result["line"] = self.line
        if self.column is not None:
            result["column"] = self.column
        if self.project:
            result["project"] = self.project
        return result


# MSBuild output patterns
# Format: path(line[,col]): [fatal ]severity code: message [project]
MSBUILD_DIAGNOSTIC_PATTERN = re.compile(
    r"^(?P<file>[^(]+)\((?P<line>\d+)(?:,(?P<col>\d+))?\):\s*"
    r"(?:fatal\s+)?(?P<severity>error|warning|info)\s+(?P<code>\w+):\s*"
    r"(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)

# Tool or linker format without location: origin : severity code: message [project]
MSBUILD_SIMPLE_PATTERN = re.compile(
    r"^(?:(?P<origin>[^:\[]+?)\s*:\s*)?(?:fatal\s+)?(?P<severity>error|warning|info)\s+"
    r"(?P<code>\w+):\s*(?P<message>.+?)(?:\s+\[(?P<project>[^\]]+)\])?$",
    re.IGNORECASE,
)


def parse_msbuild_output(output: str) -> list[BuildDiagnostic]:
    """Parse MSBuild output into structured diagnostics.

    Args:
        output: MSBuild console output

    Returns:
        List of parsed diagnostics, duplicates from the build summary removed
    """
    diagnostics: list[BuildDiagnostic] = []
    seen: set[tuple[Any, ...]] = set()

    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue

        diagnostic: BuildDiagnostic | None = None

        # Try detailed format first
        match = MSBUILD_DIAGNOSTIC_PATTERN.match(line)
        if match:
            column = match.group("col")
            diagnostic = BuildDiagnostic(
                severity=BuildErrorSeverity(match.group("severity").lower()),
                code=match.group("code"),
                message=match.group("message"),
                file=match.group("file").strip(),
                line=int(match.group("line")),
                column=int(column) if column else None,
                project=match.group("project"),
            )
        else:
            match = MSBUILD_SIMPLE_PATTERN.match(line)
            if match:
                diagnostic = BuildDiagnostic(
                    severity=BuildErrorSeverity(match.group("severity").lower()),
                    code=match.group("code"),
                    message=match.group("message"),
                    file=(match.group("origin") or "").strip() or None,
                    project=match.group("project"),
                )

        if diagnostic is None:
            continue

        # MSBuild repeats every diagnostic in its closing summary
        key = (
            diagnostic.severity,
            diagnostic.code,
            diagnostic.message,
            diagnostic.file,
            diagnostic.line,
            diagnostic.column,
            diagnostic.project,
        )
        if key in seen:
            continue
        seen.add(key)
        diagnostics.append(diagnostic)

    return diagnostics


def pair_label(platform: str, configuration: str) -> str:
    """Label used for a pair in messages and results."""
    return f"{platform}|{configuration}"


@dataclass
class InvocationResult:
    """Result of one external tool invocation.

    ``project`` is set for quality-tool invocations, None for MSBuild runs
    that cover the whole project or solution file.
    """

    platform: str
    configuration: str
    command: list[str] = field(default_factory=list)
    exit_code: int | None = None
    passed: bool = False
    project: str | None = None
    report_path: str | None = None
    error: str | None = None
    diagnostics: list[BuildDiagnostic] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def label(self) -> str:
        pair = pair_label(self.platform, self.configuration)
        return f"{self.project} ({pair})" if self.project else pair

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "platform": self.platform,
            "configuration": self.configuration,
            "passed": self.passed,
            "durationMs": round(self.duration_ms, 2),
        }
        if self.project:
            result["project"] = self.project
        if self.command:
            result["command"] = self.command
        if self.exit_code is not None:
            result["exitCode"] = self.exit_code
        if self.report_path:
            result["reportPath"] = self.report_path
        if self.error:
            result["error"] = self.error
        if self.diagnostics:
            result["diagnostics"] = [d.to_dict() for d in self.diagnostics]
        return result


@dataclass
class PairResult:
    """Results of one platform/configuration pair."""

    platform: str
    configuration: str
    invocations: list[InvocationResult] = field(default_factory=list)

    @property
    def label(self) -> str:
        return pair_label(self.platform, self.configuration)

    @property
    def passed(self) -> bool:
        """Logical AND over the pair's invocations."""
        return all(invocation.passed for invocation in self.invocations)

    @property
    def failed_projects(self) -> list[str]:
        return [i.project for i in self.invocations if not i.passed and i.project]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "platform": self.platform,
            "configuration": self.configuration,
            "passed": self.passed,
            "invocations": [i.to_dict() for i in self.invocations],
        }


@dataclass
class PhaseResult:
    """Aggregated result of one phase across the matrix."""

    phase: str
    project_file: str
    tool: str | None = None
    pairs: list[PairResult] = field(default_factory=list)
    duration_ms: float = 0.0
    skip_reason: str | None = None

    @property
    def success(self) -> bool:
        """Logical AND over all pairs."""
        return all(pair.passed for pair in self.pairs)

    @property
    def invocations(self) -> list[InvocationResult]:
        return [i for pair in self.pairs for i in pair.invocations]

    @property
    def failed_pairs(self) -> list[str]:
        return [pair.label for pair in self.pairs if not pair.passed]

    @property
    def failed_projects(self) -> list[str]:
        """Failing projects as 'name (platform|configuration)'."""
        return [i.label for i in self.invocations if not i.passed and i.project]

    @property
    def diagnostics(self) -> list[BuildDiagnostic]:
        return [d for i in self.invocations for d in i.diagnostics]

    @property
    def error_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == BuildErrorSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for d in self.diagnostics if d.severity == BuildErrorSeverity.WARNING)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result: dict[str, Any] = {
            "phase": self.phase,
            "projectFile": self.project_file,
            "success": self.success,
            "pairs": [p.to_dict() for p in self.pairs],
            "failedPairs": self.failed_pairs,
            "failedProjects": self.failed_projects,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "durationMs": round(self.duration_ms, 2),
        }
        if self.tool:
            result["tool"] = self.tool
        if self.skip_reason:
            result["skipped"] = self.skip_reason
        return result

    def to_summary(self) -> str:
        """Generate human-readable summary."""
        name = f"{self.phase} ({self.tool})" if self.tool else self.phase
        if self.skip_reason:
            return f"[SKIPPED] {name}: {self.skip_reason}"
        status = f"[OK] {name} succeeded" if self.success else f"[FAILED] {name} failed"

        parts = [
            status,
            f"  Project: {self.project_file}",
            f"  Pairs: {', '.join(p.label for p in self.pairs) or 'none'}",
            f"  Duration: {self.duration_ms:.0f}ms",
        ]

        if self.failed_pairs:
            parts.append(f"  Failed pairs: {', '.join(self.failed_pairs)}")
        if self.failed_projects:
            parts.append(f"  Failed projects: {', '.join(self.failed_projects)}")
        if self.error_count > 0:
            parts.append(f"  Errors: {self.error_count}")
        if self.warning_count > 0:
            parts.append(f"  Warnings: {self.warning_count}")

        errors = [d for d in self.diagnostics if d.severity == BuildErrorSeverity.ERROR]
        for err in errors[:5]:
            location = ""
            if err.file:
                location = f"{err.file}"
                if err.line:
                    location += f"({err.line},{err.column or 0})"
                location += ": "
            parts.append(f"    {location}{err.code}: {err.message}")

        if len(errors) > 5:
            parts.append(f"    ... and {len(errors) - 5} more errors")

        return "\n".join(parts)
