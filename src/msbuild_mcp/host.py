"""Host adapter - turns host settings into phase requests and results into responses.

The host (MCP server or command line) holds a HostSettings, asks BuildHost to
run a phase and gets back the response dictionary shared by every MCP tool:

    {"success": True, "data": {...}}
    {"success": False, "error": "...", "errorKind": "configuration", ...}
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Final

from .build import BuildOrchestrator, BuildPlatform, MatrixResolver, PhaseKind, PhaseRequest
from .build.matrix import PlatformDeclaration
from .build.state import PhaseResult
from .errors import (
    ConfigurationError,
    MSBuildMcpError,
    QualityCheckFailedError,
    ToolNotFoundError,
)
from .quality import (
    CppCheckTool,
    CxxTestGenTool,
    QualityTool,
    SonarConfigEmitter,
    VeraTool,
    system_include_directories,
)
from .quality.cxxtest import CXXTEST_SKIP_MESSAGE

logger = logging.getLogger(__name__)

DEFAULT_PLATFORM: Final[str] = "Win32"
DEFAULT_CONFIGURATION: Final[str] = "Release"

QUALITY_TOOLS: Final[tuple[str, ...]] = ("vera", "cppcheck", "cxxtest")

# Goals that can be switched off in the settings
SKIPPABLE: Final[tuple[str, ...]] = (*QUALITY_TOOLS, "sonar")


@dataclass
class HostSettings:
    """Host configuration of one project or solution."""

    project_file: Path | None = None
    packaging: str = "exe"
    msbuild_path: str | None = None
    platforms: list[PlatformDeclaration] | None = None
    test_targets: list[str] = field(default_factory=list)
    exclude_project_regex: str | None = None
    timeout: float | None = None
    environ: Mapping[str, str] | None = None

    # Quality tools
    vera_home: Path | None = None
    vera_profile: str = "full"
    cppcheck_path: Path | None = None
    cppcheck_enable: list[str] = field(default_factory=list)
    cppcheck_defines: list[str] = field(default_factory=list)
    cxxtest_home: Path | None = None
    cxxtest_template: Path | None = None
    test_header_pattern: str = "Test*.h"

    # Sonar
    sonar_output_directory: Path | None = None
    project_key: str | None = None
    project_name: str | None = None
    project_version: str = "1.0"
    sonar_defines: list[str] = field(default_factory=list)
    sonar_exclusions: list[str] = field(default_factory=list)

    # Skipped goals; skip_cxxtest also skips the test-build phase
    skip_vera: bool = False
    skip_cppcheck: bool = False
    skip_cxxtest: bool = False
    skip_sonar: bool = False

    def skips(self, goal: str) -> bool:
        return bool(getattr(self, f"skip_{goal}", False))


def platforms_from(
    platform: str | None = None, configuration: str | None = None
) -> list[PlatformDeclaration] | None:
    """Matrix declaration for a single platform/configuration override."""
    if not platform and not configuration:
        return None
    return [
        {
            "name": platform or DEFAULT_PLATFORM,
            "configurations": [configuration] if configuration else [],
        }
    ]


def matrix_override(
    platforms: list[PlatformDeclaration] | None = None,
    platform: str | None = None,
    configuration: str | None = None,
) -> list[PlatformDeclaration] | None:
    """Matrix for one call; a declared matrix wins over a single-pair override."""
    if platforms:
        return list(platforms)
    return platforms_from(platform, configuration)


def parse_platform_declaration(value: str) -> dict[str, Any]:
    """Parse ``NAME[:CFG[,CFG...]]`` into a platform declaration.

    Raises:
        ConfigurationError: If the platform name is empty
    """
    name, _, configurations = value.partition(":")
    if not name.strip():
        raise ConfigurationError(
            f"Invalid platform declaration {value!r}, expected NAME[:CFG,CFG]"
        )
    return {
        "name": name.strip(),
        "configurations": [c.strip() for c in configurations.split(",") if c.strip()],
    }


def build_request(
    settings: HostSettings,
    phase: PhaseKind,
    platforms: list[PlatformDeclaration] | None = None,
    targets: list[str] | None = None,
) -> PhaseRequest:
    """Translate host settings into a phase request.

    ``platforms`` and ``targets`` override the configured matrix and targets
    for one call. The test-build phase runs the configured test targets.
    """
    if targets is None:
        targets = list(settings.test_targets) if phase is PhaseKind.TEST_BUILD else []
    return PhaseRequest(
        project_file=settings.project_file,
        default_platform=DEFAULT_PLATFORM,
        default_configuration=DEFAULT_CONFIGURATION,
        packaging=settings.packaging,
        msbuild_path=settings.msbuild_path,
        platforms=platforms if platforms is not None else settings.platforms,
        extra_targets=targets,
        exclude_project_regex=settings.exclude_project_regex,
        environ=settings.environ,
        timeout=settings.timeout,
    )


def create_quality_tool(name: str, settings: HostSettings) -> QualityTool:
    """Create the adapter of a quality tool by name.

    Raises:
        ConfigurationError: If the tool name is unknown
    """
    key = name.strip().lower()
    if key == "vera":
        return VeraTool(vera_home=settings.vera_home, profile=settings.vera_profile)
    if key == "cppcheck":
        return CppCheckTool(
            cppcheck_path=settings.cppcheck_path,
            enable=list(settings.cppcheck_enable),
            extra_defines=list(settings.cppcheck_defines),
        )
    if key == "cxxtest":
        return CxxTestGenTool(
            cxxtest_home=settings.cxxtest_home,
            test_header_pattern=settings.test_header_pattern,
            template_file=settings.cxxtest_template,
        )
    raise ConfigurationError(
        f"Unknown quality tool {name!r}, expected one of {', '.join(QUALITY_TOOLS)}"
    )


def create_sonar_emitter(settings: HostSettings) -> SonarConfigEmitter:
    """Create the Sonar emitter for the configured project."""
    project_file = Path(settings.project_file) if settings.project_file else None
    root = project_file.parent if project_file else Path.cwd()
    name = settings.project_name or (project_file.stem if project_file else root.name)
    return SonarConfigEmitter(
        output_directory=settings.sonar_output_directory or root / "target",
        project_key=settings.project_key or name,
        project_name=name,
        project_version=settings.project_version,
        root_directory=root,
        extra_defines=list(settings.sonar_defines),
        exclusions=list(settings.sonar_exclusions),
        system_includes=system_include_directories(settings.environ),
    )


def result_to_response(result: PhaseResult) -> dict[str, Any]:
    """Response for a completed phase.

    A quality check with failing projects is reported as a validation
    failure that still carries the full result.
    """
    if result.success or result.tool is None:
        return {"success": result.success, "data": result.to_dict()}

    failure = QualityCheckFailedError(result.tool, result.failed_projects)
    return {"success": False, "data": result.to_dict(), **failure.to_dict()}


def error_to_response(error: MSBuildMcpError) -> dict[str, Any]:
    return {"success": False, **error.to_dict()}


class BuildHost:
    """Runs phases for the configured project and keeps the last result.

    Calls are synchronous; the MCP server serializes them.
    """

    def __init__(self, settings: HostSettings, orchestrator: BuildOrchestrator | None = None):
        self.settings = settings
        self.orchestrator = orchestrator or BuildOrchestrator()
        self.last_result: PhaseResult | None = None

    def run(
        self,
        phase: PhaseKind | str,
        platforms: list[PlatformDeclaration] | None = None,
        targets: list[str] | None = None,
        tool: str | None = None,
    ) -> dict[str, Any]:
        """Run a phase and return its response."""
        phase = PhaseKind(phase)
        request = build_request(self.settings, phase, platforms, targets)
        try:
            adapter = None
            if phase is PhaseKind.QUALITY_CHECK:
                adapter = create_quality_tool(tool or "", self.settings)
            reason = self._skip_reason(phase, adapter)
            if reason is not None:
                logger.info(reason)
                result = PhaseResult(
                    phase=phase.value,
                    project_file=str(self.settings.project_file or ""),
                    tool=adapter.name if adapter else None,
                    skip_reason=reason,
                )
            else:
                result = self.orchestrator.run_phase(phase, request, adapter)
        except MSBuildMcpError as e:
            partial = getattr(e, "result", None)
            if isinstance(partial, PhaseResult):
                self.last_result = partial
            logger.error(str(e))
            return error_to_response(e)

        self.last_result = result
        logger.info(result.to_summary())
        return result_to_response(result)

    def _skip_reason(self, phase: PhaseKind, tool: QualityTool | None) -> str | None:
        """Why a phase is skipped, or None when it runs.

        CxxTest is optional: when cxxtestgen cannot be found, runner
        generation is skipped instead of failing.
        """
        if phase is PhaseKind.TEST_BUILD and self.settings.skip_cxxtest:
            return "Skipping test build, skip_cxxtest is set"
        if tool is None:
            return None
        if self.settings.skips(tool.name):
            if tool.name == CxxTestGenTool.name:
                return f"{CXXTEST_SKIP_MESSAGE}, skip_cxxtest is set"
            return f"Skipping {tool.name}, skip_{tool.name} is set"
        if isinstance(tool, CxxTestGenTool):
            try:
                tool.locate(self.settings.environ)
            except ToolNotFoundError as e:
                return f"{CXXTEST_SKIP_MESSAGE}: {e}"
        return None

    def emit_sonar(self, platforms: list[PlatformDeclaration] | None = None) -> dict[str, Any]:
        """Write the Sonar configuration files and return their paths."""
        if self.settings.skip_sonar:
            reason = "Skipping Sonar configuration, skip_sonar is set"
            logger.info(reason)
            return {"success": True, "data": {"files": [], "skipped": reason}}
        request = build_request(self.settings, PhaseKind.QUALITY_CHECK, platforms)
        try:
            written = self.orchestrator.emit_quality_config(
                request, create_sonar_emitter(self.settings)
            )
        except MSBuildMcpError as e:
            logger.error(str(e))
            return error_to_response(e)
        return {"success": True, "data": {"files": [str(path) for path in written]}}

    def matrix(self, platforms: list[PlatformDeclaration] | None = None) -> list[BuildPlatform]:
        """Resolved matrix for the configured project.

        Raises:
            InvalidMatrixError: If the declared matrix is invalid
        """
        resolver = MatrixResolver(DEFAULT_PLATFORM, DEFAULT_CONFIGURATION)
        declared = platforms if platforms is not None else self.settings.platforms
        return list(resolver.resolve(declared))
