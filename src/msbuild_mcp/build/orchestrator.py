"""Project-matrix build orchestration.

Runs one phase across every platform/configuration pair of a resolved matrix.

Pre-flight checks run first, in order, and nothing is spawned until all of
them pass: packaging type, tool location, project file, matrix resolution and
solution membership.

Build phases (build, clean, test-build) invoke MSBuild once per pair and stop
at the first failing pair. The quality-check phase invokes a quality tool once
per project per pair and records failures without stopping.
"""

from __future__ import annotations

import logging
import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

from ..errors import (
    BuildFailedError,
    ConfigurationError,
    ParseError,
    ProcessError,
    ReportWriteError,
)
from ..parser import SolutionProject, VCProject, parse_project, parse_solution
from ..process import (
    CollectingConsumer,
    LogConsumer,
    OutputConsumer,
    ProcessRunner,
    TeeConsumer,
    WriterConsumer,
)
from .matrix import Matrix, MatrixResolver, PlatformDeclaration, iter_pairs
from .policy import (
    ENV_MSBUILD_PATH,
    BuildPolicy,
    PhaseKind,
    is_solution,
    locate_tool,
    validate_packaging,
    validate_project_file,
)
from .state import InvocationResult, PairResult, PhaseResult, parse_msbuild_output

if TYPE_CHECKING:
    from ..quality import QualityTool, SonarConfigEmitter

logger = logging.getLogger(__name__)


@dataclass
class PhaseRequest:
    """Everything a phase needs, as supplied by the host.

    Attributes:
        project_file: Solution (.sln) or project (.vcxproj) file
        default_platform: Platform used when none is declared
        default_configuration: Configuration used when a platform declares none
        packaging: Packaging type (exe, dll or lib)
        msbuild_path: Explicit MSBuild path; MSBUILD_PATH is used otherwise
        platforms: Declared matrix; the default pair when empty
        extra_targets: MSBuild targets to run (test targets for test-build)
        exclude_project_regex: Projects whose name matches are skipped by
            quality checks
        environ: Environment used to locate tools (defaults to os.environ)
        timeout: Optional limit in seconds for each external invocation
    """

    project_file: str | Path | None
    default_platform: str
    default_configuration: str
    packaging: str | None = "exe"
    msbuild_path: str | Path | None = None
    platforms: list[PlatformDeclaration] | None = None
    extra_targets: list[str] = field(default_factory=list)
    exclude_project_regex: str | None = None
    environ: Mapping[str, str] | None = None
    timeout: float | None = None


@dataclass
class PhasePlan:
    """Outcome of the pre-flight checks."""

    project_file: Path
    matrix: Matrix
    members: list[SolutionProject] | None
    executable: Path

    @property
    def solution_directory(self) -> Path | None:
        return _solution_directory(self.project_file, self.members)


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _solution_directory(
    project_file: Path, members: list[SolutionProject] | None
) -> Path | None:
    return project_file.parent if members is not None else None


def _require_tool(tool: QualityTool | None) -> QualityTool:
    if tool is None:
        raise ConfigurationError("The quality-check phase requires a quality tool")
    return tool


class BuildOrchestrator:
    """Runs build and quality phases over a platform/configuration matrix.

    Usage:
        orchestrator = BuildOrchestrator()
        result = orchestrator.run_phase(PhaseKind.BUILD, request)
    """

    def __init__(self, runner: ProcessRunner | None = None):
        self.runner = runner or ProcessRunner()

    def preflight(
        self,
        phase: PhaseKind | str,
        request: PhaseRequest,
        tool: QualityTool | None = None,
    ) -> PhasePlan:
        """Validate a request without spawning anything.

        Raises:
            ConfigurationError: Bad packaging, tool, project file or matrix
            ParseError: A solution references a missing project file
        """
        phase = PhaseKind(phase)
        validate_packaging(request.packaging)

        if phase.fail_fast:
            executable = locate_tool(
                "MSBuild", request.msbuild_path, ENV_MSBUILD_PATH, request.environ
            )
        else:
            executable = _require_tool(tool).locate(request.environ)

        project_file = validate_project_file(request.project_file)
        matrix, members = self._resolve(project_file, request)
        return PhasePlan(project_file, matrix, members, executable)

    def _resolve(
        self, project_file: Path, request: PhaseRequest
    ) -> tuple[Matrix, list[SolutionProject] | None]:
        resolver = MatrixResolver(request.default_platform, request.default_configuration)
        matrix = resolver.resolve(request.platforms)

        members = parse_solution(project_file) if is_solution(project_file) else None
        if members is not None:
            logger.debug(f"Solution {project_file.name} has {len(members)} C++ projects")
        return matrix, members

    def run_phase(
        self,
        phase: PhaseKind | str,
        request: PhaseRequest,
        tool: QualityTool | None = None,
    ) -> PhaseResult:
        """Run one phase over the resolved matrix.

        Args:
            phase: Phase to run
            request: Phase inputs
            tool: Quality tool adapter, required for the quality-check phase

        Returns:
            Aggregated phase result

        Raises:
            ConfigurationError: If a pre-flight check fails
            ParseError: If a solution references a missing project file
            BuildFailedError: If MSBuild fails for a pair (build phases)
            ProcessError: If MSBuild cannot be launched or is interrupted
        """
        phase = PhaseKind(phase)
        plan = self.preflight(phase, request, tool)

        if phase.fail_fast:
            return self._run_build_phase(phase, plan, request)
        return self._run_quality_phase(plan, request, _require_tool(tool))

    # Build phases

    def _run_build_phase(
        self, phase: PhaseKind, plan: PhasePlan, request: PhaseRequest
    ) -> PhaseResult:
        policy = BuildPolicy(plan.executable, plan.project_file)
        targets = policy.targets_for(phase, request.extra_targets)
        result = PhaseResult(phase=phase.value, project_file=str(plan.project_file))
        start_time = time.perf_counter()

        for platform, configuration in iter_pairs(plan.matrix):
            logger.info(
                f"Running MSBuild {phase.value} for platform={platform}, "
                f"configuration={configuration}"
            )
            pair = PairResult(platform, configuration)
            result.pairs.append(pair)

            command = policy.get_msbuild_command(platform, configuration, targets)
            invocation = self._run_msbuild(
                command, plan.project_file.parent, platform, configuration, request
            )
            pair.invocations.append(invocation)
            result.duration_ms = _elapsed_ms(start_time)

            if not invocation.passed:
                logger.error(
                    f"MSBuild {phase.value} failed for platform={platform}, "
                    f"configuration={configuration} (exit code {invocation.exit_code})"
                )
                raise BuildFailedError(
                    platform,
                    configuration,
                    invocation.exit_code if invocation.exit_code is not None else -1,
                    invocation.diagnostics,
                    result,
                )

        logger.info(f"MSBuild {phase.value} completed: {len(result.pairs)} pair(s)")
        return result

    def _run_msbuild(
        self,
        command: list[str],
        working_directory: Path,
        platform: str,
        configuration: str,
        request: PhaseRequest,
    ) -> InvocationResult:
        collector = CollectingConsumer()
        start_time = time.perf_counter()

        exit_code = self.runner.run(
            command[0],
            command[1:],
            working_directory,
            stdout_consumer=TeeConsumer(LogConsumer(logger, logging.INFO), collector),
            stderr_consumer=TeeConsumer(LogConsumer(logger, logging.WARNING), collector),
            timeout=request.timeout,
        )

        return InvocationResult(
            platform=platform,
            configuration=configuration,
            command=command,
            exit_code=exit_code,
            passed=exit_code == 0,
            diagnostics=parse_msbuild_output(collector.text),
            duration_ms=_elapsed_ms(start_time),
        )

    # Quality phase

    def _scope(
        self,
        project_file: Path,
        members: list[SolutionProject] | None,
        request: PhaseRequest,
    ) -> list[SolutionProject]:
        """Projects a quality tool runs over, in solution order."""
        if members is None:
            return [SolutionProject(project_file.stem, project_file, "", "")]

        if not request.exclude_project_regex:
            return list(members)

        try:
            pattern = re.compile(request.exclude_project_regex)
        except re.error as e:
            raise ConfigurationError(
                f"Invalid project exclusion pattern {request.exclude_project_regex!r}: {e}"
            ) from e

        scope = []
        for member in members:
            if pattern.fullmatch(member.name):
                logger.info(f"Skipping excluded project {member.name}")
            else:
                scope.append(member)
        return scope

    def _parse_member(
        self,
        member: SolutionProject,
        platform: str,
        configuration: str,
        solution_directory: Path | None,
    ) -> VCProject:
        if solution_directory is None:
            return parse_project(member.project_file, platform, configuration)
        return parse_project(
            member.project_file,
            platform,
            configuration,
            solution_directory,
            name=member.name,
            solution_guid=member.solution_guid,
            target_name=member.target_name,
        )

    def _run_quality_phase(
        self, plan: PhasePlan, request: PhaseRequest, tool: QualityTool
    ) -> PhaseResult:
        result = PhaseResult(
            phase=PhaseKind.QUALITY_CHECK.value,
            project_file=str(plan.project_file),
            tool=tool.name,
        )
        start_time = time.perf_counter()
        scope = self._scope(plan.project_file, plan.members, request)

        for platform, configuration in iter_pairs(plan.matrix):
            pair = PairResult(platform, configuration)
            result.pairs.append(pair)
            for member in scope:
                logger.info(
                    f"Running {tool.name} for project {member.name}, "
                    f"platform={platform}, configuration={configuration}"
                )
                pair.invocations.append(
                    self._run_quality_tool(plan, request, tool, member, platform, configuration)
                )

        result.duration_ms = _elapsed_ms(start_time)
        if result.success:
            logger.info(f"{tool.name} completed: no violations")
        else:
            logger.warning(f"{tool.name} failed for: {', '.join(result.failed_projects)}")
        return result

    def _run_quality_tool(
        self,
        plan: PhasePlan,
        request: PhaseRequest,
        tool: QualityTool,
        member: SolutionProject,
        platform: str,
        configuration: str,
    ) -> InvocationResult:
        invocation = InvocationResult(platform, configuration, project=member.name)
        start_time = time.perf_counter()

        try:
            project = self._parse_member(
                member, platform, configuration, plan.solution_directory
            )
        except ParseError as e:
            logger.error(str(e))
            invocation.error = str(e)
            return invocation

        if not tool.applies_to(project):
            logger.info(f"Nothing to check for project {project.name}, skipping {tool.name}")
            invocation.passed = True
            return invocation

        arguments = tool.build_arguments(project)
        report_path = tool.report_path_for(project)
        invocation.command = [str(plan.executable), *arguments]
        invocation.report_path = str(report_path)

        try:
            report_path.parent.mkdir(parents=True, exist_ok=True)
            report = open(report_path, "w", encoding="utf-8") if tool.report_stream else None
        except OSError as e:
            failure = ReportWriteError(str(report_path), str(e))
            logger.error(str(failure))
            invocation.error = str(failure)
            return invocation

        try:
            invocation.exit_code = self._invoke_tool(
                plan.executable, arguments, tool, project, report, report_path, request.timeout
            )
            invocation.passed = tool.interpret_result(invocation.exit_code)
        except (ProcessError, ReportWriteError) as e:
            logger.error(str(e))
            invocation.error = str(e)
        finally:
            if report is not None:
                self._close_report(report, report_path, invocation)

        invocation.duration_ms = _elapsed_ms(start_time)
        if not invocation.passed and invocation.error is None:
            logger.warning(
                f"{tool.name} found violations in {project.name} "
                f"(exit code {invocation.exit_code}), see {report_path}"
            )
        return invocation

    def _invoke_tool(
        self,
        executable: Path,
        arguments: list[str],
        tool: QualityTool,
        project: VCProject,
        report: TextIO | None,
        report_path: Path,
        timeout: float | None,
    ) -> int:
        prefix = tool.name
        writer = WriterConsumer(report) if report is not None else None
        stdout: OutputConsumer = LogConsumer(logger, logging.DEBUG, prefix)
        stderr: OutputConsumer = LogConsumer(logger, logging.WARNING, prefix)
        if writer is not None and tool.report_stream == "stdout":
            stdout = writer
        elif writer is not None and tool.report_stream == "stderr":
            stderr = writer

        exit_code = self.runner.run(
            executable,
            arguments,
            tool.working_directory_for(project),
            stdin=tool.stdin_for(project),
            stdout_consumer=stdout,
            stderr_consumer=stderr,
            timeout=timeout,
        )

        if writer is not None and writer.error is not None:
            raise ReportWriteError(str(report_path), str(writer.error))
        return exit_code

    @staticmethod
    def _close_report(report: TextIO, report_path: Path, invocation: InvocationResult) -> None:
        try:
            report.close()
        except OSError as e:
            failure = ReportWriteError(str(report_path), str(e))
            logger.error(str(failure))
            invocation.passed = False
            invocation.error = invocation.error or str(failure)

    # Sonar configuration

    def emit_quality_config(
        self, request: PhaseRequest, emitter: SonarConfigEmitter
    ) -> list[Path]:
        """Write one Sonar configuration file per pair.

        Every project in scope is parsed for each pair; parse failures are
        fatal here since the configuration would be incomplete.

        Returns:
            Written configuration files, in matrix order

        Raises:
            ConfigurationError: If a pre-flight check fails
            ParseError: If a project cannot be parsed for a pair
            ReportWriteError: If a configuration file cannot be written
        """
        validate_packaging(request.packaging)
        project_file = validate_project_file(request.project_file)
        matrix, members = self._resolve(project_file, request)
        scope = self._scope(project_file, members, request)
        solution_directory = _solution_directory(project_file, members)

        written = []
        for platform, configuration in iter_pairs(matrix):
            projects = [
                self._parse_member(member, platform, configuration, solution_directory)
                for member in scope
            ]
            written.append(emitter.write(projects, platform, configuration))
        return written
