"""Entry point for msbuild-mcp.

Starts the MCP server on stdio, or runs a single phase with --phase and
prints its result as JSON.
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path

from .build import PhaseKind
from .build.matrix import PlatformDeclaration
from .errors import ConfigurationError
from .host import (
    DEFAULT_CONFIGURATION,
    DEFAULT_PLATFORM,
    QUALITY_TOOLS,
    SKIPPABLE,
    BuildHost,
    HostSettings,
    parse_platform_declaration,
    platforms_from,
)
from .server import create_server
from .utils.project import configure_project_root, find_project_file, find_project_root

SONAR_PHASE = "sonar"


def configure_logging() -> None:
    """Configure logging based on environment."""
    level = os.environ.get("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def platform_argument(value: str) -> dict:
    """argparse type for --platform NAME[:CFG,CFG]."""
    try:
        return parse_platform_declaration(value)
    except ConfigurationError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="MSBuild MCP Server - Build Visual C++ solutions across "
        "platform/configuration matrices via MCP"
    )
    parser.add_argument(
        "--project",
        type=str,
        default=None,
        help="Solution (.sln) or project (.vcxproj) file, or a directory holding one.",
    )
    parser.add_argument(
        "--project-from-cwd",
        action="store_true",
        default=False,
        help="Auto-detect project from current working directory. "
        "Searches upward for .sln, .vcxproj or .git markers. "
        "Cannot be used with --project.",
    )
    parser.add_argument(
        "--msbuild-path",
        type=str,
        default=None,
        help="Path to MSBuild.exe (defaults to the MSBUILD_PATH environment variable).",
    )
    parser.add_argument(
        "--phase",
        choices=[phase.value for phase in PhaseKind] + [SONAR_PHASE],
        default=None,
        help="Run one phase, print its result as JSON and exit instead of serving MCP.",
    )
    parser.add_argument(
        "--tool",
        choices=QUALITY_TOOLS,
        default=None,
        help="Quality tool for --phase quality-check.",
    )
    parser.add_argument(
        "--packaging",
        type=str,
        default="exe",
        help="Packaging type of the project: exe, dll or lib (default: exe).",
    )
    parser.add_argument(
        "--target",
        dest="targets",
        action="append",
        default=None,
        help="MSBuild target to run; may be repeated.",
    )
    parser.add_argument(
        "--test-target",
        dest="test_targets",
        action="append",
        default=None,
        help="Target built by the test-build phase; may be repeated.",
    )
    parser.add_argument(
        "--exclude-projects",
        type=str,
        default=None,
        help="Regular expression; quality checks skip projects whose whole name matches.",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Limit in seconds for each MSBuild or quality tool invocation.",
    )
    parser.add_argument(
        "--skip",
        choices=SKIPPABLE,
        action="append",
        default=None,
        help="Skip a quality tool or Sonar configuration; may be repeated. "
        "Skipping cxxtest also skips the test-build phase.",
    )

    matrix = parser.add_argument_group("matrix")
    matrix.add_argument(
        "--platform",
        dest="platforms",
        type=platform_argument,
        action="append",
        default=None,
        metavar="NAME[:CFG,CFG]",
        help="Platform and its configurations, e.g. x64:Debug,Release; may be repeated. "
        f"Defaults to {DEFAULT_PLATFORM}.",
    )
    matrix.add_argument(
        "--configuration",
        type=str,
        default=None,
        help="Configuration of platforms declared without one "
        f"(default: {DEFAULT_CONFIGURATION}).",
    )

    tools = parser.add_argument_group("quality tools")
    tools.add_argument("--vera-home", type=Path, default=None, help="Vera++ installation.")
    tools.add_argument("--vera-profile", type=str, default="full", help="Vera++ profile.")
    tools.add_argument("--cppcheck-path", type=Path, default=None, help="cppcheck executable.")
    tools.add_argument(
        "--cppcheck-enable",
        action="append",
        default=None,
        help="CppCheck check group to enable (style, performance, ...); may be repeated.",
    )
    tools.add_argument(
        "--cppcheck-define",
        action="append",
        default=None,
        help="Extra preprocessor definition for CppCheck; may be repeated.",
    )
    tools.add_argument("--cxxtest-home", type=Path, default=None, help="CxxTest installation.")
    tools.add_argument(
        "--cxxtest-template", type=Path, default=None, help="cxxtestgen runner template."
    )
    tools.add_argument(
        "--test-header-pattern",
        type=str,
        default="Test*.h",
        help="Glob of CxxTest suite headers (default: Test*.h).",
    )

    sonar = parser.add_argument_group("sonar")
    sonar.add_argument(
        "--sonar-output",
        type=Path,
        default=None,
        help="Directory of the Sonar configuration files (default: <project dir>/target).",
    )
    sonar.add_argument("--project-key", type=str, default=None, help="Sonar project key.")
    sonar.add_argument("--project-name", type=str, default=None, help="Sonar project name.")
    sonar.add_argument("--project-version", type=str, default="1.0", help="Sonar version.")
    sonar.add_argument(
        "--sonar-define",
        action="append",
        default=None,
        help="Extra preprocessor definition for Sonar; may be repeated.",
    )
    sonar.add_argument(
        "--sonar-exclusion",
        action="append",
        default=None,
        help="Sonar exclusion pattern for every module; may be repeated.",
    )
    return parser.parse_args(argv)


def matrix_from_args(args: argparse.Namespace) -> list[PlatformDeclaration] | None:
    """Matrix declared by --platform and --configuration, None for the default pair."""
    if not args.platforms:
        return platforms_from(configuration=args.configuration)
    if not args.configuration:
        return list(args.platforms)
    return [
        {**platform, "configurations": platform["configurations"] or [args.configuration]}
        for platform in args.platforms
    ]


def settings_from_args(args: argparse.Namespace) -> HostSettings:
    """Translate command line arguments into host settings."""
    project_file = None
    if args.project_from_cwd:
        project_file = find_project_file(find_project_root())
    elif args.project:
        project_file = find_project_file(args.project)

    skip = set(args.skip or [])
    return HostSettings(
        project_file=Path(project_file) if project_file else None,
        packaging=args.packaging,
        msbuild_path=args.msbuild_path,
        platforms=matrix_from_args(args),
        test_targets=list(args.test_targets or args.targets or []),
        exclude_project_regex=args.exclude_projects,
        timeout=args.timeout,
        vera_home=args.vera_home,
        vera_profile=args.vera_profile,
        cppcheck_path=args.cppcheck_path,
        cppcheck_enable=list(args.cppcheck_enable or []),
        cppcheck_defines=list(args.cppcheck_define or []),
        cxxtest_home=args.cxxtest_home,
        cxxtest_template=args.cxxtest_template,
        test_header_pattern=args.test_header_pattern,
        sonar_output_directory=args.sonar_output,
        project_key=args.project_key,
        project_name=args.project_name,
        project_version=args.project_version,
        sonar_defines=list(args.sonar_define or []),
        sonar_exclusions=list(args.sonar_exclusion or []),
        skip_vera="vera" in skip,
        skip_cppcheck="cppcheck" in skip,
        skip_cxxtest="cxxtest" in skip,
        skip_sonar="sonar" in skip,
    )


def run_once(args: argparse.Namespace, host: BuildHost) -> int:
    """Run the requested phase over the configured matrix and print its response.

    Returns:
        Process exit code (0 on success)
    """
    if args.phase == SONAR_PHASE:
        response = host.emit_sonar()
    else:
        response = host.run(args.phase, targets=args.targets, tool=args.tool)

    print(json.dumps(response, indent=2))
    return 0 if response["success"] else 1


async def serve(settings: HostSettings) -> None:
    """Run the MCP server on stdio."""
    logger = logging.getLogger(__name__)
    logger.info(f"Starting MSBuild MCP Server (project: {settings.project_file})...")

    mcp = create_server(settings)

    try:
        await mcp.run_stdio_async()
    except Exception:
        logger.exception("Server error")
        raise
    finally:
        logger.info("Server stopped")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    configure_logging()
    logger = logging.getLogger(__name__)

    args = parse_args(argv)

    if args.project_from_cwd and args.project is not None:
        logger.error("--project-from-cwd cannot be used with --project")
        return 1
    if args.phase == PhaseKind.QUALITY_CHECK.value and args.tool is None:
        logger.error("--phase quality-check requires --tool")
        return 1

    configure_project_root(
        use_project_from_cwd=args.project_from_cwd,
        explicit_project_path=args.project,
        startup_cwd=os.getcwd(),
    )
    settings = settings_from_args(args)
    if settings.project_file is not None:
        logger.info(f"Project file: {settings.project_file}")

    if args.phase is not None:
        return run_once(args, BuildHost(settings))

    asyncio.run(serve(settings))
    return 0


def run() -> None:
    """Run the server or a single phase."""
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
