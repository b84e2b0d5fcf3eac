"""MCP Server for MSBuild project-matrix builds."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from mcp.server.fastmcp import Context, FastMCP
from pydantic import AnyUrl

from .build import PhaseKind
from .build.matrix import PlatformDeclaration
from .host import BuildHost, HostSettings, matrix_override
from .resources import LAST_RESULT_URI, register_resources
from .utils.project import find_project_file, get_project_root

logger = logging.getLogger(__name__)


def create_server(settings: HostSettings, host: BuildHost | None = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        settings: Host configuration. When no project file is configured it
            is looked up in the client's project root on first use.
        host: Build host to use (created from settings when omitted)
    """
    mcp = FastMCP("msbuild-mcp")
    host = host or BuildHost(settings)
    # One phase at a time; the orchestrator itself is synchronous
    lock = asyncio.Lock()

    async def notify_result_changed(ctx: Context) -> None:
        """Notify client that the msbuild://last-result resource has changed."""
        try:
            if ctx.session:
                await ctx.session.send_resource_updated(AnyUrl(LAST_RESULT_URI))
        except Exception:
            pass  # Notification failure shouldn't break the tool

    async def resolve_project_file(ctx: Context) -> None:
        if host.settings.project_file is not None:
            return
        project_root = await get_project_root(ctx)
        if project_root:
            host.settings.project_file = find_project_file(project_root)
            logger.info(f"Using project file: {host.settings.project_file}")

    async def run_phase(
        ctx: Context,
        phase: PhaseKind,
        platforms: list[PlatformDeclaration] | None,
        targets: list[str] | None = None,
        tool: str | None = None,
    ) -> dict[str, Any]:
        try:
            await resolve_project_file(ctx)
            async with lock:
                response = await asyncio.to_thread(host.run, phase, platforms, targets, tool)
            await notify_result_changed(ctx)
            return response
        except Exception as e:
            logger.exception(f"{phase.value} failed unexpectedly")
            return {"success": False, "error": str(e), "errorKind": "error"}

    # ============== Build Tools ==============

    @mcp.tool()
    async def msbuild_build(
        ctx: Context,
        platforms: list[dict[str, Any]] | None = None,
        platform: str | None = None,
        configuration: str | None = None,
        targets: list[str] | None = None,
    ) -> dict:
        """
        Build the configured solution or project with MSBuild.

        Runs MSBuild once per platform/configuration pair and stops at the
        first failing pair. The matrix is, in order of precedence: the
        platforms argument, a single platform/configuration pair, the
        configured matrix.

        Args:
            platforms: Matrix to build, e.g.
                [{"name": "Win32", "configurations": ["Debug", "Release"]},
                 {"name": "x64"}]
            platform: Build only this platform (e.g. Win32, x64)
            configuration: Build only this configuration (e.g. Debug, Release)
            targets: MSBuild targets to run (default targets when omitted)
        """
        matrix = matrix_override(platforms, platform, configuration)
        return await run_phase(ctx, PhaseKind.BUILD, matrix, targets)

    @mcp.tool()
    async def msbuild_clean(
        ctx: Context,
        platforms: list[dict[str, Any]] | None = None,
        platform: str | None = None,
        configuration: str | None = None,
    ) -> dict:
        """
        Clean build outputs with MSBuild's Clean target.

        Args:
            platforms: Matrix to clean (same form as msbuild_build)
            platform: Clean only this platform
            configuration: Clean only this configuration
        """
        matrix = matrix_override(platforms, platform, configuration)
        return await run_phase(ctx, PhaseKind.CLEAN, matrix)

    @mcp.tool()
    async def msbuild_test_build(
        ctx: Context,
        platforms: list[dict[str, Any]] | None = None,
        platform: str | None = None,
        configuration: str | None = None,
        targets: list[str] | None = None,
    ) -> dict:
        """
        Build the unit test targets.

        Generate the CxxTest runners first with quality_check(tool="cxxtest").
        Skipped when CxxTest is switched off in the server settings.

        Args:
            platforms: Matrix to build (same form as msbuild_build)
            platform: Build only this platform
            configuration: Build only this configuration
            targets: Test targets to build (configured test targets when omitted)
        """
        matrix = matrix_override(platforms, platform, configuration)
        return await run_phase(ctx, PhaseKind.TEST_BUILD, matrix, targets)

    # ============== Quality Tools ==============

    @mcp.tool()
    async def quality_check(
        ctx: Context,
        tool: str,
        platforms: list[dict[str, Any]] | None = None,
        platform: str | None = None,
        configuration: str | None = None,
    ) -> dict:
        """
        Run a C++ quality tool over every project of every pair.

        Every project is checked even when earlier ones fail; the result
        names the failing projects. Reports are written next to each project.
        A tool switched off in the settings, or CxxTest without a cxxtestgen
        installation, is reported as skipped.

        Args:
            tool: "vera" (Vera++ style check), "cppcheck" (CppCheck static
                analysis) or "cxxtest" (CxxTest runner generation)
            platforms: Matrix to check (same form as msbuild_build)
            platform: Check only this platform
            configuration: Check only this configuration
        """
        matrix = matrix_override(platforms, platform, configuration)
        return await run_phase(ctx, PhaseKind.QUALITY_CHECK, matrix, tool=tool)

    @mcp.tool()
    async def sonar_config(
        ctx: Context,
        platforms: list[dict[str, Any]] | None = None,
        platform: str | None = None,
        configuration: str | None = None,
    ) -> dict:
        """
        Write Sonar C++ configuration files, one per platform/configuration pair.

        Args:
            platforms: Matrix to configure (same form as msbuild_build)
            platform: Write only this platform
            configuration: Write only this configuration
        """
        try:
            await resolve_project_file(ctx)
            async with lock:
                return await asyncio.to_thread(
                    host.emit_sonar, matrix_override(platforms, platform, configuration)
                )
        except Exception as e:
            logger.exception("Sonar configuration failed unexpectedly")
            return {"success": False, "error": str(e), "errorKind": "error"}

    register_resources(mcp, host)

    return mcp
