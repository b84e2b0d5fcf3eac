"""MCP Resources for build results."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from .errors import InvalidMatrixError

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP

    from .host import BuildHost

LAST_RESULT_URI = "msbuild://last-result"
MATRIX_URI = "msbuild://matrix"


def register_resources(mcp: FastMCP, host: BuildHost) -> None:
    """Register MCP resources."""

    @mcp.resource(LAST_RESULT_URI, mime_type="application/json")
    async def last_result_resource() -> str:
        """
        Result of the last phase run.
        Includes: phase, success, pairs with their invocations, failedPairs,
        failedProjects, errorCount, warningCount
        """
        if host.last_result is None:
            return json.dumps({"result": None}, indent=2)
        return json.dumps(host.last_result.to_dict(), indent=2)

    @mcp.resource(MATRIX_URI, mime_type="application/json")
    async def matrix_resource() -> str:
        """
        Platform/configuration matrix the build phases run over.
        """
        project_file = host.settings.project_file
        try:
            platforms = host.matrix()
        except InvalidMatrixError as e:
            return json.dumps(e.to_dict(), indent=2)
        return json.dumps(
            {
                "projectFile": str(project_file) if project_file else None,
                "platforms": [platform.to_dict() for platform in platforms],
            },
            indent=2,
        )
