"""Tests for the MCP server surface: tools, resources and notifications."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import AnyUrl

from msbuild_mcp.build import BuildOrchestrator
from msbuild_mcp.host import BuildHost, HostSettings
from msbuild_mcp.resources import LAST_RESULT_URI, MATRIX_URI
from msbuild_mcp.server import create_server

GUID = "AAAAAAAA-0000-0000-0000-00000000000A"


@pytest.fixture
def host(write_vcxproj, write_solution, msbuild_exe, fake_runner):
    write_vcxproj("A/A.vcxproj")
    solution = write_solution([("A", "A\\A.vcxproj", GUID)])
    settings = HostSettings(project_file=solution, msbuild_path=str(msbuild_exe), environ={})
    return BuildHost(settings, BuildOrchestrator(fake_runner))


async def read_json(mcp, uri):
    contents = list(await mcp.read_resource(uri))
    return json.loads(contents[0].content)


class TestServerTools:
    """Tests for registered tools."""

    @pytest.mark.asyncio
    async def test_tools_registered(self, host):
        mcp = create_server(host.settings, host)
        names = {tool.name for tool in await mcp.list_tools()}
        assert {
            "msbuild_build",
            "msbuild_clean",
            "msbuild_test_build",
            "quality_check",
            "sonar_config",
        } <= names

    @pytest.mark.asyncio
    async def test_tools_have_descriptions(self, host):
        mcp = create_server(host.settings, host)
        for tool in await mcp.list_tools():
            assert tool.description

    @pytest.mark.asyncio
    async def test_tools_accept_matrix_declaration(self, host):
        """Test every phase tool takes a platforms list next to the single-pair override."""
        mcp = create_server(host.settings, host)
        for tool in await mcp.list_tools():
            properties = tool.inputSchema["properties"]
            assert "platforms" in properties
            assert {"platform", "configuration"} <= set(properties)


class TestResources:
    """Tests for JSON resources."""

    @pytest.mark.asyncio
    async def test_last_result_empty(self, host):
        mcp = create_server(host.settings, host)
        assert await read_json(mcp, LAST_RESULT_URI) == {"result": None}

    @pytest.mark.asyncio
    async def test_last_result_after_build(self, host):
        mcp = create_server(host.settings, host)
        host.run("build")

        data = await read_json(mcp, LAST_RESULT_URI)
        assert data["phase"] == "build"
        assert data["failedPairs"] == []

    @pytest.mark.asyncio
    async def test_matrix(self, host):
        host.settings.platforms = [{"name": "x64", "configurations": ["Debug", "Release"]}]
        mcp = create_server(host.settings, host)

        data = await read_json(mcp, MATRIX_URI)
        assert data["projectFile"] == str(host.settings.project_file)
        assert data["platforms"] == [{"name": "x64", "configurations": ["Debug", "Release"]}]

    @pytest.mark.asyncio
    async def test_invalid_matrix(self, host):
        host.settings.platforms = [{"name": "", "configurations": []}]
        mcp = create_server(host.settings, host)

        data = await read_json(mcp, MATRIX_URI)
        assert data["errorKind"] == "configuration"


class TestResourceNotifications:
    """Tests for resource update notifications."""

    @pytest.mark.asyncio
    async def test_send_resource_updated_uses_any_url(self):
        mock_ctx = MagicMock()
        mock_ctx.session.send_resource_updated = AsyncMock()

        await mock_ctx.session.send_resource_updated(AnyUrl(LAST_RESULT_URI))

        mock_ctx.session.send_resource_updated.assert_called_once()
        uri = mock_ctx.session.send_resource_updated.call_args[0][0]
        assert str(uri) == LAST_RESULT_URI
