"""Pytest fixtures for msbuild-mcp tests."""

import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

MSBUILD_NAMESPACE = "http://schemas.microsoft.com/developer/msbuild/2003"

DEFAULT_PAIRS = ("Debug|Win32", "Release|Win32", "Debug|x64", "Release|x64")

VCXPROJ_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<Project DefaultTargets="Build" ToolsVersion="4.0" xmlns="{namespace}">
  <ItemGroup Label="ProjectConfigurations">
{configurations}
  </ItemGroup>
  <PropertyGroup Label="Globals">
    <ProjectGuid>{{{guid}}}</ProjectGuid>
    <RootNamespace>{name}</RootNamespace>
  </PropertyGroup>
{body}
</Project>
"""

SAMPLE_BODY = r"""  <PropertyGroup Condition="'$(Configuration)|$(Platform)'=='Release|x64'">
    <OutDir>$(SolutionDir)bin\$(Platform)\</OutDir>
  </PropertyGroup>
  <ItemDefinitionGroup Condition="'$(Configuration)|$(Platform)'=='Debug|Win32'">
    <ClCompile>
      <AdditionalIncludeDirectories>include;..\common;include;%(AdditionalIncludeDirectories)</AdditionalIncludeDirectories>
      <PreprocessorDefinitions>WIN32;_DEBUG;WIN32;%(PreprocessorDefinitions)</PreprocessorDefinitions>
    </ClCompile>
  </ItemDefinitionGroup>
  <ItemDefinitionGroup Condition="'$(Configuration)|$(Platform)'=='Release|x64'">
    <ClCompile>
      <AdditionalIncludeDirectories>$(ProjectDir)include</AdditionalIncludeDirectories>
      <PreprocessorDefinitions>NDEBUG</PreprocessorDefinitions>
    </ClCompile>
  </ItemDefinitionGroup>
  <ItemGroup>
    <ClCompile Include="src\main.cpp" />
    <ClCompile Include="src\debug_only.cpp">
      <ExcludedFromBuild Condition="'$(Configuration)|$(Platform)'=='Release|x64'">true</ExcludedFromBuild>
    </ClCompile>
  </ItemGroup>
  <ItemGroup>
    <ClInclude Include="include\widget.h" />
    <ClInclude Include="tests\TestWidget.h" />
  </ItemGroup>"""

SOLUTION_FOLDER_TYPE = "2150E333-8FDC-42A3-9474-1A3956D46DE8"
VC_PROJECT_TYPE = "8BC9CEB8-8B4A-11D0-8D11-00A0C91BC942"


def vcxproj_text(
    name="Widget",
    guid="11111111-2222-3333-4444-555555555555",
    pairs=DEFAULT_PAIRS,
    body=SAMPLE_BODY,
):
    configurations = "\n".join(
        f'    <ProjectConfiguration Include="{pair}">\n'
        f"      <Configuration>{pair.split('|')[0]}</Configuration>\n"
        f"      <Platform>{pair.split('|')[1]}</Platform>\n"
        f"    </ProjectConfiguration>"
        for pair in pairs
    )
    return VCXPROJ_TEMPLATE.format(
        namespace=MSBUILD_NAMESPACE,
        configurations=configurations,
        guid=guid,
        name=name,
        body=body,
    )


@pytest.fixture
def write_vcxproj(tmp_path):
    """Factory writing a .vcxproj file under tmp_path."""

    def write(relative="Widget/Widget.vcxproj", **kwargs):
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        kwargs.setdefault("name", path.stem)
        path.write_text(vcxproj_text(**kwargs), encoding="utf-8")
        return path

    return write


@pytest.fixture
def write_solution(tmp_path):
    """Factory writing a .sln file.

    Projects are (name, relative path, guid) or (name, relative path, guid,
    type guid); nesting maps child guid to parent guid.
    """

    def write(projects, nesting=None, pairs=DEFAULT_PAIRS, name="Product.sln"):
        lines = [
            "",
            "Microsoft Visual Studio Solution File, Format Version 12.00",
            "# Visual Studio 15",
        ]
        for entry in projects:
            project_name, relative, guid = entry[:3]
            type_guid = entry[3] if len(entry) > 3 else VC_PROJECT_TYPE
            lines.append(
                f'Project("{{{type_guid}}}") = "{project_name}", "{relative}", "{{{guid}}}"'
            )
            lines.append("EndProject")
        lines.append("Global")
        lines.append("\tGlobalSection(SolutionConfigurationPlatforms) = preSolution")
        for pair in pairs:
            lines.append(f"\t\t{pair} = {pair}")
        lines.append("\tEndGlobalSection")
        if nesting:
            lines.append("\tGlobalSection(NestedProjects) = preSolution")
            for child, parent in nesting.items():
                lines.append(f"\t\t{{{child}}} = {{{parent}}}")
            lines.append("\tEndGlobalSection")
        lines.append("EndGlobal")

        path = tmp_path / name
        path.write_text("\r\n".join(lines) + "\r\n", encoding="utf-8-sig")
        return path

    return write


@pytest.fixture
def msbuild_exe(tmp_path):
    """A regular file standing in for MSBuild.exe."""
    path = tmp_path / "tools" / "MSBuild.exe"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


@dataclass
class RunnerCall:
    """One recorded ProcessRunner.run call."""

    command: str
    arguments: list[str]
    working_directory: Path
    stdin: str | None = None
    timeout: float | None = None

    @property
    def command_line(self) -> list[str]:
        return [self.command, *self.arguments]


@dataclass
class FakeRunner:
    """ProcessRunner stand-in that records calls instead of spawning.

    ``exit_code`` maps a call to its exit code; ``stdout``/``stderr`` map a
    call to the lines delivered to the consumers.
    """

    exit_code: object = None
    stdout: object = None
    stderr: object = None
    calls: list[RunnerCall] = field(default_factory=list)

    def run(
        self,
        command,
        arguments,
        working_directory,
        stdin=None,
        stdout_consumer=None,
        stderr_consumer=None,
        timeout=None,
    ):
        call = RunnerCall(str(command), list(arguments), Path(working_directory), stdin, timeout)
        self.calls.append(call)
        for lines, consumer in ((self.stdout, stdout_consumer), (self.stderr, stderr_consumer)):
            if lines is not None and consumer is not None:
                for line in lines(call):
                    consumer(line)
        return self.exit_code(call) if self.exit_code is not None else 0


@pytest.fixture
def fake_runner():
    return FakeRunner()
