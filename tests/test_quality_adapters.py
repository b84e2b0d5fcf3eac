"""Tests for the CxxTestGen, Vera++ and CppCheck adapters."""

from pathlib import Path
from unittest.mock import patch

import pytest

from msbuild_mcp.errors import ToolExecutionError, ToolNotFoundError
from msbuild_mcp.parser import VCProject
from msbuild_mcp.quality import CppCheckTool, CxxTestGenTool, QualityTool, VeraTool, interpret_exit_code
from msbuild_mcp.quality.base import executable_name


@pytest.fixture
def project(tmp_path):
    """A parsed project inside a solution directory."""
    solution_dir = tmp_path / "product"
    project_dir = solution_dir / "Widget"
    return VCProject(
        name="Widget",
        project_file=project_dir / "Widget.vcxproj",
        platform="x64",
        configuration="Debug",
        base_directory=solution_dir,
        output_directory=solution_dir / "x64" / "Debug",
        include_directories=(project_dir / "include", solution_dir / "common"),
        preprocessor_definitions=("WIN32", "_DEBUG"),
        source_files=(project_dir / "src" / "main.cpp", project_dir / "src" / "util.cpp"),
        header_files=(project_dir / "include" / "widget.h", project_dir / "tests" / "TestWidget.h"),
    )


def make_home(root, *parts):
    executable = root.joinpath(*parts)
    executable.parent.mkdir(parents=True, exist_ok=True)
    executable.write_text("")
    return executable


class TestInterpretExitCode:
    """Tests for exit code classification."""

    def test_zero_passes(self):
        assert interpret_exit_code("vera", 0) is True

    @pytest.mark.parametrize("exit_code", [1, 2, 3])
    def test_positive_codes_are_violations(self, exit_code):
        assert interpret_exit_code("vera", exit_code) is False

    @pytest.mark.parametrize("exit_code", [-9, 126, 127, 0xC0000005, 0xC0000135])
    def test_launch_failures_raise(self, exit_code):
        with pytest.raises(ToolExecutionError) as exc_info:
            interpret_exit_code("cppcheck", exit_code)
        assert exc_info.value.exit_code == exit_code


class TestVeraTool:
    """Tests for the Vera++ adapter."""

    def test_is_quality_tool(self):
        assert isinstance(VeraTool(), QualityTool)
        assert VeraTool.name == "vera"
        assert VeraTool.report_stream == "stdout"

    def test_locate_from_environment(self, tmp_path):
        executable = make_home(tmp_path, "vera", "bin", executable_name("vera++"))
        tool = VeraTool()

        assert tool.locate({"VERA_HOME": str(tmp_path / "vera")}) == executable
        assert tool.vera_home == tmp_path / "vera"

    def test_locate_missing(self):
        with pytest.raises(ToolNotFoundError, match="VERA_HOME"):
            VeraTool().locate({})

    def test_arguments(self, project, tmp_path):
        tool = VeraTool(vera_home=tmp_path / "vera", profile="default")
        assert tool.build_arguments(project) == [
            "--root",
            str(tmp_path / "vera" / "lib" / "vera++"),
            "--profile",
            "default",
            "--checkstyle-report",
            "-",
            "--warning",
            "--quiet",
        ]

    def test_stdin_lists_files_relative_to_base_directory(self, project):
        """Test sources and headers are listed one per line."""
        lines = VeraTool().stdin_for(project).splitlines()
        assert [Path(line) for line in lines] == [
            Path("Widget/src/main.cpp"),
            Path("Widget/src/util.cpp"),
            Path("Widget/include/widget.h"),
            Path("Widget/tests/TestWidget.h"),
        ]
        assert VeraTool().working_directory_for(project) == project.base_directory

    def test_stdin_keeps_absolute_path_on_other_drive(self, project):
        """Test files that cannot be made relative are listed as given."""
        with patch("os.path.relpath", side_effect=ValueError("path is on mount 'D:'")):
            lines = VeraTool().stdin_for(project).splitlines()
        assert lines[0] == str(project.source_files[0])
        assert len(lines) == 4

    def test_report_path(self, project):
        path = VeraTool().report_path_for(project)
        assert path == project.project_directory / "checkstyle-reports" / "vera-report-Widget-x64-Debug.xml"

    def test_report_pattern(self):
        assert VeraTool().report_pattern("x64", "Debug") == (
            "**/checkstyle-reports/vera-report-*-x64-Debug.xml"
        )

    def test_custom_report_directory(self, project, tmp_path):
        tool = VeraTool(report_directory=tmp_path / "reports")
        assert tool.report_path_for(project).parent == tmp_path / "reports"
        assert tool.report_pattern("x64", "Debug").startswith((tmp_path / "reports").as_posix())

    def test_applies_to_projects_with_files(self, project):
        empty = VCProject(
            name="Empty",
            project_file=project.project_file,
            platform="x64",
            configuration="Debug",
            base_directory=project.base_directory,
            output_directory=project.output_directory,
        )
        assert VeraTool().applies_to(project)
        assert not VeraTool().applies_to(empty)


class TestCppCheckTool:
    """Tests for the CppCheck adapter."""

    def test_report_on_stderr(self):
        assert CppCheckTool.report_stream == "stderr"

    def test_locate_from_environment(self, tmp_path):
        executable = make_home(tmp_path, "cppcheck", executable_name("cppcheck"))
        tool = CppCheckTool()
        assert tool.locate({"CPPCHECK_PATH": str(executable)}) == executable

    def test_arguments(self, project):
        """Test includes, defines and sources keep their order."""
        tool = CppCheckTool(enable=["style", "performance"], extra_defines=["EXTRA"])
        assert tool.build_arguments(project) == [
            "--xml",
            "--xml-version=2",
            "--quiet",
            "--error-exitcode=1",
            "--enable=style,performance",
            "-I",
            str(project.include_directories[0]),
            "-I",
            str(project.include_directories[1]),
            "-D",
            "WIN32",
            "-D",
            "_DEBUG",
            "-D",
            "EXTRA",
            str(project.source_files[0]),
            str(project.source_files[1]),
        ]

    def test_error_exit_code_means_findings(self):
        assert CppCheckTool().interpret_result(0) is True
        assert CppCheckTool().interpret_result(1) is False

    @pytest.mark.parametrize("exit_code", [2, 3, 0xC0000005])
    def test_other_exit_codes_are_tool_failures(self, exit_code):
        """Test codes other than --error-exitcode are not reported as findings."""
        with pytest.raises(ToolExecutionError) as exc_info:
            CppCheckTool().interpret_result(exit_code)
        assert exc_info.value.exit_code == exit_code

    def test_no_enable_flag_by_default(self, project):
        assert not any(a.startswith("--enable") for a in CppCheckTool().build_arguments(project))

    def test_runs_in_project_directory(self, project):
        assert CppCheckTool().working_directory_for(project) == project.project_directory
        assert CppCheckTool().stdin_for(project) is None

    def test_report_path(self, project):
        path = CppCheckTool().report_path_for(project)
        assert path.parent.name == "cppcheck-reports"
        assert path.name == "cppcheck-report-Widget-x64-Debug.xml"


class TestCxxTestGenTool:
    """Tests for the CxxTestGen adapter."""

    def test_no_report_stream(self):
        assert CxxTestGenTool.report_stream is None

    def test_locate_from_environment(self, tmp_path):
        executable = make_home(tmp_path, "cxxtest", "bin", "cxxtestgen")
        tool = CxxTestGenTool()
        assert tool.locate({"CXXTEST_HOME": str(tmp_path / "cxxtest")}) == executable
        assert tool.cxxtest_home == tmp_path / "cxxtest"

    def test_test_headers_match_pattern(self, project):
        assert CxxTestGenTool().test_headers(project) == [project.header_files[1]]
        assert CxxTestGenTool(test_header_pattern="*.hpp").test_headers(project) == []

    def test_applies_only_with_test_headers(self, project):
        assert CxxTestGenTool().applies_to(project)
        assert not CxxTestGenTool(test_header_pattern="Suite*.h").applies_to(project)

    def test_arguments(self, project):
        tool = CxxTestGenTool()
        report = tool.report_path_for(project)
        assert tool.build_arguments(project) == [
            "--runner=XUnitPrinter",
            f"--xunit-file={report}",
            "-o",
            str(project.project_directory / "cxxtest-runner.cpp"),
            str(project.header_files[1]),
        ]
        assert report.parent.name == "cxxtest-reports"

    def test_template_argument(self, project, tmp_path):
        tool = CxxTestGenTool(template_file=tmp_path / "runner.tpl")
        arguments = tool.build_arguments(project)
        assert arguments[2] == f"--template={tmp_path / 'runner.tpl'}"
        assert arguments[3] == "-o"
