"""Tests for .vcxproj parsing."""

import os
from pathlib import Path

import pytest

from msbuild_mcp.errors import ProjectConfigurationNotFoundError, ProjectParseError
from msbuild_mcp.parser import condition_matches, expand_macros, parse_project, resolve_path


class TestConditionMatches:
    """Tests for MSBuild condition evaluation."""

    def test_empty_condition_applies(self):
        assert condition_matches(None, "Win32", "Debug")
        assert condition_matches("  ", "Win32", "Debug")

    def test_pair_condition(self):
        """Test the usual Configuration|Platform comparison."""
        condition = "'$(Configuration)|$(Platform)'=='Debug|Win32'"
        assert condition_matches(condition, "Win32", "Debug")
        assert not condition_matches(condition, "x64", "Debug")

    def test_comparison_is_case_insensitive(self):
        condition = "'$(Configuration)|$(Platform)'=='debug|WIN32'"
        assert condition_matches(condition, "Win32", "Debug")

    def test_not_equal(self):
        condition = "'$(Platform)' != 'x64'"
        assert condition_matches(condition, "Win32", "Release")
        assert not condition_matches(condition, "x64", "Release")

    def test_unsupported_condition_does_not_apply(self):
        """Test conditions outside simple comparisons are ignored."""
        assert not condition_matches("Exists('props.user')", "Win32", "Debug")


class TestExpandMacros:
    """Tests for $(Name) expansion."""

    def test_known_macro(self):
        assert expand_macros("$(ProjectDir)include", {"ProjectDir": "/p/"}) == "/p/include"

    def test_macro_names_are_case_insensitive(self):
        assert expand_macros("$(platform)", {"Platform": "x64"}) == "x64"

    def test_unknown_macro_falls_back_to_environment(self, monkeypatch):
        monkeypatch.setenv("BOOST_ROOT", "/opt/boost")
        assert expand_macros("$(BOOST_ROOT)/include", {}) == "/opt/boost/include"

    def test_undefined_macro_is_empty(self, monkeypatch):
        monkeypatch.delenv("NO_SUCH_PROPERTY", raising=False)
        assert expand_macros("a$(NO_SUCH_PROPERTY)b", {}) == "ab"


class TestResolvePath:
    """Tests for project-relative path resolution."""

    def test_relative_to_directory(self, tmp_path):
        """Test relative paths never use the current directory."""
        assert resolve_path("src\\main.cpp", tmp_path) == tmp_path / "src" / "main.cpp"

    def test_parent_segments_normalized(self, tmp_path):
        assert resolve_path("..\\common", tmp_path / "Widget") == tmp_path / "common"

    def test_absolute_path_kept(self, tmp_path):
        absolute = tmp_path / "abs"
        assert resolve_path(str(absolute), Path("/elsewhere")) == absolute

    @pytest.mark.skipif(os.name == "nt", reason="POSIX behaviour")
    def test_windows_drive_path_kept_verbatim(self, tmp_path):
        assert resolve_path("C:\\SDK\\include", tmp_path) == Path("C:\\SDK\\include")


class TestParseProject:
    """Tests for parse_project."""

    def test_basic_properties(self, write_vcxproj):
        """Test name, pair, GUID and directories."""
        path = write_vcxproj()
        project = parse_project(path, "Win32", "Debug")

        assert project.name == "Widget"
        assert project.platform == "Win32"
        assert project.configuration == "Debug"
        assert project.guid == "11111111-2222-3333-4444-555555555555"
        assert project.project_file == path
        assert project.base_directory == path.parent
        assert project.solution_guid is None
        assert project.target_name is None
        assert str(project) == "Widget-Win32-Debug"

    def test_include_directories_keep_order_and_duplicates(self, write_vcxproj):
        path = write_vcxproj()
        project = parse_project(path, "Win32", "Debug")

        directory = path.parent
        assert project.include_directories == (
            directory / "include",
            directory.parent / "common",
            directory / "include",
        )

    def test_definitions_keep_order_and_duplicates(self, write_vcxproj):
        """Test inherited placeholders are dropped, everything else kept."""
        project = parse_project(write_vcxproj(), "Win32", "Debug")
        assert project.preprocessor_definitions == ("WIN32", "_DEBUG", "WIN32")

    def test_pair_specific_settings(self, write_vcxproj):
        """Test settings of other pairs are not applied."""
        path = write_vcxproj()
        project = parse_project(path, "x64", "Release")

        assert project.preprocessor_definitions == ("NDEBUG",)
        assert project.include_directories == (path.parent / "include",)

    def test_sources_and_headers(self, write_vcxproj):
        path = write_vcxproj()
        directory = path.parent
        project = parse_project(path, "Win32", "Debug")

        assert project.source_files == (
            directory / "src" / "main.cpp",
            directory / "src" / "debug_only.cpp",
        )
        assert project.header_files == (
            directory / "include" / "widget.h",
            directory / "tests" / "TestWidget.h",
        )

    def test_excluded_from_build_for_pair(self, write_vcxproj):
        """Test items excluded for the pair are skipped."""
        path = write_vcxproj()
        project = parse_project(path, "x64", "Release")
        assert project.source_files == (path.parent / "src" / "main.cpp",)

    def test_default_output_directory_win32(self, write_vcxproj):
        path = write_vcxproj()
        project = parse_project(path, "Win32", "Release")
        assert project.output_directory == path.parent / "Release"

    def test_default_output_directory_other_platform(self, write_vcxproj):
        path = write_vcxproj()
        project = parse_project(path, "x64", "Debug")
        assert project.output_directory == path.parent / "x64" / "Debug"

    def test_configured_output_directory(self, write_vcxproj):
        """Test OutDir macros expand against the solution directory."""
        path = write_vcxproj()
        solution_dir = path.parent.parent
        project = parse_project(path, "x64", "Release", solution_dir)
        assert project.output_directory == solution_dir / "bin" / "x64"

    def test_solution_membership_fields(self, write_vcxproj):
        path = write_vcxproj()
        project = parse_project(
            path,
            "Win32",
            "Debug",
            path.parent.parent,
            name="Widget",
            solution_guid="ABC",
            target_name="Libraries\\Widget",
        )
        assert project.base_directory == path.parent.parent
        assert project.solution_guid == "ABC"
        assert project.target_name == "Libraries\\Widget"

    def test_missing_pair(self, write_vcxproj):
        """Test an undeclared pair is reported with project and pair."""
        path = write_vcxproj(pairs=("Debug|Win32",))
        with pytest.raises(ProjectConfigurationNotFoundError) as exc_info:
            parse_project(path, "x64", "Release")

        message = str(exc_info.value)
        assert "x64" in message
        assert "Release" in message
        assert str(path) in message

    def test_pair_from_conditions_without_configuration_group(self, tmp_path):
        """Test files without ProjectConfigurations accept pairs named in conditions."""
        path = tmp_path / "Legacy.vcxproj"
        path.write_text(
            "<Project>"
            "<PropertyGroup Condition=\"'$(Configuration)|$(Platform)'=='Debug|Win32'\">"
            "<OutDir>out\\</OutDir></PropertyGroup>"
            "</Project>"
        )

        project = parse_project(path, "Win32", "Debug")
        assert project.output_directory == tmp_path / "out"
        with pytest.raises(ProjectConfigurationNotFoundError):
            parse_project(path, "x64", "Debug")

    @pytest.mark.parametrize(
        "condition",
        [
            "'$(Configuration)'!='Debug'",
            "'$(Configuration)|$(Platform)'!='Debug|Win32'",
            "'$(Configuration)'=='Nope'",
        ],
    )
    def test_negated_or_partial_conditions_define_no_pair(self, tmp_path, condition):
        """Test a pair is only found through an equality on both configuration and platform."""
        path = tmp_path / "Legacy.vcxproj"
        path.write_text(
            f"<Project><PropertyGroup Condition=\"{condition}\">"
            "<OutDir>out\\</OutDir></PropertyGroup></Project>"
        )

        with pytest.raises(ProjectConfigurationNotFoundError):
            parse_project(path, "Bogus", "Nope")

    def test_malformed_xml(self, tmp_path):
        path = tmp_path / "Broken.vcxproj"
        path.write_text("<Project><ItemGroup>")
        with pytest.raises(ProjectParseError, match="malformed"):
            parse_project(path, "Win32", "Debug")

    def test_unreadable_file(self, tmp_path):
        with pytest.raises(ProjectParseError):
            parse_project(tmp_path / "Missing.vcxproj", "Win32", "Debug")

    def test_parse_is_per_pair(self, write_vcxproj):
        """Test the same file parsed for two pairs yields two projects."""
        path = write_vcxproj()
        debug = parse_project(path, "Win32", "Debug")
        release = parse_project(path, "x64", "Release")
        assert debug != release
        assert debug.project_file == release.project_file
