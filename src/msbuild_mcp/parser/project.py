"""Visual C++ project (.vcxproj) parsing.

A project file stores most settings per Configuration|Platform pair. Parsing
always targets one pair and yields one VCProject for it; the same file parsed
for another pair yields a different VCProject.
"""

from __future__ import annotations

import logging
import ntpath
import os
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path

from ..errors import ProjectConfigurationNotFoundError, ProjectParseError

logger = logging.getLogger(__name__)

# Simple comparison after macro substitution: 'a'=='b' or 'a'!='b'
CONDITION_PATTERN = re.compile(
    r"^\s*'(?P<left>[^']*)'\s*(?P<op>==|!=)\s*'(?P<right>[^']*)'\s*$"
)

MACRO_PATTERN = re.compile(r"\$\((?P<name>[A-Za-z_][A-Za-z0-9_.\-]*)\)")

WINDOWS_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")

INCLUDE_DIRS_PLACEHOLDER = "%(AdditionalIncludeDirectories)"
DEFINES_PLACEHOLDER = "%(PreprocessorDefinitions)"


@dataclass(frozen=True)
class VCProject:
    """Properties of a Visual C++ project for one platform/configuration pair."""

    name: str
    project_file: Path
    platform: str
    configuration: str
    base_directory: Path
    output_directory: Path
    guid: str | None = None
    solution_guid: str | None = None
    target_name: str | None = None
    include_directories: tuple[Path, ...] = ()
    preprocessor_definitions: tuple[str, ...] = ()
    source_files: tuple[Path, ...] = ()
    header_files: tuple[Path, ...] = ()

    @property
    def project_directory(self) -> Path:
        """Directory holding the project file."""
        return self.project_file.parent

    def __str__(self) -> str:
        return f"{self.name}-{self.platform}-{self.configuration}"


def _local_name(tag: str) -> str:
    """Strip the XML namespace from an element tag."""
    return tag.rsplit("}", 1)[-1]


def _children(element: ET.Element, name: str) -> Iterator[ET.Element]:
    for child in element:
        if _local_name(child.tag) == name:
            yield child


def expand_macros(value: str, macros: Mapping[str, str]) -> str:
    """Expand $(Name) references.

    Unknown names fall back to the environment and then to an empty string,
    which is what MSBuild does for undefined properties.
    """

    def replace(match: re.Match[str]) -> str:
        name = match.group("name")
        for key, macro in macros.items():
            if key.lower() == name.lower():
                return macro
        return os.environ.get(name, "")

    return MACRO_PATTERN.sub(replace, value)


def condition_matches(condition: str | None, platform: str, configuration: str) -> bool:
    """Evaluate an MSBuild Condition attribute for a pair.

    Only string comparisons over $(Configuration) and $(Platform) are
    understood. Anything else is treated as not applying to the pair.
    """
    if condition is None or not condition.strip():
        return True

    expanded = expand_macros(
        condition, {"Configuration": configuration, "Platform": platform}
    )
    match = CONDITION_PATTERN.match(expanded)
    if not match:
        logger.debug(f"Ignoring unsupported condition: {condition}")
        return False

    # MSBuild string comparisons are case-insensitive
    equal = match.group("left").lower() == match.group("right").lower()
    return equal if match.group("op") == "==" else not equal


def resolve_path(value: str, directory: Path) -> Path:
    """Resolve a path from a project file against a directory.

    Relative paths are always taken relative to ``directory``, never to the
    current working directory.
    """
    value = value.strip()
    if WINDOWS_DRIVE_PATTERN.match(value) or value.startswith("\\\\"):
        if os.name == "nt":
            return Path(ntpath.normpath(value))
        # Keep Windows absolute paths verbatim on other platforms
        return Path(value)

    candidate = Path(value.replace("\\", "/"))
    if not candidate.is_absolute():
        candidate = directory / candidate
    return Path(os.path.normpath(candidate))


def _merge_list(previous: list[str], value: str, placeholder: str) -> list[str]:
    """Merge a ;-separated MSBuild list, splicing inherited values at the placeholder."""
    merged: list[str] = []
    for part in value.split(";"):
        part = part.strip()
        if not part:
            continue
        if part.lower() == placeholder.lower():
            merged.extend(previous)
        elif part.startswith("%(") and part.endswith(")"):
            # Other inherited metadata carries nothing for this project
            continue
        else:
            merged.append(part)
    return merged


def _declared_pairs(root: ET.Element) -> set[tuple[str, str]]:
    """Return the (configuration, platform) pairs of the ProjectConfigurations group."""
    pairs: set[tuple[str, str]] = set()
    for group in _children(root, "ItemGroup"):
        if group.get("Label") != "ProjectConfigurations":
            continue
        for item in _children(group, "ProjectConfiguration"):
            include = item.get("Include", "")
            if "|" not in include:
                continue
            configuration, platform = include.split("|", 1)
            pairs.add((configuration.strip().lower(), platform.strip().lower()))
    return pairs


def _pair_referenced(root: ET.Element, platform: str, configuration: str) -> bool:
    """Check whether an element is conditioned on exactly this pair.

    Only ``==`` comparisons whose left side names both $(Configuration) and
    $(Platform) count; negated or partial conditions define no pair.
    """
    for element in root.iter():
        condition = element.get("Condition")
        if not condition:
            continue
        match = CONDITION_PATTERN.match(condition)
        if not match or match.group("op") != "==":
            continue
        left = match.group("left")
        if "$(Configuration)" not in left or "$(Platform)" not in left:
            continue
        if condition_matches(condition, platform, configuration):
            return True
    return False


def _default_output_directory(platform: str) -> str:
    if platform.lower() == "win32":
        return "$(SolutionDir)$(Configuration)\\"
    return "$(SolutionDir)$(Platform)\\$(Configuration)\\"


def _is_excluded(item: ET.Element, platform: str, configuration: str) -> bool:
    for child in _children(item, "ExcludedFromBuild"):
        if condition_matches(child.get("Condition"), platform, configuration):
            if (child.text or "").strip().lower() == "true":
                return True
    return False


def parse_project(
    project_file: str | Path,
    platform: str,
    configuration: str,
    base_directory: str | Path | None = None,
    *,
    name: str | None = None,
    solution_guid: str | None = None,
    target_name: str | None = None,
) -> VCProject:
    """Parse a .vcxproj file for one platform/configuration pair.

    Args:
        project_file: Path to the project file
        platform: Platform to parse (e.g. Win32, x64)
        configuration: Configuration to parse (e.g. Debug, Release)
        base_directory: Solution directory when the project belongs to a
            solution; defaults to the project directory
        name: Project name; defaults to the file stem
        solution_guid: Project GUID as recorded in the solution
        target_name: MSBuild target name of the project in its solution

    Returns:
        Parsed project

    Raises:
        ProjectParseError: If the file cannot be read or is not valid XML
        ProjectConfigurationNotFoundError: If the pair is not defined
    """
    project_path = Path(os.path.abspath(project_file))
    project_dir = project_path.parent
    base_dir = Path(os.path.abspath(base_directory)) if base_directory else project_dir
    project_name = name or project_path.stem

    try:
        tree = ET.parse(project_path)
    except ET.ParseError as e:
        raise ProjectParseError(str(project_path), f"malformed XML ({e})") from e
    except OSError as e:
        raise ProjectParseError(str(project_path), str(e)) from e

    root = tree.getroot()
    if _local_name(root.tag) != "Project":
        raise ProjectParseError(str(project_path), f"unexpected root element {_local_name(root.tag)}")

    declared = _declared_pairs(root)
    requested = (configuration.lower(), platform.lower())
    if declared:
        if requested not in declared:
            raise ProjectConfigurationNotFoundError(str(project_path), platform, configuration)
    elif not _pair_referenced(root, platform, configuration):
        raise ProjectConfigurationNotFoundError(str(project_path), platform, configuration)

    def applies(element: ET.Element) -> bool:
        return condition_matches(element.get("Condition"), platform, configuration)

    # Properties: later definitions override earlier ones
    properties: dict[str, str] = {}
    for group in _children(root, "PropertyGroup"):
        if not applies(group):
            continue
        for prop in group:
            if applies(prop) and prop.text is not None:
                properties[_local_name(prop.tag)] = prop.text.strip()

    macros: dict[str, str] = {
        "SolutionDir": str(base_dir) + os.sep,
        "ProjectDir": str(project_dir) + os.sep,
        "ProjectName": project_name,
        "ProjectPath": str(project_path),
        "ProjectFileName": project_path.name,
        "Configuration": configuration,
        "Platform": platform,
    }
    # File properties never override the built-in macros above
    lookup = {**properties, **macros}

    output_value = properties.get("OutDir") or _default_output_directory(platform)
    output_directory = resolve_path(expand_macros(output_value, lookup), project_dir)
    lookup["OutDir"] = str(output_directory) + os.sep

    # Compiler settings from item definitions
    include_values: list[str] = []
    define_values: list[str] = []
    for group in _children(root, "ItemDefinitionGroup"):
        if not applies(group):
            continue
        for compile_def in _children(group, "ClCompile"):
            if not applies(compile_def):
                continue
            for setting in compile_def:
                if not applies(setting) or setting.text is None:
                    continue
                setting_name = _local_name(setting.tag)
                if setting_name == "AdditionalIncludeDirectories":
                    include_values = _merge_list(
                        include_values, setting.text, INCLUDE_DIRS_PLACEHOLDER
                    )
                elif setting_name == "PreprocessorDefinitions":
                    define_values = _merge_list(define_values, setting.text, DEFINES_PLACEHOLDER)

    include_directories = tuple(
        resolve_path(expanded, project_dir)
        for expanded in (expand_macros(value, lookup) for value in include_values)
        if expanded.strip()
    )
    preprocessor_definitions = tuple(
        expanded for expanded in (expand_macros(d, lookup) for d in define_values) if expanded
    )

    # Source and header items
    sources: list[Path] = []
    headers: list[Path] = []
    for group in _children(root, "ItemGroup"):
        if not applies(group):
            continue
        for item in group:
            kind = _local_name(item.tag)
            if kind not in ("ClCompile", "ClInclude"):
                continue
            if not applies(item) or _is_excluded(item, platform, configuration):
                continue
            for entry in item.get("Include", "").split(";"):
                entry = expand_macros(entry, lookup).strip()
                if not entry:
                    continue
                target = sources if kind == "ClCompile" else headers
                target.append(resolve_path(entry, project_dir))

    guid = properties.get("ProjectGuid")
    project = VCProject(
        name=project_name,
        project_file=project_path,
        platform=platform,
        configuration=configuration,
        base_directory=base_dir,
        output_directory=output_directory,
        guid=guid.strip("{}") if guid else None,
        solution_guid=solution_guid,
        target_name=target_name,
        include_directories=include_directories,
        preprocessor_definitions=preprocessor_definitions,
        source_files=tuple(sources),
        header_files=tuple(headers),
    )
    logger.debug(
        f"Parsed {project}: {len(sources)} sources, {len(headers)} headers, "
        f"{len(include_directories)} include directories"
    )
    return project
