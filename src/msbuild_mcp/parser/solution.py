"""Visual Studio solution (.sln) parsing."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from pathlib import Path

from ..errors import MissingProjectFileError, ProjectParseError
from .project import resolve_path

logger = logging.getLogger(__name__)

# Project("{TYPE-GUID}") = "Name", "relative\path.vcxproj", "{PROJECT-GUID}"
PROJECT_PATTERN = re.compile(
    r'^Project\("\{(?P<type>[^}]+)\}"\)\s*=\s*"(?P<name>[^"]+)"\s*,\s*'
    r'"(?P<path>[^"]+)"\s*,\s*"\{(?P<guid>[^}]+)\}"',
    re.MULTILINE,
)

SECTION_PATTERN = r"GlobalSection\({name}\)[^\n]*\n(?P<body>.*?)EndGlobalSection"

NESTED_ENTRY_PATTERN = re.compile(
    r"^\s*\{(?P<child>[^}]+)\}\s*=\s*\{(?P<parent>[^}]+)\}\s*$", re.MULTILINE
)

CONFIGURATION_ENTRY_PATTERN = re.compile(
    r"^\s*(?P<configuration>[^|=\s][^|=]*)\|(?P<platform>[^=]+?)\s*=", re.MULTILINE
)

SOLUTION_FOLDER_TYPE = "2150E333-8FDC-42A3-9474-1A3956D46DE8"

VC_PROJECT_EXTENSION = ".vcxproj"


@dataclass(frozen=True)
class SolutionProject:
    """A C++ project referenced by a solution."""

    name: str
    project_file: Path
    solution_guid: str
    target_name: str


def _read_solution(solution_file: Path) -> str:
    try:
        # Visual Studio writes solutions with a byte order mark
        return solution_file.read_text(encoding="utf-8-sig", errors="replace")
    except OSError as e:
        raise ProjectParseError(str(solution_file), str(e)) from e


def _section(text: str, name: str) -> str:
    match = re.search(SECTION_PATTERN.format(name=name), text, re.DOTALL)
    return match.group("body") if match else ""


def _target_name(guid: str, names: dict[str, str], parents: dict[str, str]) -> str:
    """Build the MSBuild target name from the solution folder hierarchy.

    MSBuild replaces '.' with '_' in solution target names.
    """
    segments = [names[guid]]
    seen = {guid}
    current = parents.get(guid)
    while current is not None and current in names and current not in seen:
        seen.add(current)
        segments.append(names[current])
        current = parents.get(current)
    return "\\".join(segment.replace(".", "_") for segment in reversed(segments))


def parse_solution(solution_file: str | Path) -> list[SolutionProject]:
    """List the C++ projects of a solution in solution order.

    Args:
        solution_file: Path to the .sln file

    Returns:
        Projects with resolved project file paths

    Raises:
        ProjectParseError: If the solution cannot be read
        MissingProjectFileError: If a referenced project file does not exist
    """
    solution_path = Path(os.path.abspath(solution_file))
    text = _read_solution(solution_path)

    names: dict[str, str] = {}
    entries: list[tuple[str, str, str]] = []
    for match in PROJECT_PATTERN.finditer(text):
        guid = match.group("guid").upper()
        names[guid] = match.group("name")
        if match.group("type").upper() == SOLUTION_FOLDER_TYPE:
            continue
        entries.append((guid, match.group("name"), match.group("path")))

    parents = {
        m.group("child").upper(): m.group("parent").upper()
        for m in NESTED_ENTRY_PATTERN.finditer(_section(text, "NestedProjects"))
    }

    projects: list[SolutionProject] = []
    for guid, name, relative_path in entries:
        if not relative_path.lower().endswith(VC_PROJECT_EXTENSION):
            logger.debug(f"Skipping non C++ project {name} ({relative_path})")
            continue
        project_file = resolve_path(relative_path, solution_path.parent)
        if not project_file.is_file():
            raise MissingProjectFileError(str(solution_path), str(project_file))
        projects.append(
            SolutionProject(
                name=name,
                project_file=project_file,
                solution_guid=guid,
                target_name=_target_name(guid, names, parents),
            )
        )

    logger.debug(f"Solution {solution_path.name}: {len(projects)} C++ projects")
    return projects


def parse_solution_configurations(solution_file: str | Path) -> list[tuple[str, str]]:
    """Return the (configuration, platform) pairs a solution declares."""
    solution_path = Path(os.path.abspath(solution_file))
    body = _section(_read_solution(solution_path), "SolutionConfigurationPlatforms")
    return [
        (m.group("configuration").strip(), m.group("platform").strip())
        for m in CONFIGURATION_ENTRY_PATTERN.finditer(body)
    ]
