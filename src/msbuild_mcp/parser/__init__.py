"""Solution and Visual C++ project file parsing."""

from .project import VCProject, condition_matches, expand_macros, parse_project, resolve_path
from .solution import SolutionProject, parse_solution, parse_solution_configurations

__all__ = [
    "VCProject",
    "SolutionProject",
    "parse_project",
    "parse_solution",
    "parse_solution_configurations",
    "condition_matches",
    "expand_macros",
    "resolve_path",
]
