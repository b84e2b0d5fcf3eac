"""Utility modules for msbuild-mcp."""

from .project import (
    ProjectRootConfig,
    find_project_file,
    find_project_root,
    get_project_root,
    parse_file_uri,
)

__all__ = [
    "get_project_root",
    "find_project_root",
    "find_project_file",
    "parse_file_uri",
    "ProjectRootConfig",
]
