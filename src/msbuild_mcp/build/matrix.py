"""Platform/configuration matrix resolution.

Resolution performs no I/O. Default values are supplied by the caller.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from ..errors import InvalidMatrixError


@dataclass(frozen=True)
class BuildConfiguration:
    """A build configuration (e.g. Debug, Release) of one platform."""

    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class BuildPlatform:
    """A build platform (e.g. Win32, x64) with its ordered configurations."""

    name: str
    configurations: tuple[BuildConfiguration, ...] = field(default_factory=tuple)

    def pairs(self) -> Iterator[tuple[str, str]]:
        """Yield (platform, configuration) name pairs."""
        for configuration in self.configurations:
            yield self.name, configuration.name

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"name": self.name, "configurations": [c.name for c in self.configurations]}


Matrix = tuple[BuildPlatform, ...]

PlatformDeclaration = BuildPlatform | Mapping[str, Any] | str


def iter_pairs(matrix: Iterable[BuildPlatform]) -> Iterator[tuple[str, str]]:
    """Yield every (platform, configuration) pair of a matrix in order."""
    for platform in matrix:
        yield from platform.pairs()


class MatrixResolver:
    """Normalizes and validates a declared platform/configuration matrix.

    Usage:
        resolver = MatrixResolver("Win32", "Release")
        matrix = resolver.resolve([{"name": "x64", "configurations": ["Debug"]}])
    """

    def __init__(self, default_platform: str, default_configuration: str):
        if not default_platform or not default_configuration:
            raise InvalidMatrixError("Default platform and configuration must be non-empty")
        self.default_platform = default_platform
        self.default_configuration = default_configuration

    def _normalize(self, declaration: PlatformDeclaration) -> tuple[str, list[str]]:
        """Turn one declaration into (platform name, configuration names)."""
        if isinstance(declaration, BuildPlatform):
            return declaration.name, [c.name for c in declaration.configurations]
        if isinstance(declaration, str):
            return declaration, []
        if isinstance(declaration, Mapping):
            configurations = declaration.get("configurations") or []
            if isinstance(configurations, str):
                configurations = [configurations]
            names = [
                c.name if isinstance(c, BuildConfiguration) else str(c)
                for c in configurations
            ]
            return str(declaration.get("name") or ""), names
        raise InvalidMatrixError(f"Unsupported platform declaration: {declaration!r}")

    def resolve(self, declared: Iterable[PlatformDeclaration] | None) -> Matrix:
        """Validate a declared matrix.

        Args:
            declared: Platforms as BuildPlatform objects, mappings with
                ``name`` and ``configurations`` keys, or bare platform names

        Returns:
            Ordered, validated platforms

        Raises:
            InvalidMatrixError: If a name is empty or duplicated
        """
        declarations = list(declared or [])
        if not declarations:
            return (
                BuildPlatform(
                    self.default_platform,
                    (BuildConfiguration(self.default_configuration),),
                ),
            )

        resolved: list[BuildPlatform] = []
        seen_platforms: set[str] = set()
        for declaration in declarations:
            name, configuration_names = self._normalize(declaration)
            name = name.strip()
            if not name:
                raise InvalidMatrixError("Platform name must not be empty")
            if name.lower() in seen_platforms:
                raise InvalidMatrixError(f"Duplicate platform: {name}", platform=name)
            seen_platforms.add(name.lower())

            configurations: list[BuildConfiguration] = []
            seen_configurations: set[str] = set()
            for configuration_name in configuration_names:
                configuration_name = configuration_name.strip()
                if not configuration_name:
                    raise InvalidMatrixError(
                        f"Configuration name must not be empty (platform {name})",
                        platform=name,
                    )
                if configuration_name.lower() in seen_configurations:
                    raise InvalidMatrixError(
                        f"Duplicate configuration {configuration_name} for platform {name}",
                        platform=name,
                        configuration=configuration_name,
                    )
                seen_configurations.add(configuration_name.lower())
                configurations.append(BuildConfiguration(configuration_name))

            if not configurations:
                configurations.append(BuildConfiguration(self.default_configuration))

            resolved.append(BuildPlatform(name, tuple(configurations)))

        return tuple(resolved)
