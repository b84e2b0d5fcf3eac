"""Build orchestration over a platform/configuration matrix.

Provides:
- Matrix resolution with caller-supplied defaults
- Pre-flight validation (packaging, tool location, project file)
- MSBuild command construction and phase orchestration
- Invocation, pair and phase results with MSBuild diagnostics
"""

from .matrix import BuildConfiguration, BuildPlatform, MatrixResolver, iter_pairs
from .orchestrator import BuildOrchestrator, PhasePlan, PhaseRequest
from .policy import BuildPolicy, PhaseKind, locate_tool
from .state import (
    BuildDiagnostic,
    BuildErrorSeverity,
    InvocationResult,
    PairResult,
    PhaseResult,
    parse_msbuild_output,
)

__all__ = [
    "BuildConfiguration",
    "BuildPlatform",
    "MatrixResolver",
    "iter_pairs",
    "BuildOrchestrator",
    "PhasePlan",
    "PhaseRequest",
    "BuildPolicy",
    "PhaseKind",
    "locate_tool",
    "BuildDiagnostic",
    "BuildErrorSeverity",
    "InvocationResult",
    "PairResult",
    "PhaseResult",
    "parse_msbuild_output",
]
