"""C++ quality tool adapters and Sonar configuration emission."""

from .base import QualityTool, ReportStream, interpret_exit_code
from .cppcheck import CppCheckTool
from .cxxtest import CxxTestGenTool
from .sonar import SonarConfigEmitter, system_include_directories
from .vera import VeraTool

__all__ = [
    "QualityTool",
    "ReportStream",
    "interpret_exit_code",
    "VeraTool",
    "CppCheckTool",
    "CxxTestGenTool",
    "SonarConfigEmitter",
    "system_include_directories",
]
