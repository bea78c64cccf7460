"""AR tracking target generation."""

from .compiler import CompilerPort, MindARCompiler
from .generator import ARTargetGenerator
from .workspace import TemporaryWorkspace, temp_workspace

__all__ = [
    "ARTargetGenerator",
    "CompilerPort",
    "MindARCompiler",
    "TemporaryWorkspace",
    "temp_workspace",
]
