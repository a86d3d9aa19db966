"""Graphsmith - workflow graph compiler and prompt injection service."""

__version__ = "0.1.0"

from graphsmith.core.compiler import CompileResult, compile_workflow
from graphsmith.core.config import GraphsmithConfig, config
from graphsmith.core.errors import GraphsmithError, StructuralError
from graphsmith.core.injection import process_workflow_prompts

__all__ = [
    "CompileResult",
    "compile_workflow",
    "GraphsmithConfig",
    "config",
    "GraphsmithError",
    "StructuralError",
    "process_workflow_prompts",
]
