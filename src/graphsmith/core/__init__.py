"""Core functionality for workflow compilation.

- **compile_workflow**: Editor graph to execution graph compiler
- **node_registry**: Per-type widget orders, required parameters and titles
- **process_workflow_prompts**: Prompt injection followed by compilation
- **analyze_workflow** / **validate_and_fix_workflow**: Parameter checks and repairs
- **build_prompt_payload** and friends: Helpers for either workflow format
- **GraphsmithConfig**: Configuration management using Pydantic Settings
- **config**: Global configuration instance (loads from environment variables)

Architecture Overview
---------------------
The compiler is a fixed pipeline of small modules, leaves first:

1. **Links** (links.py): link list to ``{link_id: Link}`` table
2. **Classifier** (classifier.py): muted, presentation-only, bypassed, active
3. **Mapper** (mapper.py, node_specs.py, normalizers.py): positional widget
   values to named inputs, with per-type normalizers for irregular layouts
4. **Rewriter** (rewriter.py): repair references to dropped nodes
5. **Validator** (validator.py): node ids and required parameters

compiler.py runs the pipeline; injection.py edits templates before it runs.
Non-fatal findings are collected on a Diagnostics instance (diagnostics.py);
fatal ones raise StructuralError (errors.py).

Usage Example
-------------
    from graphsmith.core import compile_workflow, process_workflow_prompts

    result = compile_workflow(editor_graph)
    print(result.workflow, result.diagnostics.issues)

    api_workflow = process_workflow_prompts(
        editor_graph, {"positivePrompt": "a red fox", "steps": 25}
    )
"""

from graphsmith.core.analysis import (
    analyze_workflow,
    auto_fix_workflow,
    quick_fix_bypass_upscale_nodes,
    validate_and_fix_workflow,
)
from graphsmith.core.compiler import CompileResult, compile_workflow
from graphsmith.core.config import GraphsmithConfig, config
from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.injection import (
    InjectionParams,
    generate_client_id,
    inject_parameters,
    inject_prompt_by_title,
    process_workflow_prompts,
    validate_workflow_structure,
)
from graphsmith.core.node_specs import NodeTypeSpec, node_registry
from graphsmith.core.workflow_utils import (
    build_prompt_payload,
    ensure_execution_format,
    extract_prompts,
    find_nodes_by_type,
    is_editor_format,
    load_workflow,
    update_node_params,
    update_prompts,
)

__all__ = [
    "analyze_workflow",
    "auto_fix_workflow",
    "build_prompt_payload",
    "CompileResult",
    "compile_workflow",
    "config",
    "Diagnostics",
    "ensure_execution_format",
    "extract_prompts",
    "find_nodes_by_type",
    "generate_client_id",
    "GraphsmithConfig",
    "inject_parameters",
    "inject_prompt_by_title",
    "InjectionParams",
    "is_editor_format",
    "load_workflow",
    "NodeTypeSpec",
    "node_registry",
    "process_workflow_prompts",
    "quick_fix_bypass_upscale_nodes",
    "update_node_params",
    "update_prompts",
    "validate_and_fix_workflow",
    "validate_workflow_structure",
]
