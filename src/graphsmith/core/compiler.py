"""Editor graph to execution graph compiler.

The pipeline runs in a fixed order over a private copy of the input:

1. index the links (:mod:`graphsmith.core.links`);
2. classify every node and drop muted and presentation-only ones
   (:mod:`graphsmith.core.classifier`);
3. name each surviving node's inputs (:mod:`graphsmith.core.mapper`, with the
   normalizers registered in :mod:`graphsmith.core.normalizers`);
4. repair references to dropped nodes (:mod:`graphsmith.core.rewriter`);
5. check required parameters (:mod:`graphsmith.core.validator`).

Structural problems (no node list, a node without a class type, an unusable
node id) raise :class:`~graphsmith.core.errors.StructuralError`.  Everything
else is recorded on the returned :class:`CompileResult`'s diagnostics, and the
caller decides whether a warning is acceptable.

Usage:

    >>> from graphsmith.core.compiler import compile_workflow
    >>> result = compile_workflow(editor_json)
    >>> result.workflow          # plain dict for the execution engine
    >>> result.diagnostics.issues

Compiling never mutates ``editor_json`` and the same input always yields the
same output.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from graphsmith.core.classifier import classify_node, is_excluded
from graphsmith.core.diagnostics import Diagnostics, NodeReport
from graphsmith.core.errors import StructuralError
from graphsmith.core.links import build_link_table
from graphsmith.core.mapper import map_node_inputs
from graphsmith.core.models import (
    CompiledGraph,
    CompiledNode,
    EditorGraph,
    NodeMode,
    NodeStatus,
    graph_to_dict,
)
from graphsmith.core.node_specs import NodeTypeRegistry, node_registry
from graphsmith.core.rewriter import RedirectRule, rewrite_connections
from graphsmith.core.validator import validate_compiled_graph, validate_node_id

logger = logging.getLogger(__name__)


@dataclass
class CompileResult:
    """A compiled graph plus everything noticed while building it."""

    graph: CompiledGraph
    diagnostics: Diagnostics = field(default_factory=Diagnostics)

    @property
    def workflow(self) -> dict[str, dict[str, Any]]:
        """The compiled graph in the execution engine's JSON shape."""
        return graph_to_dict(self.graph)

    @property
    def ok(self) -> bool:
        return not self.diagnostics.has_issues

    def to_dict(self) -> dict[str, Any]:
        return {"workflow": self.workflow, "diagnostics": self.diagnostics.to_dict()}


def looks_like_execution_format(data: Any) -> bool:
    """True for a ``{id: {"class_type": ...}}`` mapping with no node list."""
    if not isinstance(data, dict) or "nodes" in data or "links" in data or not data:
        return False
    first = next(iter(data.values()))
    return isinstance(first, dict) and bool(first.get("class_type"))


def normalize_workflow_input(workflow: Any) -> dict[str, Any]:
    """Accept an editor graph as a dict or JSON string.

    Raises:
        StructuralError: For empty input, invalid JSON, a graph that is
            already in execution format, or one without a node list.
    """
    if workflow is None or workflow == "":
        raise StructuralError("Workflow is null or empty")

    if isinstance(workflow, (str, bytes)):
        try:
            workflow = json.loads(workflow)
        except json.JSONDecodeError as e:
            raise StructuralError(f"Failed to parse workflow JSON: {e}") from e

    if not isinstance(workflow, dict):
        raise StructuralError("Workflow must be a JSON object")

    if looks_like_execution_format(workflow):
        raise StructuralError("Workflow is already in execution format")

    if not isinstance(workflow.get("nodes"), list):
        raise StructuralError("Workflow missing or invalid nodes array")

    return workflow


def compile_workflow(
    workflow: Any,
    *,
    registry: NodeTypeRegistry | None = None,
    redirect_rules: Sequence[RedirectRule] | None = None,
    diagnostics: Diagnostics | None = None,
) -> CompileResult:
    """Compile an editor graph into an execution graph.

    Args:
        workflow: Editor graph as a dict or JSON string.
        registry: Node type registry, the global one by default.
        redirect_rules: Rules for repairing references to dropped nodes.
        diagnostics: Collector to record into; a fresh one by default.

    Returns:
        :class:`CompileResult` with the graph and its diagnostics.

    Raises:
        StructuralError: If the graph cannot be compiled at all.
    """
    registry = registry if registry is not None else node_registry
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()

    editor = EditorGraph.from_dict(normalize_workflow_input(workflow))
    link_table = build_link_table(editor.links, diagnostics)

    logger.info(
        f"Compiling workflow: {len(editor.nodes)} nodes, {len(link_table)} links"
    )

    graph: CompiledGraph = {}
    for node in editor.nodes:
        class_type = node.declared_type

        if node.mode == NodeMode.MUTED:
            status = NodeStatus.MUTED
        else:
            node_id = validate_node_id(node.id)
            if class_type is None:
                raise StructuralError(f"Node {node_id} has no class type", node_id=node_id)
            status = classify_node(node)

        diagnostics.report_node(
            NodeReport(id=node.id, declared_type=class_type, mode=node.mode, status=status)
        )

        if is_excluded(status):
            diagnostics.note(f"Skipping node {node.id} ({class_type}): {status.value}")
            continue
        if status is NodeStatus.BYPASSED:
            diagnostics.note(f"Bypassed node {node.id} ({class_type}) kept as a dependency")

        graph[node_id] = CompiledNode(
            class_type=class_type,
            inputs=map_node_inputs(node, link_table, diagnostics, registry),
            title=node.title or registry.title_for(class_type),
        )

    if not graph:
        raise StructuralError("Workflow has no executable nodes")

    graph = rewrite_connections(graph, diagnostics, redirect_rules)
    validate_compiled_graph(graph, diagnostics, registry)

    logger.info(
        f"Compiled {len(graph)} nodes with {len(diagnostics.issues)} issue(s)"
    )
    return CompileResult(graph=graph, diagnostics=diagnostics)


def convert_to_api_format(workflow: Any, **kwargs: Any) -> dict[str, dict[str, Any]]:
    """Compile and return only the execution-format dict."""
    return compile_workflow(workflow, **kwargs).workflow
