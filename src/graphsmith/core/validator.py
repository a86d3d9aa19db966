"""Structural checks on node ids and required parameters."""

from __future__ import annotations

import logging
from typing import Any

from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.errors import StructuralError
from graphsmith.core.models import CompiledGraph
from graphsmith.core.node_specs import NodeTypeRegistry, node_registry

logger = logging.getLogger(__name__)

ID_PLACEHOLDER = "#id"


def is_valid_node_id(node_id: Any) -> bool:
    if node_id is None or isinstance(node_id, bool):
        return False
    text = str(node_id).strip()
    return bool(text) and text != ID_PLACEHOLDER and "#" not in text


def validate_node_id(node_id: Any) -> str:
    """Return the stringified id, or raise for an unusable one.

    Raises:
        StructuralError: For ``None``, empty ids, the ``"#id"`` placeholder or
            any id containing ``#``.
    """
    if not is_valid_node_id(node_id):
        raise StructuralError(f"Invalid node ID: {node_id!r}", node_id=node_id)
    return str(node_id).strip()


def missing_required_params(
    class_type: str,
    inputs: dict[str, Any],
    registry: NodeTypeRegistry | None = None,
) -> list[str]:
    registry = registry if registry is not None else node_registry
    return [p for p in registry.required_params(class_type) if inputs.get(p) is None]


def validate_compiled_graph(
    graph: CompiledGraph,
    diagnostics: Diagnostics | None = None,
    registry: NodeTypeRegistry | None = None,
) -> bool:
    """Check every compiled node for its required parameters.

    Missing parameters are recorded on ``diagnostics`` and the matching node
    report; they never abort compilation.

    Returns:
        True if no node is missing a required parameter.

    Raises:
        StructuralError: If a node has an invalid id or an empty class type.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    complete = True

    for node_id, node in graph.items():
        validate_node_id(node_id)
        if not node.class_type:
            raise StructuralError(f"Node {node_id} is missing class_type", node_id=node_id)

        missing = missing_required_params(node.class_type, node.inputs, registry)
        report = diagnostics.get_report(node_id)
        if report is not None:
            report.has_required_params = not missing
            report.missing_params = missing or None
        if not missing:
            continue

        complete = False
        diagnostics.issue(
            f"Node {node_id} ({node.class_type}) missing required parameters: "
            f"{', '.join(missing)}",
            f"Set {', '.join(missing)} on node {node_id} or bypass it",
        )

    return complete


def validate_api_workflow(workflow: Any, registry: NodeTypeRegistry | None = None) -> bool:
    """Sanity-check a serialised execution-format workflow.

    Fails on an empty workflow or a node without ``class_type``/``inputs``.
    Missing required parameters are only logged, since some are optional in
    practice.
    """
    if not isinstance(workflow, dict) or not workflow:
        logger.error("Workflow is empty")
        return False

    for node_id, node in workflow.items():
        if not isinstance(node, dict) or not node.get("class_type") or not isinstance(
            node.get("inputs"), dict
        ):
            logger.error(f"Invalid node {node_id}: missing class_type or inputs")
            return False

        missing = missing_required_params(node["class_type"], node["inputs"], registry)
        if missing:
            logger.warning(
                f"Node {node_id} ({node['class_type']}) missing required parameters: "
                f"{', '.join(missing)}"
            )

    return True
