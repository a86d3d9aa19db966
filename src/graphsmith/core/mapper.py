"""Turn an editor node's sockets and positional widgets into named inputs."""

from __future__ import annotations

import logging
from typing import Any

# Import normalizers to ensure they're registered
from graphsmith.core import normalizers  # noqa: F401
from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.models import EditorNode, Link, NodeReference
from graphsmith.core.node_specs import (
    NodeTypeRegistry,
    assign_widgets,
    is_control_sentinel,
    node_registry,
)

logger = logging.getLogger(__name__)


def resolve_connections(
    node: EditorNode,
    link_table: dict[int, Link],
    diagnostics: Diagnostics,
) -> dict[str, NodeReference]:
    """Build references for every input socket with a resolvable link."""
    references: dict[str, NodeReference] = {}
    for slot in node.inputs:
        if slot.link is None:
            continue
        link = link_table.get(slot.link) if isinstance(slot.link, int) else None
        if link is None:
            diagnostics.issue(
                f"Node {node.id} input '{slot.name}' references unknown link {slot.link!r}",
                f"Reconnect input '{slot.name}' on node {node.id}",
            )
            continue
        references[slot.name] = NodeReference(str(link.source_node_id), link.source_slot)
    return references


def widget_input_names(node: EditorNode) -> list[str]:
    """Names of unlinked input sockets that were converted from widgets."""
    return [slot.name for slot in node.inputs if slot.link is None and slot.widget]


def _assign_generic(inputs: dict[str, Any], values: list[Any]) -> None:
    for index, value in enumerate(values):
        if value is None or is_control_sentinel(value):
            continue
        inputs.setdefault(f"param_{index}", value)


def map_node_inputs(
    node: EditorNode,
    link_table: dict[int, Link],
    diagnostics: Diagnostics | None = None,
    registry: NodeTypeRegistry | None = None,
) -> dict[str, Any]:
    """Compute the compiled inputs of one editor node.

    Connected inputs are resolved first and are never overwritten.  Widget
    values are then named by, in order of preference: the type's normalizer,
    its registered widget order, the node's own widget sockets, a pattern
    guess from the class name, and finally ``param_<index>``.

    Args:
        node: Editor node to map.
        link_table: Link id to link mapping for the whole graph.
        diagnostics: Collector for unresolved links and mapping notes.
        registry: Node type registry, the global one by default.

    Returns:
        Input name to literal value or :class:`NodeReference`.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    registry = registry if registry is not None else node_registry
    class_type = node.declared_type

    inputs: dict[str, Any] = dict(resolve_connections(node, link_table, diagnostics))
    values = node.widgets_values

    spec = registry.get(class_type)
    if spec is not None and spec.normalize is not None:
        spec.normalize(node, inputs, spec, diagnostics)
        return inputs

    if spec is not None:
        # A registered type with no widgets takes nothing positional.
        assign_widgets(inputs, spec.widget_order, values)
        return inputs

    names = widget_input_names(node)
    if names:
        assign_widgets(inputs, names, values)
        return inputs

    guessed = registry.infer_widget_order(class_type)
    if guessed:
        logger.debug("Inferred widget order for %s from its class name", class_type)
        assign_widgets(inputs, guessed, values)
        return inputs

    if values:
        diagnostics.note(f"No widget mapping for {class_type} (node {node.id}), using param_<i>")
    _assign_generic(inputs, values)
    return inputs
