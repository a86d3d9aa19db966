"""Repair references left dangling by excluded nodes.

After muted and presentation-only nodes are dropped, inputs that pointed at
them reference nodes that no longer exist.  Each such input is either
redirected by a :class:`RedirectRule` or removed.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.models import CompiledGraph, CompiledNode, NodeReference

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RedirectRule:
    """Reroute an input from a missing source node to a replacement.

    Attributes:
        input_name: Name of the input the rule applies to.
        missing_source: Id of the excluded node the input pointed at.
        replacement: Id of the node to point at instead.
        replacement_slot: Output slot on the replacement node.
    """

    input_name: str
    missing_source: str
    replacement: str
    replacement_slot: int = 0

    def matches(self, input_name: str, reference: NodeReference) -> bool:
        return input_name == self.input_name and reference.node_id == self.missing_source

    def apply(self, graph: CompiledGraph) -> NodeReference | None:
        """Return the new reference, or None if the replacement is absent."""
        if self.replacement not in graph:
            return None
        return NodeReference(self.replacement, self.replacement_slot)


# A model input that ran through a muted LoRA loader (56) is fed straight
# from the diffusion model loader (38).
DEFAULT_REDIRECT_RULES: tuple[RedirectRule, ...] = (
    RedirectRule(input_name="model", missing_source="56", replacement="38"),
)


def rewrite_connections(
    graph: CompiledGraph,
    diagnostics: Diagnostics | None = None,
    rules: Sequence[RedirectRule] | None = None,
) -> CompiledGraph:
    """Redirect or drop references to nodes missing from ``graph``.

    Args:
        graph: Compiled graph; left untouched.
        diagnostics: Collector for every redirect and removal.
        rules: Redirect rules tried in order, :data:`DEFAULT_REDIRECT_RULES`
            by default.

    Returns:
        A new compiled graph whose references all resolve.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    rules = DEFAULT_REDIRECT_RULES if rules is None else tuple(rules)

    rewritten: CompiledGraph = {}
    for node_id, node in graph.items():
        inputs = dict(node.inputs)
        for name, reference in node.references().items():
            if reference.node_id in graph:
                continue

            replacement = None
            for rule in rules:
                if rule.matches(name, reference):
                    replacement = rule.apply(graph)
                    if replacement is not None:
                        break

            if replacement is not None:
                inputs[name] = replacement
                diagnostics.note(
                    f"Redirected {node_id}.{name} from missing node {reference.node_id} "
                    f"to {replacement.node_id}"
                )
            else:
                del inputs[name]
                diagnostics.issue(
                    f"Removed {node_id}.{name}: source node {reference.node_id} is not in "
                    "the compiled workflow",
                    f"Connect '{name}' on node {node_id} to an active node",
                )

        rewritten[node_id] = CompiledNode(
            class_type=node.class_type, inputs=inputs, title=node.title
        )

    return rewritten
