"""Data models for editor graphs and compiled execution graphs.

Two shapes of the same pipeline flow through Graphsmith:

- The **editor graph** is what the node editor saves: a ``nodes`` list where
  every node carries its parameters positionally in ``widgets_values``, and a
  ``links`` list of 6-tuples wiring output slots to input slots.
- The **compiled graph** is what the execution engine runs: a mapping keyed
  by stringified node id, each entry holding a ``class_type`` and named
  ``inputs``.  An input is either a literal or a reference
  ``[source_node_id, source_slot]``.

The dataclasses here are built fresh for every compilation.  The
``from_dict`` constructors deep-copy what they read so nothing the compiler
does can leak back into the caller's template.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, NamedTuple

from graphsmith.core.errors import StructuralError

logger = logging.getLogger(__name__)

# Key the editor stores the original class name under for search & replace.
SEARCH_REPLACE_NAME_KEY = "Node name for S&R"


class NodeMode(IntEnum):
    """Activation state of an editor node."""

    ACTIVE = 0
    BYPASSED = 2
    MUTED = 4


class NodeStatus(str, Enum):
    """Compiler classification of an editor node."""

    ACTIVE = "active"
    BYPASSED = "bypassed"
    MUTED = "muted"
    UI_ONLY = "ui-only"


@dataclass
class InputSlot:
    """One input socket of an editor node.

    ``widget`` holds the widget name when the input was converted from a
    widget; such inputs are candidates for positional mapping when unlinked.
    """

    name: str
    type: str = ""
    link: int | None = None
    widget: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InputSlot:
        widget = data.get("widget")
        if isinstance(widget, dict):
            widget = widget.get("name")
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type") or ""),
            link=data.get("link"),
            widget=widget,
        )


@dataclass
class OutputSlot:
    """One output socket of an editor node."""

    name: str
    type: str = ""
    links: list[int] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OutputSlot:
        return cls(
            name=str(data.get("name", "")),
            type=str(data.get("type") or ""),
            links=list(data.get("links") or []),
        )


@dataclass
class EditorNode:
    """A single node as authored in the editor.

    Attributes:
        id: Node identifier, unique within its graph (normally an int).
        type: Declared class name as saved by the editor.
        class_type: Alternative class-name field written by some exporters
            and by the prompt injection pass.
        mode: Raw activation mode (see :class:`NodeMode`).
        title: Optional display label.
        widgets_values: Positional parameter values.
        inputs: Input sockets in declaration order.
        outputs: Output sockets in declaration order.
        properties: Free-form editor properties.
        order: Execution order hint saved by the editor.
    """

    id: Any
    type: str | None = None
    class_type: str | None = None
    mode: int = 0
    title: str | None = None
    widgets_values: list[Any] = field(default_factory=list)
    inputs: list[InputSlot] = field(default_factory=list)
    outputs: list[OutputSlot] = field(default_factory=list)
    properties: dict[str, Any] = field(default_factory=dict)
    order: int = 0

    @property
    def declared_type(self) -> str | None:
        """Resolve the node's class name from any field that carries one."""
        candidate = self.type or self.class_type or self.properties.get(SEARCH_REPLACE_NAME_KEY)
        if isinstance(candidate, str) and candidate.strip():
            return candidate
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditorNode:
        """Build a node from its editor JSON form.

        Widget values are deep-copied; a dict-shaped ``widgets_values`` (as
        written by some video nodes) is flattened to its values in order.

        Raises:
            StructuralError: If ``widgets_values`` is neither a list nor a dict.
        """
        widgets = data.get("widgets_values")
        if widgets is None:
            widgets = []
        elif isinstance(widgets, dict):
            widgets = list(widgets.values())
        elif not isinstance(widgets, list):
            raise StructuralError(
                f"Node {data.get('id')} has invalid widgets_values: {widgets!r}",
                node_id=data.get("id"),
            )

        raw_inputs = data.get("inputs") or []
        raw_outputs = data.get("outputs") or []
        mode = data.get("mode") or 0

        return cls(
            id=data.get("id"),
            type=data.get("type"),
            class_type=data.get("class_type"),
            mode=mode if isinstance(mode, int) else 0,
            title=data.get("title"),
            widgets_values=copy.deepcopy(list(widgets)),
            inputs=[InputSlot.from_dict(i) for i in raw_inputs if isinstance(i, dict)],
            outputs=[OutputSlot.from_dict(o) for o in raw_outputs if isinstance(o, dict)],
            properties=copy.deepcopy(data.get("properties") or {}),
            order=data.get("order") or 0,
        )


@dataclass(frozen=True)
class Link:
    """A directed edge from one node's output slot to another's input slot."""

    id: int
    source_node_id: int
    source_slot: int
    target_node_id: int
    target_slot: int
    type: str = ""


@dataclass
class EditorGraph:
    """An editor graph: nodes plus the raw link entries.

    Link entries are kept raw and parsed by
    :func:`graphsmith.core.links.build_link_table`, which tolerates malformed
    tuples instead of failing the whole graph.
    """

    nodes: list[EditorNode] = field(default_factory=list)
    links: list[Any] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EditorGraph:
        """Parse an editor graph.

        Raises:
            StructuralError: If ``nodes`` is missing or not a list.
        """
        if not isinstance(data, dict):
            raise StructuralError("Workflow must be a JSON object")

        raw_nodes = data.get("nodes")
        if not isinstance(raw_nodes, list):
            raise StructuralError("Workflow missing or invalid nodes array")

        raw_links = data.get("links")
        if not isinstance(raw_links, list):
            if raw_links is not None:
                logger.warning("Workflow links is not an array, using empty array")
            raw_links = []

        nodes = []
        for raw in raw_nodes:
            if not isinstance(raw, dict):
                raise StructuralError(f"Invalid node entry: {raw!r}")
            nodes.append(EditorNode.from_dict(raw))

        return cls(nodes=nodes, links=copy.deepcopy(raw_links))


class NodeReference(NamedTuple):
    """A compiled input wired to another node's output slot."""

    node_id: str
    slot: int

    def to_json(self) -> list[Any]:
        return [self.node_id, self.slot]


@dataclass
class CompiledNode:
    """One node of the execution-format graph."""

    class_type: str
    inputs: dict[str, Any] = field(default_factory=dict)
    title: str | None = None

    def references(self) -> dict[str, NodeReference]:
        """Return only the inputs that point at other nodes."""
        return {k: v for k, v in self.inputs.items() if isinstance(v, NodeReference)}

    def to_dict(self) -> dict[str, Any]:
        """Serialise to the execution engine's JSON shape."""
        inputs = {
            name: value.to_json() if isinstance(value, NodeReference) else value
            for name, value in self.inputs.items()
        }
        result: dict[str, Any] = {"inputs": inputs, "class_type": self.class_type}
        if self.title:
            result["_meta"] = {"title": self.title}
        return result


# Execution-format graph keyed by stringified node id.
CompiledGraph = dict[str, CompiledNode]


def graph_to_dict(graph: CompiledGraph) -> dict[str, dict[str, Any]]:
    """Serialise a compiled graph to plain JSON-compatible dicts."""
    return {node_id: node.to_dict() for node_id, node in graph.items()}
