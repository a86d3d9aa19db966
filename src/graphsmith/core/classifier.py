"""Node classification by activation mode and presentation-only type."""

from __future__ import annotations

import re

from graphsmith.core.models import EditorNode, NodeMode, NodeStatus

# Types that only exist for the authoring surface and have no meaning to the
# execution engine.
UI_ONLY_NODE_TYPES: frozenset[str] = frozenset(
    {
        # Notes and documentation
        "MarkdownNote",
        "Note",
        "TextNode",
        # rgthree utilities
        "Label (rgthree)",
        "Fast Groups Muter (rgthree)",
        "Image Comparer (rgthree)",
        "Context (rgthree)",
        "Context Switch (rgthree)",
        "Bookmark (rgthree)",
        "Any Switch (rgthree)",
        "Display Any (rgthree)",
        # Previews and displays
        "PreviewImage",
        "DisplayFloat",
        "DisplayInt",
        "DisplayString",
        "ShowText",
        "ShowImage",
        # Organisational
        "Reroute",
        "Junction",
        # Custom text widgets
        "CR_Text",
        "CR_Multiline_Text",
        "Note Plus",
        "Simple Text",
        # Efficiency nodes UI parts
        "Eff. Loader",
        "XY Input: Steps",
        "XY Input: CFG Scale",
    }
)

UI_ONLY_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p)
    for p in (
        r".*Note$",
        r".*Text$",
        r".*Display$",
        r".*Show$",
        r".*Preview$",
        r".*Label$",
        r".*Viewer$",
        r".*Monitor$",
    )
)


def is_ui_only(node_type: str | None) -> bool:
    """Return True if ``node_type`` is a presentation-only node type."""
    if not node_type:
        return False
    return node_type in UI_ONLY_NODE_TYPES or any(p.match(node_type) for p in UI_ONLY_PATTERNS)


def classify_node(node: EditorNode) -> NodeStatus:
    """Assign a node its compile status.

    Muted wins over everything, then UI-only types, then bypass.
    """
    if node.mode == NodeMode.MUTED:
        return NodeStatus.MUTED
    if is_ui_only(node.declared_type):
        return NodeStatus.UI_ONLY
    if node.mode == NodeMode.BYPASSED:
        return NodeStatus.BYPASSED
    return NodeStatus.ACTIVE


def is_excluded(status: NodeStatus) -> bool:
    """Muted and UI-only nodes never reach the compiled graph."""
    return status in (NodeStatus.MUTED, NodeStatus.UI_ONLY)
