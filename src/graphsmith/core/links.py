"""Link table construction.

Editor graphs store their edges as a flat list.  The compiler needs to go
from an input slot's link id to the output slot feeding it, so the list is
indexed once up front into a ``{link_id: Link}`` mapping.

Two entry shapes are accepted:

- the classic 6-tuple ``[link_id, source_id, source_slot, target_id,
  target_slot, type]``;
- the object form written by newer editor versions, with keys ``id``,
  ``origin_id``, ``origin_slot``, ``target_id``, ``target_slot`` and ``type``.

Anything else is skipped and recorded; a bad link only leaves the inputs that
referenced it unset.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.models import Link

logger = logging.getLogger(__name__)


def _as_int(value: Any) -> int:
    # bool is an int subclass but never a valid id or slot
    if isinstance(value, bool):
        raise ValueError(f"expected integer, got {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    raise ValueError(f"expected integer, got {value!r}")


def parse_link(entry: Any) -> Link:
    """Parse one raw link entry.

    Raises:
        ValueError: If the entry has the wrong shape or non-integer fields.
    """
    if isinstance(entry, dict):
        fields = (
            entry.get("id"),
            entry.get("origin_id"),
            entry.get("origin_slot"),
            entry.get("target_id"),
            entry.get("target_slot"),
        )
        link_type = entry.get("type")
    elif isinstance(entry, (list, tuple)) and len(entry) >= 5:
        fields = tuple(entry[:5])
        link_type = entry[5] if len(entry) > 5 else None
    else:
        raise ValueError(f"malformed link entry: {entry!r}")

    link_id, source_id, source_slot, target_id, target_slot = (_as_int(f) for f in fields)
    return Link(
        id=link_id,
        source_node_id=source_id,
        source_slot=source_slot,
        target_node_id=target_id,
        target_slot=target_slot,
        type=str(link_type) if link_type else "unknown",
    )


def build_link_table(
    entries: Iterable[Any],
    diagnostics: Diagnostics | None = None,
) -> dict[int, Link]:
    """Index link entries by link id.

    Args:
        entries: Raw link entries from the editor graph.
        diagnostics: Collector for skipped or duplicated entries.

    Returns:
        Mapping of link id to parsed :class:`Link`.  When an id appears more
        than once the last entry wins.
    """
    diagnostics = diagnostics if diagnostics is not None else Diagnostics()
    table: dict[int, Link] = {}

    for index, entry in enumerate(entries or []):
        try:
            link = parse_link(entry)
        except ValueError as e:
            diagnostics.issue(f"Skipping link #{index}: {e}")
            continue

        if link.id in table:
            diagnostics.note(f"Duplicate link id {link.id}, keeping the last entry")
        table[link.id] = link

    logger.debug("Built link table with %d entries", len(table))
    return table
