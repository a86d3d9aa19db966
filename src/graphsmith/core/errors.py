"""Exception types raised by the Graphsmith compiler and template sources.

Only a handful of conditions are fatal.  Everything else the compiler finds
wrong with a graph is recorded on a :class:`~graphsmith.core.diagnostics.Diagnostics`
collector and returned alongside a best-effort result.

Hierarchy
---------
::

    GraphsmithError
    ├── StructuralError        graph cannot be compiled at all
    ├── WorkflowNotFoundError  template lookup found nothing
    └── TemplateFetchError     template source unreachable or returned junk
"""

from __future__ import annotations

from typing import Any


class GraphsmithError(Exception):
    """Base class for all Graphsmith errors."""

    pass


class StructuralError(GraphsmithError):
    """The graph is structurally unusable and compilation must stop.

    Raised for a missing ``nodes`` array, a node without any class type, or
    an invalid node identifier.  The message is meant to be shown to the
    caller as-is.

    Attributes:
        node_id: Identifier of the offending node, when one is known.
    """

    def __init__(self, message: str, node_id: Any = None) -> None:
        super().__init__(message)
        self.node_id = node_id


class WorkflowNotFoundError(GraphsmithError):
    """No template matched the requested workflow id or name."""

    def __init__(self, workflow_id: str) -> None:
        super().__init__(f'Workflow with ID "{workflow_id}" not found')
        self.workflow_id = workflow_id


class TemplateFetchError(GraphsmithError):
    """The template source could not be read.

    Attributes:
        status_code: Upstream HTTP status, when the failure was an HTTP error.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
