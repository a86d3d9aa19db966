"""Non-fatal findings collected while compiling a workflow.

A :class:`Diagnostics` instance is created per compilation and passed down
through every stage of the pipeline.  Stages record problems on it instead of
raising, so the caller gets a best-effort graph plus a list of what went
wrong and decides for itself whether to treat warnings as fatal.

Each record is also forwarded to a standard :mod:`logging` logger (issues at
WARNING, notes at DEBUG), so nothing is lost when the collector itself is
discarded.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from graphsmith.core.models import NodeStatus

logger = logging.getLogger(__name__)


@dataclass
class NodeReport:
    """Per-node classification and parameter status."""

    id: Any
    declared_type: str | None
    mode: int
    status: NodeStatus
    has_required_params: bool = True
    missing_params: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": self.declared_type,
            "mode": self.mode,
            "status": self.status.value,
            "hasRequiredParams": self.has_required_params,
        }
        if self.missing_params:
            data["missingParams"] = list(self.missing_params)
        return data


@dataclass
class Diagnostics:
    """Collector for issues, recommendations and per-node reports.

    Attributes:
        issues: Human-readable problems found in the graph.
        recommendations: Suggested fixes, roughly parallel to ``issues``.
        notes: Informational messages (skipped nodes, applied defaults).
        node_reports: One :class:`NodeReport` per editor node, keyed by the
            stringified node id.
    """

    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    notes: list[str] = field(default_factory=list)
    node_reports: dict[str, NodeReport] = field(default_factory=dict)
    sink: logging.Logger = field(default=logger, repr=False, compare=False)

    def issue(self, message: str, recommendation: str | None = None) -> None:
        """Record a problem, optionally with a suggested fix."""
        self.issues.append(message)
        self.sink.warning(message)
        if recommendation:
            self.recommendations.append(recommendation)

    def note(self, message: str) -> None:
        """Record an informational message."""
        self.notes.append(message)
        self.sink.debug(message)

    def report_node(self, report: NodeReport) -> None:
        self.node_reports[str(report.id)] = report

    def get_report(self, node_id: Any) -> NodeReport | None:
        return self.node_reports.get(str(node_id))

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)

    def status_counts(self) -> dict[str, int]:
        """Count node reports by status."""
        counts: dict[str, int] = {}
        for report in self.node_reports.values():
            counts[report.status.value] = counts.get(report.status.value, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "notes": list(self.notes),
            "nodeAnalysis": [r.to_dict() for r in self.node_reports.values()],
        }
