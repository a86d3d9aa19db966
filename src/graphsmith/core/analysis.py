"""Workflow analysis and automatic repair.

These helpers look at an editor graph *before* compilation and predict which
nodes will fail for lack of parameters, based on how many widget values they
carry.  :func:`auto_fix_workflow` applies the usual repairs (bypass the
upscale and LoRA nodes that most often break, restore resolution defaults)
and :func:`validate_and_fix_workflow` chains analysis, repair and
compilation.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from graphsmith.core.classifier import classify_node
from graphsmith.core.compiler import compile_workflow
from graphsmith.core.diagnostics import Diagnostics, NodeReport
from graphsmith.core.errors import StructuralError
from graphsmith.core.models import EditorNode, NodeMode, NodeStatus
from graphsmith.core.normalizers import RESOLUTION_DEFAULTS

logger = logging.getLogger(__name__)

# Parameters predicted from widget counts; the tiled upscaler is only checked
# up to its tile settings.
ANALYSIS_REQUIRED_PARAMS: dict[str, tuple[str, ...]] = {
    "FluxResolutionNode": ("megapixel", "aspect_ratio", "divisible_by", "custom_ratio"),
    "LoraLoaderModelOnly": ("lora_name", "strength_model"),
    "UpscaleModelLoader": ("model_name",),
    "UltimateSDUpscale": (
        "upscale_by",
        "seed",
        "steps",
        "cfg",
        "sampler_name",
        "scheduler",
        "denoise",
        "mode_type",
        "tile_width",
        "tile_height",
        "mask_blur",
        "tile_padding",
    ),
}

AUTO_BYPASS_TYPES: frozenset[str] = frozenset(
    {"UltimateSDUpscale", "UpscaleModelLoader", "LoraLoaderModelOnly"}
)
QUICK_BYPASS_TYPES: frozenset[str] = frozenset(
    {"UltimateSDUpscale", "UpscaleModelLoader", "Image Comparer (rgthree)", "PreviewImage"}
)


@dataclass
class WorkflowAnalysis:
    """Outcome of :func:`analyze_workflow`."""

    is_valid: bool
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    node_analysis: list[NodeReport] = field(default_factory=list)

    def status_counts(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for report in self.node_analysis:
            counts[report.status.value] = counts.get(report.status.value, 0) + 1
        return counts

    def to_dict(self) -> dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "issues": list(self.issues),
            "recommendations": list(self.recommendations),
            "nodeAnalysis": [r.to_dict() for r in self.node_analysis],
        }


@dataclass
class FixReport:
    """Outcome of :func:`validate_and_fix_workflow`."""

    success: bool
    workflow: dict[str, Any]
    api_workflow: dict[str, Any] | None
    analysis: WorkflowAnalysis
    fixes: list[str] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "success": self.success,
            "workflow": self.workflow,
            "apiWorkflow": self.api_workflow,
            "analysis": self.analysis.to_dict(),
            "fixes": list(self.fixes),
        }
        if self.error:
            data["error"] = self.error
        return data


def analyze_workflow(workflow: Any) -> WorkflowAnalysis:
    """Predict parameter problems in an editor graph.

    A node is flagged when it is active, belongs to a type in
    :data:`ANALYSIS_REQUIRED_PARAMS` and carries fewer widget values than
    that type needs.
    """
    if not isinstance(workflow, dict) or not isinstance(workflow.get("nodes"), list):
        return WorkflowAnalysis(
            is_valid=False,
            issues=["Workflow is missing or has no nodes"],
            recommendations=["Ensure workflow has a valid structure with nodes array"],
        )

    diagnostics = Diagnostics()
    reports = []
    for raw in workflow["nodes"]:
        if not isinstance(raw, dict):
            continue
        try:
            node = EditorNode.from_dict(raw)
        except StructuralError as e:
            diagnostics.issue(str(e), f"Fix or remove node {raw.get('id')}")
            continue
        status = classify_node(node)
        report = NodeReport(
            id=node.id, declared_type=node.declared_type, mode=node.mode, status=status
        )

        required = ANALYSIS_REQUIRED_PARAMS.get(node.declared_type or "", ())
        if status is NodeStatus.ACTIVE and len(node.widgets_values) < len(required):
            report.has_required_params = False
            report.missing_params = list(required[len(node.widgets_values) :])
            diagnostics.issue(
                f"Node {node.id} ({node.declared_type}) is active but missing parameters: "
                f"{', '.join(report.missing_params)}",
                f"Set node {node.id} ({node.declared_type}) to bypass mode (mode: 2) "
                "or provide missing parameters",
            )
        reports.append(report)

    analysis = WorkflowAnalysis(
        is_valid=not diagnostics.has_issues,
        issues=diagnostics.issues,
        recommendations=diagnostics.recommendations,
        node_analysis=reports,
    )
    logger.info(
        f"Workflow analysis: {len(reports)} nodes, {analysis.status_counts()}, "
        f"{len(analysis.issues)} issue(s)"
    )
    return analysis


def auto_fix_workflow(workflow: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
    """Apply common repairs to a copy of an editor graph.

    Returns:
        ``(fixed_workflow, changes)``.
    """
    fixed = copy.deepcopy(workflow)
    nodes = fixed.get("nodes") if isinstance(fixed, dict) else None
    if not isinstance(nodes, list):
        return fixed, ["Cannot fix: workflow has no nodes"]

    changes = []
    for node in nodes:
        if not isinstance(node, dict):
            continue
        node_type = node.get("type")
        if node_type in AUTO_BYPASS_TYPES and (node.get("mode") or 0) == NodeMode.ACTIVE:
            node["mode"] = int(NodeMode.BYPASSED)
            changes.append(f"Set node {node.get('id')} ({node_type}) to bypass mode")

        values = node.get("widgets_values")
        if node_type == "FluxResolutionNode" and (
            not isinstance(values, list) or len(values) < len(RESOLUTION_DEFAULTS)
        ):
            node["widgets_values"] = list(RESOLUTION_DEFAULTS.values())
            changes.append(f"Fixed missing widget values for FluxResolutionNode ({node.get('id')})")

    return fixed, changes


def quick_fix_bypass_upscale_nodes(workflow: dict[str, Any]) -> dict[str, Any]:
    """Bypass the upscale and comparison nodes of a copy of ``workflow``."""
    fixed = copy.deepcopy(workflow)
    for node in fixed.get("nodes") or []:
        if not isinstance(node, dict):
            continue
        if node.get("type") in QUICK_BYPASS_TYPES and node.get("mode") != NodeMode.BYPASSED:
            node["mode"] = int(NodeMode.BYPASSED)
            logger.info(f"Bypassed node {node.get('id')} ({node.get('type')})")
    return fixed


def validate_and_fix_workflow(workflow: dict[str, Any]) -> FixReport:
    """Analyse, repair if needed, then compile.

    Compilation failures are reported on the result rather than raised.
    """
    analysis = analyze_workflow(workflow)

    fixed, fixes = workflow, []
    if not analysis.is_valid:
        fixed, fixes = auto_fix_workflow(workflow)
        logger.info(f"Applied fixes: {fixes}")

    try:
        api_workflow = compile_workflow(fixed).workflow
    except StructuralError as e:
        logger.error(f"Fixed workflow still fails to compile: {e}")
        return FixReport(
            success=False,
            workflow=fixed,
            api_workflow=None,
            analysis=analysis,
            fixes=fixes,
            error=str(e),
        )

    return FixReport(
        success=True, workflow=fixed, api_workflow=api_workflow, analysis=analysis, fixes=fixes
    )
