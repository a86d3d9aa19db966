"""Normalizers for node types whose widget layout defeats positional mapping.

Each normalizer is registered on the global node registry and replaces the
generic widget zip for its type.  A normalizer only fills inputs that are not
already wired to another node.
"""

from __future__ import annotations

import logging
import math
from typing import Any

from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.models import EditorNode
from graphsmith.core.node_specs import (
    UPSCALE_WIDGET_ORDER,
    NodeTypeSpec,
    assign_widgets,
    is_control_sentinel,
    node_registry,
)

logger = logging.getLogger(__name__)

# Sampler names in the order the editor enumerates them.
SAMPLER_NAMES: tuple[str, ...] = (
    "euler",
    "euler_ancestral",
    "heun",
    "dpm_2",
    "dpm_2_ancestral",
    "lms",
    "dpm_fast",
    "dpm_adaptive",
    "dpmpp_2s_ancestral",
    "dpmpp_sde",
    "dpmpp_sde_gpu",
    "dpmpp_2m",
    "dpmpp_2m_sde",
    "dpmpp_2m_sde_gpu",
    "ddim",
    "uni_pc",
    "uni_pc_bh2",
)

VALID_SCHEDULERS: frozenset[str] = frozenset(
    {
        "simple",
        "sgm_uniform",
        "karras",
        "exponential",
        "ddim_uniform",
        "beta",
        "normal",
        "linear_quadratic",
        "kl_optimal",
    }
)

DEFAULT_SAMPLER = "euler"
DEFAULT_SCHEDULER = "simple"
DEFAULT_DENOISE = 1.0

RESOLUTION_PARAMS: tuple[str, ...] = (
    "megapixel",
    "aspect_ratio",
    "divisible_by",
    "custom_ratio",
    "custom_aspect_ratio",
)
RESOLUTION_DEFAULTS: dict[str, Any] = {
    "megapixel": "1.0",
    "aspect_ratio": "1:1 (Square)",
    "divisible_by": "64",
    "custom_ratio": False,
    "custom_aspect_ratio": "1:1",
}

DUAL_LOADER_PARAMS: tuple[str, ...] = ("clip_name1", "clip_name2", "type", "device")


def _set_unlinked(inputs: dict[str, Any], name: str, value: Any) -> None:
    if name not in inputs:
        inputs[name] = value


def normalize_sampler_name(value: Any) -> Any:
    """Map a numeric sampler selector onto its name.

    Strings pass through untouched; a fractional or non-finite number, or an
    index outside the table, maps to ``"euler"``.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        if not value.is_integer():
            return DEFAULT_SAMPLER
        value = int(value)
    if isinstance(value, int):
        if 0 <= value < len(SAMPLER_NAMES):
            return SAMPLER_NAMES[value]
        return DEFAULT_SAMPLER
    return value


def normalize_scheduler(value: Any) -> str:
    """Coerce a scheduler value onto one the engine accepts."""
    if value == "euler":
        # Older editors stored the sampler name in the scheduler slot.
        return DEFAULT_SCHEDULER
    if not isinstance(value, str) or value not in VALID_SCHEDULERS:
        return DEFAULT_SCHEDULER
    return value


def normalize_denoise(value: Any) -> Any:
    """Parse a string denoise; non-strings pass through."""
    if not isinstance(value, str):
        return value
    if value == "simple":
        return DEFAULT_DENOISE
    try:
        parsed = float(value)
    except ValueError:
        return DEFAULT_DENOISE
    return parsed if math.isfinite(parsed) else DEFAULT_DENOISE


@node_registry.normalizer("KSampler")
def normalize_sampler(
    node: EditorNode,
    inputs: dict[str, Any],
    spec: NodeTypeSpec,
    diagnostics: Diagnostics,
) -> None:
    """Sampler layout: ``[seed, control, steps, cfg, sampler, scheduler, denoise]``."""
    values = node.widgets_values
    if len(values) < 7:
        diagnostics.note(
            f"Sampler node {node.id} has {len(values)} widget values, using generic mapping"
        )
        assign_widgets(inputs, spec.widget_order, values)
        return

    _set_unlinked(inputs, "seed", values[0])
    _set_unlinked(inputs, "steps", values[2])
    _set_unlinked(inputs, "cfg", values[3])
    _set_unlinked(inputs, "sampler_name", normalize_sampler_name(values[4]))
    _set_unlinked(inputs, "scheduler", normalize_scheduler(values[5]))
    _set_unlinked(inputs, "denoise", normalize_denoise(values[6]))

    logger.debug(
        "Normalized sampler %s: sampler_name=%r scheduler=%r denoise=%r",
        node.id,
        inputs.get("sampler_name"),
        inputs.get("scheduler"),
        inputs.get("denoise"),
    )


@node_registry.normalizer("FluxResolutionNode")
def normalize_resolution(
    node: EditorNode,
    inputs: dict[str, Any],
    spec: NodeTypeSpec,
    diagnostics: Diagnostics,
) -> None:
    """Resolution calculator: five values, or five defaults when any is missing."""
    values = node.widgets_values
    if len(values) >= len(RESOLUTION_PARAMS):
        for name, value in zip(RESOLUTION_PARAMS, values):
            _set_unlinked(inputs, name, value)
        return

    diagnostics.issue(
        f"Resolution node {node.id} has {len(values)} widget values, expected "
        f"{len(RESOLUTION_PARAMS)}; applying defaults",
        f"Re-save node {node.id} in the editor to restore its resolution settings",
    )
    for name, value in RESOLUTION_DEFAULTS.items():
        _set_unlinked(inputs, name, value)


@node_registry.normalizer("UltimateSDUpscale")
def normalize_tiled_upscale(
    node: EditorNode,
    inputs: dict[str, Any],
    spec: NodeTypeSpec,
    diagnostics: Diagnostics,
) -> None:
    """Tiled upscaler with its 19 named parameters.

    The editor stores a seed-control value right after the seed.  It is
    removed and the names are then applied from index 0, so every following
    value lines up with its name.  Older converters instead started the
    whole mapping at index 2 when that value was present, which shifts
    ``upscale_by`` and ``seed`` onto the wrong values.
    """
    values = list(node.widgets_values)
    if len(values) > 2 and is_control_sentinel(values[2]):
        del values[2]

    if len(values) < len(UPSCALE_WIDGET_ORDER):
        diagnostics.note(
            f"Upscale node {node.id} has {len(values)} usable widget values, "
            f"expected {len(UPSCALE_WIDGET_ORDER)}"
        )
    assign_widgets(inputs, UPSCALE_WIDGET_ORDER, values)


@node_registry.normalizer("DualCLIPLoader")
def normalize_dual_loader(
    node: EditorNode,
    inputs: dict[str, Any],
    spec: NodeTypeSpec,
    diagnostics: Diagnostics,
) -> None:
    values = node.widgets_values
    if len(values) < len(DUAL_LOADER_PARAMS):
        diagnostics.note(f"Dual loader node {node.id} has {len(values)} widget values, skipping")
        return
    for name, value in zip(DUAL_LOADER_PARAMS, values):
        _set_unlinked(inputs, name, value)
