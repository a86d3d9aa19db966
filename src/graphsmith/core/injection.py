"""Prompt and parameter injection into editor graphs.

Injection works on the *editor* graph, before compilation: it finds the text
encode nodes that carry the positive and negative prompts, the sampler that
carries the step count and the guidance node, and overwrites their
positional widget values.  The result is then compiled, either by the full
pipeline in :mod:`graphsmith.core.compiler` or by
:func:`convert_injected_workflow`, a simpler table-driven converter.

Which text node gets which prompt is decided by :data:`PROMPT_RULES`, an
ordered list of predicates.  The first rule that matches a node decides its
role, and every rule looks at the node as it was in the template, so an
earlier overwrite can never change a later decision.
"""

from __future__ import annotations

import copy
import logging
import secrets
import string
import time
import unicodedata
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from graphsmith.core.compiler import compile_workflow
from graphsmith.core.errors import StructuralError
from graphsmith.core.links import parse_link
from graphsmith.core.validator import is_valid_node_id

logger = logging.getLogger(__name__)

TEXT_ENCODE_TYPE = "CLIPTextEncode"
SAMPLER_TYPE = "KSampler"
GUIDANCE_TYPE = "FluxGuidance"

DEFAULT_NEGATIVE_PROMPT = "text, watermark"
DEFAULT_STEPS = 20
DEFAULT_GUIDANCE = 3.5

STEPS_SLOT = 2
GUIDANCE_SLOT = 0

# Compared against accent-stripped, lower-cased titles.
NEGATIVE_TITLE_KEYWORDS: tuple[str, ...] = ("negatif", "negative")
NEGATIVE_TEXT_MARKERS: tuple[str, ...] = ("text, watermark", "blurry", "low quality")
LONG_PROMPT_LENGTH = 50

Converter = Literal["compiler", "direct"]


class PromptRole(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass
class InjectionParams:
    """Values written into a template before compilation."""

    positive_prompt: str
    negative_prompt: str = DEFAULT_NEGATIVE_PROMPT
    steps: int = DEFAULT_STEPS
    guidance: float = DEFAULT_GUIDANCE
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, params: Mapping[str, Any]) -> InjectionParams:
        """Build from request-style keys (``positivePrompt``, ``steps``, ...).

        Missing or ``None`` values fall back to the defaults.
        """
        known = {
            "positivePrompt",
            "positive_prompt",
            "negativePrompt",
            "negative_prompt",
            "steps",
            "guidance",
        }

        def pick(*keys: str, default: Any) -> Any:
            for key in keys:
                if params.get(key) is not None:
                    return params[key]
            return default

        return cls(
            positive_prompt=pick("positivePrompt", "positive_prompt", default=""),
            negative_prompt=pick(
                "negativePrompt", "negative_prompt", default=DEFAULT_NEGATIVE_PROMPT
            ),
            steps=pick("steps", default=DEFAULT_STEPS),
            guidance=pick("guidance", default=DEFAULT_GUIDANCE),
            extra={k: v for k, v in params.items() if k not in known},
        )


def fold_text(text: str) -> str:
    """Lower-case and strip accents so "Négatif" matches "negatif"."""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def title_is_negative(title: Any) -> bool:
    if not isinstance(title, str) or not title:
        return False
    folded = fold_text(title)
    return any(keyword in folded for keyword in NEGATIVE_TITLE_KEYWORDS)


def _first_text(node: Mapping[str, Any]) -> str | None:
    values = node.get("widgets_values")
    if isinstance(values, list) and values and isinstance(values[0], str):
        return values[0]
    return None


@dataclass(frozen=True)
class PromptRule:
    """One step of the prompt selection policy."""

    name: str
    role: PromptRole
    predicate: Callable[[Mapping[str, Any], str], bool]


PROMPT_RULES: tuple[PromptRule, ...] = (
    PromptRule(
        "negative title",
        PromptRole.NEGATIVE,
        lambda node, text: title_is_negative(node.get("title")),
    ),
    PromptRule(
        "long text",
        PromptRole.POSITIVE,
        lambda node, text: len(text) > LONG_PROMPT_LENGTH,
    ),
    PromptRule(
        "negative text",
        PromptRole.NEGATIVE,
        lambda node, text: any(marker in text.lower() for marker in NEGATIVE_TEXT_MARKERS),
    ),
    PromptRule(
        "neutral title",
        PromptRole.POSITIVE,
        lambda node, text: not title_is_negative(node.get("title")),
    ),
)


def select_prompt_role(
    node: Mapping[str, Any],
    rules: Iterable[PromptRule] = PROMPT_RULES,
) -> PromptRole | None:
    """Decide whether a text encode node holds the positive or negative prompt.

    Returns None for nodes that are not text encoders or have no text slot.
    """
    class_type = node.get("class_type") or node.get("type")
    if class_type != TEXT_ENCODE_TYPE:
        return None
    text = _first_text(node)
    if text is None:
        return None
    for rule in rules:
        if rule.predicate(node, text):
            return rule.role
    return None


def inject_parameters(
    workflow: Mapping[str, Any],
    params: InjectionParams | Mapping[str, Any],
    rules: Iterable[PromptRule] = PROMPT_RULES,
) -> dict[str, Any]:
    """Write prompts, steps and guidance into a copy of an editor graph.

    Args:
        workflow: Editor graph; left untouched.
        params: Injection values, or a request-style mapping of them.
        rules: Prompt selection policy.

    Returns:
        The modified deep copy.

    Raises:
        StructuralError: If the workflow has no node list.
    """
    if not isinstance(params, InjectionParams):
        params = InjectionParams.from_mapping(params)

    injected = copy.deepcopy(dict(workflow))
    nodes = injected.get("nodes")
    if not isinstance(nodes, list):
        raise StructuralError("Workflow has no nodes")

    rules = tuple(rules)
    logger.info(f"Injecting parameters into {len(nodes)} nodes")

    for node in nodes:
        if not isinstance(node, dict):
            continue

        if node.get("type") and not node.get("class_type"):
            node["class_type"] = node["type"]
        elif not node.get("class_type"):
            logger.error(f"Node {node.get('id')} is missing both type and class_type")

        class_type = node.get("class_type")
        values = node.get("widgets_values")
        if not isinstance(values, list):
            continue

        role = select_prompt_role(node, rules)
        if role is PromptRole.POSITIVE:
            logger.debug("Setting positive prompt on node %s", node.get("id"))
            values[0] = params.positive_prompt
        elif role is PromptRole.NEGATIVE:
            logger.debug("Setting negative prompt on node %s", node.get("id"))
            values[0] = params.negative_prompt
        elif class_type == SAMPLER_TYPE and len(values) > STEPS_SLOT:
            logger.debug(
                "Setting steps on node %s: %r -> %r",
                node.get("id"),
                values[STEPS_SLOT],
                params.steps,
            )
            values[STEPS_SLOT] = params.steps
        elif class_type == GUIDANCE_TYPE and len(values) > GUIDANCE_SLOT:
            logger.debug(
                "Setting guidance on node %s: %r -> %r",
                node.get("id"),
                values[GUIDANCE_SLOT],
                params.guidance,
            )
            values[GUIDANCE_SLOT] = params.guidance

    return injected


def assert_injectable(nodes: Iterable[Mapping[str, Any]]) -> None:
    """Fail unless every node has a class type and a usable id.

    Raises:
        StructuralError: For a node entry that is not an object, or naming
            the offending node ids.
    """
    nodes = list(nodes)
    for node in nodes:
        if not isinstance(node, Mapping):
            raise StructuralError(f"Invalid node entry: {node!r}")

    untyped = [n.get("id") for n in nodes if not n.get("class_type")]
    if untyped:
        raise StructuralError(
            f"{len(untyped)} nodes are missing class_type: {untyped}", node_id=untyped[0]
        )

    bad_ids = [n.get("id") for n in nodes if not is_valid_node_id(n.get("id"))]
    if bad_ids:
        raise StructuralError(
            f"{len(bad_ids)} nodes have invalid IDs: {bad_ids}", node_id=bad_ids[0]
        )


# Positional widget index -> input name, per node type.
DIRECT_WIDGET_TABLES: dict[str, tuple[tuple[int, str], ...]] = {
    TEXT_ENCODE_TYPE: ((0, "text"),),
    SAMPLER_TYPE: (
        (0, "seed"),
        (2, "steps"),
        (3, "cfg"),
        (4, "sampler_name"),
        (5, "scheduler"),
        (6, "denoise"),
    ),
    "SaveImage": ((0, "filename_prefix"),),
    "EmptyLatentImage": ((0, "width"), (1, "height"), (2, "batch_size")),
    "EmptySD3LatentImage": ((0, "width"), (1, "height"), (2, "batch_size")),
    "CheckpointLoaderSimple": ((0, "ckpt_name"),),
    "VAELoader": ((0, "vae_name"),),
    "UNETLoader": ((0, "unet_name"), (1, "weight_dtype")),
    "DualCLIPLoader": ((0, "clip_name1"), (1, "clip_name2"), (2, "type")),
    GUIDANCE_TYPE: ((GUIDANCE_SLOT, "guidance"),),
}


def _find_source(workflow: Mapping[str, Any], link_id: Any) -> tuple[Any, int] | None:
    for entry in workflow.get("links") or []:
        try:
            link = parse_link(entry)
        except ValueError:
            continue
        if link.id != link_id:
            continue
        for node in workflow.get("nodes") or []:
            if isinstance(node, Mapping) and node.get("id") == link.source_node_id:
                outputs = node.get("outputs") or []
                if link.source_slot < len(outputs):
                    return link.source_node_id, link.source_slot
                return None
        return None
    return None


def convert_injected_workflow(workflow: Mapping[str, Any]) -> dict[str, dict[str, Any]]:
    """Convert an injected editor graph with fixed per-type widget tables.

    Every node is kept.  Connections are resolved by walking the link list;
    widgets of types without a table become ``input_<index>``.
    """
    nodes = workflow.get("nodes")
    if not isinstance(nodes, list):
        raise StructuralError("Workflow has no nodes")

    converted: dict[str, dict[str, Any]] = {}
    for node in nodes:
        if not isinstance(node, Mapping):
            raise StructuralError(f"Invalid node entry: {node!r}")
        class_type = node.get("class_type")
        inputs: dict[str, Any] = {}

        for slot in node.get("inputs") or []:
            if not isinstance(slot, Mapping) or slot.get("link") is None:
                continue
            source = _find_source(workflow, slot["link"])
            if source is not None:
                inputs[slot.get("name")] = [str(source[0]), source[1]]

        values = node.get("widgets_values")
        if isinstance(values, list):
            table = DIRECT_WIDGET_TABLES.get(class_type)
            if table is None:
                for index, value in enumerate(values):
                    inputs[f"input_{index}"] = value
            else:
                for index, name in table:
                    if index < len(values):
                        inputs[name] = values[index]

        converted[str(node.get("id"))] = {"class_type": class_type, "inputs": inputs}

    logger.info(f"Converted injected workflow with {len(converted)} nodes")
    return converted


def process_workflow_prompts(
    workflow: Mapping[str, Any],
    params: InjectionParams | Mapping[str, Any],
    converter: Converter = "compiler",
) -> dict[str, dict[str, Any]]:
    """Inject parameters into a template and compile it.

    Args:
        workflow: Editor graph template.
        params: Injection values.
        converter: ``"compiler"`` for the full pipeline, ``"direct"`` for
            :func:`convert_injected_workflow`.

    Returns:
        Execution-format workflow.

    Raises:
        StructuralError: If the injected graph cannot be compiled.
        ValueError: For an unknown converter name.
    """
    injected = inject_parameters(workflow, params)
    assert_injectable(injected["nodes"])

    if converter == "direct":
        return convert_injected_workflow(injected)
    if converter == "compiler":
        return compile_workflow(injected).workflow
    raise ValueError(f"Unknown converter: {converter!r}")


POSITIVE_TITLE_KEYWORDS: tuple[str, ...] = ("positive", "prompt positif", "main prompt")


def inject_prompt_by_title(
    workflow: Mapping[str, Any],
    positive: str | None,
    negative: str | None = None,
) -> dict[str, Any]:
    """Replace the prompts of a template using node titles, then node order.

    A node titled like a positive prompt gets ``positive``; one titled like a
    negative prompt gets ``negative``.  Without a positive title, the text
    encoders are taken in execution order: the first is positive and the
    second negative.
    """
    modified = copy.deepcopy(dict(workflow))
    encoders = [n for n in modified.get("nodes") or [] if n.get("type") == TEXT_ENCODE_TYPE]
    if not encoders:
        logger.warning("No CLIPTextEncode nodes found in workflow")
        return modified

    positive_node = None
    negative_node = None
    for node in encoders:
        title = fold_text(node.get("title") or "")
        if any(k in title for k in POSITIVE_TITLE_KEYWORDS):
            positive_node = node
        elif title_is_negative(node.get("title")):
            negative_node = node

    if positive_node is None:
        ordered = sorted(encoders, key=lambda n: n.get("order") or 0)
        positive_node = ordered[0]
        if len(ordered) >= 2:
            negative_node = ordered[1]

    if positive:
        positive_node["widgets_values"] = [positive]
        logger.info(f"Injected positive prompt into node {positive_node.get('id')}")

    if negative and negative_node is not None:
        negative_node["widgets_values"] = [negative]
        logger.info(f"Injected negative prompt into node {negative_node.get('id')}")
    elif negative:
        logger.warning("Negative prompt provided but no suitable node found")

    return modified


def validate_workflow_structure(workflow: Mapping[str, Any]) -> tuple[bool, list[str]]:
    """Check that a template can receive prompts.

    Returns:
        ``(valid, errors)``.
    """
    errors = []
    nodes = workflow.get("nodes")
    if not isinstance(nodes, list):
        errors.append("Workflow missing nodes array")
        nodes = []
    if not isinstance(workflow.get("links"), list):
        errors.append("Workflow missing links array")
    if not any(isinstance(n, dict) and n.get("type") == TEXT_ENCODE_TYPE for n in nodes):
        errors.append("No CLIPTextEncode nodes found - cannot inject prompts")
    return not errors, errors


_CLIENT_ID_ALPHABET = string.ascii_lowercase + string.digits


def generate_client_id() -> str:
    """Unique client id for a generation request."""
    suffix = "".join(secrets.choice(_CLIENT_ID_ALPHABET) for _ in range(7))
    return f"web-client-{int(time.time() * 1000)}-{suffix}"
