"""Helpers for working with workflows in either format."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from graphsmith.core.compiler import compile_workflow
from graphsmith.core.errors import StructuralError
from graphsmith.core.injection import fold_text

logger = logging.getLogger(__name__)

TEXT_ENCODE_TYPE = "CLIPTextEncode"


def load_workflow(source: dict[str, Any] | str | Path) -> dict[str, Any]:
    """Load a workflow from a dict, a JSON string or a ``.json`` file path.

    Raises:
        StructuralError: If the source cannot be read or parsed.
    """
    if isinstance(source, dict):
        return source

    if isinstance(source, Path) or (isinstance(source, str) and source.endswith(".json")):
        try:
            text = Path(source).read_text(encoding="utf-8")
        except OSError as e:
            raise StructuralError(f"Cannot read workflow file {source}: {e}") from e
    else:
        text = source

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise StructuralError(f"Failed to parse workflow JSON: {e}") from e

    if not isinstance(data, dict):
        raise StructuralError("Workflow must be a JSON object")
    return data


def is_editor_format(workflow: Any) -> bool:
    """True when ``workflow`` needs compiling before it can be executed.

    Editor graphs carry ``nodes`` and ``links`` lists; execution graphs are
    keyed by node id with a ``class_type`` in every entry.
    """
    if not isinstance(workflow, dict) or not workflow:
        return False
    if isinstance(workflow.get("nodes"), list) and isinstance(workflow.get("links"), list):
        return True
    first = next(iter(workflow.values()))
    return not (isinstance(first, dict) and first.get("class_type"))


def ensure_execution_format(workflow: dict[str, Any]) -> dict[str, Any]:
    """Compile ``workflow`` if it is an editor graph, otherwise return it."""
    if is_editor_format(workflow):
        logger.info("Auto-converting workflow to execution format")
        return compile_workflow(workflow).workflow
    logger.debug("Workflow already in execution format")
    return workflow


def build_prompt_payload(
    workflow: dict[str, Any], client_id: str | None = None
) -> dict[str, Any]:
    """Wrap a workflow in the body the execution engine's queue expects."""
    payload: dict[str, Any] = {"prompt": ensure_execution_format(workflow)}
    if client_id:
        payload["client_id"] = client_id
    return payload


def extract_prompts(api_workflow: dict[str, Any]) -> dict[str, list[str]]:
    """Collect prompt texts, split by whether the node title reads negative."""
    prompts: dict[str, list[str]] = {"positive": [], "negative": []}
    for node in api_workflow.values():
        if node.get("class_type") != TEXT_ENCODE_TYPE:
            continue
        text = node.get("inputs", {}).get("text")
        if not isinstance(text, str):
            continue
        title = fold_text((node.get("_meta") or {}).get("title") or "")
        # "neg" also covers "negative" and "négatif"
        key = "negative" if "neg" in title else "positive"
        prompts[key].append(text)
    return prompts


def update_prompts(api_workflow: dict[str, Any], updates: dict[str, str]) -> dict[str, Any]:
    """Return a copy with the text of the given text encode nodes replaced."""
    modified = dict(api_workflow)
    for node_id, text in updates.items():
        node = modified.get(node_id)
        if node and node.get("class_type") == TEXT_ENCODE_TYPE:
            modified[node_id] = {**node, "inputs": {**node.get("inputs", {}), "text": text}}
    return modified


def find_nodes_by_type(api_workflow: dict[str, Any], class_type: str) -> list[tuple[str, dict]]:
    return [
        (node_id, node)
        for node_id, node in api_workflow.items()
        if node.get("class_type") == class_type
    ]


def update_node_params(
    api_workflow: dict[str, Any], class_type: str, updates: dict[str, Any]
) -> dict[str, Any]:
    """Return a copy with ``updates`` merged into every node of ``class_type``."""
    modified = dict(api_workflow)
    for node_id, node in find_nodes_by_type(api_workflow, class_type):
        modified[node_id] = {**node, "inputs": {**node.get("inputs", {}), **updates}}
    return modified
