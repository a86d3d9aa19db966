"""Workflow template sources.

Templates are editor graphs stored either behind the remote workflow service
(:class:`RemoteTemplateService`) or as ``*.json`` files in a local directory
(:class:`DirectoryTemplateStore`).  Both expose the same async interface:

- ``list_workflows()`` - every template;
- ``find_workflow(id_or_name)`` - a template by its content id or by its
  file name without the ``workflows/`` prefix and ``.json`` suffix;
- ``get_workflow_by_name(name)`` - a template's editor graph by name.

The remote service answers ``GET /workflows`` with
``{"data": [{"content": {"name": "workflows/x.json", "content": {...}}}]}``
and ``GET /workflows/workflow?name=x`` with ``{"data": {...}}``.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import httpx

from graphsmith.core.config import GraphsmithConfig
from graphsmith.core.errors import TemplateFetchError, WorkflowNotFoundError

logger = logging.getLogger(__name__)

NAME_PREFIX = "workflows/"
NAME_SUFFIX = ".json"


def template_slug(name: str) -> str:
    """``"workflows/flux.json"`` -> ``"flux"``."""
    if name.startswith(NAME_PREFIX):
        name = name[len(NAME_PREFIX) :]
    if name.endswith(NAME_SUFFIX):
        name = name[: -len(NAME_SUFFIX)]
    return name


@dataclass
class WorkflowTemplate:
    """One stored template: its file name and editor graph."""

    name: str
    workflow: dict[str, Any] | None = None

    @property
    def slug(self) -> str:
        return template_slug(self.name)

    @property
    def workflow_id(self) -> str | None:
        if self.workflow is None:
            return None
        value = self.workflow.get("id")
        return str(value) if value is not None else None

    def matches(self, id_or_name: str) -> bool:
        return id_or_name in (self.workflow_id, self.slug)

    @classmethod
    def from_item(cls, item: Any) -> WorkflowTemplate | None:
        """Parse a listing entry; returns None for entries without a name."""
        if not isinstance(item, dict):
            return None
        inner = item.get("content")
        if isinstance(inner, dict) and isinstance(inner.get("content"), dict):
            name = inner.get("name") or item.get("name")
            workflow = inner["content"]
        else:
            name = item.get("name")
            workflow = inner if isinstance(inner, dict) else None
        if not name:
            return None
        return cls(name=str(name), workflow=workflow)

    def summary(self) -> dict[str, Any]:
        nodes = (self.workflow or {}).get("nodes")
        return {
            "name": self.name,
            "slug": self.slug,
            "id": self.workflow_id,
            "nodeCount": len(nodes) if isinstance(nodes, list) else None,
        }


class TemplateSource(Protocol):
    async def list_workflows(self) -> list[WorkflowTemplate]: ...

    async def find_workflow(self, id_or_name: str) -> WorkflowTemplate: ...

    async def get_workflow_by_name(self, name: str) -> dict[str, Any]: ...

    async def close(self) -> None: ...


def _find(templates: list[WorkflowTemplate], id_or_name: str) -> WorkflowTemplate:
    for template in templates:
        if template.workflow is not None and template.matches(id_or_name):
            return template
    raise WorkflowNotFoundError(id_or_name)


class RemoteTemplateService:
    """Async client for the remote workflow template service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=httpx.Timeout(timeout, connect=10.0),
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict | None = None) -> Any:
        try:
            r = await self._client.get(path, params=params)
            r.raise_for_status()
            return r.json()
        except httpx.HTTPStatusError as e:
            logger.error("GET %s -> %s", path, e.response.status_code)
            raise TemplateFetchError(
                f"Failed to fetch {path}: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error("GET %s failed: %s", path, e)
            raise TemplateFetchError(f"Failed to fetch {path}: {e}") from e
        except ValueError as e:
            logger.error("GET %s returned invalid JSON: %s", path, e)
            raise TemplateFetchError(f"Invalid JSON from {path}") from e

    async def list_workflows(self) -> list[WorkflowTemplate]:
        data = await self._get("/workflows")
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise TemplateFetchError("Workflow listing has no data array")
        templates = [t for t in (WorkflowTemplate.from_item(i) for i in items) if t is not None]
        logger.info(f"Fetched {len(templates)} workflow templates")
        return templates

    async def find_workflow(self, id_or_name: str) -> WorkflowTemplate:
        return _find(await self.list_workflows(), id_or_name)

    async def get_workflow_by_name(self, name: str) -> dict[str, Any]:
        try:
            data = await self._get("/workflows/workflow", params={"name": name})
        except TemplateFetchError as e:
            if e.status_code == 404:
                raise WorkflowNotFoundError(name) from e
            raise
        workflow = data.get("data") if isinstance(data, dict) else None
        if not isinstance(workflow, dict):
            raise TemplateFetchError(f"Workflow {name!r} response has no data object")
        return workflow


class DirectoryTemplateStore:
    """Templates read from ``*.json`` files in a directory."""

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    async def close(self) -> None:
        pass

    def _load(self, path: Path) -> WorkflowTemplate | None:
        try:
            workflow = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Skipping unreadable template {path.name}: {e}")
            return None
        if not isinstance(workflow, dict):
            logger.warning(f"Skipping template {path.name}: not a JSON object")
            return None
        return WorkflowTemplate(name=f"{NAME_PREFIX}{path.name}", workflow=workflow)

    async def list_workflows(self) -> list[WorkflowTemplate]:
        if not self.directory.is_dir():
            return []
        paths = sorted(self.directory.glob(f"*{NAME_SUFFIX}"))
        return [t for t in (self._load(p) for p in paths) if t is not None]

    async def find_workflow(self, id_or_name: str) -> WorkflowTemplate:
        return _find(await self.list_workflows(), id_or_name)

    async def get_workflow_by_name(self, name: str) -> dict[str, Any]:
        path = self.directory / f"{template_slug(name)}{NAME_SUFFIX}"
        # Names come from URLs; never read outside the directory.
        if path.resolve().parent != self.directory.resolve() or not path.is_file():
            raise WorkflowNotFoundError(name)
        template = self._load(path)
        if template is None:
            raise TemplateFetchError(f"Template {name!r} is not valid JSON")
        return copy.deepcopy(template.workflow)


def create_template_source(cfg: GraphsmithConfig) -> TemplateSource:
    """Build the template source selected by ``cfg.template_source``."""
    if cfg.template_source == "directory":
        logger.info(f"Using workflow templates from {cfg.templates_dir}")
        return DirectoryTemplateStore(cfg.templates_dir)
    logger.info(f"Using workflow template service at {cfg.workflow_api_url}")
    return RemoteTemplateService(cfg.workflow_api_url, timeout=cfg.workflow_api_timeout)
