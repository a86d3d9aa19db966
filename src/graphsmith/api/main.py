"""Graphsmith - FastAPI Application.

This module defines the FastAPI ``app`` instance, all REST API routes, and
the ``main()`` CLI function that launches the uvicorn server.

Architecture
------------
- **Templates** come from the source selected by
  ``GRAPHSMITH_TEMPLATE_SOURCE``: the remote workflow service or a local
  directory of ``*.json`` files.  The source is created at startup and kept
  on ``app.state``.
- **Compilation** is synchronous and request-scoped; every request works on
  its own copy of the template.
- **Errors** from compilation or the template source are returned as
  ``{"success": false, "error": ..., "details": ...}``.

Endpoints
---------
========  ========================================  ==============================
Method    Path                                      Purpose
========  ========================================  ==============================
GET       ``/api/health``                           Liveness and version
GET       ``/api/workflows``                        List workflow templates
GET       ``/api/workflows/{name}``                 One template's editor graph
POST      ``/api/workflows/{workflow_id}/generate``  Inject prompts and compile
POST      ``/api/workflows/convert``                Compile an editor graph
POST      ``/api/workflows/analyze``                Analyse (and repair) a graph
========  ========================================  ==============================

Usage
-----
CLI (installed entry point)::

    graphsmith

Direct invocation::

    python -m graphsmith.api.main
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from graphsmith import __version__
from graphsmith.api.models import (
    AnalyzeWorkflowRequest,
    ConvertWorkflowRequest,
    GenerateWorkflowRequest,
)
from graphsmith.core.analysis import analyze_workflow, validate_and_fix_workflow
from graphsmith.core.compiler import compile_workflow
from graphsmith.core.config import config
from graphsmith.core.errors import (
    GraphsmithError,
    StructuralError,
    TemplateFetchError,
    WorkflowNotFoundError,
)
from graphsmith.core.injection import InjectionParams, process_workflow_prompts
from graphsmith.core.templates import TemplateSource, create_template_source

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Create the template source on startup and close it on shutdown."""
    app.state.template_source = create_template_source(config)
    logger.info(f"Template source ready ({config.template_source}).")

    yield

    await app.state.template_source.close()
    logger.info("Template source closed on shutdown.")


app = FastAPI(
    title="Graphsmith",
    description="Workflow graph compiler and prompt injection API.",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _template_source() -> TemplateSource:
    return app.state.template_source


def _error_response(status_code: int, error: str, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "details": str(exc)},
    )


def _injection_params(req: GenerateWorkflowRequest) -> InjectionParams:
    """Fill unset request values from the configured defaults."""
    options = req.options
    return InjectionParams(
        positive_prompt=req.positive_prompt,
        negative_prompt=req.negative_prompt or config.default_negative_prompt,
        steps=options.steps if options.steps is not None else config.default_steps,
        guidance=options.guidance if options.guidance is not None else config.default_guidance,
        extra=dict(options.model_extra or {}),
    )


# ---------------------------------------------------------------------------
# Routes.
# ---------------------------------------------------------------------------


@app.get("/api/health")
async def health() -> dict:
    return {"status": "ok", "version": __version__}


@app.get("/api/workflows")
async def list_workflows() -> Any:
    """List the available workflow templates."""
    try:
        templates = await _template_source().list_workflows()
    except TemplateFetchError as e:
        logger.error(f"Failed to list workflows: {e}")
        return _error_response(502, "Failed to fetch workflows", e)
    return {"data": [t.summary() for t in templates]}


@app.post("/api/workflows/convert")
async def convert_workflow(req: ConvertWorkflowRequest) -> Any:
    """Compile an editor graph and return it with its diagnostics.

    Returns:
        ``{"success": true, "workflow": {...}, "diagnostics": {...}}``, a 400
        error payload when the graph is structurally unusable, or a 500
        payload for any other failure.
    """
    try:
        result = compile_workflow(req.workflow)
    except StructuralError as e:
        return _error_response(400, "Failed to convert workflow", e)
    except Exception as e:
        logger.error(f"Unexpected error converting workflow: {e}", exc_info=True)
        return _error_response(500, "Failed to convert workflow", e)
    return {"success": True, **result.to_dict()}


@app.post("/api/workflows/analyze")
async def analyze(req: AnalyzeWorkflowRequest) -> dict:
    """Report predicted parameter problems, optionally repairing them."""
    if req.fix:
        return validate_and_fix_workflow(req.workflow).to_dict()
    return analyze_workflow(req.workflow).to_dict()


@app.get("/api/workflows/{name}")
async def get_workflow(name: str) -> Any:
    """Return one template's editor graph.

    Raises:
        HTTPException: 404 if no template has this name.
    """
    try:
        workflow = await _template_source().get_workflow_by_name(name)
    except WorkflowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except TemplateFetchError as e:
        logger.error(f"Failed to fetch workflow {name}: {e}")
        return _error_response(502, f"Failed to fetch workflow: {name}", e)
    return {"data": workflow}


@app.post("/api/workflows/{workflow_id}/generate")
async def generate_workflow(workflow_id: str, req: GenerateWorkflowRequest) -> Any:
    """Inject prompts into a template and compile it.

    The template is looked up by its content id or file name, a copy gets
    the request's prompts, step count and guidance, and the result is
    compiled with the configured converter.

    Returns:
        The execution-format workflow.  Unknown templates give 404; any
        template or compilation failure gives 500.
    """
    logger.info(f"Generating workflow {workflow_id}")
    try:
        template = await _template_source().find_workflow(workflow_id)
        compiled = process_workflow_prompts(
            template.workflow,
            _injection_params(req),
            converter=config.generation_converter,
        )
    except WorkflowNotFoundError as e:
        logger.warning(str(e))
        return _error_response(404, "Failed to generate workflow", e)
    except GraphsmithError as e:
        logger.error(f"Error generating workflow {workflow_id}: {e}")
        return _error_response(500, "Failed to generate workflow", e)
    except Exception as e:
        logger.error(f"Unexpected error generating workflow {workflow_id}: {e}", exc_info=True)
        return _error_response(500, "Failed to generate workflow", e)

    logger.info(f"Generated workflow {workflow_id} with {len(compiled)} nodes")
    return compiled


# ---------------------------------------------------------------------------
# CLI entry point.
# ---------------------------------------------------------------------------


def main() -> None:
    """Launch the uvicorn ASGI server.

    Reads host, port and log level from :data:`~graphsmith.core.config.config`.
    Registered as the ``graphsmith`` console script in ``pyproject.toml``.
    """
    import uvicorn

    logging.basicConfig(
        level=getattr(logging, config.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "graphsmith.api.main:app",
        host=config.server_host,
        port=config.server_port,
        reload=False,
    )


if __name__ == "__main__":
    main()
