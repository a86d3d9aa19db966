"""Pydantic request models for the Graphsmith API.

FastAPI uses them for request validation and OpenAPI documentation.  Field
aliases keep the camelCase keys browser clients send.

Models
------
GenerateWorkflowRequest
    Payload for ``POST /api/workflows/{workflow_id}/generate``.
ConvertWorkflowRequest
    Payload for ``POST /api/workflows/convert``.
AnalyzeWorkflowRequest
    Payload for ``POST /api/workflows/analyze``.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class GenerationOptions(BaseModel):
    """Optional generation overrides.

    Unknown keys are accepted and passed along with the injection values.
    """

    model_config = ConfigDict(extra="allow")

    steps: int | None = Field(default=None, ge=1, le=200, description="Sampler step count.")
    guidance: float | None = Field(default=None, ge=0.0, description="Guidance value.")


class GenerateWorkflowRequest(BaseModel):
    """Request body for the generate endpoint.

    Attributes:
        positive_prompt: Text injected into the positive prompt node.
        negative_prompt: Text injected into the negative prompt node.  The
            configured default is used when omitted.
        options: Step count, guidance and any extra values.
    """

    model_config = ConfigDict(populate_by_name=True)

    positive_prompt: str = Field(
        ...,
        alias="positivePrompt",
        description="Prompt describing what to generate.",
    )
    negative_prompt: str | None = Field(
        default=None,
        alias="negativePrompt",
        description="Prompt describing what to avoid.",
    )
    options: GenerationOptions = Field(default_factory=GenerationOptions)


class ConvertWorkflowRequest(BaseModel):
    """Request body for compiling an editor graph."""

    workflow: dict[str, Any] = Field(..., description="Editor graph with nodes and links.")


class AnalyzeWorkflowRequest(BaseModel):
    """Request body for analysing an editor graph.

    Attributes:
        workflow: Editor graph to analyse.
        fix: Also apply automatic repairs and try compiling the result.
    """

    workflow: dict[str, Any] = Field(..., description="Editor graph with nodes and links.")
    fix: bool = Field(default=False, description="Apply automatic repairs and compile.")
