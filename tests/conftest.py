"""Shared pytest fixtures for Graphsmith tests."""

import json
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from graphsmith.core.config import GraphsmithConfig

LONG_POSITIVE_TEXT = (
    "a highly detailed photograph of a lighthouse on a rocky coast at dusk, "
    "dramatic clouds, golden hour"
)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> GraphsmithConfig:
    """Create a test configuration reading templates from a temp directory.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        GraphsmithConfig instance for testing
    """
    return GraphsmithConfig(
        template_source="directory",
        templates_dir=str(temp_dir / "workflows"),
        workflow_api_url="http://templates.test",
        default_steps=20,
        default_guidance=3.5,
        _env_file=None,
    )


@pytest.fixture
def flux_workflow() -> dict:
    """Editor graph of a small Flux text-to-image template.

    Layout:
        38 UNETLoader -> 56 LoraLoaderModelOnly (muted) -> 31 KSampler
        11 DualCLIPLoader -> 6 CLIPTextEncode (positive) -> 26 FluxGuidance -> 31
        11 DualCLIPLoader -> 7 CLIPTextEncode "Négatif" -> 31
        27 EmptyLatentImage -> 31 -> 8 VAEDecode <- 10 VAELoader
        8 -> 9 SaveImage, 8 -> 41 PreviewImage (UI only)
        40 MarkdownNote (UI only, unconnected)

    Returns:
        Editor-format workflow dict
    """
    return {
        "id": "flux-dev-template",
        "revision": 0,
        "last_node_id": 56,
        "last_link_id": 12,
        "nodes": [
            {
                "id": 38,
                "type": "UNETLoader",
                "mode": 0,
                "order": 0,
                "inputs": [],
                "outputs": [{"name": "MODEL", "type": "MODEL", "links": [1]}],
                "widgets_values": ["flux1-dev.safetensors", "default"],
            },
            {
                "id": 56,
                "type": "LoraLoaderModelOnly",
                "mode": 4,
                "order": 1,
                "inputs": [{"name": "model", "type": "MODEL", "link": 1}],
                "outputs": [{"name": "MODEL", "type": "MODEL", "links": [2]}],
                "widgets_values": ["detail.safetensors", 0.8],
            },
            {
                "id": 11,
                "type": "DualCLIPLoader",
                "mode": 0,
                "order": 2,
                "inputs": [],
                "outputs": [{"name": "CLIP", "type": "CLIP", "links": [3, 4]}],
                "widgets_values": [
                    "t5xxl_fp16.safetensors",
                    "clip_l.safetensors",
                    "flux",
                    "default",
                ],
            },
            {
                "id": 6,
                "type": "CLIPTextEncode",
                "mode": 0,
                "order": 3,
                "inputs": [{"name": "clip", "type": "CLIP", "link": 3}],
                "outputs": [{"name": "CONDITIONING", "type": "CONDITIONING", "links": [5]}],
                "widgets_values": [LONG_POSITIVE_TEXT],
            },
            {
                "id": 7,
                "type": "CLIPTextEncode",
                "title": "Négatif",
                "mode": 0,
                "order": 4,
                "inputs": [{"name": "clip", "type": "CLIP", "link": 4}],
                "outputs": [{"name": "CONDITIONING", "type": "CONDITIONING", "links": [6]}],
                "widgets_values": ["blurry"],
            },
            {
                "id": 26,
                "type": "FluxGuidance",
                "mode": 0,
                "order": 5,
                "inputs": [{"name": "conditioning", "type": "CONDITIONING", "link": 5}],
                "outputs": [{"name": "CONDITIONING", "type": "CONDITIONING", "links": [7]}],
                "widgets_values": [3.5],
            },
            {
                "id": 27,
                "type": "EmptyLatentImage",
                "mode": 0,
                "order": 6,
                "inputs": [],
                "outputs": [{"name": "LATENT", "type": "LATENT", "links": [8]}],
                "widgets_values": [1024, 1024, 1],
            },
            {
                "id": 31,
                "type": "KSampler",
                "mode": 0,
                "order": 7,
                "inputs": [
                    {"name": "model", "type": "MODEL", "link": 2},
                    {"name": "positive", "type": "CONDITIONING", "link": 7},
                    {"name": "negative", "type": "CONDITIONING", "link": 6},
                    {"name": "latent_image", "type": "LATENT", "link": 8},
                ],
                "outputs": [{"name": "LATENT", "type": "LATENT", "links": [9]}],
                "widgets_values": [42, "randomize", 25, 6.5, 0, "euler", "simple"],
            },
            {
                "id": 10,
                "type": "VAELoader",
                "mode": 0,
                "order": 8,
                "inputs": [],
                "outputs": [{"name": "VAE", "type": "VAE", "links": [10]}],
                "widgets_values": ["ae.safetensors"],
            },
            {
                "id": 8,
                "type": "VAEDecode",
                "mode": 0,
                "order": 9,
                "inputs": [
                    {"name": "samples", "type": "LATENT", "link": 9},
                    {"name": "vae", "type": "VAE", "link": 10},
                ],
                "outputs": [{"name": "IMAGE", "type": "IMAGE", "links": [11, 12]}],
                "widgets_values": [],
            },
            {
                "id": 9,
                "type": "SaveImage",
                "mode": 0,
                "order": 10,
                "inputs": [{"name": "images", "type": "IMAGE", "link": 11}],
                "outputs": [],
                "widgets_values": ["flux"],
            },
            {
                "id": 41,
                "type": "PreviewImage",
                "mode": 0,
                "order": 11,
                "inputs": [{"name": "images", "type": "IMAGE", "link": 12}],
                "outputs": [],
                "widgets_values": [],
            },
            {
                "id": 40,
                "type": "MarkdownNote",
                "mode": 0,
                "order": 12,
                "inputs": [],
                "outputs": [],
                "widgets_values": ["Set the prompt in the top text box."],
            },
        ],
        "links": [
            [1, 38, 0, 56, 0, "MODEL"],
            [2, 56, 0, 31, 0, "MODEL"],
            [3, 11, 0, 6, 0, "CLIP"],
            [4, 11, 0, 7, 0, "CLIP"],
            [5, 6, 0, 26, 0, "CONDITIONING"],
            [6, 7, 0, 31, 2, "CONDITIONING"],
            [7, 26, 0, 31, 1, "CONDITIONING"],
            [8, 27, 0, 31, 3, "LATENT"],
            [9, 31, 0, 8, 0, "LATENT"],
            [10, 10, 0, 8, 1, "VAE"],
            [11, 8, 0, 9, 0, "IMAGE"],
            [12, 8, 0, 41, 0, "IMAGE"],
        ],
        "groups": [],
        "config": {},
        "extra": {},
        "version": 0.4,
    }


@pytest.fixture
def templates_dir(test_config: GraphsmithConfig, flux_workflow: dict) -> Path:
    """Populate the test templates directory with the Flux template.

    Returns:
        Path to the templates directory
    """
    path = test_config.templates_dir / "flux_dev.json"
    path.write_text(json.dumps(flux_workflow), encoding="utf-8")
    return test_config.templates_dir


@pytest.fixture
def test_client(monkeypatch, test_config: GraphsmithConfig, templates_dir: Path):
    """FastAPI TestClient backed by the directory template store.

    The application lifespan runs inside the ``with`` block, so the template
    source is created from ``test_config``.
    """
    from fastapi.testclient import TestClient

    from graphsmith.api import main as api_main

    monkeypatch.setattr(api_main, "config", test_config)
    with TestClient(api_main.app) as client:
        yield client
