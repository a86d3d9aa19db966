"""Unit tests for per-type widget normalizers."""

import math

import pytest

from graphsmith.core.diagnostics import Diagnostics
from graphsmith.core.models import EditorNode
from graphsmith.core.normalizers import (
    RESOLUTION_DEFAULTS,
    normalize_denoise,
    normalize_sampler_name,
    normalize_scheduler,
)
from graphsmith.core.node_specs import node_registry


def _run(node_type, values, inputs=None):
    node = EditorNode.from_dict({"id": 5, "type": node_type, "widgets_values": values})
    spec = node_registry.get(node_type)
    inputs = dict(inputs or {})
    diagnostics = Diagnostics()
    spec.normalize(node, inputs, spec, diagnostics)
    return inputs, diagnostics


class TestValueHelpers:
    """Tests for sampler, scheduler and denoise coercion."""

    @pytest.mark.parametrize(
        "value, expected",
        [(0, "euler"), (11, "dpmpp_2m"), (16, "uni_pc_bh2"), (17, "euler"), (-1, "euler"),
         (3.0, "dpm_2"), ("dpmpp_sde", "dpmpp_sde"), (1.5, "euler"), (2.5, "euler"),
         (float("nan"), "euler"), (float("inf"), "euler")],
    )
    def test_sampler_name(self, value, expected):
        assert normalize_sampler_name(value) == expected

    def test_sampler_name_bool_passes_through(self):
        assert normalize_sampler_name(True) is True

    @pytest.mark.parametrize(
        "value, expected",
        [("euler", "simple"), ("karras", "karras"), ("bogus", "simple"), (3, "simple"),
         ("kl_optimal", "kl_optimal")],
    )
    def test_scheduler(self, value, expected):
        assert normalize_scheduler(value) == expected

    @pytest.mark.parametrize(
        "value, expected",
        [("simple", 1.0), ("0.55", 0.55), ("abc", 1.0), (0.4, 0.4), (1, 1)],
    )
    def test_denoise(self, value, expected):
        assert normalize_denoise(value) == expected

    @pytest.mark.parametrize("value", ["nan", "inf", "-inf"])
    def test_denoise_non_finite_falls_back(self, value):
        result = normalize_denoise(value)
        assert math.isfinite(result)
        assert result == 1.0


class TestSamplerNormalizer:
    """Tests for the seven-value sampler layout."""

    def test_full_layout(self):
        inputs, diagnostics = _run("KSampler", [42, "randomize", 25, 6.5, 0, "euler", "simple"])

        assert inputs == {
            "seed": 42,
            "steps": 25,
            "cfg": 6.5,
            "sampler_name": "euler",
            "scheduler": "simple",
            "denoise": 1.0,
        }
        assert "control_after_generate" not in inputs
        assert diagnostics.issues == []

    def test_linked_seed_not_overwritten(self):
        inputs, _ = _run(
            "KSampler",
            [42, "fixed", 25, 6.5, "dpmpp_2m", "karras", 0.7],
            inputs={"seed": ("12", 0)},
        )
        assert inputs["seed"] == ("12", 0)
        assert inputs["sampler_name"] == "dpmpp_2m"
        assert inputs["scheduler"] == "karras"
        assert inputs["denoise"] == 0.7

    def test_fractional_sampler_selector(self):
        inputs, _ = _run("KSampler", [42, "randomize", 25, 6.5, 2.5, "karras", 1.0])
        assert inputs["sampler_name"] == "euler"
        assert inputs["scheduler"] == "karras"

    def test_short_layout_uses_generic_mapping(self):
        inputs, diagnostics = _run("KSampler", [7, "fixed", 30])

        assert inputs == {"seed": 7, "steps": 30}
        assert any("generic mapping" in n for n in diagnostics.notes)


class TestResolutionNormalizer:
    """Tests for the resolution calculator."""

    def test_all_values_present(self):
        values = ["2.0", "16:9 (Panorama)", "32", True, "21:9"]
        inputs, diagnostics = _run("FluxResolutionNode", values)

        assert inputs == {
            "megapixel": "2.0",
            "aspect_ratio": "16:9 (Panorama)",
            "divisible_by": "32",
            "custom_ratio": True,
            "custom_aspect_ratio": "21:9",
        }
        assert diagnostics.issues == []

    def test_short_values_use_defaults(self):
        inputs, diagnostics = _run("FluxResolutionNode", ["2.0", "16:9"])

        assert inputs == RESOLUTION_DEFAULTS
        assert len(diagnostics.issues) == 1
        assert len(diagnostics.recommendations) == 1


class TestTiledUpscaleNormalizer:
    """Tests for the 19-parameter tiled upscaler."""

    def test_control_sentinel_dropped(self):
        values = [2, 123, "randomize", 20, 7.0, "euler", "normal", 0.3, "Linear", 1024, 1024,
                  8, 32, "None", 1.0, 64, 8, 16, True, False]
        inputs, diagnostics = _run("UltimateSDUpscale", values)

        assert inputs["upscale_by"] == 2
        assert inputs["seed"] == 123
        assert inputs["steps"] == 20
        assert inputs["denoise"] == 0.3
        assert inputs["tiled_decode"] is False
        assert len(inputs) == 19
        assert diagnostics.notes == []

    def test_short_values_noted(self):
        inputs, diagnostics = _run("UltimateSDUpscale", [2, 123])

        assert inputs == {"upscale_by": 2, "seed": 123}
        assert len(diagnostics.notes) == 1


class TestDualLoaderNormalizer:
    """Tests for the dual text-encoder loader."""

    def test_four_values(self):
        inputs, _ = _run(
            "DualCLIPLoader", ["t5.safetensors", "clip_l.safetensors", "flux", "default"]
        )
        assert inputs == {
            "clip_name1": "t5.safetensors",
            "clip_name2": "clip_l.safetensors",
            "type": "flux",
            "device": "default",
        }

    def test_fewer_values_skipped(self):
        inputs, diagnostics = _run(
            "DualCLIPLoader", ["t5.safetensors", "clip_l.safetensors", "flux"]
        )
        assert inputs == {}
        assert any("skipping" in n for n in diagnostics.notes)
