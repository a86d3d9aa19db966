"""Unit tests for the editor graph compiler."""

import copy
import json

import pytest

from graphsmith.core.compiler import (
    compile_workflow,
    convert_to_api_format,
    looks_like_execution_format,
    normalize_workflow_input,
)
from graphsmith.core.errors import StructuralError
from graphsmith.core.models import NodeReference, NodeStatus
from graphsmith.core.node_specs import NodeTypeRegistry, NodeTypeSpec


class TestNormalizeWorkflowInput:
    """Tests for input acceptance."""

    def test_dict_passes_through(self, flux_workflow):
        assert normalize_workflow_input(flux_workflow) is flux_workflow

    def test_json_string_parsed(self, flux_workflow):
        parsed = normalize_workflow_input(json.dumps(flux_workflow))
        assert parsed["id"] == "flux-dev-template"

    @pytest.mark.parametrize(
        "workflow", [None, "", "{not json", "[1, 2]", {"links": []}, {"nodes": "x"}]
    )
    def test_rejected(self, workflow):
        with pytest.raises(StructuralError):
            normalize_workflow_input(workflow)

    def test_execution_format_rejected(self):
        api = {"3": {"class_type": "KSampler", "inputs": {}}}
        assert looks_like_execution_format(api)
        with pytest.raises(StructuralError, match="execution format"):
            normalize_workflow_input(api)


class TestCompileFluxWorkflow:
    """End-to-end compile of the Flux template fixture."""

    def test_excluded_nodes_absent(self, flux_workflow):
        result = compile_workflow(flux_workflow)

        assert set(result.workflow) == {"38", "11", "6", "7", "26", "27", "31", "10", "8", "9"}
        for excluded in ("56", "40", "41"):
            assert excluded not in result.workflow

    def test_no_issues(self, flux_workflow):
        result = compile_workflow(flux_workflow)
        assert result.diagnostics.issues == []
        assert result.ok

    def test_muted_model_input_redirected(self, flux_workflow):
        result = compile_workflow(flux_workflow)
        assert result.graph["31"].inputs["model"] == NodeReference("38", 0)
        assert result.workflow["31"]["inputs"]["model"] == ["38", 0]

    def test_sampler_normalised(self, flux_workflow):
        inputs = compile_workflow(flux_workflow).workflow["31"]["inputs"]

        assert inputs["seed"] == 42
        assert inputs["steps"] == 25
        assert inputs["cfg"] == 6.5
        assert inputs["sampler_name"] == "euler"
        assert inputs["scheduler"] == "simple"
        assert inputs["denoise"] == 1.0
        assert inputs["positive"] == ["26", 0]
        assert inputs["negative"] == ["7", 0]
        assert inputs["latent_image"] == ["27", 0]

    def test_every_reference_resolves(self, flux_workflow):
        workflow = compile_workflow(flux_workflow).workflow
        for node in workflow.values():
            assert node["class_type"]
            for value in node["inputs"].values():
                if isinstance(value, list) and len(value) == 2 and isinstance(value[0], str):
                    assert value[0] in workflow

    def test_titles(self, flux_workflow):
        workflow = compile_workflow(flux_workflow).workflow
        assert workflow["7"]["_meta"]["title"] == "Négatif"
        assert workflow["8"]["_meta"]["title"] == "VAE Decode"

    def test_node_reports(self, flux_workflow):
        diagnostics = compile_workflow(flux_workflow).diagnostics

        assert diagnostics.get_report(56).status is NodeStatus.MUTED
        assert diagnostics.get_report(41).status is NodeStatus.UI_ONLY
        assert diagnostics.get_report(40).status is NodeStatus.UI_ONLY
        assert diagnostics.get_report(31).status is NodeStatus.ACTIVE
        assert len(diagnostics.node_reports) == len(flux_workflow["nodes"])

    def test_input_not_mutated(self, flux_workflow):
        snapshot = copy.deepcopy(flux_workflow)
        compile_workflow(flux_workflow)
        assert flux_workflow == snapshot

    def test_deterministic(self, flux_workflow):
        first = compile_workflow(flux_workflow).to_dict()
        second = compile_workflow(copy.deepcopy(flux_workflow)).to_dict()
        assert json.dumps(first, sort_keys=True) == json.dumps(second, sort_keys=True)

    def test_convert_to_api_format(self, flux_workflow):
        assert convert_to_api_format(flux_workflow) == compile_workflow(flux_workflow).workflow


class TestCompileEdgeCases:
    """Tests for structural errors and per-node edge cases."""

    def test_missing_type_names_node(self):
        workflow = {"nodes": [{"id": 17, "mode": 0, "widgets_values": []}], "links": []}

        with pytest.raises(StructuralError) as exc_info:
            compile_workflow(workflow)

        assert "17" in str(exc_info.value)
        assert exc_info.value.node_id == "17"

    def test_muted_untyped_node_skipped(self):
        workflow = {
            "nodes": [
                {"id": 1, "mode": 4},
                {"id": 2, "type": "SaveImage", "widgets_values": ["out"]},
            ],
            "links": [],
        }
        assert set(compile_workflow(workflow).workflow) == {"2"}

    def test_invalid_id_raises(self):
        workflow = {"nodes": [{"id": "#id", "type": "SaveImage"}], "links": []}
        with pytest.raises(StructuralError, match="Invalid node ID"):
            compile_workflow(workflow)

    def test_only_excluded_nodes_raises(self):
        workflow = {"nodes": [{"id": 1, "type": "Note"}], "links": []}
        with pytest.raises(StructuralError, match="no executable nodes"):
            compile_workflow(workflow)

    def test_bypassed_node_kept(self):
        workflow = {
            "nodes": [{"id": 3, "type": "SaveImage", "mode": 2, "widgets_values": ["out"]}],
            "links": [],
        }
        result = compile_workflow(workflow)

        assert "3" in result.workflow
        assert any("Bypassed node 3" in n for n in result.diagnostics.notes)

    def test_resolution_defaults(self):
        workflow = {
            "nodes": [{"id": 5, "type": "FluxResolutionNode", "widgets_values": ["1.0"]}],
            "links": [],
        }
        result = compile_workflow(workflow)

        assert result.workflow["5"]["inputs"] == {
            "megapixel": "1.0",
            "aspect_ratio": "1:1 (Square)",
            "divisible_by": "64",
            "custom_ratio": False,
            "custom_aspect_ratio": "1:1",
        }
        assert not result.ok

    def test_missing_required_param_recorded(self):
        workflow = {
            "nodes": [{"id": 6, "type": "CLIPTextEncode", "widgets_values": []}],
            "links": [],
        }
        result = compile_workflow(workflow)

        assert "6" in result.workflow
        assert result.diagnostics.get_report(6).missing_params == ["text"]

    def test_custom_registry(self):
        registry = NodeTypeRegistry()
        registry.register(
            NodeTypeSpec(
                "Blend", widget_order=["factor"], required_params=["factor"], title="Blend!"
            )
        )
        workflow = {"nodes": [{"id": 1, "type": "Blend", "widgets_values": [0.5]}], "links": []}

        result = compile_workflow(workflow, registry=registry)

        assert result.workflow == {
            "1": {"inputs": {"factor": 0.5}, "class_type": "Blend", "_meta": {"title": "Blend!"}}
        }
        assert result.ok
