"""Static per-type knowledge about editor nodes.

Every node type the compiler knows something about is described by a
:class:`NodeTypeSpec`:

- ``widget_order``: names for the node's positional ``widgets_values``;
- ``required_params``: inputs the execution engine refuses to run without;
- ``title``: default display title when the node has none;
- ``normalize``: optional hook that replaces generic positional mapping for
  node types whose widget layout is irregular.

Specs live in a :class:`NodeTypeRegistry`.  The global ``node_registry`` is
populated from the tables below at import time; normalizer hooks are
attached by :mod:`graphsmith.core.normalizers` through the
:meth:`NodeTypeRegistry.normalizer` decorator.  New node types can be
registered without touching any compiler code:

    >>> from graphsmith.core.node_specs import NodeTypeSpec, node_registry
    >>> node_registry.register(
    ...     NodeTypeSpec("MyUpscaler", widget_order=["scale", "method"])
    ... )

Unknown types fall back to :meth:`NodeTypeRegistry.infer_widget_order`, a
substring match against common class-name fragments.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from graphsmith.core.diagnostics import Diagnostics
    from graphsmith.core.models import EditorNode

logger = logging.getLogger(__name__)

# Widget values the editor stores next to a seed to describe what happens to
# it after each run.  They are never parameters of their own.
CONTROL_SENTINELS: frozenset[str] = frozenset({"randomize", "fixed", "increment", "decrement"})

NormalizeHook = Callable[["EditorNode", dict[str, Any], "NodeTypeSpec", "Diagnostics"], None]


def is_control_sentinel(value: Any) -> bool:
    """Return True for seed-control widget values such as ``"randomize"``."""
    return isinstance(value, str) and value in CONTROL_SENTINELS


def assign_widgets(
    inputs: dict[str, Any],
    names: Sequence[str],
    values: Sequence[Any],
) -> list[str]:
    """Zip positional values onto parameter names.

    Values are matched to names by index.  Control sentinels and ``None``
    values are skipped, as are names that already hold a value (usually a
    connected input).

    Args:
        inputs: Compiled input mapping to fill in place.
        names: Parameter names in widget order.
        values: Positional widget values.

    Returns:
        Names that were assigned.
    """
    assigned = []
    for name, value in zip(names, values):
        if not name or name in inputs or value is None or is_control_sentinel(value):
            continue
        inputs[name] = value
        assigned.append(name)
    return assigned


@dataclass(frozen=True)
class NodeTypeSpec:
    """Everything the compiler knows about one node class."""

    class_type: str
    widget_order: tuple[str, ...] = ()
    required_params: tuple[str, ...] = ()
    title: str | None = None
    normalize: NormalizeHook | None = field(default=None, compare=False)

    def __post_init__(self) -> None:
        # Accept lists from callers but store immutable tuples.
        object.__setattr__(self, "widget_order", tuple(self.widget_order))
        object.__setattr__(self, "required_params", tuple(self.required_params))


# ---------------------------------------------------------------------------
# Built-in tables.
# ---------------------------------------------------------------------------

_SAMPLER_PARAMS = ("seed", "steps", "cfg", "sampler_name", "scheduler", "denoise")

UPSCALE_WIDGET_ORDER: tuple[str, ...] = (
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
    "seam_fix_mode",
    "seam_fix_denoise",
    "seam_fix_width",
    "seam_fix_mask_blur",
    "seam_fix_padding",
    "force_uniform_tiles",
    "tiled_decode",
)

WIDGET_ORDERS: dict[str, tuple[str, ...]] = {
    # Sampling
    "KSampler": (
        "seed",
        "control_after_generate",
        "steps",
        "cfg",
        "sampler_name",
        "scheduler",
        "denoise",
    ),
    "KSamplerAdvanced": (
        "add_noise",
        "noise_seed",
        "steps",
        "cfg",
        "sampler_name",
        "scheduler",
        "start_at_step",
        "end_at_step",
        "return_with_leftover_noise",
    ),
    # Text encoding
    "CLIPTextEncode": ("text",),
    "CLIPTextEncodeSDXL": ("text_g", "text_l"),
    # Images and latents
    "SaveImage": ("filename_prefix",),
    "PreviewImage": (),
    "LoadImage": ("image",),
    "EmptyLatentImage": ("width", "height", "batch_size"),
    "EmptySD3LatentImage": ("width", "height", "batch_size"),
    "LatentUpscale": ("upscale_method", "width", "height", "crop"),
    "LatentUpscaleBy": ("upscale_method", "scale_by"),
    # Model loading
    "CheckpointLoaderSimple": ("ckpt_name",),
    "CheckpointLoaderSimpleShared": ("ckpt_name",),
    "VAELoader": ("vae_name",),
    "VAELoaderShared": ("vae_name",),
    "UNETLoader": ("unet_name", "weight_dtype"),
    "CLIPLoader": ("clip_name",),
    "DualCLIPLoader": ("clip_name1", "clip_name2", "type", "device"),
    "UpscaleModelLoader": ("model_name",),
    "ControlNetLoader": ("control_net_name",),
    # LoRA
    "LoraLoader": ("lora_name", "strength_model", "strength_clip"),
    "LoraLoaderModelOnly": ("lora_name", "strength_model"),
    "PowerLoraLoader": ("lora_name", "strength_model", "strength_clip"),
    # VAE
    "VAEDecode": (),
    "VAEEncode": (),
    "VAEEncodeForInpaint": ("grow_mask_by",),
    # Conditioning
    "ConditioningAverage": ("conditioning_to_strength",),
    "ConditioningCombine": (),
    "ConditioningConcat": (),
    "ConditioningSetArea": ("width", "height", "x", "y", "strength"),
    "ConditioningSetAreaPercentage": ("width", "height", "x", "y", "strength"),
    "ConditioningSetTimesteps": ("start_percent", "end_percent"),
    "ConditioningZeroOut": (),
    # Flux
    "FluxGuidance": ("guidance",),
    "FluxResolutionNode": (
        "megapixel",
        "aspect_ratio",
        "divisible_by",
        "custom_ratio",
        "custom_aspect_ratio",
    ),
    # Upscaling
    "UltimateSDUpscale": UPSCALE_WIDGET_ORDER,
    "ImageScale": ("upscale_method", "width", "height", "crop"),
    "ImageScaleBy": ("upscale_method", "scale_by"),
    # ControlNet
    "ControlNetApply": ("strength", "start_percent", "end_percent"),
    "ControlNetApplyAdvanced": ("strength", "start_percent", "end_percent"),
    # Masks and inpainting
    "SetLatentNoiseMask": (),
    "MaskToImage": (),
    "ImageToMask": ("channel",),
    "SolidMask": ("value", "width", "height"),
    # Image processing
    "ImageBlur": ("blur_radius", "sigma"),
    "ImageSharpen": ("sharpen_radius", "sigma", "alpha"),
    "ImageInvert": (),
    "ImageBatch": (),
    "RepeatImageBatch": ("amount",),
    # Constants and utilities
    "FloatConstant": ("value",),
    "IntConstant": ("value",),
    "StringConstant": ("value",),
    "RandomNoise": ("noise_seed",),
    # Batches
    "BatchIndex": ("batch_index",),
    "SliceLatent": ("start", "length"),
    "LatentBatch": (),
    "LatentBatchSeedBehavior": ("seed_behavior",),
    # SDXL
    "SDXLPromptStyler": ("text_positive", "text_negative", "style"),
    "SDXLRefinerUseBase": ("model", "positive", "negative", "vae"),
    # Face restoration
    "FaceRestoreModelLoader": ("model_name",),
    "FaceRestore": ("facerestore_model", "codeformer_fidelity"),
    # Regional prompting
    "RegionalPrompting": ("mask", "prompt", "neg_prompt"),
    # WAS suite
    "WAS_Number_To_Float": ("number",),
    "WAS_Number_To_Int": ("number",),
    "WAS_Text_Concatenate": ("text_a", "text_b", "delimiter"),
    # AnimateDiff
    "AnimateDiffLoader": ("model_name",),
    "AnimateDiffSampler": ("steps", "cfg", "sampler_name", "scheduler", "beta_schedule"),
}

REQUIRED_PARAMS: dict[str, tuple[str, ...]] = {
    "FluxResolutionNode": ("megapixel", "aspect_ratio", "divisible_by", "custom_ratio"),
    "LoraLoaderModelOnly": ("lora_name", "strength_model"),
    "UpscaleModelLoader": ("model_name",),
    "UltimateSDUpscale": UPSCALE_WIDGET_ORDER,
    "KSampler": _SAMPLER_PARAMS,
    "CLIPTextEncode": ("text",),
    "SaveImage": ("filename_prefix",),
    "VAELoader": ("vae_name",),
    "UNETLoader": ("unet_name",),
    "DualCLIPLoader": ("clip_name1", "clip_name2", "type", "device"),
}

NODE_TITLES: dict[str, str] = {
    "KSampler": "KSampler",
    "KSamplerAdvanced": "KSampler (Advanced)",
    "VAEDecode": "VAE Decode",
    "VAEEncode": "VAE Encode",
    "VAELoader": "Load VAE",
    "VAELoaderShared": "Load VAE (Shared)",
    "CheckpointLoaderSimple": "Load Checkpoint",
    "UNETLoader": "Load Diffusion Model",
    "CLIPLoader": "Load CLIP",
    "DualCLIPLoader": "DualCLIPLoader",
    "UpscaleModelLoader": "Load Upscale Model",
    "ControlNetLoader": "Load ControlNet",
    "CLIPTextEncode": "CLIP Text Encode",
    "CLIPTextEncodeSDXL": "CLIP Text Encode (SDXL)",
    "SaveImage": "Save Image",
    "LoadImage": "Load Image",
    "PreviewImage": "Preview Image",
    "ImageScale": "Upscale Image",
    "ImageScaleBy": "Upscale Image By",
    "EmptyLatentImage": "Empty Latent Image",
    "EmptySD3LatentImage": "EmptySD3LatentImage",
    "LatentUpscale": "Upscale Latent",
    "LatentUpscaleBy": "Upscale Latent By",
    "ConditioningZeroOut": "ConditioningZeroOut",
    "ConditioningCombine": "Conditioning (Combine)",
    "ConditioningAverage": "Conditioning (Average)",
    "ConditioningConcat": "Conditioning (Concat)",
    "ConditioningSetArea": "Conditioning (Set Area)",
    "ConditioningSetAreaPercentage": "Conditioning (Set Area %)",
    "ConditioningSetTimesteps": "Conditioning (Set Timesteps)",
    "LoraLoader": "Load LoRA",
    "LoraLoaderModelOnly": "Load LoRA (Model Only)",
    "PowerLoraLoader": "Power LoRA Loader",
    "FluxResolutionNode": "Flux Resolution Calc",
    "FluxGuidance": "FluxGuidance",
    "UltimateSDUpscale": "Ultimate SD Upscale",
    "ControlNetApply": "Apply ControlNet",
    "ControlNetApplyAdvanced": "Apply ControlNet (Advanced)",
    "MaskToImage": "Mask to Image",
    "ImageToMask": "Image to Mask",
    "SetLatentNoiseMask": "Set Latent Noise Mask",
    "SolidMask": "Solid Mask",
    "FloatConstant": "Float Constant",
    "IntConstant": "Int Constant",
    "StringConstant": "String Constant",
    "RandomNoise": "Random Noise",
    "BatchIndex": "Batch Index",
    "LatentBatch": "Latent Batch",
    "ImageBatch": "Image Batch",
    "RepeatImageBatch": "Repeat Image Batch",
    "FaceRestoreModelLoader": "Load Face Restore Model",
    "FaceRestore": "Face Restore",
    "SDXLPromptStyler": "SDXL Prompt Styler",
    "SDXLRefinerUseBase": "SDXL Refiner (Use Base)",
}

# Fragment -> widget order for types nobody registered.  Checked in order, so
# specific fragments come before the generic ones they contain.
PATTERN_WIDGET_ORDERS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("CheckpointLoader", ("ckpt_name",)),
    ("ModelLoader", ("model_name", "device")),
    ("Loader", ("model_name", "device")),
    ("KSampler", _SAMPLER_PARAMS),
    ("Sampler", _SAMPLER_PARAMS),
    ("TextEncode", ("text",)),
    ("TextInput", ("text",)),
    ("ImageSave", ("filename_prefix",)),
    ("SaveImage", ("filename_prefix",)),
    ("ImageLoad", ("image",)),
    ("LoadImage", ("image",)),
    ("ImageResize", ("width", "height", "interpolation")),
    ("ImageScale", ("scale_factor", "interpolation")),
    ("LatentImage", ("width", "height", "batch_size")),
    ("EmptyLatent", ("width", "height", "batch_size")),
    ("LatentUpscale", ("scale_factor", "method")),
    ("LoRA", ("lora_name", "strength_model", "strength_clip")),
    ("Lora", ("lora_name", "strength_model", "strength_clip")),
    ("ControlNet", ("strength", "start_percent", "end_percent")),
    ("VAEDecode", ()),
    ("VAEEncode", ()),
    ("VAE", ()),
    ("Math", ("operation", "value_a", "value_b")),
    ("Text", ("text",)),
    ("Float", ("value",)),
    ("Int", ("value",)),
    ("String", ("value",)),
)


class NodeTypeRegistry:
    """Registry of :class:`NodeTypeSpec` entries keyed by class type.

    Follows the same register/get/list pattern as the rest of the codebase;
    registering a type twice replaces the earlier spec.
    """

    def __init__(self) -> None:
        self._specs: dict[str, NodeTypeSpec] = {}

    def register(self, spec: NodeTypeSpec) -> NodeTypeSpec:
        """Register or replace the spec for ``spec.class_type``."""
        if spec.class_type in self._specs:
            logger.debug(f"Node type '{spec.class_type}' is already registered, overwriting")
        self._specs[spec.class_type] = spec
        return spec

    def normalizer(self, class_type: str) -> Callable[[NormalizeHook], NormalizeHook]:
        """Decorator attaching a normalize hook to ``class_type``.

        Creates a bare spec if the type has not been registered yet.
        """

        def decorator(func: NormalizeHook) -> NormalizeHook:
            spec = self._specs.get(class_type) or NodeTypeSpec(class_type)
            self._specs[class_type] = replace(spec, normalize=func)
            logger.debug(f"Registered normalizer for {class_type}: {func.__name__}")
            return func

        return decorator

    def get(self, class_type: str | None) -> NodeTypeSpec | None:
        if not class_type:
            return None
        return self._specs.get(class_type)

    def __contains__(self, class_type: object) -> bool:
        return class_type in self._specs

    def widget_order(self, class_type: str | None) -> tuple[str, ...] | None:
        """Return the registered widget order, or None for unknown types."""
        spec = self.get(class_type)
        return spec.widget_order if spec is not None else None

    def required_params(self, class_type: str | None) -> tuple[str, ...]:
        spec = self.get(class_type)
        return spec.required_params if spec is not None else ()

    def title_for(self, class_type: str) -> str:
        """Default display title for a class type."""
        spec = self.get(class_type)
        return spec.title if spec is not None and spec.title else class_type

    def has_normalizer(self, class_type: str | None) -> bool:
        spec = self.get(class_type)
        return spec is not None and spec.normalize is not None

    def infer_widget_order(self, class_type: str | None) -> tuple[str, ...]:
        """Guess a widget order from fragments of an unknown class name."""
        if not class_type or not isinstance(class_type, str):
            return ()
        for fragment, order in PATTERN_WIDGET_ORDERS:
            if fragment in class_type:
                return order
        return ()

    def list_available(self) -> list[str]:
        return sorted(self._specs)


def build_default_registry() -> NodeTypeRegistry:
    """Create a registry from the built-in tables (without normalizers)."""
    registry = NodeTypeRegistry()
    for class_type in sorted(set(WIDGET_ORDERS) | set(REQUIRED_PARAMS) | set(NODE_TITLES)):
        registry.register(
            NodeTypeSpec(
                class_type=class_type,
                widget_order=WIDGET_ORDERS.get(class_type, ()),
                required_params=REQUIRED_PARAMS.get(class_type, ()),
                title=NODE_TITLES.get(class_type),
            )
        )
    return registry


# Global node type registry
node_registry = build_default_registry()
