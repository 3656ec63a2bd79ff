"""Predefined false-negative presets and clustering parameter resolution."""

import logging

from typing import Any

from cpap_insight.analysis.clustering.types import ClusterParams, FalseNegativePreset
from cpap_insight.config import get_section
from cpap_insight.constants import FalseNegativeConstants as FNC

logger = logging.getLogger(__name__)

__all__ = [
    "STRICT_PRESET",
    "BALANCED_PRESET",
    "LENIENT_PRESET",
    "FALSE_NEGATIVE_PRESETS",
    "DEFAULT_PRESET",
    "get_preset",
    "load_cluster_params",
]

# ============================================================================
# False-Negative Presets
# ============================================================================

STRICT_PRESET = FalseNegativePreset(
    name="strict",
    description="High-confidence, long flow-limitation runs only (precision)",
    min_confidence=FNC.STRICT_MIN_CONFIDENCE,  # 0.98
    min_duration_sec=FNC.STRICT_MIN_DURATION_SEC,  # 120 s
    fl_threshold=FNC.STRICT_FL_THRESHOLD,  # 0.9
    bridge_scale=1.0,
)

BALANCED_PRESET = FalseNegativePreset(
    name="balanced",
    description="Default trade-off between missed and spurious candidates",
    min_confidence=FNC.BALANCED_MIN_CONFIDENCE,  # 0.95
    min_duration_sec=FNC.BALANCED_MIN_DURATION_SEC,  # 60 s
    fl_threshold=FNC.BALANCED_FL_THRESHOLD,  # 0.1
    bridge_scale=1.0,
)

LENIENT_PRESET = FalseNegativePreset(
    name="lenient",
    description="Shorter, lower-confidence runs included (recall)",
    min_confidence=FNC.LENIENT_MIN_CONFIDENCE,  # 0.85
    min_duration_sec=FNC.LENIENT_MIN_DURATION_SEC,  # 45 s
    fl_threshold=FNC.LENIENT_FL_THRESHOLD,  # 0.5
    bridge_scale=FNC.LENIENT_BRIDGE_SCALE,  # 0.8
)

# ============================================================================
# Registries
# ============================================================================

FALSE_NEGATIVE_PRESETS: dict[str, FalseNegativePreset] = {
    "strict": STRICT_PRESET,
    "balanced": BALANCED_PRESET,
    "lenient": LENIENT_PRESET,
}

DEFAULT_PRESET = FNC.DEFAULT_PRESET


def get_preset(name: str) -> FalseNegativePreset:
    """
    Look up a false-negative preset by name.

    Raises:
        ValueError: If the preset name is not recognized
    """
    if name not in FALSE_NEGATIVE_PRESETS:
        raise ValueError(
            f"Unknown preset: {name}. Available: {list(FALSE_NEGATIVE_PRESETS.keys())}"
        )
    return FALSE_NEGATIVE_PRESETS[name]


def load_cluster_params(
    overrides: dict[str, Any] | None = None,
    config_section: dict[str, Any] | None = None,
) -> ClusterParams:
    """
    Resolve clustering parameters: constants < [clustering] config < overrides.

    Keys that are not ClusterParams fields are ignored with a warning, and
    None override values leave the lower layer in place.

    Args:
        overrides: Explicit values (e.g., from CLI options)
        config_section: [clustering] settings; read from the config file when None

    Returns:
        Frozen ClusterParams

    Raises:
        pydantic.ValidationError: If a resolved value is invalid
    """
    if config_section is None:
        config_section = get_section("clustering")

    known = set(ClusterParams.model_fields)
    merged: dict[str, Any] = {}
    for layer in (config_section, overrides or {}):
        for key, value in layer.items():
            if key not in known:
                logger.warning(f"Ignoring unknown clustering setting: {key}")
                continue
            if value is not None:
                merged[key] = value

    return ClusterParams(**merged)
