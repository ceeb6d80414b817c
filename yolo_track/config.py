from __future__ import annotations

import json
import math
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from .labels import COCO_CLASSES, load_class_names
from .thresholds import ClassRule, ClassRuleTable, coco_rule_table


@dataclass(frozen=True)
class DecoderConfig:
    # (width, height) of the model input the tensor coordinates refer to.
    model_input_size: Tuple[int, int] = (640, 640)
    # Boxes whose clamped width or height is not above this are dropped.
    min_box_side: float = 5.0
    rules: ClassRuleTable = field(default_factory=coco_rule_table)

    def __post_init__(self) -> None:
        if len(self.model_input_size) != 2 or min(self.model_input_size) <= 0:
            raise ValueError("model_input_size must be two positive integers (width, height)")
        if not (math.isfinite(self.min_box_side) and self.min_box_side >= 0):
            raise ValueError("min_box_side must be a finite number >= 0")


@dataclass(frozen=True)
class SuppressorConfig:
    cross_class_iou: float = 0.8
    max_detections: Optional[int] = None

    def __post_init__(self) -> None:
        if not (0.0 <= self.cross_class_iou <= 1.0):
            raise ValueError("cross_class_iou must be within [0, 1]")
        if self.max_detections is not None and self.max_detections < 1:
            raise ValueError("max_detections must be >= 1 when set")


@dataclass(frozen=True)
class TrackerConfig:
    match_iou: float = 0.3
    # Weight of the new detection in the box moving average.
    smoothing: float = 0.3
    max_missed_frames: int = 5

    def __post_init__(self) -> None:
        if not (0.0 <= self.match_iou < 1.0):
            raise ValueError("match_iou must be within [0, 1)")
        if not (0.0 < self.smoothing <= 1.0):
            raise ValueError("smoothing must be within (0, 1]")
        if self.max_missed_frames < 0:
            raise ValueError("max_missed_frames must be >= 0")


@dataclass(frozen=True)
class PipelineConfig:
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    suppressor: SuppressorConfig = SuppressorConfig()
    tracker: TrackerConfig = TrackerConfig()
    class_names: Sequence[str] = COCO_CLASSES

    def __post_init__(self) -> None:
        if not self.class_names:
            raise ValueError("class_names must not be empty")


def _require_number(payload: Dict[str, Any], key: str) -> float:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    if key not in payload:
        raise ValueError(f"Missing required key: {key}")
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


_RULE_KEYS = {"conf_threshold", "min_area_ratio", "max_area_ratio", "nms_iou"}


def _parse_rule(payload: Any, base: ClassRule, where: str) -> ClassRule:
    if not isinstance(payload, dict):
        raise ValueError(f"{where} must be an object")
    unknown = sorted(set(payload.keys()) - _RULE_KEYS)
    if unknown:
        raise ValueError(f"Unknown keys in {where}: {unknown}")
    changes = {key: _require_number(payload, key) for key in payload}
    return replace(base, **changes)


def _parse_size(value: Any) -> Tuple[int, int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value, value
    if (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(v, int) and not isinstance(v, bool) for v in value)
    ):
        return value[0], value[1]
    raise ValueError("model_input_size must be an integer or [width, height]")


def load_pipeline_config(path: Path) -> PipelineConfig:
    """
    Load a JSON pipeline config. Every key is optional; anything omitted keeps
    the built-in default. `class_rules` entries are merged onto the current
    row of that class, so overriding one field leaves the others calibrated.
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pipeline config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid pipeline config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Pipeline config must be a JSON object")

    allowed = {
        "model_input_size",
        "min_box_side",
        "default_rule",
        "class_rules",
        "cross_class_iou",
        "max_detections",
        "match_iou",
        "smoothing",
        "max_missed_frames",
        "class_names",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown pipeline config keys: {unknown}")

    rules = coco_rule_table()
    if "default_rule" in payload:
        rules = coco_rule_table(_parse_rule(payload["default_rule"], ClassRule(), "default_rule"))

    class_rules = payload.get("class_rules", {})
    if not isinstance(class_rules, dict):
        raise ValueError("class_rules must be an object keyed by class id")
    overrides: Dict[int, ClassRule] = {}
    for key, value in class_rules.items():
        if not str(key).isdigit():
            raise ValueError(f"class_rules keys must be class ids, got {key!r}")
        class_id = int(key)
        overrides[class_id] = _parse_rule(value, rules.rule_for(class_id), f"class_rules[{key}]")
    if overrides:
        rules = rules.with_overrides(overrides)

    decoder_kwargs: Dict[str, Any] = {"rules": rules}
    if "model_input_size" in payload:
        decoder_kwargs["model_input_size"] = _parse_size(payload["model_input_size"])
    if "min_box_side" in payload:
        decoder_kwargs["min_box_side"] = _require_number(payload, "min_box_side")

    suppressor = SuppressorConfig()
    if "cross_class_iou" in payload:
        suppressor = replace(suppressor, cross_class_iou=_require_number(payload, "cross_class_iou"))
    if payload.get("max_detections") is not None:
        suppressor = replace(suppressor, max_detections=_require_int(payload, "max_detections"))

    tracker = TrackerConfig()
    if "match_iou" in payload:
        tracker = replace(tracker, match_iou=_require_number(payload, "match_iou"))
    if "smoothing" in payload:
        tracker = replace(tracker, smoothing=_require_number(payload, "smoothing"))
    if "max_missed_frames" in payload:
        tracker = replace(tracker, max_missed_frames=_require_int(payload, "max_missed_frames"))

    class_names: Sequence[str] = COCO_CLASSES
    if "class_names" in payload:
        names_path = payload["class_names"]
        if not isinstance(names_path, str) or not names_path.strip():
            raise ValueError("class_names must be a non-empty path string")
        resolved = Path(names_path)
        if not resolved.is_absolute():
            resolved = path.parent / resolved
        class_names = tuple(load_class_names(resolved))

    return PipelineConfig(
        decoder=DecoderConfig(**decoder_kwargs),
        suppressor=suppressor,
        tracker=tracker,
        class_names=class_names,
    )
