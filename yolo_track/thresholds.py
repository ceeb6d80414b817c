"""
Per-class calibration table for decoding and suppression.

Every class gets a confidence threshold, a plausible area window (box area
as a fraction of frame area) and a same-class NMS IoU threshold. Classes
without an explicit row fall back to the table default.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Dict, Iterable, Mapping, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class ClassRule:
    conf_threshold: float = 0.25
    min_area_ratio: float = 0.0005
    max_area_ratio: float = 0.95
    nms_iou: float = 0.4

    def __post_init__(self) -> None:
        if not (0.0 <= self.conf_threshold <= 1.0):
            raise ValueError("conf_threshold must be within [0, 1]")
        if not (0.0 <= self.min_area_ratio <= 1.0):
            raise ValueError("min_area_ratio must be within [0, 1]")
        if not (0.0 <= self.max_area_ratio <= 1.0):
            raise ValueError("max_area_ratio must be within [0, 1]")
        if self.min_area_ratio >= self.max_area_ratio:
            raise ValueError("min_area_ratio must be < max_area_ratio")
        if not (0.0 <= self.nms_iou <= 1.0):
            raise ValueError("nms_iou must be within [0, 1]")


@dataclass(frozen=True)
class ClassRuleTable:
    default: ClassRule = ClassRule()
    overrides: Mapping[int, ClassRule] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for class_id in self.overrides:
            if isinstance(class_id, bool) or not isinstance(class_id, int) or class_id < 0:
                raise ValueError(f"class ids must be non-negative integers, got {class_id!r}")

    def rule_for(self, class_id: int) -> ClassRule:
        return self.overrides.get(class_id, self.default)

    def with_overrides(self, overrides: Mapping[int, ClassRule]) -> "ClassRuleTable":
        """
        Return a new table with `overrides` replacing rows for those classes only.
        """

        merged: Dict[int, ClassRule] = dict(self.overrides)
        merged.update(overrides)
        return ClassRuleTable(default=self.default, overrides=merged)

    def lookup_arrays(self, num_classes: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """
        Dense per-class arrays (conf, min_area, max_area, nms_iou) of length `num_classes`.
        """

        conf = np.full(num_classes, self.default.conf_threshold, dtype=np.float64)
        min_area = np.full(num_classes, self.default.min_area_ratio, dtype=np.float64)
        max_area = np.full(num_classes, self.default.max_area_ratio, dtype=np.float64)
        nms_iou = np.full(num_classes, self.default.nms_iou, dtype=np.float64)
        for class_id, rule in self.overrides.items():
            if class_id >= num_classes:
                continue
            conf[class_id] = rule.conf_threshold
            min_area[class_id] = rule.min_area_ratio
            max_area[class_id] = rule.max_area_ratio
            nms_iou[class_id] = rule.nms_iou
        return conf, min_area, max_area, nms_iou


def _assign(
    rows: Dict[int, ClassRule],
    default: ClassRule,
    class_ids: Iterable[int],
    **changes: float,
) -> None:
    for class_id in class_ids:
        rows[class_id] = replace(rows.get(class_id, default), **changes)


def coco_rule_table(default: Optional[ClassRule] = None) -> ClassRuleTable:
    """
    Calibrated rows for the 80-class COCO label set.

    Person (0) is the primary subject: stricter confidence, NMS and a
    narrower area window. Small household objects and electronics get
    looser confidence and NMS so co-located items survive.
    """

    base = default or ClassRule()
    rows: Dict[int, ClassRule] = {}

    # confidence
    _assign(rows, base, [0], conf_threshold=0.5)
    _assign(rows, base, range(1, 10), conf_threshold=0.3)  # vehicles
    _assign(rows, base, range(14, 24), conf_threshold=0.3)  # animals
    _assign(rows, base, [56, 57, 61, 62, 63, 66, 73, 74], conf_threshold=0.2)
    _assign(rows, base, [59, 60, 64, 65, 67, 68], conf_threshold=0.25)

    # plausible area windows
    _assign(rows, base, [0], min_area_ratio=0.01, max_area_ratio=0.8)
    _assign(rows, base, [64, 66, 67], min_area_ratio=0.0001)  # remote, cell phone, microwave
    _assign(rows, base, [56, 57, 59], min_area_ratio=0.005, max_area_ratio=0.9)  # furniture

    # same-class NMS
    _assign(rows, base, [0], nms_iou=0.3)
    _assign(rows, base, range(56, 61), nms_iou=0.5)
    _assign(rows, base, range(61, 68), nms_iou=0.6)

    return ClassRuleTable(default=base, overrides=rows)
