from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from .config import SuppressorConfig
from .geometry import iou_one_to_many
from .thresholds import ClassRuleTable, coco_rule_table
from .types import Candidate, Detection

logger = logging.getLogger(__name__)


def nms(
    boxes: np.ndarray,
    scores: np.ndarray,
    class_ids: np.ndarray,
    class_iou: np.ndarray,
    cross_class_iou: float = 0.8,
    max_detections: int = 0,
) -> np.ndarray:
    """
    Two-tier NumPy NMS. Expects boxes shape (N,4) in xyxy, scores and
    class_ids shape (N,), and `class_iou` indexed by class id.

    A kept box removes every later box of its own class with IoU above
    `class_iou[its class]`, and every later box of any class with IoU above
    `cross_class_iou`. Returns indices of kept boxes in descending score order.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    order = np.argsort(-scores, kind="stable")
    boxes = boxes[order]
    class_ids = class_ids[order]
    removed = np.zeros(order.size, dtype=bool)
    keep: List[int] = []

    for i in range(order.size):
        if removed[i]:
            continue
        keep.append(int(order[i]))
        if max_detections and len(keep) >= max_detections:
            break

        rest = np.arange(i + 1, order.size)
        rest = rest[~removed[rest]]
        if rest.size == 0:
            continue

        iou = iou_one_to_many(boxes[i], boxes[rest])
        same_class = class_ids[rest] == class_ids[i]
        suppress = (same_class & (iou > class_iou[class_ids[i]])) | (iou > cross_class_iou)
        removed[rest[suppress]] = True

    return np.array(keep, dtype=np.int32)


class Suppressor:
    """
    Class-aware NMS over decoder candidates, producing labeled detections.
    """

    def __init__(
        self,
        class_names: Sequence[str],
        cfg: SuppressorConfig = SuppressorConfig(),
        rules: Optional[ClassRuleTable] = None,
    ):
        self.class_names = list(class_names)
        self.cfg = cfg
        self.rules = rules if rules is not None else coco_rule_table()

    def suppress(self, candidates: Sequence[Candidate]) -> List[Detection]:
        # Out-of-table ids are normally dropped by the decoder; guard anyway.
        candidates = [c for c in candidates if 0 <= c.class_id < len(self.class_names)]
        if not candidates:
            return []

        boxes = np.array([c.box.as_xyxy() for c in candidates], dtype=np.float64)
        scores = np.array([c.score for c in candidates], dtype=np.float64)
        class_ids = np.array([c.class_id for c in candidates], dtype=np.int64)
        _, _, _, class_iou = self.rules.lookup_arrays(len(self.class_names))

        keep = nms(
            boxes,
            scores,
            class_ids,
            class_iou,
            cross_class_iou=self.cfg.cross_class_iou,
            max_detections=self.cfg.max_detections or 0,
        )
        detections = [
            Detection(
                label=self.class_names[candidates[k].class_id],
                score=candidates[k].score,
                box=candidates[k].box,
            )
            for k in keep
        ]
        logger.debug("NMS kept %d of %d candidates", len(detections), len(candidates))
        return detections
