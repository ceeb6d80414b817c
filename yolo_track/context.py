from __future__ import annotations

from typing import Iterable, List

from .types import Detection


def detection_labels(detections: Iterable[Detection], unique: bool = True) -> List[str]:
    """
    Reduce detections to label strings, in first-seen order.
    """

    labels: List[str] = []
    for det in detections:
        if unique and det.label in labels:
            continue
        labels.append(det.label)
    return labels


def describe_scene(detections: Iterable[Detection]) -> str:
    labels = detection_labels(detections)
    return ", ".join(labels) if labels else "empty"
