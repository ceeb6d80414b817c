from __future__ import annotations

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from .config import DecoderConfig
from .geometry import clip_xyxy
from .types import Box, Candidate, DecodeResult

logger = logging.getLogger(__name__)


class YoloDecoder:
    """
    Decode a single-image YOLOv8-style output tensor into pixel-space candidates.

    Supported layout: (1, 4 + C, N) channels-first, i.e. rows
    [cx, cy, w, h, class_0, ..., class_{C-1}] over N predictions, with box
    values in model-input pixels. A flat buffer plus its shape is accepted
    too, as handed over by engines that expose raw memory.

    Filters applied per prediction, in order:
    - best class score must be finite and within [0, 1]
    - best class score must exceed that class's confidence threshold
    - class id must be inside the label table
    - clamped box sides must exceed `min_box_side`
    - box area / frame area must lie strictly inside the class's window
    """

    def __init__(self, cfg: DecoderConfig = DecoderConfig(), num_labels: Optional[int] = None):
        self.cfg = cfg
        self.num_labels = num_labels

    def decode(
        self,
        preds: Optional[np.ndarray],
        frame_size: Tuple[int, int],
        shape: Optional[Sequence[int]] = None,
    ) -> DecodeResult:
        """
        Args:
            preds: model output for one image, or a flat buffer when `shape` is given
            frame_size: (width, height) of the source frame
            shape: optional shape to reshape a flat buffer into
        """

        p, error = self._validate(preds, frame_size, shape)
        if error is not None:
            logger.warning("Dropping frame: %s", error)
            return DecodeResult.failure(error)

        frame_w, frame_h = float(frame_size[0]), float(frame_size[1])
        model_w, model_h = self.cfg.model_input_size

        p = p[0]  # menghilangkan axis batch
        boxes = p[0:4, :].T.astype(np.float64)  # (N, 4) as cx, cy, w, h
        class_scores = p[4:, :]
        num_classes = class_scores.shape[0]

        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(class_scores.shape[1])].astype(np.float64)

        conf_lut, min_area_lut, max_area_lut, _ = self.cfg.rules.lookup_arrays(num_classes)

        # Scores must lie in [0, 1]; non-finite predictions are dropped.
        valid = np.isfinite(scores) & (scores >= 0.0) & (scores <= 1.0) & np.all(np.isfinite(boxes), axis=1)

        # Filter by per-class confidence
        keep = valid & (scores > conf_lut[class_ids])
        if self.num_labels is not None:
            keep &= class_ids < self.num_labels
        if not np.any(keep):
            return DecodeResult(ok=True)
        boxes, scores, class_ids = boxes[keep], scores[keep], class_ids[keep]

        # Model input -> frame pixels, then cxcywh -> xyxy
        sx = frame_w / model_w
        sy = frame_h / model_h
        cx, cy, w_box, h_box = boxes.T
        cx, w_box = cx * sx, w_box * sx
        cy, h_box = cy * sy, h_box * sy
        xyxy = np.stack([cx - w_box / 2, cy - h_box / 2, cx + w_box / 2, cy + h_box / 2], axis=1)
        xyxy = clip_xyxy(xyxy, (frame_w, frame_h))

        widths = xyxy[:, 2] - xyxy[:, 0]
        heights = xyxy[:, 3] - xyxy[:, 1]
        keep = (widths > self.cfg.min_box_side) & (heights > self.cfg.min_box_side)
        # Degenerate boxes are never kept, even with min_box_side == 0.
        keep &= (widths > 0) & (heights > 0)

        area_ratio = (widths * heights) / (frame_w * frame_h)
        keep &= (area_ratio > min_area_lut[class_ids]) & (area_ratio < max_area_lut[class_ids])

        candidates = [
            Candidate(
                box=Box.from_xyxy(x1, y1, x2, y2),
                score=float(score),
                class_id=int(cls_id),
            )
            for (x1, y1, x2, y2), score, cls_id in zip(xyxy[keep], scores[keep], class_ids[keep])
        ]
        logger.debug("Decoded %d candidates from %d predictions", len(candidates), p.shape[1])
        return DecodeResult(ok=True, candidates=candidates)

    # ------------------------------------------------------------------ #
    # Helper internal
    # ------------------------------------------------------------------ #
    def _validate(
        self,
        preds: Optional[np.ndarray],
        frame_size: Tuple[int, int],
        shape: Optional[Sequence[int]],
    ) -> Tuple[Optional[np.ndarray], Optional[str]]:
        if preds is None:
            return None, "no output tensor"

        try:
            frame_w, frame_h = frame_size
        except (TypeError, ValueError):
            return None, f"frame_size must be (width, height), got {frame_size!r}"
        for dim in (frame_w, frame_h):
            if isinstance(dim, bool) or not isinstance(dim, (int, float, np.integer, np.floating)):
                return None, f"frame_size must be numeric, got {frame_size!r}"
        if not (np.isfinite(frame_w) and np.isfinite(frame_h) and frame_w > 0 and frame_h > 0):
            return None, f"frame_size must be positive, got {frame_size!r}"

        try:
            p = np.asarray(preds, dtype=np.float32)
        except (TypeError, ValueError) as exc:
            return None, f"output is not numeric: {exc}"

        if shape is not None:
            try:
                shape = tuple(int(s) for s in shape)
            except (TypeError, ValueError):
                return None, f"shape must be a sequence of integers, got {shape!r}"
            if any(s < 0 for s in shape) or int(np.prod(shape)) != p.size:
                return None, f"buffer of {p.size} values does not match shape {shape}"
            p = p.reshape(shape)

        if p.ndim != 3:
            return None, f"expected rank-3 output (1, 4+C, N), got shape {p.shape}"
        if p.shape[0] != 1:
            return None, f"batch > 1 is not supported (got shape {p.shape})"
        if p.shape[1] < 5:
            return None, f"expected at least 4 box rows and 1 class row, got shape {p.shape}"
        if p.shape[2] == 0:
            return None, "output has zero predictions"
        return p, None
