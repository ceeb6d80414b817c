from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from .config import TrackerConfig
from .geometry import iou
from .types import Box, Detection, Track

logger = logging.getLogger(__name__)


class Tracker:
    """
    Greedy IoU tracker with exponential box smoothing.

    Per frame:
      - every track's miss counter is incremented
      - tracks, in ascending id order, each take the unmatched detection of
        the same label with the highest IoU above `match_iou` (ties go to the
        earlier detection). This is greedy per track, not a global assignment.
      - matched tracks blend their box toward the detection and reset the
        miss counter
      - tracks with more than `max_missed_frames` misses are dropped
      - every unmatched detection starts a new track with a fresh id

    Ids are never reused, including after `reset()`. Not thread-safe: one
    tracker per video stream, driven by a single thread.
    """

    def __init__(self, cfg: TrackerConfig = TrackerConfig()):
        self.cfg = cfg
        self._tracks: Dict[int, Track] = {}
        self._next_id = 0

    @property
    def tracks(self) -> List[Track]:
        return [replace(self._tracks[tid]) for tid in sorted(self._tracks)]

    @property
    def next_id(self) -> int:
        return self._next_id

    def step(self, detections: Sequence[Detection]) -> List[Track]:
        """
        Advance one frame and return snapshots of the tracks reported for it:
        matched tracks (ascending id) followed by newly created ones.
        """

        matched = [False] * len(detections)
        reported: List[Track] = []

        for tid in sorted(self._tracks):
            track = self._tracks[tid]
            track.missed_frames += 1

            best = self._best_match(track, detections, matched)
            if best is None:
                continue

            det = detections[best]
            matched[best] = True
            track.box = self._smooth(track.box, det.box)
            track.confidence = det.score
            track.missed_frames = 0
            reported.append(replace(track))

        evicted = [tid for tid, t in self._tracks.items() if t.missed_frames > self.cfg.max_missed_frames]
        for tid in evicted:
            del self._tracks[tid]

        for det, was_matched in zip(detections, matched):
            if was_matched:
                continue
            track = Track(
                id=self._next_id,
                box=det.box,
                label=det.label,
                confidence=det.score,
                missed_frames=0,
            )
            self._next_id += 1
            self._tracks[track.id] = track
            reported.append(replace(track))

        if evicted:
            logger.debug("Evicted tracks %s", evicted)
        logger.debug("Tracker: %d reported, %d live", len(reported), len(self._tracks))
        return reported

    def update(self, detections: Sequence[Detection]) -> List[Detection]:
        return [t.to_detection() for t in self.step(detections)]

    def reset(self) -> None:
        self._tracks.clear()

    def __len__(self) -> int:
        return len(self._tracks)

    # ------------------------------------------------------------------ #
    def _best_match(
        self,
        track: Track,
        detections: Sequence[Detection],
        matched: List[bool],
    ) -> Optional[int]:
        best_iou = 0.0
        best_idx: Optional[int] = None
        for idx, det in enumerate(detections):
            if matched[idx] or det.label != track.label:
                continue
            value = iou(track.box, det.box)
            if value > self.cfg.match_iou and value > best_iou:
                best_iou = value
                best_idx = idx
        return best_idx

    def _smooth(self, old: Box, new: Box) -> Box:
        a = self.cfg.smoothing
        return Box(
            x=(1.0 - a) * old.x + a * new.x,
            y=(1.0 - a) * old.y + a * new.y,
            width=(1.0 - a) * old.width + a * new.width,
            height=(1.0 - a) * old.height + a * new.height,
        )
