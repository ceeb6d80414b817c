from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Box:
    """
    Axis-aligned rectangle in frame pixel space (top-left corner + size).
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def x2(self) -> float:
        return self.x + self.width

    @property
    def y2(self) -> float:
        return self.y + self.height

    @property
    def area(self) -> float:
        return max(0.0, self.width) * max(0.0, self.height)

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x, self.y, self.x2, self.y2

    @classmethod
    def from_xyxy(cls, x1: float, y1: float, x2: float, y2: float) -> "Box":
        return cls(x=float(x1), y=float(y1), width=float(x2 - x1), height=float(y2 - y1))


@dataclass(frozen=True)
class Candidate:
    box: Box
    score: float
    class_id: int


@dataclass(frozen=True)
class Detection:
    """
    Labeled box handed to renderers and context builders. Carries no identity.
    """

    label: str
    score: float
    box: Box

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.box.as_xyxy()


@dataclass
class Track:
    id: int
    box: Box
    label: str
    confidence: float
    missed_frames: int = 0

    def to_detection(self) -> Detection:
        return Detection(label=self.label, score=self.confidence, box=self.box)


@dataclass(frozen=True)
class DecodeResult:
    """
    Outcome of decoding one output tensor.

    `ok=False` means the tensor itself was unusable; `ok=True` with no
    candidates means nothing in the frame passed the filters.
    """

    ok: bool
    candidates: List[Candidate] = field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "DecodeResult":
        return cls(ok=False, candidates=[], error=error)


@dataclass(frozen=True)
class FrameResult:
    ok: bool
    detections: List[Detection] = field(default_factory=list)
    # Per-frame NMS output before tracking, mainly for debugging overlays.
    raw_detections: List[Detection] = field(default_factory=list)
    error: Optional[str] = None
