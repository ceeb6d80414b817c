"""
Optional inference backends for yolo_track.

Backends are kept in a separate module so core functionality (decode/NMS/tracking)
stays lightweight and can be used without installing inference runtimes.
"""

from __future__ import annotations

from .result import InferenceResult

__all__ = ["InferenceResult"]
