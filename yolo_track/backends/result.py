from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np


@dataclass(frozen=True)
class InferenceResult:
    """
    Explicit success/failure wrapper around one inference call, so engine
    exceptions stop at the backend instead of reaching the frame loop.
    """

    ok: bool
    output: Optional[np.ndarray] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, output: np.ndarray) -> "InferenceResult":
        return cls(ok=True, output=output)

    @classmethod
    def failure(cls, error: str) -> "InferenceResult":
        return cls(ok=False, output=None, error=error)
