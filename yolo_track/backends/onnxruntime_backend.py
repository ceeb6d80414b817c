from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

import numpy as np

from .result import InferenceResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    - graph_optimization: ORT graph optimization level name ("basic", "extended", "all", "disabled")
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    graph_optimization: str = "extended"


_OPT_LEVELS = {
    "disabled": "ORT_DISABLE_ALL",
    "basic": "ORT_ENABLE_BASIC",
    "extended": "ORT_ENABLE_EXTENDED",
    "all": "ORT_ENABLE_ALL",
}


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Expects an NCHW float32 blob, typically shaped (1, 3, H, W). `infer`
    returns an `InferenceResult` wrapping the primary output, and never
    raises for a failed run.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
                "(or `onnxruntime-gpu`)."
            ) from e

        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        level = _OPT_LEVELS.get(cfg.graph_optimization.lower())
        if level is None:
            raise ValueError(f"Unknown graph_optimization: {cfg.graph_optimization!r}")

        sess_opts = ort.SessionOptions()
        sess_opts.graph_optimization_level = getattr(ort.GraphOptimizationLevel, level)
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        # If output_name not provided, pick first output.
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name

    def infer(self, blob: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> InferenceResult:
        inputs: Dict[str, Any] = {self.input_name: blob}
        if extra_inputs:
            inputs.update(extra_inputs)
        try:
            outputs = self.session.run([self.output_name], inputs)
        except Exception as exc:
            # ORT raises its own exception types (Fail, InvalidArgument, ...)
            # for bad inputs; the caller decides whether to skip the frame.
            logger.warning("Inference failed: %s", exc)
            return InferenceResult.failure(str(exc))
        return InferenceResult.success(outputs[0])
