from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional, Sequence, Tuple, Union

import numpy as np

from .backends.result import InferenceResult
from .config import PipelineConfig
from .decode import YoloDecoder
from .nms import Suppressor
from .preprocess import to_blob
from .tracker import Tracker
from .types import FrameResult

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
InferFn = Callable[[np.ndarray], Union[InferenceResult, np.ndarray]]


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live in `<root>/models` and the caller runs from a subdirectory.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, the project root otherwise.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


class VisionPipeline:
    """
    Per-frame decode -> suppress -> track.

    `process_tensor` is the core entry point for callers that run inference
    themselves; calling the pipeline with a BGR frame also preprocesses and
    runs `infer_fn`. A frame whose inference or decode fails is logged and
    dropped without advancing the tracker.

    One pipeline per video stream; calls must not overlap.
    """

    def __init__(
        self,
        infer_fn: Optional[InferFn] = None,
        *,
        backend: Optional[object] = None,
        config: PipelineConfig = PipelineConfig(),
    ):
        self._infer_fn = infer_fn
        self.backend = backend
        self.config = config
        self.decoder = YoloDecoder(config.decoder, num_labels=len(config.class_names))
        self.suppressor = Suppressor(config.class_names, config.suppressor, config.decoder.rules)
        self.tracker = Tracker(config.tracker)

    def process_tensor(
        self,
        preds: Optional[np.ndarray],
        frame_size: Tuple[int, int],
        shape: Optional[Sequence[int]] = None,
    ) -> FrameResult:
        decoded = self.decoder.decode(preds, frame_size, shape=shape)
        if not decoded.ok:
            return FrameResult(ok=False, error=decoded.error)

        logger.debug("Candidates before NMS: %d", len(decoded.candidates))
        raw = self.suppressor.suppress(decoded.candidates)
        smoothed = self.tracker.update(raw)
        logger.debug("Final detections: %d (tracked %d)", len(raw), len(smoothed))
        return FrameResult(ok=True, detections=smoothed, raw_detections=raw)

    def __call__(self, image_bgr: np.ndarray) -> FrameResult:
        if self._infer_fn is None:
            raise RuntimeError("No inference function configured; use process_tensor() instead.")

        blob = to_blob(image_bgr, self.config.decoder.model_input_size)
        result = self._infer_fn(blob)
        if not isinstance(result, InferenceResult):
            result = InferenceResult.success(np.asarray(result))
        if not result.ok:
            logger.warning("Dropping frame: inference failed (%s)", result.error)
            return FrameResult(ok=False, error=result.error)

        h, w = image_bgr.shape[:2]
        return self.process_tensor(result.output, (w, h))

    def reset(self) -> None:
        self.tracker.reset()


def load_pipeline(
    model_path: PathLike,
    *,
    root: Optional[PathLike] = "auto",
    config: PipelineConfig = PipelineConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
) -> VisionPipeline:
    """
    Create a pipeline backed by ONNX Runtime for a model on disk.

    Typical usage:
        pipe = load_pipeline("models/yolov8n.onnx")  # resolves from project root by default
    """

    resolved = resolve_path(model_path, root=root)
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only ONNX models are supported, got '{resolved.suffix}'")

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    ort_backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
        ),
    )
    return VisionPipeline(ort_backend.infer, backend=ort_backend, config=config)
