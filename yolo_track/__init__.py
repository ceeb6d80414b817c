"""
YOLO detection post-processing and lightweight multi-object tracking.

Turns a raw (1, 4 + C, N) output tensor into a temporally stable list of
labeled boxes: per-class decode filters, class-aware NMS, then a greedy IoU
tracker with box smoothing. Only NumPy is needed for the core; OpenCV and
ONNX Runtime are imported lazily for preprocessing and inference.
"""

from .types import Box, Candidate, Detection, Track, DecodeResult, FrameResult
from .thresholds import ClassRule, ClassRuleTable, coco_rule_table
from .config import DecoderConfig, PipelineConfig, SuppressorConfig, TrackerConfig, load_pipeline_config
from .labels import COCO_CLASSES, load_class_names
from .decode import YoloDecoder
from .nms import Suppressor, nms
from .tracker import Tracker
from .context import describe_scene, detection_labels
from .runtime import VisionPipeline, load_pipeline, find_project_root, resolve_path

__all__ = [
    "Box",
    "Candidate",
    "Detection",
    "Track",
    "DecodeResult",
    "FrameResult",
    "ClassRule",
    "ClassRuleTable",
    "coco_rule_table",
    "DecoderConfig",
    "PipelineConfig",
    "SuppressorConfig",
    "TrackerConfig",
    "load_pipeline_config",
    "COCO_CLASSES",
    "load_class_names",
    "YoloDecoder",
    "Suppressor",
    "nms",
    "Tracker",
    "describe_scene",
    "detection_labels",
    "VisionPipeline",
    "load_pipeline",
    "find_project_root",
    "resolve_path",
]
