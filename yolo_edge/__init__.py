"""
Single-frame YOLO object detection for edge devices.

Frame -> input tensor -> inference engine -> decoded candidates ->
confidence filter + class-scoped NMS -> ranked detections. The core only needs
NumPy; inference runtimes and OpenCV are imported by the modules that use them.
"""

from .types import Candidate, Candidates, Detection, DetectionStats, DetectorStage, Thresholds
from .errors import (
    ConfigurationError,
    DetectorError,
    DimensionMismatch,
    EngineFailure,
    ShapeError,
    UnknownClassIndex,
)
from .config import DetectorConfig, load_detector_config
from .encoder import TensorEncoder
from .decoder import OutputDecoder, OutputLayout
from .nms import box_iou, iou, nms
from .suppressor import Suppressor
from .detector import Detector
from .runtime import load_detector, find_project_root, resolve_path
from .metadata import ModelMetadata, load_class_names, load_model_metadata
from .resize import resize_to_input, scale_to_image
from .reading import DisplayReading, read_display

__all__ = [
    "Candidate",
    "Candidates",
    "Detection",
    "DetectionStats",
    "DetectorStage",
    "Thresholds",
    "ConfigurationError",
    "DetectorError",
    "DimensionMismatch",
    "EngineFailure",
    "ShapeError",
    "UnknownClassIndex",
    "DetectorConfig",
    "load_detector_config",
    "TensorEncoder",
    "OutputDecoder",
    "OutputLayout",
    "box_iou",
    "iou",
    "nms",
    "Suppressor",
    "Detector",
    "load_detector",
    "find_project_root",
    "resolve_path",
    "ModelMetadata",
    "load_class_names",
    "load_model_metadata",
    "resize_to_input",
    "scale_to_image",
    "DisplayReading",
    "read_display",
]
