from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Tuple

from .types import Thresholds


CHANNEL_ORDERS = ("RGB", "BGR", "RGBA", "BGRA", "ARGB")
TENSOR_LAYOUTS = ("hwc", "chw")
OUTPUT_LAYOUTS = ("attributes_first", "boxes_first")


@dataclass(frozen=True)
class DetectorConfig:
    """
    Load-time configuration for a `Detector`.

    - input_size: (width, height) the model expects; frames must already match
    - source_order: channel order of incoming frames (alpha is dropped)
    - target_order: channel order the model was trained on
    - tensor_layout: "hwc" (TFLite style) or "chw" (ONNX/Torch style)
    - output_layout: "attributes_first" for (4 + C, N), "boxes_first" for (N, 4 + C)
    """

    input_size: Tuple[int, int] = (640, 640)
    source_order: str = "BGR"
    target_order: str = "RGB"
    tensor_layout: str = "hwc"
    value_range: Tuple[float, float] = (0.0, 1.0)
    output_layout: str = "attributes_first"
    thresholds: Thresholds = field(default_factory=Thresholds)
    prefer_accelerator: bool = True
    num_threads: int = 4

    def __post_init__(self) -> None:
        if len(self.input_size) != 2 or any(int(v) < 1 for v in self.input_size):
            raise ValueError("input_size must be (width, height) with positive values")
        if self.source_order not in CHANNEL_ORDERS:
            raise ValueError(f"source_order must be one of {CHANNEL_ORDERS}")
        if self.target_order not in ("RGB", "BGR"):
            raise ValueError("target_order must be 'RGB' or 'BGR'")
        if self.tensor_layout not in TENSOR_LAYOUTS:
            raise ValueError(f"tensor_layout must be one of {TENSOR_LAYOUTS}")
        if self.output_layout not in OUTPUT_LAYOUTS:
            raise ValueError(f"output_layout must be one of {OUTPUT_LAYOUTS}")
        low, high = self.value_range
        if not high > low:
            raise ValueError("value_range must be (low, high) with high > low")
        if self.num_threads < 1:
            raise ValueError("num_threads must be >= 1")


def _require_pair(payload: Dict[str, Any], key: str, kind: type) -> Tuple[Any, Any]:
    value = payload[key]
    if not isinstance(value, list) or len(value) != 2:
        raise ValueError(f"{key} must be a list of two numbers")
    for item in value:
        if isinstance(item, bool) or not isinstance(item, (int, float)):
            raise ValueError(f"{key} must be a list of two numbers")
        if kind is int and not isinstance(item, int):
            raise ValueError(f"{key} must contain integers")
    return kind(value[0]), kind(value[1])


def _require_str(payload: Dict[str, Any], key: str) -> str:
    value = payload[key]
    if not isinstance(value, str):
        raise ValueError(f"{key} must be a string")
    return value


def _require_number(payload: Dict[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Dict[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def load_detector_config(path: Path) -> DetectorConfig:
    """
    Read a `DetectorConfig` from JSON. Every key is optional; unknown keys are
    rejected so typos do not silently fall back to defaults.

        {
          "input_size": [320, 320],
          "source_order": "RGBA",
          "confidence_threshold": 0.5,
          "iou_threshold": 0.3,
          "max_detections": 3
        }
    """

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Detector config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector config must be a JSON object")

    allowed = {
        "input_size",
        "source_order",
        "target_order",
        "tensor_layout",
        "value_range",
        "output_layout",
        "confidence_threshold",
        "iou_threshold",
        "max_detections",
        "prefer_accelerator",
        "num_threads",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector config keys: {unknown}")

    kwargs: Dict[str, Any] = {}
    if "input_size" in payload:
        kwargs["input_size"] = _require_pair(payload, "input_size", int)
    if "value_range" in payload:
        kwargs["value_range"] = _require_pair(payload, "value_range", float)
    for key in ("source_order", "target_order", "tensor_layout", "output_layout"):
        if key in payload:
            kwargs[key] = _require_str(payload, key)
    if "prefer_accelerator" in payload:
        if not isinstance(payload["prefer_accelerator"], bool):
            raise ValueError("prefer_accelerator must be a boolean")
        kwargs["prefer_accelerator"] = payload["prefer_accelerator"]
    if "num_threads" in payload:
        kwargs["num_threads"] = _require_int(payload, "num_threads")

    defaults = Thresholds()
    kwargs["thresholds"] = Thresholds(
        confidence_threshold=(
            _require_number(payload, "confidence_threshold")
            if "confidence_threshold" in payload
            else defaults.confidence_threshold
        ),
        iou_threshold=(
            _require_number(payload, "iou_threshold") if "iou_threshold" in payload else defaults.iou_threshold
        ),
        max_detections=(
            _require_int(payload, "max_detections") if "max_detections" in payload else defaults.max_detections
        ),
    )

    return DetectorConfig(**kwargs)
