from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Tuple

import numpy as np


@dataclass(frozen=True)
class Detection:
    """
    Final detection handed to the caller.

    Coordinates are xyxy in the same units the model emits (normalized for the
    usual mobile exports); see `resize.scale_to_image` for pixel boxes.
    """

    x1: float
    y1: float
    x2: float
    y2: float
    score: float
    class_id: int
    label: str

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.x1, self.y1, self.x2, self.y2

    @property
    def confidence(self) -> float:
        return self.score


@dataclass(frozen=True)
class Candidate:
    cx: float
    cy: float
    w: float
    h: float
    class_id: int
    score: float


@dataclass(frozen=True)
class Candidates:
    """
    Decoded, not-yet-filtered proposals stored as parallel arrays.

    boxes: (N, 4) xyxy float32
    scores: (N,) best class score per box
    class_ids: (N,) argmax class index per box
    """

    boxes: np.ndarray
    scores: np.ndarray
    class_ids: np.ndarray

    def __post_init__(self) -> None:
        n = self.scores.shape[0]
        if self.boxes.shape != (n, 4) or self.class_ids.shape != (n,):
            raise ValueError(
                f"Inconsistent candidate arrays: boxes={self.boxes.shape}, "
                f"scores={self.scores.shape}, class_ids={self.class_ids.shape}"
            )

    def __len__(self) -> int:
        return int(self.scores.shape[0])

    def candidate(self, index: int) -> Candidate:
        x1, y1, x2, y2 = (float(v) for v in self.boxes[index])
        return Candidate(
            cx=(x1 + x2) / 2,
            cy=(y1 + y2) / 2,
            w=x2 - x1,
            h=y2 - y1,
            class_id=int(self.class_ids[index]),
            score=float(self.scores[index]),
        )

    @classmethod
    def empty(cls) -> "Candidates":
        return cls(
            boxes=np.empty((0, 4), dtype=np.float32),
            scores=np.empty((0,), dtype=np.float32),
            class_ids=np.empty((0,), dtype=np.int64),
        )

    @classmethod
    def from_detections(cls, detections: Iterable[Detection]) -> "Candidates":
        dets = list(detections)
        if not dets:
            return cls.empty()
        return cls(
            boxes=np.array([d.as_xyxy() for d in dets], dtype=np.float32),
            scores=np.array([d.score for d in dets], dtype=np.float32),
            class_ids=np.array([d.class_id for d in dets], dtype=np.int64),
        )


@dataclass
class Thresholds:
    """
    Postprocessing knobs. Mutable, but only between calls: the detector reads a
    snapshot at the start of each postprocessing pass.
    """

    confidence_threshold: float = 0.25
    iou_threshold: float = 0.45
    # 0 means no limit.
    max_detections: int = 30

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be in [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if isinstance(self.max_detections, bool) or int(self.max_detections) != self.max_detections:
            raise ValueError("max_detections must be an integer")
        if self.max_detections < 0:
            raise ValueError("max_detections must be >= 0")


class DetectorStage(str, Enum):
    IDLE = "idle"
    ENCODING = "encoding"
    INFERRING = "inferring"
    DECODING = "decoding"
    SUPPRESSING = "suppressing"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class DetectionStats:
    """
    Timings of the most recent `Detector.detect` call, in milliseconds.
    """

    setup_ms: float = 0.0
    inference_ms: float = 0.0
    postprocess_ms: float = 0.0
    stage: DetectorStage = DetectorStage.IDLE
    failed_stage: Optional[DetectorStage] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.stage is DetectorStage.DONE

    @property
    def total_ms(self) -> float:
        return self.setup_ms + self.inference_ms + self.postprocess_ms
