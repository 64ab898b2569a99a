from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from .errors import UnknownClassIndex
from .nms import nms
from .types import Candidates, Detection, Thresholds


logger = logging.getLogger(__name__)


class Suppressor:
    """
    Confidence filter + class-scoped NMS + label mapping.

    Output order is score descending, ties by original candidate index.
    """

    def __init__(self, labels: Sequence[str]):
        self.labels = tuple(labels)

    def run(self, candidates: Candidates, thresholds: Optional[Thresholds] = None) -> List[Detection]:
        cfg = thresholds if thresholds is not None else Thresholds()
        if len(candidates) == 0:
            return []

        # Filter by score (inclusive), compared at the model's float32 precision
        keep = np.flatnonzero(candidates.scores >= np.float32(cfg.confidence_threshold))
        if keep.size == 0:
            return []

        # Unknown class ids are dropped before NMS so they never take a slot.
        class_ids = candidates.class_ids[keep]
        known = (class_ids >= 0) & (class_ids < len(self.labels))
        for cls_id in np.unique(class_ids[~known]):
            err = UnknownClassIndex(int(cls_id), len(self.labels))
            logger.warning("Skipping candidate: %s", err)
        keep = keep[known]
        if keep.size == 0:
            return []

        boxes = candidates.boxes[keep]
        scores = candidates.scores[keep]
        class_ids = candidates.class_ids[keep]
        kept = nms(
            boxes,
            scores,
            class_ids,
            iou_threshold=cfg.iou_threshold,
            max_detections=cfg.max_detections,
        )

        return [
            Detection(
                x1=float(boxes[i, 0]),
                y1=float(boxes[i, 1]),
                x2=float(boxes[i, 2]),
                y2=float(boxes[i, 3]),
                score=float(scores[i]),
                class_id=int(class_ids[i]),
                label=self.labels[int(class_ids[i])],
            )
            for i in kept
        ]
