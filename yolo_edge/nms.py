from __future__ import annotations

from typing import Sequence

import numpy as np


def box_iou(box: np.ndarray, boxes: np.ndarray) -> np.ndarray:
    """
    IoU between one xyxy box and an (N, 4) array of xyxy boxes.

    Boxes with zero or negative width/height count as zero-area, and a zero
    union yields IoU 0 rather than a division by zero.
    """

    boxes = np.asarray(boxes, dtype=np.float64).reshape(-1, 4)
    box = np.asarray(box, dtype=np.float64)

    area = max(0.0, box[2] - box[0]) * max(0.0, box[3] - box[1])
    areas = np.maximum(0.0, boxes[:, 2] - boxes[:, 0]) * np.maximum(0.0, boxes[:, 3] - boxes[:, 1])

    xx1 = np.maximum(box[0], boxes[:, 0])
    yy1 = np.maximum(box[1], boxes[:, 1])
    xx2 = np.minimum(box[2], boxes[:, 2])
    yy2 = np.minimum(box[3], boxes[:, 3])

    w = np.maximum(0.0, xx2 - xx1)
    h = np.maximum(0.0, yy2 - yy1)
    inter = w * h
    union = area + areas - inter

    out = np.zeros_like(inter)
    np.divide(inter, union, out=out, where=union > 0)
    return out


def iou(box_a: Sequence[float], box_b: Sequence[float]) -> float:
    return float(box_iou(np.asarray(box_a), np.asarray(box_b)[None, :])[0])


def rank(scores: np.ndarray) -> np.ndarray:
    """Indices by score descending; equal scores keep their original order."""
    return np.argsort(-np.asarray(scores, dtype=np.float64), kind="stable")


def nms(
    boxes: np.ndarray,
    scores: np.ndarray,
    class_ids: np.ndarray,
    iou_threshold: float = 0.45,
    max_detections: int = 30,
) -> np.ndarray:
    """
    Class-scoped greedy NMS. Expects boxes shape (N,4) in xyxy, scores and
    class_ids shape (N,). Returns indices of kept boxes in rank order.

    A box is dropped when its IoU with an already kept box of the same class is
    >= iou_threshold. `max_detections == 0` keeps every surviving box.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int64)
    if max_detections < 0:
        raise ValueError("max_detections must be >= 0")
    limit = int(max_detections) if max_detections > 0 else None

    order = rank(scores)
    suppressed = np.zeros(order.shape[0], dtype=bool)
    keep = []

    for pos, i in enumerate(order):
        if suppressed[pos]:
            continue
        keep.append(i)
        if limit is not None and len(keep) >= limit:
            break

        rest = order[pos + 1 :]
        if rest.size == 0:
            break
        same_class = class_ids[rest] == class_ids[i]
        overlap = box_iou(boxes[i], boxes[rest]) >= iou_threshold
        suppressed[pos + 1 :] |= same_class & overlap

    return np.array(keep, dtype=np.int64)
