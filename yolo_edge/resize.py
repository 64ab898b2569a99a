from __future__ import annotations

from dataclasses import replace
from typing import Iterable, List, Tuple

import numpy as np

from .types import Detection


def resize_to_input(image: np.ndarray, input_size: Tuple[int, int]) -> np.ndarray:
    """
    Stretch `image` to the model input size (width, height) with bilinear
    filtering. Aspect ratio is not preserved, matching how mobile exports are
    usually fed; use a letterbox upstream if the model needs it.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for resize_to_input(). Install with `pip install opencv-python`.") from e

    if image is None or not hasattr(image, "shape") or image.ndim != 3:
        raise ValueError(f"Expected image shape (H, W, C), got {getattr(image, 'shape', None)}")

    new_w, new_h = (int(v) for v in input_size)
    h, w = image.shape[:2]
    if (w, h) == (new_w, new_h):
        return image
    return cv2.resize(image, (new_w, new_h), interpolation=cv2.INTER_LINEAR)


def scale_to_image(detections: Iterable[Detection], width: int, height: int, clip: bool = True) -> List[Detection]:
    """
    Map normalized xyxy detections to pixel coordinates of a width x height image.
    """

    out: List[Detection] = []
    for det in detections:
        x1, x2 = det.x1 * width, det.x2 * width
        y1, y2 = det.y1 * height, det.y2 * height
        if clip:
            x1, x2 = (float(np.clip(v, 0, width)) for v in (x1, x2))
            y1, y2 = (float(np.clip(v, 0, height)) for v in (y1, y2))
        out.append(replace(det, x1=x1, y1=y1, x2=x2, y2=y2))
    return out
