from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from .errors import ConfigurationError, ShapeError
from .types import Candidates


class OutputLayout(str, Enum):
    # (4 + C, N): e.g. 84 x 8400 for YOLOv8 exports
    ATTRIBUTES_FIRST = "attributes_first"
    # (N, 4 + C)
    BOXES_FIRST = "boxes_first"


class OutputDecoder:
    """
    Decodes a raw YOLO output tensor into `Candidates`.

    Supported layouts (per image, optional leading batch axis of 1):
    - (4 + C, N): [cx, cy, w, h, class_scores...] along the first axis
    - (N, 4 + C): same attributes along the last axis

    Which axis holds the boxes cannot be told from the tensor alone, so the
    layout is fixed when the model is loaded and every frame is checked against it.
    """

    def __init__(
        self,
        num_classes: int,
        layout: Union[OutputLayout, str] = OutputLayout.ATTRIBUTES_FIRST,
        num_boxes: Optional[int] = None,
    ):
        if num_classes < 1:
            raise ConfigurationError("num_classes must be >= 1")
        self.num_classes = int(num_classes)
        self.layout = OutputLayout(layout)
        self.num_boxes = None if num_boxes is None else int(num_boxes)

    @property
    def num_attributes(self) -> int:
        return 4 + self.num_classes

    @classmethod
    def from_output_shape(
        cls,
        shape: Sequence[Optional[int]],
        num_classes: int,
        layout: Union[OutputLayout, str] = OutputLayout.ATTRIBUTES_FIRST,
    ) -> "OutputDecoder":
        """
        Build a decoder from the engine's output shape, asserting that the
        attribute axis matches the label count.

        Dynamic dimensions (None or symbolic names) are accepted for the box axis only.
        """

        dims = list(shape)
        if len(dims) == 3:
            if dims[0] not in (1, None) and not isinstance(dims[0], str):
                raise ConfigurationError(f"Batch > 1 is not supported (output shape {tuple(shape)})")
            dims = dims[1:]
        if len(dims) != 2:
            raise ConfigurationError(f"Expected a 2-D output (optionally batched), got shape {tuple(shape)}")

        layout = OutputLayout(layout)
        attrs, boxes = (dims[0], dims[1]) if layout is OutputLayout.ATTRIBUTES_FIRST else (dims[1], dims[0])
        if not isinstance(attrs, int) or attrs != 4 + num_classes:
            raise ConfigurationError(
                f"Model emits {attrs} attributes per box ({layout.value} layout, shape {tuple(shape)}) "
                f"but {num_classes} labels need {4 + num_classes}"
            )
        num_boxes = boxes if isinstance(boxes, int) else None
        return cls(num_classes=num_classes, layout=layout, num_boxes=num_boxes)

    def decode(self, raw: np.ndarray) -> Candidates:
        p = np.asarray(raw)
        if p.ndim == 3:
            if p.shape[0] != 1:
                raise ShapeError(f"Batch > 1 is not supported (got shape {p.shape}). Pass one image at a time.")
            p = p[0]
        if p.ndim != 2:
            raise ShapeError(f"Unsupported YOLO output shape: {np.shape(raw)}")

        # Normalize to (A, N) so attributes index the first axis.
        if self.layout is OutputLayout.BOXES_FIRST:
            p = p.T
        attrs, n = p.shape
        if attrs != self.num_attributes:
            raise ShapeError(f"Expected {self.num_attributes} attributes per box, got shape {np.shape(raw)}")
        if self.num_boxes is not None and n != self.num_boxes:
            raise ShapeError(f"Expected {self.num_boxes} boxes, got shape {np.shape(raw)}")
        if n == 0:
            return Candidates.empty()

        class_scores = p[4:, :]
        class_ids = np.argmax(class_scores, axis=0)
        scores = class_scores[class_ids, np.arange(n)].astype(np.float32)

        # Convert cxcywh -> xyxy
        cx, cy, w_box, h_box = p[0:4, :]
        boxes_xyxy = np.stack(
            [cx - w_box / 2, cy - h_box / 2, cx + w_box / 2, cy + h_box / 2],
            axis=1,
        ).astype(np.float32)

        return Candidates(boxes=boxes_xyxy, scores=scores, class_ids=class_ids.astype(np.int64))
