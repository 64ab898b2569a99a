from __future__ import annotations

from typing import Tuple

import numpy as np

from .errors import DimensionMismatch


class TensorEncoder:
    """
    Turns a frame that already has the model input size into the float32 input
    tensor.

    The backing buffer is allocated once and every slot is rewritten on each
    call, so a returned tensor is only valid until the next `encode`.
    """

    def __init__(
        self,
        input_size: Tuple[int, int],
        source_order: str = "BGR",
        target_order: str = "RGB",
        layout: str = "hwc",
        value_range: Tuple[float, float] = (0.0, 1.0),
    ):
        width, height = (int(v) for v in input_size)
        if width < 1 or height < 1:
            raise ValueError(f"input_size must be positive, got {input_size}")
        if layout not in ("hwc", "chw"):
            raise ValueError(f"Unsupported tensor layout: {layout!r}")
        missing = [c for c in target_order if c not in source_order]
        if missing:
            raise ValueError(f"source_order {source_order!r} lacks channels {missing} of {target_order!r}")

        self.width = width
        self.height = height
        self.layout = layout
        self.source_order = source_order
        self.target_order = target_order
        # (source channel, target slot) pairs; any alpha channel is never read.
        self._channel_map = [(source_order.index(c), dst) for dst, c in enumerate(target_order)]

        low, high = (float(v) for v in value_range)
        self._scale = (high - low) / 255.0
        self._offset = low

        shape = (height, width, len(target_order)) if layout == "hwc" else (len(target_order), height, width)
        self._buffer = np.zeros(shape, dtype=np.float32)
        self._blob = self._buffer[None, ...]

    @property
    def shape(self) -> Tuple[int, ...]:
        return self._buffer.shape

    @property
    def blob(self) -> np.ndarray:
        """Batch view (1, ...) over the same memory as the tensor buffer."""
        return self._blob

    def encode(self, frame: np.ndarray) -> np.ndarray:
        if frame is None or not hasattr(frame, "shape"):
            raise TypeError("frame must be a NumPy array.")
        if frame.ndim != 3:
            raise DimensionMismatch(f"Expected frame shape (H, W, C), got {frame.shape}")
        h, w, c = frame.shape
        if (w, h) != (self.width, self.height):
            raise DimensionMismatch(
                f"Frame is {w}x{h} but the model expects {self.width}x{self.height}; resize upstream."
            )
        if c != len(self.source_order):
            raise DimensionMismatch(f"Frame has {c} channels, expected {len(self.source_order)} ({self.source_order})")

        for src, dst in self._channel_map:
            out = self._buffer[:, :, dst] if self.layout == "hwc" else self._buffer[dst]
            np.multiply(frame[:, :, src], self._scale, out=out, dtype=np.float32)
            if self._offset:
                np.add(out, self._offset, out=out)

        return self._buffer
