"""
Inference backends for yolo_edge.

Runtimes (onnxruntime, torch) are imported lazily by their backend modules so
the pre/post-processing core can be used without installing them.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Protocol, Sequence, Tuple

import numpy as np

from ..errors import EngineFailure


logger = logging.getLogger(__name__)


class Engine(Protocol):
    name: str

    @property
    def output_shape(self) -> Tuple[Optional[int], ...]:
        ...

    def infer(self, blob: np.ndarray) -> np.ndarray:
        ...


class CallableEngine:
    """
    Wraps any `blob -> output` function with a declared output shape.
    """

    def __init__(
        self,
        infer_fn: Callable[[np.ndarray], np.ndarray],
        output_shape: Sequence[Optional[int]],
        name: str = "callable",
    ):
        self._infer_fn = infer_fn
        self._output_shape = tuple(None if d is None else int(d) for d in output_shape)
        self.name = name

    @property
    def output_shape(self) -> Tuple[Optional[int], ...]:
        return self._output_shape

    def infer(self, blob: np.ndarray) -> np.ndarray:
        return self._infer_fn(blob)


def load_engine(
    accelerated: Optional[Callable[[], Engine]],
    fallback: Callable[[], Engine],
) -> Engine:
    """
    Pick the execution strategy once, at load time.

    The accelerated factory is tried first (when given); if it raises, the
    non-accelerated factory is tried exactly once. The returned engine is kept
    for the lifetime of the model; there is no per-call switching.
    """

    if accelerated is not None:
        try:
            engine = accelerated()
        except Exception as exc:
            logger.warning("Accelerated engine unavailable (%s); falling back to CPU", exc)
        else:
            logger.info("Using accelerated engine: %s", engine.name)
            return engine

    try:
        engine = fallback()
    except Exception as exc:
        raise EngineFailure(f"Could not initialize inference engine: {exc}") from exc
    logger.info("Using engine: %s", engine.name)
    return engine


__all__ = ["Engine", "CallableEngine", "load_engine"]
