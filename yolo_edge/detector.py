from __future__ import annotations

import logging
import time
from dataclasses import replace
from typing import List, Sequence

import numpy as np

from .backends import Engine
from .config import DetectorConfig
from .decoder import OutputDecoder
from .encoder import TensorEncoder
from .errors import ConfigurationError, DetectorError, EngineFailure
from .suppressor import Suppressor
from .types import Detection, DetectionStats, DetectorStage, Thresholds


logger = logging.getLogger(__name__)


def _ms(start: float, end: float) -> float:
    return (end - start) * 1000.0


class Detector:
    """
    Single-frame pipeline: encode -> infer -> decode -> suppress.

    The frame must already have the model input size (see `resize_to_input`).
    `detect` never raises for per-frame problems: it returns an empty list and
    records the failure in `stats`. Construction raises `ConfigurationError`
    when labels and model output disagree, so a Detector that exists is usable.

    One call at a time per instance. The tensor buffer and thresholds are not
    locked; configure between calls, not during.
    """

    def __init__(self, engine: Engine, labels: Sequence[str], config: DetectorConfig = DetectorConfig()):
        labels = tuple(labels)
        if not labels:
            raise ConfigurationError("Label table is empty.")

        self.engine = engine
        self.config = config
        self.labels = labels
        self.decoder = OutputDecoder.from_output_shape(engine.output_shape, len(labels), config.output_layout)
        self.encoder = TensorEncoder(
            config.input_size,
            source_order=config.source_order,
            target_order=config.target_order,
            layout=config.tensor_layout,
            value_range=config.value_range,
        )
        self.suppressor = Suppressor(labels)
        self.thresholds: Thresholds = replace(config.thresholds)
        self._stats = DetectionStats()

        logger.info(
            "Detector ready (engine=%s, input=%dx%d %s, classes=%d, conf=%.2f, iou=%.2f, max_det=%d)",
            getattr(engine, "name", type(engine).__name__),
            self.encoder.width,
            self.encoder.height,
            self.encoder.layout,
            len(labels),
            self.thresholds.confidence_threshold,
            self.thresholds.iou_threshold,
            self.thresholds.max_detections,
        )

    # ------------------------------------------------------------------ #
    # Threshold configuration
    # ------------------------------------------------------------------ #
    def set_confidence_threshold(self, value: float) -> None:
        self.thresholds = replace(self.thresholds, confidence_threshold=float(value))

    def set_iou_threshold(self, value: float) -> None:
        self.thresholds = replace(self.thresholds, iou_threshold=float(value))

    def set_max_detections(self, value: int) -> None:
        self.thresholds = replace(self.thresholds, max_detections=value)

    @property
    def stats(self) -> DetectionStats:
        return self._stats

    # ------------------------------------------------------------------ #
    # Inference
    # ------------------------------------------------------------------ #
    def detect(self, frame: np.ndarray) -> List[Detection]:
        stage = DetectorStage.ENCODING
        setup_ms = inference_ms = postprocess_ms = 0.0
        start = time.perf_counter()

        try:
            self.encoder.encode(frame)
            t1 = time.perf_counter()
            setup_ms = _ms(start, t1)

            stage = DetectorStage.INFERRING
            raw = self._infer()
            t2 = time.perf_counter()
            inference_ms = _ms(t1, t2)

            stage = DetectorStage.DECODING
            thresholds = self.thresholds
            candidates = self.decoder.decode(raw)

            stage = DetectorStage.SUPPRESSING
            detections = self.suppressor.run(candidates, thresholds)
            postprocess_ms = _ms(t2, time.perf_counter())
        except Exception as exc:
            elapsed = _ms(start, time.perf_counter()) - setup_ms - inference_ms
            if stage is DetectorStage.ENCODING:
                setup_ms = elapsed
            elif stage is DetectorStage.INFERRING:
                inference_ms = elapsed
            else:
                postprocess_ms = elapsed
            self._stats = DetectionStats(
                setup_ms=setup_ms,
                inference_ms=inference_ms,
                postprocess_ms=postprocess_ms,
                stage=DetectorStage.FAILED,
                failed_stage=stage,
                error=exc,
            )
            logger.warning("Detection failed while %s: %s", stage.value, exc)
            logger.debug("Detection failure details", exc_info=True)
            return []

        self._stats = DetectionStats(
            setup_ms=setup_ms,
            inference_ms=inference_ms,
            postprocess_ms=postprocess_ms,
            stage=DetectorStage.DONE,
        )
        return detections

    __call__ = detect

    def _infer(self) -> np.ndarray:
        try:
            return self.engine.infer(self.encoder.blob)
        except DetectorError:
            raise
        except Exception as exc:
            raise EngineFailure(f"Inference failed: {exc}") from exc
