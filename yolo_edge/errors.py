from __future__ import annotations


class DetectorError(Exception):
    """
    Base class for every error raised by the detection pipeline.
    """


class DimensionMismatch(DetectorError, ValueError):
    """Frame size or channel count differs from the model input."""


class ShapeError(DetectorError, ValueError):
    """Engine output disagrees with the layout negotiated at load time."""


class EngineFailure(DetectorError, RuntimeError):
    """The inference engine failed to load or to run."""


class UnknownClassIndex(DetectorError, IndexError):
    """A decoded class index has no entry in the label table."""

    def __init__(self, class_id: int, num_labels: int):
        super().__init__(f"class index {class_id} out of range for {num_labels} labels")
        self.class_id = class_id
        self.num_labels = num_labels


class ConfigurationError(DetectorError, ValueError):
    """Load-time mismatch between labels, model output and configuration."""
