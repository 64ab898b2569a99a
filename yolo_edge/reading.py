from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .types import Detection


DIGIT_LABELS = ("0", "1", "2", "3", "4", "5", "6", "7", "8", "9", ".")
UNIT_LABELS = ("Lb", "Kg", "OZ", "jin")
EMPTY_READING = "—"


@dataclass(frozen=True)
class DisplayReading:
    value: str
    unit: str
    unit_confidence: Optional[float] = None


def read_display(
    detections: Iterable[Detection],
    digit_labels: Sequence[str] = DIGIT_LABELS,
    unit_labels: Sequence[str] = UNIT_LABELS,
) -> DisplayReading:
    """
    Turn character detections on a scale display into a reading.

    Digits and the decimal point are read left to right by box x1; the unit is
    the most confident unit detection. An empty reading is shown as an em dash.
    """

    dets = list(detections)
    chars = sorted((d for d in dets if d.label.strip() in digit_labels), key=lambda d: d.x1)
    units = [d for d in dets if d.label.strip() in unit_labels]

    value = "".join(d.label.strip() for d in chars) or EMPTY_READING
    best_unit = max(units, key=lambda d: d.score, default=None)
    if best_unit is None:
        return DisplayReading(value=value, unit="")
    return DisplayReading(value=value, unit=best_unit.label, unit_confidence=best_unit.score)
