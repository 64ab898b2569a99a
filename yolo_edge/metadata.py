from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from .errors import ConfigurationError


@dataclass(frozen=True)
class ModelMetadata:
    names: Tuple[str, ...]
    imgsz: Optional[Tuple[int, int]] = None


def _parse_imgsz(value: str) -> Optional[Tuple[int, int]]:
    # "[320, 320]", "320" or "320, 320"
    parts = [p.strip() for p in value.strip("[]() ").split(",") if p.strip()]
    if not parts or not all(p.isdigit() for p in parts):
        return None
    if len(parts) == 1:
        return int(parts[0]), int(parts[0])
    # Ultralytics writes imgsz as [h, w].
    return int(parts[1]), int(parts[0])


def load_model_metadata(metadata_path: Union[str, Path]) -> ModelMetadata:
    """
    Load class names (and input size when present) from an Ultralytics-style
    `metadata.yaml`:

        imgsz:
        - 320
        - 320
        names:
          0: person
          1: bicycle
          ...

    A plain text file with one label per line is accepted too. This function
    intentionally avoids adding a PyYAML dependency.
    """

    path = Path(metadata_path)
    lines = path.read_text(encoding="utf-8").splitlines()

    if path.suffix.lower() not in (".yaml", ".yml"):
        names = [line.strip() for line in lines if line.strip()]
        if not names:
            raise ConfigurationError(f"No labels found in {path}")
        return ModelMetadata(names=tuple(names))

    by_id: Dict[int, str] = {}
    imgsz: Optional[Tuple[int, int]] = None
    imgsz_items: List[str] = []
    section: Optional[str] = None

    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        indented = raw[:1] in (" ", "\t", "-")
        if not indented:
            section = None
            key, _, value = line.partition(":")
            key = key.strip()
            value = value.strip()
            if key == "names" and not value:
                section = "names"
            elif key == "imgsz":
                if value:
                    imgsz = _parse_imgsz(value)
                else:
                    section = "imgsz"
            continue

        if section == "imgsz" and line.startswith("-"):
            imgsz_items.append(line.lstrip("-").strip())
            continue
        if section != "names":
            continue

        # Parse "id: label"
        if ":" not in line:
            continue
        left, right = line.split(":", 1)
        left = left.strip()
        right = right.strip().strip("'").strip('"')
        if not left.isdigit():
            continue
        by_id[int(left)] = right

    if imgsz_items:
        imgsz = _parse_imgsz(",".join(imgsz_items))

    if not by_id:
        raise ConfigurationError(f"No 'names' mapping found in {path}")
    if sorted(by_id) != list(range(len(by_id))):
        raise ConfigurationError(f"Class ids in {path} must be contiguous from 0, got {sorted(by_id)}")

    return ModelMetadata(names=tuple(by_id[i] for i in range(len(by_id))), imgsz=imgsz)


def load_class_names(metadata_path: Union[str, Path]) -> List[str]:
    return list(load_model_metadata(metadata_path).names)
