from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

from .config import DetectorConfig
from .detector import Detector
from .errors import ConfigurationError
from .metadata import load_model_metadata


PathLike = Union[str, Path]

logger = logging.getLogger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery.

    Useful when models live next to the code in `A/models` and scripts are run
    from a subdirectory.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against:
      - `root` if provided
      - project root (auto) otherwise
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


def _fixed(dim: object) -> bool:
    return isinstance(dim, int) and not isinstance(dim, bool)


def _input_layout(shape: Sequence[object]) -> Tuple[Optional[str], Optional[Tuple[int, int]]]:
    """
    Read (tensor_layout, (width, height)) from a 4-D model input shape.

    The layout only needs a fixed channel axis of 3; the size is returned
    when both spatial dims are fixed, so `("batch", 3, "h", "w")` still
    yields "chw".
    """

    if len(shape) != 4:
        return None, None
    if _fixed(shape[1]) and shape[1] == 3:
        layout, h, w = "chw", shape[2], shape[3]
    elif _fixed(shape[3]) and shape[3] == 3:
        layout, h, w = "hwc", shape[1], shape[2]
    else:
        return None, None
    if _fixed(h) and _fixed(w):
        return layout, (int(w), int(h))
    return layout, None


def load_detector(
    model_path: PathLike,
    *,
    metadata_path: Optional[PathLike] = None,
    labels: Optional[Sequence[str]] = None,
    config: DetectorConfig = DetectorConfig(),
    backend: Optional[str] = None,
    root: Optional[PathLike] = "auto",
    onnx_providers: Optional[Sequence[str]] = None,
    torch_half: bool = False,
    tensor_layout: Optional[str] = None,
) -> Detector:
    """
    Create a ready-to-use `Detector` for a model on disk.

    Typical usage:
        det = load_detector("models/yolov8n.onnx", metadata_path="models/metadata.yaml")

    The input size comes from the model when its spatial dims are static,
    otherwise from `imgsz` in the metadata, otherwise from `config`.

    The tensor layout is `tensor_layout` when given. Otherwise ONNX models
    report it through the channel axis of their input (symbolic batch or
    spatial dims are fine), and TorchScript models are taken as NCHW.

    Args:
        model_path: path to the model file; relative paths resolve against project root by default
        metadata_path: Ultralytics `metadata.yaml` or a plain labels file
        labels: explicit label table (takes precedence over metadata names)
        backend: "onnxruntime" / "torchscript", or None to infer from extension
        tensor_layout: "hwc" / "chw" to override the detected layout
    """

    resolved = resolve_path(model_path, root=root)

    imgsz = None
    if labels is None:
        if metadata_path is None:
            raise ConfigurationError("Pass either labels=... or metadata_path=...")
        meta = load_model_metadata(resolve_path(metadata_path, root=root))
        labels = meta.names
        imgsz = meta.imgsz
    elif metadata_path is not None:
        imgsz = load_model_metadata(resolve_path(metadata_path, root=root)).imgsz

    if imgsz is not None and tuple(imgsz) != tuple(config.input_size):
        config = replace(config, input_size=tuple(imgsz))

    chosen = backend
    if chosen is None:
        suffix = resolved.suffix.lower()
        if suffix == ".onnx":
            chosen = "onnxruntime"
        elif suffix in {".torchscript", ".ts", ".pt"}:
            chosen = "torchscript"
        else:
            raise ValueError(
                f"Could not infer backend from extension '{suffix}'. Pass backend=... explicitly."
            )

    chosen = chosen.lower()
    logger.info("Loading %s model from %s (%d labels)", chosen, resolved, len(labels))
    if chosen == "onnxruntime":
        from .backends.onnxruntime_backend import load_onnxruntime_engine

        engine = load_onnxruntime_engine(
            resolved,
            prefer_accelerator=config.prefer_accelerator,
            num_threads=config.num_threads,
            providers=onnx_providers,
        )
        layout, size = _input_layout(getattr(engine, "input_shape", ()))
        if size is not None:
            config = replace(config, input_size=size)
        layout = tensor_layout or layout
        if layout is not None:
            config = replace(config, tensor_layout=layout)
        return Detector(engine, labels, config)

    if chosen == "torchscript":
        from .backends.torchscript_backend import load_torchscript_engine

        config = replace(config, tensor_layout=tensor_layout or "chw")
        width, height = config.input_size
        if config.tensor_layout == "chw":
            input_shape = (1, 3, height, width)
        else:
            input_shape = (1, height, width, 3)
        engine = load_torchscript_engine(
            resolved,
            input_shape=input_shape,
            prefer_accelerator=config.prefer_accelerator,
            num_threads=config.num_threads,
            half=torch_half,
        )
        return Detector(engine, labels, config)

    raise ValueError(f"Unsupported backend: {backend!r}")
