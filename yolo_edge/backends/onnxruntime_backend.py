from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np

from . import Engine, load_engine


PathLike = Union[str, Path]

# Tried in this order when an accelerator is preferred; filtered by availability.
ACCELERATED_PROVIDERS = (
    "TensorrtExecutionProvider",
    "CUDAExecutionProvider",
    "CoreMLExecutionProvider",
    "DmlExecutionProvider",
    "NnapiExecutionProvider",
)


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CUDAExecutionProvider", "CPUExecutionProvider"])
    - num_threads: intra-op threads for the session
    - input_name/output_name: override auto-selected I/O names if needed
    """

    providers: Optional[Sequence[str]] = None
    num_threads: int = 4
    input_name: Optional[str] = None
    output_name: Optional[str] = None


def _import_ort():
    try:
        import onnxruntime as ort  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError(
            "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime` "
            "(or `onnxruntime-gpu`)."
        ) from e
    return ort


class OnnxRuntimeBackend:
    """
    Minimal ONNX Runtime backend.

    Expects a float32 blob with a leading batch axis, e.g. (1, 3, H, W).
    Returns the primary output as a NumPy array.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        ort = _import_ort()

        self._ort = ort
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        sess_opts.intra_op_num_threads = int(cfg.num_threads)
        providers = list(cfg.providers) if cfg.providers is not None else None
        self.session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        self.input_name = cfg.input_name or self.session.get_inputs()[0].name
        # If output_name not provided, pick first output.
        self.output_name = cfg.output_name or self.session.get_outputs()[0].name
        self.name = f"onnxruntime[{','.join(self.providers_in_use)}]"

    @property
    def providers_in_use(self) -> Sequence[str]:
        # ORT returns providers in priority order for this session.
        return tuple(self.session.get_providers())

    @property
    def available_providers(self) -> Sequence[str]:
        return tuple(self._ort.get_available_providers())

    @property
    def input_shape(self) -> Tuple[Any, ...]:
        for node in self.session.get_inputs():
            if node.name == self.input_name:
                return tuple(node.shape)
        return ()

    @property
    def output_shape(self) -> Tuple[Any, ...]:
        for node in self.session.get_outputs():
            if node.name == self.output_name:
                return tuple(node.shape)
        return ()

    def infer(self, blob: np.ndarray, extra_inputs: Optional[Dict[str, Any]] = None) -> np.ndarray:
        inputs: Dict[str, Any] = {self.input_name: blob}
        if extra_inputs:
            inputs.update(extra_inputs)
        outputs = self.session.run([self.output_name], inputs)
        return outputs[0]


def load_onnxruntime_engine(
    model_path: PathLike,
    *,
    prefer_accelerator: bool = True,
    num_threads: int = 4,
    providers: Optional[Sequence[str]] = None,
    input_name: Optional[str] = None,
    output_name: Optional[str] = None,
) -> Engine:
    """
    Build an ONNX Runtime engine, trying accelerated providers first and
    falling back once to a CPU-only session.
    """

    def _build(chosen: Sequence[str]) -> OnnxRuntimeBackend:
        return OnnxRuntimeBackend(
            model_path,
            OnnxRuntimeBackendConfig(
                providers=chosen,
                num_threads=num_threads,
                input_name=input_name,
                output_name=output_name,
            ),
        )

    accelerated = None
    if providers is not None:
        accelerated = lambda: _build(list(providers))  # noqa: E731
    elif prefer_accelerator:
        available = set(_import_ort().get_available_providers())
        chosen = [p for p in ACCELERATED_PROVIDERS if p in available]
        if chosen:
            accelerated = lambda: _build(chosen + ["CPUExecutionProvider"])  # noqa: E731

    return load_engine(accelerated, lambda: _build(["CPUExecutionProvider"]))
