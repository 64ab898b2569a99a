from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple, Union

import numpy as np

from . import Engine, load_engine


PathLike = Union[str, Path]


@dataclass(frozen=True)
class TorchScriptBackendConfig:
    """
    Configuration for TorchScript inference.

    - device: "cpu" or "cuda" (if available)
    - half: cast input to float16 (only if the model expects it)
    - output_index: if the model returns multiple outputs, select this index
    - num_threads: CPU intra-op threads (ignored on CUDA)
    - input_shape: blob shape used for the load-time dry run that fixes output_shape
    """

    device: str = "cpu"
    half: bool = False
    output_index: int = 0
    num_threads: int = 4
    input_shape: Optional[Tuple[int, ...]] = None


class TorchScriptBackend:
    """
    Minimal TorchScript backend using `torch.jit.load`.

    TorchScript modules do not declare their output shape, so when
    `input_shape` is given one zero blob is run at load time to record it.
    """

    def __init__(self, model_path: PathLike, cfg: TorchScriptBackendConfig = TorchScriptBackendConfig()):
        try:
            import torch  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError("torch is required for the TorchScript backend. Install with `pip install torch`.") from e

        self._torch = torch
        self.model_path = Path(model_path)
        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        self.device = torch.device(cfg.device)
        if self.device.type == "cuda" and not torch.cuda.is_available():
            raise RuntimeError("CUDA is not available in this torch install.")
        if self.device.type == "cpu":
            torch.set_num_threads(int(cfg.num_threads))
        self.half = cfg.half
        self.output_index = cfg.output_index
        self.name = f"torchscript[{self.device}]"

        model = torch.jit.load(str(self.model_path), map_location=self.device)
        model.eval()
        self.model = model

        self._output_shape: Tuple[Optional[int], ...] = ()
        if cfg.input_shape is not None:
            probe = self.infer(np.zeros(cfg.input_shape, dtype=np.float32))
            self._output_shape = tuple(int(d) for d in probe.shape)

    @property
    def output_shape(self) -> Tuple[Optional[int], ...]:
        return self._output_shape

    def infer(self, blob: np.ndarray) -> np.ndarray:
        torch = self._torch
        x = torch.as_tensor(blob, device=self.device)
        if self.half:
            x = x.half()
        else:
            x = x.float()
        x = x.contiguous()

        with torch.no_grad():
            y = self.model(x)

        if isinstance(y, (tuple, list)):
            y = y[self.output_index]

        if hasattr(y, "detach"):
            y = y.detach()
        return y.float().to("cpu").numpy()


def load_torchscript_engine(
    model_path: PathLike,
    *,
    input_shape: Sequence[int],
    prefer_accelerator: bool = True,
    num_threads: int = 4,
    half: bool = False,
    output_index: int = 0,
) -> Engine:
    """
    Build a TorchScript engine on CUDA when preferred, falling back once to CPU.
    """

    def _build(device: str) -> TorchScriptBackend:
        return TorchScriptBackend(
            model_path,
            TorchScriptBackendConfig(
                device=device,
                # float16 is only worth it on the accelerator
                half=half and device != "cpu",
                output_index=output_index,
                num_threads=num_threads,
                input_shape=tuple(int(d) for d in input_shape),
            ),
        )

    accelerated = (lambda: _build("cuda")) if prefer_accelerator else None
    return load_engine(accelerated, lambda: _build("cpu"))
