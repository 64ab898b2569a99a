import tempfile
import unittest
from pathlib import Path
from unittest import mock

import numpy as np

from yolo_edge.backends import onnxruntime_backend, torchscript_backend
from yolo_edge.config import DetectorConfig
from yolo_edge.errors import ConfigurationError
from yolo_edge.runtime import find_project_root, load_detector, resolve_path


class _FakeOnnxEngine:
    name = "onnxruntime[CPUExecutionProvider]"

    def __init__(self, input_shape, output_shape):
        self.input_shape = input_shape
        self.output_shape = output_shape

    def infer(self, blob: np.ndarray) -> np.ndarray:
        for want, got in zip(self.input_shape, blob.shape):
            if isinstance(want, int) and want != got:
                raise RuntimeError(f"input {self.input_shape} does not accept {blob.shape}")
        return np.zeros([d if isinstance(d, int) else 1 for d in self.output_shape], dtype=np.float32)


class TestPaths(unittest.TestCase):
    def test_resolve_path(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name)
        self.assertEqual(resolve_path("models/a.onnx", root=root), (root / "models/a.onnx").resolve())
        absolute = (root / "b.onnx").resolve()
        self.assertEqual(resolve_path(absolute), absolute)

    def test_find_project_root(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        root = Path(tmpdir.name).resolve()
        (root / "pyproject.toml").write_text("", encoding="utf-8")
        nested = root / "a" / "b"
        nested.mkdir(parents=True)
        self.assertEqual(find_project_root(nested), root)


class TestLoadDetector(unittest.TestCase):
    def _load(self, engine, **kwargs):
        with mock.patch.object(onnxruntime_backend, "load_onnxruntime_engine", return_value=engine) as loader:
            det = load_detector("/models/m.onnx", **kwargs)
        return det, loader

    def test_nchw_input_shape_sets_layout_and_size(self) -> None:
        engine = _FakeOnnxEngine((1, 3, 32, 48), (1, 6, 10))
        det, loader = self._load(engine, labels=["a", "b"], config=DetectorConfig(num_threads=2))
        self.assertEqual(det.encoder.layout, "chw")
        self.assertEqual((det.encoder.width, det.encoder.height), (48, 32))
        self.assertEqual(loader.call_args.kwargs["num_threads"], 2)
        self.assertEqual(det.detect(np.zeros((32, 48, 3), dtype=np.uint8)), [])
        self.assertTrue(det.stats.ok)

    def test_nhwc_input_shape(self) -> None:
        engine = _FakeOnnxEngine((1, 16, 16, 3), (1, 6, 10))
        det, _ = self._load(engine, labels=["a", "b"])
        self.assertEqual(det.encoder.layout, "hwc")
        self.assertEqual(det.encoder.shape, (16, 16, 3))

    def test_dynamic_input_uses_metadata_imgsz(self) -> None:
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        meta = Path(tmpdir.name) / "metadata.yaml"
        meta.write_text("imgsz:\n- 64\n- 96\nnames:\n  0: a\n  1: b\n", encoding="utf-8")

        engine = _FakeOnnxEngine(("batch", 3, "h", "w"), ("batch", 6, "anchors"))
        det, _ = self._load(engine, metadata_path=meta)
        self.assertEqual(det.labels, ("a", "b"))
        self.assertEqual((det.encoder.width, det.encoder.height), (96, 64))
        self.assertEqual(det.encoder.layout, "chw")
        self.assertEqual(det.encoder.shape, (3, 64, 96))
        self.assertEqual(det.detect(np.zeros((64, 96, 3), dtype=np.uint8)), [])
        self.assertTrue(det.stats.ok)

    def test_symbolic_spatial_dims_keep_nhwc_layout(self) -> None:
        engine = _FakeOnnxEngine(("batch", "h", "w", 3), ("batch", 6, "anchors"))
        det, _ = self._load(engine, labels=["a", "b"], config=DetectorConfig(input_size=(24, 16)))
        self.assertEqual(det.encoder.layout, "hwc")
        self.assertEqual(det.encoder.shape, (16, 24, 3))

    def test_explicit_tensor_layout_wins(self) -> None:
        engine = _FakeOnnxEngine(("batch", "c", "h", "w"), (1, 6, 10))
        det, _ = self._load(engine, labels=["a", "b"], tensor_layout="chw")
        self.assertEqual(det.encoder.layout, "chw")

    def test_label_mismatch_blocks_load(self) -> None:
        engine = _FakeOnnxEngine((1, 3, 16, 16), (1, 84, 10))
        with self.assertRaises(ConfigurationError):
            self._load(engine, labels=["a", "b"])

    def test_labels_or_metadata_required(self) -> None:
        with self.assertRaises(ConfigurationError):
            load_detector("/models/m.onnx")

    def test_unknown_extension(self) -> None:
        with self.assertRaises(ValueError):
            load_detector("/models/m.bin", labels=["a"])


class _FakeTorchEngine:
    name = "torchscript[cpu]"

    def __init__(self, input_shape, output_shape):
        self.input_shape = input_shape
        self.output_shape = output_shape

    def infer(self, blob: np.ndarray) -> np.ndarray:
        if blob.shape != self.input_shape:
            raise RuntimeError(f"expected {self.input_shape}, got {blob.shape}")
        return np.zeros(self.output_shape, dtype=np.float32)


class TestLoadTorchScriptDetector(unittest.TestCase):
    def _load(self, **kwargs):
        def fake_loader(model_path, *, input_shape, **_):
            return _FakeTorchEngine(input_shape, (1, 6, 10))

        with mock.patch.object(torchscript_backend, "load_torchscript_engine", side_effect=fake_loader) as loader:
            det = load_detector("/models/m.torchscript", labels=["a", "b"], **kwargs)
        return det, loader

    def test_defaults_to_nchw(self) -> None:
        det, loader = self._load(config=DetectorConfig(input_size=(48, 32)))
        self.assertEqual(loader.call_args.kwargs["input_shape"], (1, 3, 32, 48))
        self.assertEqual(det.encoder.layout, "chw")
        self.assertEqual(det.detect(np.zeros((32, 48, 3), dtype=np.uint8)), [])
        self.assertTrue(det.stats.ok)

    def test_explicit_nhwc(self) -> None:
        det, loader = self._load(config=DetectorConfig(input_size=(48, 32)), tensor_layout="hwc")
        self.assertEqual(loader.call_args.kwargs["input_shape"], (1, 32, 48, 3))
        self.assertEqual(det.encoder.layout, "hwc")


if __name__ == "__main__":
    unittest.main()
