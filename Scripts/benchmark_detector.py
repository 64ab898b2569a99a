from __future__ import annotations

import argparse
import itertools
import logging
import time
from typing import Dict, Iterator, List, Optional, Sequence

import cv2
import numpy as np
from tqdm import tqdm

from yolo_edge import (
    Candidates,
    DetectionStats,
    DetectorConfig,
    Suppressor,
    Thresholds,
    load_detector,
    resize_to_input,
)


STAGES = ("setup", "inference", "postprocess")


def _report(label: str, samples_ms: Sequence[float]) -> str:
    arr = np.asarray(samples_ms, dtype=np.float64)
    p50, p90, p95 = np.percentile(arr, [50.0, 90.0, 95.0])
    return f"{label}: n={arr.size} mean={arr.mean():.3f}ms p50={p50:.3f}ms p90={p90:.3f}ms p95={p95:.3f}ms"


def _record(samples: Dict[str, List[float]], stats: DetectionStats) -> None:
    samples["setup"].append(stats.setup_ms)
    samples["inference"].append(stats.inference_ms)
    samples["postprocess"].append(stats.postprocess_ms)


def _frames(image: Optional[str], video: Optional[str], repeats: int) -> Iterator[np.ndarray]:
    if image is not None:
        img = cv2.imread(image)
        if img is None:
            raise FileNotFoundError(f"Could not read image at path: {image}")
        yield from itertools.repeat(img, repeats)
        return

    cap = cv2.VideoCapture(video)
    if not cap.isOpened():
        raise FileNotFoundError(f"Could not open video: {video}")
    try:
        ok, frame = cap.read()
        while ok and frame is not None:
            yield frame
            ok, frame = cap.read()
    finally:
        cap.release()


def _synthetic_candidates(n: int, n_classes: int) -> Candidates:
    rng = np.random.default_rng(0)
    x1y1 = rng.uniform(0, 600, size=(n, 2)).astype(np.float32)
    wh = rng.uniform(5, 80, size=(n, 2)).astype(np.float32)
    return Candidates(
        boxes=np.concatenate([x1y1, x1y1 + wh], axis=1),
        scores=rng.uniform(0.0, 1.0, size=(n,)).astype(np.float32),
        class_ids=rng.integers(0, n_classes, size=(n,)).astype(np.int64),
    )


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark per-stage detector latency (setup/inference/postprocess).")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--image", default=None, help="Path to an input image (repeated N times).")
    src.add_argument("--video", default=None, help="Path to an input video file.")
    src.add_argument(
        "--synthetic-boxes",
        type=int,
        default=None,
        help="Model-free benchmark of the suppressor on N synthetic candidates.",
    )

    parser.add_argument("--model", default=None, help="Path to a YOLO model (.onnx/.torchscript).")
    parser.add_argument("--metadata", default=None, help="Ultralytics metadata.yaml or labels.txt.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument(
        "--layout",
        choices=("hwc", "chw"),
        default=None,
        help="Override the input tensor layout (default: read from the model).",
    )
    parser.add_argument("--cpu", action="store_true", help="Skip accelerated providers/devices.")
    parser.add_argument("--conf", type=float, default=0.25, help="Confidence threshold.")
    parser.add_argument("--iou", type=float, default=0.45, help="IoU threshold for NMS.")
    parser.add_argument("--max-det", type=int, default=30, help="Max detections, 0 = no limit.")
    parser.add_argument("--synthetic-classes", type=int, default=1, help="For --synthetic-boxes: number of classes.")
    parser.add_argument("--max-frames", type=int, default=0, help="Stop after N processed frames (0 = no limit).")
    parser.add_argument("--warmup", type=int, default=10, help="Warmup frames to run but not record.")
    parser.add_argument("--repeats", type=int, default=200, help="For --image/--synthetic-boxes: number of repeats.")
    args = parser.parse_args()

    if args.max_frames < 0:
        raise ValueError("--max-frames must be >= 0")
    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    thresholds = Thresholds(confidence_threshold=args.conf, iou_threshold=args.iou, max_detections=args.max_det)

    if args.synthetic_boxes is not None:
        if args.synthetic_boxes < 1:
            raise ValueError("--synthetic-boxes must be >= 1")
        if args.synthetic_classes < 1:
            raise ValueError("--synthetic-classes must be >= 1")
        candidates = _synthetic_candidates(int(args.synthetic_boxes), int(args.synthetic_classes))
        suppressor = Suppressor([str(i) for i in range(int(args.synthetic_classes))])

        post_ms: List[float] = []
        for i in tqdm(range(int(args.warmup) + int(args.repeats)), unit="run"):
            t0 = time.perf_counter()
            suppressor.run(candidates, thresholds)
            if i >= int(args.warmup):
                post_ms.append((time.perf_counter() - t0) * 1000.0)
        print(_report("postprocess", post_ms))
        return 0

    if args.model is None:
        raise ValueError("--model is required unless --synthetic-boxes is used")

    detector = load_detector(
        args.model,
        metadata_path=args.metadata,
        config=DetectorConfig(thresholds=thresholds, prefer_accelerator=not args.cpu),
        backend=args.backend,
        tensor_layout=args.layout,
    )
    size = (detector.encoder.width, detector.encoder.height)

    frames: Iterator[np.ndarray] = _frames(args.image, args.video, int(args.repeats))
    if args.max_frames:
        frames = itertools.islice(frames, int(args.warmup) + int(args.max_frames))

    samples: Dict[str, List[float]] = {stage: [] for stage in STAGES}
    failures = 0
    for i, frame in enumerate(tqdm(frames, unit="frame")):
        detector.detect(resize_to_input(frame, size))
        if i < int(args.warmup):
            continue
        if not detector.stats.ok:
            failures += 1
            continue
        _record(samples, detector.stats)

    if not samples["setup"]:
        raise RuntimeError("No benchmark samples collected (check input source / max-frames / warmup).")

    print(f"engine={detector.engine.name}")
    for stage in STAGES:
        print(_report(stage, samples[stage]))
    print(f"samples_recorded={len(samples['setup'])} failures={failures}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
