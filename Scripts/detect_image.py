from __future__ import annotations

import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

import cv2

from yolo_edge import (
    DetectorConfig,
    load_detector,
    load_detector_config,
    read_display,
    resize_to_input,
    scale_to_image,
)


def read_image(path: str):
    img = cv2.imread(path)
    if img is None:
        raise FileNotFoundError(f"Could not read image at path: {path}")
    return img


def _split_csv(raw: Optional[str]) -> Optional[List[str]]:
    if not raw:
        return None
    return [p.strip() for p in str(raw).split(",") if p.strip()]


def main() -> int:
    parser = argparse.ArgumentParser(description="Run a YOLO detector on one image and print the detections.")
    parser.add_argument("--image", required=True, help="Path to an input image.")
    parser.add_argument("--model", required=True, help="Path to a YOLO model (.onnx/.torchscript).")
    parser.add_argument("--metadata", default=None, help="Ultralytics metadata.yaml or labels.txt.")
    parser.add_argument("--config", default=None, help="Optional detector config JSON.")
    parser.add_argument("--backend", default=None, help="Force backend: onnxruntime / torchscript.")
    parser.add_argument(
        "--layout",
        choices=("hwc", "chw"),
        default=None,
        help="Override the input tensor layout (default: read from the model).",
    )
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--conf", type=float, default=None, help="Confidence threshold (overrides config).")
    parser.add_argument("--iou", type=float, default=None, help="IoU threshold for NMS (overrides config).")
    parser.add_argument("--max-det", type=int, default=None, help="Max detections, 0 = no limit (overrides config).")
    parser.add_argument("--pixels", action="store_true", help="Report boxes in original image pixels.")
    parser.add_argument("--reading", action="store_true", help="Also print a digit/unit display reading.")
    parser.add_argument("--json-out", default=None, help="Optional output path to write results JSON.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_detector_config(Path(args.config)) if args.config else DetectorConfig()
    # BGR frames straight from OpenCV.
    if config.source_order != "BGR":
        raise ValueError("detect_image.py reads images with OpenCV; config source_order must be 'BGR'")

    detector = load_detector(
        args.model,
        metadata_path=args.metadata,
        config=config,
        backend=args.backend,
        onnx_providers=_split_csv(args.onnx_providers),
        tensor_layout=args.layout,
    )
    if args.conf is not None:
        detector.set_confidence_threshold(args.conf)
    if args.iou is not None:
        detector.set_iou_threshold(args.iou)
    if args.max_det is not None:
        detector.set_max_detections(args.max_det)

    image = read_image(args.image)
    orig_h, orig_w = image.shape[:2]
    frame = resize_to_input(image, (detector.encoder.width, detector.encoder.height))

    detections = detector.detect(frame)
    stats = detector.stats
    if not stats.ok:
        print(f"detection failed at {stats.failed_stage.value}: {stats.error}")
        return 1

    if args.pixels:
        detections = scale_to_image(detections, orig_w, orig_h)

    for det in detections:
        print(f"{det.label:>12s}  {det.score:.3f}  {tuple(round(v, 4) for v in det.as_xyxy())}")
    print(
        f"setup={stats.setup_ms:.2f}ms inference={stats.inference_ms:.2f}ms "
        f"postprocess={stats.postprocess_ms:.2f}ms"
    )

    payload: Dict[str, Any] = {
        "detections": [asdict(d) for d in detections],
        "timings_ms": {
            "setup": stats.setup_ms,
            "inference": stats.inference_ms,
            "postprocess": stats.postprocess_ms,
        },
    }
    if args.reading:
        reading = read_display(detections)
        print(f"reading: {reading.value} {reading.unit}".rstrip())
        payload["reading"] = asdict(reading)

    if args.json_out:
        out_path = Path(args.json_out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        out_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
        print(f"wrote {out_path}")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
