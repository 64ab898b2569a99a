import unittest

import numpy as np

from yolo_edge.nms import box_iou, iou, nms
from yolo_edge.suppressor import Suppressor
from yolo_edge.types import Candidates, Thresholds


LABELS = ["person", "car", "dog"]


def _candidates(rows):
    # rows: (x1, y1, x2, y2, score, class_id)
    arr = np.array(rows, dtype=np.float32).reshape(-1, 6)
    return Candidates(
        boxes=arr[:, :4].copy(),
        scores=arr[:, 4].copy(),
        class_ids=arr[:, 5].astype(np.int64),
    )


def _random_candidates(n: int, n_classes: int, seed: int = 0) -> Candidates:
    rng = np.random.default_rng(seed)
    x1y1 = rng.uniform(0, 100, size=(n, 2)).astype(np.float32)
    wh = rng.uniform(5, 40, size=(n, 2)).astype(np.float32)
    return Candidates(
        boxes=np.concatenate([x1y1, x1y1 + wh], axis=1),
        scores=rng.uniform(0, 1, size=(n,)).astype(np.float32),
        class_ids=rng.integers(0, n_classes, size=(n,)).astype(np.int64),
    )


class TestIoU(unittest.TestCase):
    def test_identical_boxes(self) -> None:
        self.assertAlmostEqual(iou([0, 0, 10, 10], [0, 0, 10, 10]), 1.0)

    def test_disjoint_boxes(self) -> None:
        self.assertEqual(iou([0, 0, 10, 10], [20, 20, 30, 30]), 0.0)

    def test_partial_overlap(self) -> None:
        # inter = 5*10 = 50, union = 100 + 100 - 50 = 150
        self.assertAlmostEqual(iou([0, 0, 10, 10], [5, 0, 15, 10]), 50.0 / 150.0)

    def test_zero_and_negative_area_boxes(self) -> None:
        self.assertEqual(iou([0, 0, 0, 0], [0, 0, 0, 0]), 0.0)
        self.assertEqual(iou([5, 5, 5, 10], [0, 0, 10, 10]), 0.0)
        self.assertEqual(iou([10, 10, 0, 0], [0, 0, 10, 10]), 0.0)

    def test_vectorized(self) -> None:
        out = box_iou(np.array([0, 0, 10, 10]), np.array([[0, 0, 10, 10], [20, 20, 30, 30]]))
        self.assertTrue(np.allclose(out, [1.0, 0.0]))


class TestNMS(unittest.TestCase):
    def test_empty(self) -> None:
        keep = nms(np.empty((0, 4)), np.empty((0,)), np.empty((0,), dtype=np.int64))
        self.assertEqual(keep.shape, (0,))

    def test_ties_broken_by_index(self) -> None:
        boxes = np.array([[0, 0, 1, 1], [10, 10, 11, 11], [20, 20, 21, 21]], dtype=np.float32)
        scores = np.array([0.5, 0.7, 0.5], dtype=np.float32)
        keep = nms(boxes, scores, np.zeros(3, dtype=np.int64), iou_threshold=0.5, max_detections=0)
        self.assertEqual(keep.tolist(), [1, 0, 2])

    def test_threshold_is_inclusive_for_suppression(self) -> None:
        # inter = 50, union = 100 -> IoU exactly 0.5
        boxes = np.array([[0, 0, 10, 10], [0, 0, 10, 5]], dtype=np.float32)
        scores = np.array([0.9, 0.8], dtype=np.float32)
        keep = nms(boxes, scores, np.zeros(2, dtype=np.int64), iou_threshold=0.5, max_detections=0)
        self.assertEqual(keep.tolist(), [0])

    def test_suppressed_box_does_not_suppress_others(self) -> None:
        # B overlaps A (suppressed), C overlaps only B: C must survive.
        boxes = np.array([[0, 0, 10, 10], [6, 0, 16, 10], [12, 0, 22, 10]], dtype=np.float32)
        scores = np.array([0.9, 0.8, 0.7], dtype=np.float32)
        keep = nms(boxes, scores, np.zeros(3, dtype=np.int64), iou_threshold=0.2, max_detections=0)
        self.assertEqual(keep.tolist(), [0, 2])

    def test_negative_max_detections_rejected(self) -> None:
        with self.assertRaises(ValueError):
            nms(np.zeros((1, 4)), np.zeros((1,)), np.zeros((1,), dtype=np.int64), max_detections=-1)


class TestSuppressor(unittest.TestCase):
    def setUp(self) -> None:
        self.sup = Suppressor(LABELS)

    def test_identical_boxes_same_class_keeps_best(self) -> None:
        cands = _candidates([(0, 0, 10, 10, 0.9, 0), (0, 0, 10, 10, 0.8, 0)])
        dets = self.sup.run(cands, Thresholds(confidence_threshold=0.5, iou_threshold=0.5))
        self.assertEqual(len(dets), 1)
        self.assertAlmostEqual(dets[0].score, 0.9, places=5)
        self.assertEqual(dets[0].label, "person")

    def test_identical_boxes_different_class_both_kept(self) -> None:
        cands = _candidates([(0, 0, 10, 10, 0.9, 0), (0, 0, 10, 10, 0.8, 1)])
        dets = self.sup.run(cands, Thresholds(confidence_threshold=0.5, iou_threshold=0.5))
        self.assertEqual([d.label for d in dets], ["person", "car"])

    def test_no_candidates(self) -> None:
        self.assertEqual(self.sup.run(Candidates.empty(), Thresholds()), [])

    def test_max_detections_keeps_top_in_order(self) -> None:
        rows = [(i * 20, 0, i * 20 + 10, 10, s, 0) for i, s in enumerate([0.6, 0.9, 0.7, 0.95, 0.8])]
        dets = self.sup.run(_candidates(rows), Thresholds(confidence_threshold=0.25, iou_threshold=0.45, max_detections=2))
        self.assertEqual(len(dets), 2)
        self.assertAlmostEqual(dets[0].score, 0.95, places=5)
        self.assertAlmostEqual(dets[1].score, 0.9, places=5)

    def test_max_detections_zero_is_unbounded(self) -> None:
        rows = [(i * 20, 0, i * 20 + 10, 10, 0.5, 0) for i in range(40)]
        dets = self.sup.run(_candidates(rows), Thresholds(max_detections=0))
        self.assertEqual(len(dets), 40)

    def test_confidence_threshold_is_inclusive(self) -> None:
        cands = _candidates([(0, 0, 10, 10, 0.5, 0), (20, 20, 30, 30, 0.49, 0)])
        dets = self.sup.run(cands, Thresholds(confidence_threshold=0.5))
        self.assertEqual(len(dets), 1)
        self.assertEqual(dets[0].score, 0.5)

    def test_float32_score_at_threshold_is_kept(self) -> None:
        cands = Candidates(
            boxes=np.array([[0, 0, 10, 10]], dtype=np.float32),
            scores=np.array([0.7], dtype=np.float32),
            class_ids=np.array([0], dtype=np.int64),
        )
        dets = self.sup.run(cands, Thresholds(confidence_threshold=0.7))
        self.assertEqual(len(dets), 1)

    def test_unknown_class_index_is_skipped(self) -> None:
        cands = _candidates([(0, 0, 10, 10, 0.9, 7), (20, 20, 30, 30, 0.8, 2)])
        with self.assertLogs("yolo_edge.suppressor", level="WARNING"):
            dets = self.sup.run(cands, Thresholds(max_detections=1))
        self.assertEqual(len(dets), 1)
        self.assertEqual(dets[0].label, "dog")

    def test_properties_on_random_candidates(self) -> None:
        cands = _random_candidates(300, 3, seed=1)
        for conf, iou_thr, max_det in [(0.25, 0.45, 30), (0.6, 0.3, 0), (0.1, 0.7, 5)]:
            th = Thresholds(confidence_threshold=conf, iou_threshold=iou_thr, max_detections=max_det)
            dets = self.sup.run(cands, th)

            self.assertTrue(all(np.float32(d.score) >= np.float32(conf) for d in dets))
            scores = [d.score for d in dets]
            self.assertEqual(scores, sorted(scores, reverse=True))
            if max_det > 0:
                self.assertLessEqual(len(dets), max_det)
            for i, a in enumerate(dets):
                for b in dets[i + 1 :]:
                    if a.class_id == b.class_id:
                        self.assertLess(iou(a.as_xyxy(), b.as_xyxy()), iou_thr)

            # Fixed point: running again on the output changes nothing.
            again = self.sup.run(Candidates.from_detections(dets), th)
            self.assertEqual(again, dets)


if __name__ == "__main__":
    unittest.main()
